"""QuickConnect: log a new device in by approving a short code from a logged in one"""

import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Request

from ..config import ServerConfig
from ..jellyfin.auth import AuthHeader, RequestContext, get_request_context, parse_auth_header
from ..jellyfin.errors import JellyfinError
from ..jellyfin.items import format_time
from ..library.idhash import random_id
from ..services.log_service import log_service
from ..services.state_store import QuickConnectCode, StateStore, utcnow
from .deps import get_config, get_store

CODE_VALID_FOR = timedelta(minutes=10)

logger = log_service.get_logger("auth")

router = APIRouter(prefix="/QuickConnect", tags=["quickconnect"])


def quick_connect_response(code: QuickConnectCode, header: Optional[AuthHeader]) -> dict:
    header = header or AuthHeader()
    return {
        "Code": code.code,
        "Secret": code.secret,
        "Authenticated": code.authorized,
        "DateAdded": format_time(code.created),
        "AppName": header.client,
        "AppVersion": header.version,
        "DeviceId": header.device_id or code.device_id,
        "DeviceName": header.device,
    }


def _require_enabled(config: ServerConfig):
    if not config.jellyfin.quickconnect:
        raise JellyfinError(401, "QuickConnect is not enabled")


def _expired(code: QuickConnectCode) -> bool:
    if code.created is None:
        return True
    return utcnow() - code.created > CODE_VALID_FOR


@router.get("/Enabled")
async def quick_connect_enabled(config: ServerConfig = Depends(get_config)):
    return config.jellyfin.quickconnect


@router.post("/Initiate")
async def quick_connect_initiate(
    request: Request,
    config: ServerConfig = Depends(get_config),
    store: StateStore = Depends(get_store),
):
    """Hand out a six digit code and the secret to poll it with"""
    _require_enabled(config)
    header = parse_auth_header(request)
    code = QuickConnectCode(
        device_id=header.device_id if header else "",
        secret=random_id(),
        code=f"{secrets.randbelow(1000000):06d}",
        created=utcnow(),
    )
    await store.upsert_quick_connect(code)
    logger.info(f"QuickConnect code issued to device {code.device_id}")
    return quick_connect_response(code, header)


@router.get("/Connect")
async def quick_connect_connect(
    request: Request,
    store: StateStore = Depends(get_store),
):
    """State of a code, polled by the device waiting to log in"""
    secret = request.query_params.get("secret", "")
    if not secret:
        raise JellyfinError(400, "secret is required")
    code = await store.get_quick_connect_by_secret(secret)
    if code is None:
        raise JellyfinError(404, "QuickConnect secret unknown")
    return quick_connect_response(code, parse_auth_header(request))


@router.post("/Authorize")
async def quick_connect_authorize(
    request: Request,
    config: ServerConfig = Depends(get_config),
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    """Approve a code on behalf of the calling user"""
    _require_enabled(config)
    value = request.query_params.get("code", "")
    code = await store.get_quick_connect_by_code(value) if value else None
    if code is None:
        raise JellyfinError(404, "QuickConnect code unknown")
    if _expired(code):
        raise JellyfinError(404, "QuickConnect code expired")

    code.authorized = True
    code.user_id = context.user.id
    await store.upsert_quick_connect(code)
    logger.info(f"QuickConnect code for device {code.device_id} authorized by {context.user.username}")
    return True
