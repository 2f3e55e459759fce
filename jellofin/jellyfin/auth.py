"""Request authentication for the Jellyfin API"""

import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..services.log_service import log_service
from ..services.state_store import AccessToken, User
from .errors import JellyfinError

logger = log_service.get_logger("auth")

AUTH_SCHEMES = ("MediaBrowser ", "Emby ")

_quoted_pair = re.compile(r'(\w+)="(.*?)"')
_unquoted_pair = re.compile(r"(\w+)=([^,]+)")


@dataclass
class AuthHeader:
    """Values of a MediaBrowser authorization header"""

    client: str = ""
    version: str = ""
    device: str = ""
    device_id: str = ""
    token: str = ""


@dataclass
class RequestContext:
    """Credentials of an authenticated request"""

    token: AccessToken
    user: User
    header: AuthHeader

    @property
    def is_admin(self) -> bool:
        return self.user.properties.admin


def parse_auth_header(request: Request) -> Optional[AuthHeader]:
    """
    Parse `MediaBrowser Client="..", Device="..", DeviceId="..", Token=".."`.

    Values may be quoted or bare; order does not matter. Returns None when
    neither Authorization nor X-Emby-Authorization carries a known scheme.
    """
    value = request.headers.get("authorization") or request.headers.get(
        "x-emby-authorization"
    )
    if not value or not value.startswith(AUTH_SCHEMES):
        return None

    pairs = _quoted_pair.findall(value)
    if not pairs:
        pairs = _unquoted_pair.findall(value)

    header = AuthHeader()
    for key, raw in pairs:
        raw = raw.strip()
        if key == "Client":
            header.client = raw
        elif key == "Version":
            header.version = raw
        elif key == "Device":
            header.device = raw
        elif key == "DeviceId":
            header.device_id = raw
        elif key == "Token":
            header.token = raw
    return header


def request_token(request: Request, header: Optional[AuthHeader]) -> str:
    """Token of a request; later sources override earlier ones"""
    token = header.token if header else ""
    for name in ("x-emby-token", "x-mediabrowser-token"):
        if request.headers.get(name):
            token = request.headers[name]
    for key in ("apiKey", "api_key"):
        if request.query_params.get(key):
            token = request.query_params[key]
    return token


def remote_address(request: Request) -> str:
    return request.client.host if request.client else ""


def update_token_details(token: AccessToken, header: Optional[AuthHeader], address: str) -> bool:
    """Copy client details onto a token, returns True when something changed"""
    changed = False
    if header is not None:
        for attr, value in (
            ("device_name", header.device),
            ("device_id", header.device_id),
            ("application_name", header.client),
            ("application_version", header.version),
        ):
            if getattr(token, attr) != value:
                setattr(token, attr, value)
                changed = True
    if token.remote_address != address:
        token.remote_address = address
        changed = True
    return changed


async def get_request_context(request: Request) -> RequestContext:
    """Dependency guarding every authenticated route"""
    store = request.app.state.store
    header = parse_auth_header(request)
    token_value = request_token(request, header)
    if not token_value:
        raise JellyfinError(401, "no token provided")

    token = await store.get_access_token(token_value)
    if token is None:
        raise JellyfinError(401, "invalid token")

    # a query string token carries no client details, keep what we have
    if header is not None and not header.device_id:
        header = None
    if update_token_details(token, header, remote_address(request)):
        await store.update_access_token(token)

    user = await store.get_user_by_id(token.user_id)
    if user is None:
        logger.warning(f"Token {token.token[:6]}.. refers to unknown user {token.user_id}")
        raise JellyfinError(401, "invalid user")

    context = RequestContext(token=token, user=user, header=header or AuthHeader())
    request.state.context = context
    return context
