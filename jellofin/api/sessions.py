"""Session and device API routes"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from ..jellyfin.auth import RequestContext, get_request_context, remote_address
from ..jellyfin.errors import JellyfinError
from ..jellyfin.users import make_device, make_session_info
from ..services.state_store import AccessToken, NotFoundError, StateStore
from .deps import get_server_id, get_store

router = APIRouter(tags=["sessions"])


@router.get("/Sessions")
async def get_sessions(
    request: Request,
    server_id: str = Depends(get_server_id),
    context: RequestContext = Depends(get_request_context),
):
    """The caller's own session"""
    return [
        make_session_info(context.token, context.user.username, server_id, remote_address(request))
    ]


@router.post("/Sessions/Capabilities")
@router.post("/Sessions/Capabilities/Full")
async def post_capabilities(context: RequestContext = Depends(get_request_context)):
    return Response(status_code=204)


def _device_id(request: Request) -> str:
    device_id = request.query_params.get("id", "")
    if not device_id:
        raise JellyfinError(400, "Device id missing")
    return device_id


async def _device_token(store: StateStore, context: RequestContext, device_id: str) -> AccessToken:
    for token in await store.get_access_tokens(context.user.id):
        if token.device_id == device_id:
            return token
    raise JellyfinError(404, "Device not found")


@router.get("/Devices")
async def get_devices(
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    """Every device holding a token of the caller"""
    tokens = await store.get_access_tokens(context.user.id)
    devices = [make_device(t, context.user.username) for t in tokens]
    return {"Items": devices, "TotalRecordCount": len(devices), "StartIndex": 0}


@router.delete("/Devices")
async def delete_device(
    request: Request,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    """Log a device out by revoking its token"""
    token = await _device_token(store, context, _device_id(request))
    try:
        await store.delete_access_token(token.token)
    except NotFoundError:
        raise JellyfinError(404, "Device not found")
    return Response(status_code=204)


@router.get("/Devices/Info")
async def get_device_info(
    request: Request,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    token = await _device_token(store, context, _device_id(request))
    return make_device(token, context.user.username)


@router.get("/Devices/Options")
async def get_device_options(
    request: Request,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    token = await _device_token(store, context, _device_id(request))
    return {"DeviceId": token.device_id, "CustomName": token.device_name, "DisableAutoLogin": False}
