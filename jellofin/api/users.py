"""User and authentication API routes"""

import base64
import hashlib
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import Response

from ..jellyfin.auth import (
    AuthHeader,
    RequestContext,
    get_request_context,
    parse_auth_header,
    remote_address,
)
from ..jellyfin.errors import ERR_USER_NOT_FOUND, JellyfinError
from ..jellyfin.users import (
    apply_user_configuration,
    apply_user_policy,
    make_session_info,
    make_user,
)
from ..schemas.auth import (
    AuthenticateByName,
    AuthenticateWithQuickConnect,
    CreateUserByName,
    UpdateUserPassword,
)
from ..services.auth_service import IMAGE_TYPE_PROFILE, AuthError, AuthService
from ..services.log_service import log_service
from ..services.state_store import (
    ConflictError,
    ImageMetadata,
    NotFoundError,
    StateStore,
    User,
    utcnow,
)
from .deps import get_auth_service, get_server_id, get_store

# maximum accepted size of an uploaded image
MAX_UPLOAD_SIZE = 40 * 1024 * 1024
RESERVED_NAMES = ("new", "me", "public")

logger = log_service.get_logger("auth")

router = APIRouter(tags=["users"])


async def user_response(store: StateStore, user: User, server_id: str) -> dict:
    has_image = await store.has_image(user.id, IMAGE_TYPE_PROFILE) is not None
    return make_user(user, server_id, has_image)


async def _login_response(
    request: Request, auth: AuthService, user: User, server_id: str
) -> dict:
    """Issue a fresh token for the calling device"""
    header = parse_auth_header(request) or AuthHeader()
    address = remote_address(request)
    token = await auth.issue_token(
        user,
        device_id=header.device_id,
        device_name=header.device,
        client=header.client,
        version=header.version,
        remote_address=address,
    )
    logger.info(
        f"User {user.username} authenticated, device: {token.device_id}, "
        f"client: {token.application_name}"
    )
    return {
        "User": await user_response(auth.store, user, server_id),
        "SessionInfo": make_session_info(token, user.username, server_id, address),
        "AccessToken": token.token,
        "ServerId": server_id,
    }


def _require_self_or_admin(context: RequestContext, user_id: str, action: str):
    if not context.is_admin and context.user.id != user_id:
        raise JellyfinError(403, f"forbidden to {action}")


async def _load_user(store: StateStore, user_id: str) -> User:
    user = await store.get_user_by_id(user_id)
    if user is None:
        raise JellyfinError(404, ERR_USER_NOT_FOUND)
    return user


@router.post("/Users/AuthenticateByName")
async def authenticate_by_name(
    request: Request,
    body: AuthenticateByName,
    auth: AuthService = Depends(get_auth_service),
    server_id: str = Depends(get_server_id),
):
    """Username and password login"""
    if not body.Username or not body.Pw:
        raise JellyfinError(401, "username and password required")

    autoregister = request.app.state.config.jellyfin.autoregister
    try:
        user = await auth.authenticate_user(body.Username, body.Pw, autoregister)
    except AuthError as e:
        logger.info(f"Login of {body.Username.lower()} rejected: {e}")
        raise JellyfinError(401, "Invalid username/password")
    return await _login_response(request, auth, user, server_id)


@router.post("/Users/AuthenticateWithQuickConnect")
async def authenticate_with_quick_connect(
    request: Request,
    body: AuthenticateWithQuickConnect,
    auth: AuthService = Depends(get_auth_service),
    store: StateStore = Depends(get_store),
    server_id: str = Depends(get_server_id),
):
    """Login with the secret of a code another session authorized"""
    if not body.Secret:
        raise JellyfinError(400, "secret is required")
    code = await store.get_quick_connect_by_secret(body.Secret)
    if code is None or not code.authorized or not code.user_id:
        raise JellyfinError(401, "quickconnect code not authorized")
    user = await _load_user(store, code.user_id)
    user.last_login = utcnow()
    user.last_used = user.last_login
    await store.upsert_user(user)
    return await _login_response(request, auth, user, server_id)


@router.get("/Users")
async def get_users(
    isHidden: Optional[str] = Query(None),
    isDisabled: Optional[str] = Query(None),
    store: StateStore = Depends(get_store),
    server_id: str = Depends(get_server_id),
    context: RequestContext = Depends(get_request_context),
):
    """Users visible to the caller"""
    users = []
    for user in await store.get_all_users():
        props = user.properties
        if isHidden is not None and props.is_hidden != (isHidden.lower() == "true"):
            continue
        if isDisabled is not None and props.disabled != (isDisabled.lower() == "true"):
            continue
        if context.user.id == user.id or context.is_admin or not props.is_hidden:
            users.append(await user_response(store, user, server_id))
    return users


@router.post("/Users")
async def update_user(
    userId: str = Query(""),
    body: dict = Body(...),
    store: StateStore = Depends(get_store),
    server_id: str = Depends(get_server_id),
    context: RequestContext = Depends(get_request_context),
):
    """Update name, policy and configuration of a user"""
    user_id = userId or context.user.id
    _require_self_or_admin(context, user_id, "update user")
    user = await _load_user(store, user_id)
    name = body.get("Name")
    if name:
        user.username = str(name).lower()
    if isinstance(body.get("Policy"), dict) and context.is_admin:
        apply_user_policy(body["Policy"], user.properties)
    if isinstance(body.get("Configuration"), dict):
        apply_user_configuration(body["Configuration"], user.properties)
    try:
        await store.upsert_user(user)
    except ConflictError:
        raise JellyfinError(409, "username already exists")
    return await user_response(store, user, server_id)


@router.get("/Users/Me")
async def get_me(
    store: StateStore = Depends(get_store),
    server_id: str = Depends(get_server_id),
    context: RequestContext = Depends(get_request_context),
):
    return await user_response(store, context.user, server_id)


@router.get("/Users/Public")
async def get_public_users(
    store: StateStore = Depends(get_store), server_id: str = Depends(get_server_id)
):
    """Users shown on a client's login screen"""
    return [
        await user_response(store, user, server_id)
        for user in await store.get_all_users()
        if not user.properties.is_hidden
    ]


@router.post("/Users/New")
async def create_user(
    body: CreateUserByName,
    auth: AuthService = Depends(get_auth_service),
    server_id: str = Depends(get_server_id),
    context: RequestContext = Depends(get_request_context),
):
    if not context.is_admin:
        raise JellyfinError(403, "forbidden to create user")
    if not body.Name or not body.Password:
        raise JellyfinError(400, "username and password are required")
    if body.Name.lower() in RESERVED_NAMES:
        raise JellyfinError(400, "invalid username")
    if await auth.store.get_user(body.Name.lower()) is not None:
        raise JellyfinError(409, "username already exists")
    try:
        user = await auth.create_user(body.Name, body.Password)
    except ConflictError:
        raise JellyfinError(409, "username already exists")
    return await user_response(auth.store, user, server_id)


@router.post("/Users/Password")
@router.post("/Users/{user_id}/Password")
async def update_password(
    body: UpdateUserPassword,
    user_id: Optional[str] = None,
    userId: str = Query(""),
    auth: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    target_id = user_id or userId or context.user.id
    _require_self_or_admin(context, target_id, "update user password")
    user = await _load_user(auth.store, target_id)
    if not body.NewPw:
        raise JellyfinError(400, "new password is required")
    # an admin resetting someone else's password needs no current password
    if not (context.is_admin and target_id != context.user.id):
        if not auth.verify_password(body.CurrentPw or "", user.password):
            raise JellyfinError(403, "invalid current password")
    user.password = auth.get_password_hash(body.NewPw)
    await auth.store.upsert_user(user)
    return Response(status_code=204)


@router.get("/Users/{user_id}")
async def get_user(
    user_id: str,
    store: StateStore = Depends(get_store),
    server_id: str = Depends(get_server_id),
    context: RequestContext = Depends(get_request_context),
):
    user = await _load_user(store, user_id)
    _require_self_or_admin(context, user_id, "access user")
    return await user_response(store, user, server_id)


@router.delete("/Users/{user_id}")
async def delete_user(
    user_id: str,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    if not context.is_admin or context.user.id == user_id:
        raise JellyfinError(403, "forbidden to delete user")
    try:
        await store.delete_user(user_id)
    except NotFoundError:
        raise JellyfinError(404, ERR_USER_NOT_FOUND)
    return Response(status_code=204)


@router.post("/Users/{user_id}/Configuration")
async def update_user_configuration(
    user_id: str,
    body: dict = Body(...),
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    _require_self_or_admin(context, user_id, "update user configuration")
    user = await _load_user(store, user_id)
    apply_user_configuration(body, user.properties)
    await store.upsert_user(user)
    return Response(status_code=204)


@router.post("/Users/{user_id}/Policy")
async def update_user_policy(
    user_id: str,
    body: dict = Body(...),
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    if not context.is_admin:
        raise JellyfinError(403, "forbidden to update user policy")
    user = await _load_user(store, user_id)
    apply_user_policy(body, user.properties)
    await store.upsert_user(user)
    return Response(status_code=204)


# Profile images


async def serve_stored_image(store: StateStore, item_id: str, image_type: str) -> Response:
    found = await store.get_image(item_id, image_type)
    if found is None:
        raise JellyfinError(404, "Image not found")
    meta, data = found
    headers = {"ETag": meta.etag}
    if meta.updated is not None:
        headers["Last-Modified"] = meta.updated.strftime("%a, %d %b %Y %H:%M:%S GMT")
    return Response(content=data, media_type=meta.mime_type, headers=headers)


def _detect_image_type(data: bytes) -> Optional[str]:
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


async def receive_image(request: Request, store: StateStore, item_id: str, image_type: str):
    """Store an uploaded image; some clients send it base64 encoded"""
    data = await request.body()
    if len(data) > MAX_UPLOAD_SIZE:
        raise JellyfinError(413, "Image too large")
    mime_type = _detect_image_type(data)
    if mime_type is None:
        try:
            data = base64.b64decode(data, validate=False)
        except ValueError:
            raise JellyfinError(400, "Uploaded file is not a valid image")
        mime_type = _detect_image_type(data)
        if mime_type is None:
            raise JellyfinError(400, "Uploaded file is not a valid image")
    meta = ImageMetadata(
        mime_type=mime_type,
        file_size=len(data),
        etag=hashlib.sha256(data).hexdigest()[:16],
        updated=utcnow(),
    )
    await store.store_image(item_id, image_type, meta, data)


@router.get("/Users/{user_id}/Images/{image_type}")
async def get_user_image(user_id: str, image_type: str, store: StateStore = Depends(get_store)):
    # every user image is the profile image
    return await serve_stored_image(store, user_id, IMAGE_TYPE_PROFILE)


@router.get("/UserImage")
async def get_user_image_by_query(
    userId: str = Query(""), store: StateStore = Depends(get_store)
):
    if not userId:
        raise JellyfinError(400, "userId parameter is required")
    return await serve_stored_image(store, userId, IMAGE_TYPE_PROFILE)


@router.post("/UserImage")
@router.post("/Users/{user_id}/Images/{image_type}")
async def upload_user_image(
    request: Request,
    user_id: Optional[str] = None,
    image_type: Optional[str] = None,
    userId: str = Query(""),
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    target_id = user_id or userId
    if not target_id:
        raise JellyfinError(400, "userId parameter is required")
    if target_id != context.user.id:
        raise JellyfinError(403, "Cannot upload image for another user")
    await receive_image(request, store, target_id, IMAGE_TYPE_PROFILE)
    return Response(status_code=204)


@router.delete("/UserImage")
@router.delete("/Users/{user_id}/Images/{image_type}")
async def delete_user_image(
    user_id: Optional[str] = None,
    image_type: Optional[str] = None,
    userId: str = Query(""),
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    target_id = user_id or userId
    if not target_id:
        raise JellyfinError(400, "userId parameter is required")
    if target_id != context.user.id:
        raise JellyfinError(403, "Cannot delete image for another user")
    try:
        await store.delete_image(target_id, IMAGE_TYPE_PROFILE)
    except NotFoundError:
        raise JellyfinError(404, "Image not found")
    return Response(status_code=204)
