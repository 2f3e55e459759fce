"""Playlist API routes"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import Response

from ..jellyfin import ids
from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.errors import JellyfinError
from ..jellyfin.items import ItemBuilder
from ..jellyfin.listing import items_response, multi_values
from ..schemas.playlists import CreatePlaylist, UpdatePlaylist
from ..services.log_service import log_service
from ..services.state_store import NotFoundError, Playlist, StateStore
from .deps import get_item_builder, get_store

logger = log_service.get_logger("playlist")

router = APIRouter(prefix="/Playlists", tags=["playlists"])


def _item_ids(values: List[str]) -> List[str]:
    """Bare item ids, as playlists store them"""
    return [ids.trim_prefix(v.strip()) for value in values for v in value.split(",") if v.strip()]


async def _load_playlist(store: StateStore, context: RequestContext, playlist_id: str) -> Playlist:
    playlist = await store.get_playlist(context.user.id, ids.trim_prefix(playlist_id))
    if playlist is None:
        raise JellyfinError(404, "Playlist not found")
    return playlist


@router.post("")
async def create_playlist(
    request: Request,
    body: Optional[CreatePlaylist] = Body(None),
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    """Create a playlist from a JSON body or the equivalent query arguments"""
    params = request.query_params
    body = body or CreatePlaylist()
    name = body.Name or params.get("name", "")
    user_id = body.UserId or params.get("userId", "") or context.user.id
    if not name:
        raise JellyfinError(400, "Name is required")
    if user_id != context.user.id:
        raise JellyfinError(403, "Cannot create playlists for another user")

    item_ids = _item_ids(body.Ids) if body.Ids else _item_ids(multi_values(params, "ids"))
    playlist_id = await store.create_playlist(context.user.id, name, item_ids)
    logger.info(f"User {context.user.username} created playlist {name} ({playlist_id})")
    return {"Id": ids.make_playlist_id(playlist_id)}


@router.get("/{playlist_id}")
async def get_playlist(
    playlist_id: str,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    playlist = await _load_playlist(store, context, playlist_id)
    return {"OpenAccess": False, "Shares": [], "ItemIds": playlist.item_ids}


@router.post("/{playlist_id}")
async def update_playlist(
    playlist_id: str,
    body: UpdatePlaylist,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    """Rename a playlist and optionally replace its contents"""
    playlist = await _load_playlist(store, context, playlist_id)
    if body.Name:
        await store.rename_playlist(context.user.id, playlist.id, body.Name)
    if body.Ids is not None:
        await store.delete_items_from_playlist(context.user.id, playlist.id, playlist.item_ids)
        await store.add_items_to_playlist(context.user.id, playlist.id, _item_ids(body.Ids))
    return Response(status_code=204)


@router.get("/{playlist_id}/Items")
async def get_playlist_items(
    playlist_id: str,
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    playlist = await _load_playlist(store, context, playlist_id)
    return items_response(builder.playlist_items(playlist), request.query_params)


@router.post("/{playlist_id}/Items")
async def add_playlist_items(
    playlist_id: str,
    request: Request,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    """Append items; items already present keep their position"""
    item_ids = _item_ids(multi_values(request.query_params, "ids"))
    try:
        await store.add_items_to_playlist(context.user.id, ids.trim_prefix(playlist_id), item_ids)
    except NotFoundError:
        raise JellyfinError(404, "Playlist not found")
    return Response(status_code=204)


@router.delete("/{playlist_id}/Items")
async def delete_playlist_items(
    playlist_id: str,
    request: Request,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    params = request.query_params
    item_ids = _item_ids(multi_values(params, "entryIds") or multi_values(params, "ids"))
    try:
        await store.delete_items_from_playlist(
            context.user.id, ids.trim_prefix(playlist_id), item_ids
        )
    except NotFoundError:
        raise JellyfinError(404, "Playlist not found")
    return Response(status_code=204)


@router.post("/{playlist_id}/Items/{item_id}/Move/{new_index}")
async def move_playlist_item(
    playlist_id: str,
    item_id: str,
    new_index: int,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    try:
        await store.move_playlist_item(
            context.user.id, ids.trim_prefix(playlist_id), ids.trim_prefix(item_id), new_index
        )
    except NotFoundError as e:
        raise JellyfinError(404, str(e))
    return Response(status_code=204)


@router.get("/{playlist_id}/Users")
async def get_playlist_users(
    playlist_id: str,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    await _load_playlist(store, context, playlist_id)
    return [{"Users": [context.user.id], "CanEdit": True}]


@router.get("/{playlist_id}/Users/{user_id}")
async def get_playlist_user(
    playlist_id: str,
    user_id: str,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    await _load_playlist(store, context, playlist_id)
    return {"Users": [context.user.id], "CanEdit": user_id == context.user.id}
