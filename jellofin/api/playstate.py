"""Playback reporting, played and favorite markers"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..jellyfin import ids
from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.errors import ERR_ITEM_NOT_FOUND, JellyfinError
from ..jellyfin.items import TICKS_PER_SECOND, item_duration, make_user_data
from ..library.catalog import Catalog
from ..schemas.playstate import PlaybackReport
from ..services.log_service import log_service
from ..services.state_store import NotFoundError, StateStore, UserData
from .deps import get_catalog, get_store

# share of the running time after which an item counts as watched
PLAYED_THRESHOLD = 98

logger = log_service.get_logger("playstate")

router = APIRouter(tags=["playstate"])


def playable_duration(catalog: Catalog, item_id: str) -> int:
    """Running time in seconds of a movie or episode"""
    key = ids.trim_prefix(item_id)
    if ids.is_episode_id(item_id):
        _, _, _, episode = catalog.get_episode(key)
        entity = episode
    else:
        _, entity = catalog.get_item(key)
        if entity is None:
            _, _, _, entity = catalog.get_episode(key)
    if entity is None:
        raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
    return item_duration(entity)


async def _current(store: StateStore, user_id: str, key: str) -> UserData:
    try:
        return await store.get_user_data(user_id, key)
    except NotFoundError:
        return UserData()


async def update_play_state(
    store: StateStore,
    catalog: Catalog,
    user_id: str,
    item_id: str,
    position_ticks: int,
    mark_as_watched: bool,
) -> UserData:
    """
    Record playback progress of an item.

    Past PLAYED_THRESHOLD percent, or when explicitly marked, the item is
    stored as played with its position reset so clients do not offer to
    resume it.
    """
    duration = playable_duration(catalog, item_id)
    key = ids.trim_prefix(item_id)
    data = await _current(store, user_id, key)

    position = max(position_ticks, 0) // TICKS_PER_SECOND
    percentage = 100 * position // duration
    logger.debug(f"Play state of {item_id} for user {user_id}: {position}s, {percentage}%")

    if mark_as_watched or percentage >= PLAYED_THRESHOLD:
        if not data.played:
            data.play_count += 1
        data.position = 0
        data.played_percentage = 0
        data.played = True
    else:
        data.position = position
        data.played_percentage = percentage
        data.played = False
    return await store.update_user_data(user_id, key, data)


async def _report(report: PlaybackReport, store: StateStore, catalog: Catalog,
                  context: RequestContext) -> Response:
    if not report.ItemId:
        raise JellyfinError(400, "ItemId is required")
    await update_play_state(
        store, catalog, context.user.id, report.ItemId, report.PositionTicks or 0, False
    )
    return Response(status_code=204)


@router.post("/Sessions/Playing")
async def playback_started(
    report: PlaybackReport,
    store: StateStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    context: RequestContext = Depends(get_request_context),
):
    return await _report(report, store, catalog, context)


@router.post("/Sessions/Playing/Progress")
async def playback_progress(
    report: PlaybackReport,
    store: StateStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    context: RequestContext = Depends(get_request_context),
):
    return await _report(report, store, catalog, context)


@router.post("/Sessions/Playing/Stopped")
async def playback_stopped(
    report: PlaybackReport,
    store: StateStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    context: RequestContext = Depends(get_request_context),
):
    return await _report(report, store, catalog, context)


@router.post("/Sessions/Playing/Ping")
async def playback_ping(context: RequestContext = Depends(get_request_context)):
    return Response(status_code=204)


@router.post("/UserPlayedItems/{item_id}")
@router.post("/Users/{user_id}/PlayedItems/{item_id}")
async def mark_played(
    item_id: str,
    store: StateStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    context: RequestContext = Depends(get_request_context),
):
    data = await update_play_state(store, catalog, context.user.id, item_id, 0, True)
    return make_user_data(item_id, data)


@router.delete("/UserPlayedItems/{item_id}")
@router.delete("/Users/{user_id}/PlayedItems/{item_id}")
async def mark_unplayed(
    item_id: str,
    store: StateStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    context: RequestContext = Depends(get_request_context),
):
    data = await update_play_state(store, catalog, context.user.id, item_id, 0, False)
    return make_user_data(item_id, data)


async def _set_favorite(store: StateStore, user_id: str, item_id: str, favorite: bool) -> dict:
    key = ids.trim_prefix(item_id)
    data = await _current(store, user_id, key)
    data.favorite = favorite
    data = await store.update_user_data(user_id, key, data)
    return make_user_data(item_id, data)


@router.post("/UserFavoriteItems/{item_id}")
@router.post("/Users/{user_id}/FavoriteItems/{item_id}")
async def mark_favorite(
    item_id: str,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    return await _set_favorite(store, context.user.id, item_id, True)


@router.delete("/UserFavoriteItems/{item_id}")
@router.delete("/Users/{user_id}/FavoriteItems/{item_id}")
async def unmark_favorite(
    item_id: str,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    return await _set_favorite(store, context.user.id, item_id, False)
