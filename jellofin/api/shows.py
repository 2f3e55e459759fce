"""TV show API routes: next up, seasons and episodes"""

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import QueryParams

from ..jellyfin import ids
from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.errors import JellyfinError
from ..jellyfin.items import ItemBuilder
from ..jellyfin.listing import apply_filter, apply_sorting, items_response
from ..library.catalog import Catalog
from ..library.entities import Show
from .deps import get_catalog, get_item_builder

# every watched episode counts when looking for the next one
NEXT_UP_HISTORY = 100000

router = APIRouter(prefix="/Shows", tags=["shows"])


def _show_or_404(catalog: Catalog, show_id: str) -> Show:
    _, show = catalog.get_item(show_id)
    if show is None or not isinstance(show, Show):
        raise JellyfinError(404, "Show not found")
    return show


@router.get("/NextUp")
async def next_up(
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
    context: RequestContext = Depends(get_request_context),
):
    """Per show, the episode after the furthest one watched"""
    watched = await builder.store.get_recently_watched(
        context.user.id, True, count=NEXT_UP_HISTORY
    )
    next_ids = catalog.next_up(watched)
    items = builder.hydrate(next_ids)
    return items_response(items, request.query_params)


@router.get("/{show_id}/Seasons")
async def show_seasons(
    show_id: str,
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    """Seasons in number order, specials last, regardless of sortBy"""
    _show_or_404(catalog, show_id)
    seasons = apply_filter(builder.seasons_overview(show_id), request.query_params)
    return {"Items": seasons, "TotalRecordCount": len(seasons), "StartIndex": 0}


@router.get("/{show_id}/Episodes")
async def show_episodes(
    show_id: str,
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    """Episodes of a show, optionally limited to one season by seasonId"""
    params = request.query_params
    # some clients pass a season id in place of the show id
    if ids.is_season_id(show_id):
        _, show, season = catalog.get_season(ids.trim_prefix(show_id))
        if season is None:
            raise JellyfinError(404, "Season not found")
        params = QueryParams(
            [(k, v) for k, v in params.multi_items() if k != "seasonId"] + [("seasonId", show_id)]
        )
        show_id = show.id

    _show_or_404(catalog, show_id)
    episodes = apply_sorting(apply_filter(builder.show_episodes(show_id), params), params)
    return {"Items": episodes, "TotalRecordCount": len(episodes), "StartIndex": 0}
