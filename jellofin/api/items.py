"""Item listing and detail API routes"""

from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from starlette.datastructures import QueryParams

from ..jellyfin import ids
from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.errors import ERR_ITEM_NOT_FOUND, JellyfinError
from ..jellyfin.items import ItemBuilder
from ..jellyfin.listing import (
    apply_filter,
    apply_paginating,
    apply_sorting,
    item_matches,
    items_response,
    without_params,
)
from ..jellyfin.users import session_id
from ..library.catalog import Catalog
from ..services.log_service import log_service
from .deps import get_catalog, get_item_builder

LATEST_DEFAULT_LIMIT = "50"

router = APIRouter(tags=["items"])


def empty_result() -> dict:
    return {"Items": [], "TotalRecordCount": 0, "StartIndex": 0}


def items_in_scope(builder: ItemBuilder, parent_id: str) -> List[dict]:
    """Children of parent_id, or every movie and show when unscoped"""
    if parent_id:
        return builder.items_by_parent(parent_id)
    return builder.all_items()


def search_items(builder: ItemBuilder, catalog: Catalog, search_term: str) -> List[dict]:
    found = catalog.search.search_item(search_term)
    log_service.debug(f"Search for '{search_term}' found {len(found)} items")
    return builder.hydrate(found)


@router.get("/Items")
@router.get("/Users/{user_id}/Items")
async def get_items(
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    """
    The main listing endpoint.

    With a parentId the children of that folder are listed. Without one,
    items named by `ids` are returned when any of them exist; otherwise the
    top level folders, plus every item when `recursive=true`.
    """
    params = request.query_params
    parent_id = params.get("parentId", "")
    search_term = params.get("searchTerm", "")

    if search_term:
        items = search_items(builder, catalog, search_term)
        if parent_id:
            items = [i for i in items if i.get("ParentId") == parent_id]
        params = without_params(params, "parentId")
    elif parent_id:
        items = builder.items_by_parent(parent_id)
        params = without_params(params, "parentId")
    else:
        items = []
        requested = [i for v in params.getlist("ids") for i in v.split(",") if i]
        for item_id in requested:
            try:
                items.append(builder.item_by_id(item_id))
            except JellyfinError:
                continue
        params = without_params(params, "ids")
        if not items:
            items = builder.collection_root_overview()
            if params.get("recursive", "").lower() == "true":
                items = items + builder.all_items()

    return items_response(items, params)


@router.get("/Items/Latest")
@router.get("/Users/{user_id}/Items/Latest")
async def get_latest_items(request: Request, builder: ItemBuilder = Depends(get_item_builder)):
    """Most recently premiered items, newest first, as a bare list"""
    params = request.query_params
    items = apply_filter(items_in_scope(builder, params.get("parentId", "")), params)
    items.sort(key=lambda i: i.get("PremiereDate") or "", reverse=True)
    if not params.get("limit"):
        params = QueryParams(list(params.multi_items()) + [("limit", LATEST_DEFAULT_LIMIT)])
    page, _ = apply_paginating(items, params)
    return page


@router.get("/Items/Resume")
@router.get("/UserItems/Resume")
@router.get("/Users/{user_id}/Items/Resume")
async def get_resume_items(
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    context: RequestContext = Depends(get_request_context),
):
    """Partially watched items, most recent first"""
    params = request.query_params
    recent = await builder.store.get_recently_watched(context.user.id, False)
    items = [i for i in builder.hydrate(recent) if item_matches(i, params)]
    return items_response(apply_sorting(items, params), params, filtered=True)


@router.get("/Items/Suggestions")
@router.get("/Users/{user_id}/Items/Suggestions")
async def get_suggestions(context: RequestContext = Depends(get_request_context)):
    return empty_result()


@router.get("/Items/Counts")
async def get_item_counts(
    catalog: Catalog = Depends(get_catalog),
    context: RequestContext = Depends(get_request_context),
):
    stats = catalog.statistics()
    return {
        "MovieCount": stats.movie_count,
        "SeriesCount": stats.show_count,
        "EpisodeCount": stats.episode_count,
        "ArtistCount": 0,
        "ProgramCount": 0,
        "TrailerCount": 0,
        "SongCount": 0,
        "AlbumCount": 0,
        "MusicVideoCount": 0,
        "BoxSetCount": 0,
        "BookCount": 0,
        "ItemCount": stats.movie_count + stats.show_count + stats.episode_count,
    }


@router.get("/Items/Filters")
async def get_item_filters(request: Request, builder: ItemBuilder = Depends(get_item_builder)):
    """Genre, rating and year values present under a parent"""
    genres: List[str] = []
    ratings: List[str] = []
    years: List[int] = []
    for item in items_in_scope(builder, request.query_params.get("parentId", "")):
        for g in item.get("Genres") or []:
            if g not in genres:
                genres.append(g)
        rating = item.get("OfficialRating")
        if rating and rating not in ratings:
            ratings.append(rating)
        year = item.get("ProductionYear")
        if year and year not in years:
            years.append(year)
    years.sort()
    return {"Genres": genres, "Tags": [], "OfficialRatings": ratings, "Years": years}


@router.get("/Items/Filters2")
async def get_item_filters2(request: Request, builder: ItemBuilder = Depends(get_item_builder)):
    genres = []
    seen = set()
    for item in items_in_scope(builder, request.query_params.get("parentId", "")):
        for g in item.get("GenreItems") or []:
            if g["Id"] and g["Id"] not in seen:
                seen.add(g["Id"])
                genres.append(g)
    return {"Genres": genres, "Tags": []}


@router.get("/Items/Root")
@router.get("/Users/{user_id}/Items/Root")
async def get_root_item(builder: ItemBuilder = Depends(get_item_builder)):
    return builder.root()


@router.get("/Search/Hints")
async def search_hints(
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    params = request.query_params
    parent_id = params.get("parentId", "")
    if ids.is_playlist_collection_id(parent_id):
        return builder.playlist_overview()

    search_term = params.get("searchTerm", "")
    if search_term:
        items = search_items(builder, catalog, search_term)
    else:
        items = builder.all_items()
    if parent_id and ids.is_collection_id(parent_id):
        items = [i for i in items if i.get("ParentId") == parent_id]

    items = apply_filter(items, params)
    total = len(items)
    page, _ = apply_paginating(apply_sorting(items, params), params)
    return {"SearchHints": page, "TotalRecordCount": total}


@router.get("/Movies/Recommendations")
async def movie_recommendations(context: RequestContext = Depends(get_request_context)):
    return []


@router.get("/Items/{item_id}")
@router.get("/Users/{user_id}/Items/{item_id}")
async def get_item(item_id: str, builder: ItemBuilder = Depends(get_item_builder)):
    return builder.item_by_id(item_id)


@router.delete("/Items/{item_id}")
async def delete_item(item_id: str, context: RequestContext = Depends(get_request_context)):
    raise JellyfinError(403, "Not implemented")


@router.get("/UserItems/{item_id}/Userdata")
@router.get("/Users/{user_id}/Items/{item_id}/UserData")
async def get_item_user_data(item_id: str, builder: ItemBuilder = Depends(get_item_builder)):
    return builder.item_by_id(item_id).get("UserData") or {}


@router.get("/Items/{item_id}/Ancestors")
async def get_item_ancestors(item_id: str, builder: ItemBuilder = Depends(get_item_builder)):
    """Parent chain of an item up to the root folder"""
    item = builder.item_by_id(item_id)
    ancestors = []
    parent_id = item.get("ParentId")
    while parent_id:
        try:
            parent = builder.item_by_id(parent_id)
        except JellyfinError:
            break
        ancestors.append(parent)
        if parent.get("Type") == "UserRootFolder":
            break
        parent_id = parent.get("ParentId")
    if not ancestors or ancestors[-1].get("Type") != "UserRootFolder":
        ancestors.append(builder.root())
    return ancestors


@router.get("/Items/{item_id}/Similar")
@router.get("/Movies/{item_id}/Similar")
@router.get("/Shows/{item_id}/Similar")
async def get_similar_items(
    item_id: str,
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    """Items resembling a movie or show, from the same collection"""
    params = request.query_params
    if (
        ids.is_person_id(item_id)
        or ids.is_genre_id(item_id)
        or ids.is_studio_id(item_id)
        or ids.is_collection_id(item_id)
        or ids.is_favorites_id(item_id)
        or ids.is_playlist_collection_id(item_id)
        or ids.is_root_id(item_id)
    ):
        return empty_result()

    _, item = catalog.get_item(ids.trim_prefix(item_id))
    if item is None:
        raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
    items = builder.hydrate(catalog.search.similar(item.id))
    return items_response(items, params)


@router.get("/Items/{item_id}/Intros")
@router.get("/Users/{user_id}/Items/{item_id}/Intros")
async def get_intros(item_id: str, context: RequestContext = Depends(get_request_context)):
    return empty_result()


@router.get("/Items/{item_id}/LocalTrailers")
@router.get("/Users/{user_id}/Items/{item_id}/LocalTrailers")
async def get_local_trailers(item_id: str, context: RequestContext = Depends(get_request_context)):
    return []


@router.get("/Items/{item_id}/SpecialFeatures")
@router.get("/Users/{user_id}/Items/{item_id}/SpecialFeatures")
async def get_special_features(item_id: str, context: RequestContext = Depends(get_request_context)):
    return []


@router.get("/Items/{item_id}/ThemeMedia")
async def get_theme_media(item_id: str, context: RequestContext = Depends(get_request_context)):
    def result(owner: str) -> dict:
        return {"OwnerId": owner, "Items": [], "TotalRecordCount": 0, "StartIndex": 0}

    return {
        "ThemeVideosResult": result(item_id),
        "ThemeSongsResult": result(item_id),
        "SoundtrackSongsResult": result(ids.ZERO_ID),
    }


@router.post("/Items/{item_id}/Refresh")
async def refresh_item(item_id: str, context: RequestContext = Depends(get_request_context)):
    # refreshing single items is not supported, the next rescan picks up changes
    return Response(status_code=204)


@router.get("/Items/{item_id}/PlaybackInfo")
@router.post("/Items/{item_id}/PlaybackInfo")
async def get_playback_info(
    item_id: str,
    builder: ItemBuilder = Depends(get_item_builder),
    context: RequestContext = Depends(get_request_context),
):
    """Media sources of a playable item"""
    item = builder.item_by_id(item_id)
    sources = item.get("MediaSources")
    if not sources:
        raise JellyfinError(404, "Could not find item")
    return {"MediaSources": sources, "PlaySessionId": session_id(context.token)}


@router.get("/MediaSegments/{item_id}")
@router.get("/Items/{item_id}/MediaSegments")
async def get_media_segments(item_id: str):
    """Intro and outro markers, never known"""
    return empty_result()
