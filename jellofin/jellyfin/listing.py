"""Filtering, sorting and paging of item lists

Items are the JSON dicts produced by ItemBuilder. Query keys are the
canonical ones the request normalizer produces (parentId, sortBy, ...).
"""

import random
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from starlette.datastructures import QueryParams

from .items import ZERO_TIME, format_time

ITEM_TYPES = ("Movie", "Series", "Season", "Episode", "Playlist", "BoxSet")

ISO_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m",
    "%Y",
)


def parse_iso8601(value: str) -> Optional[datetime]:
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1]
    # fractional seconds and offsets are not significant for filtering
    value = value.split(".")[0].split("+")[0]
    for fmt in ISO_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def multi_values(params: QueryParams, key: str, sep: str = ",") -> List[str]:
    """All values of a repeatable, separator-joined parameter"""
    values = []
    for entry in params.getlist(key):
        values.extend(v.strip() for v in entry.split(sep) if v.strip())
    return values


def _bool_param(params: QueryParams, key: str) -> Optional[bool]:
    value = params.get(key, "").lower()
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def _int_param(params: QueryParams, key: str) -> Optional[int]:
    try:
        return int(params.get(key, ""))
    except ValueError:
        return None


def _float_param(params: QueryParams, key: str) -> Optional[float]:
    try:
        return float(params.get(key, ""))
    except ValueError:
        return None


def _user_data(item: dict) -> dict:
    return item.get("UserData") or {}


def _is_resumable(item: dict) -> bool:
    ud = _user_data(item)
    return not ud.get("Played", False) and ud.get("PlaybackPositionTicks", 0) > 0


def item_matches(item: dict, params: QueryParams) -> bool:
    """True when an item passes every filter present in the query"""
    include_types = multi_values(params, "includeItemTypes")
    if include_types and item.get("Type") not in include_types:
        return False

    exclude_types = multi_values(params, "excludeItemTypes")
    if exclude_types and item.get("Type") in exclude_types:
        return False

    media_types = multi_values(params, "mediaTypes")
    if media_types and item.get("MediaType") not in media_types:
        return False

    is_hd = _bool_param(params, "isHd")
    if is_hd is not None and bool(item.get("IsHD")) != is_hd:
        return False

    is_4k = _bool_param(params, "is4K")
    if is_4k is not None and bool(item.get("Is4K")) != is_4k:
        return False

    ids = multi_values(params, "ids")
    if ids and item.get("Id") not in ids:
        return False

    exclude_ids = multi_values(params, "excludeItemIds")
    if exclude_ids and item.get("Id") in exclude_ids:
        return False

    genre_ids = multi_values(params, "genreIds", "|")
    if genre_ids:
        item_genre_ids = {g["Id"] for g in item.get("GenreItems") or []}
        if not item_genre_ids.intersection(genre_ids):
            return False

    studio_ids = multi_values(params, "studioIds", "|")
    if studio_ids:
        item_studio_ids = {s["Id"] for s in item.get("Studios") or []}
        if not item_studio_ids.intersection(studio_ids):
            return False

    series_id = params.get("seriesId")
    if series_id and item.get("SeriesId") != series_id:
        return False

    season_id = params.get("seasonId")
    if season_id and item.get("SeasonId") != season_id:
        return False

    person_ids = multi_values(params, "personIds")
    if person_ids:
        item_person_ids = {p["Id"] for p in item.get("People") or []}
        if not item_person_ids.intersection(person_ids):
            return False

    parent_index = _int_param(params, "parentIndexNumber")
    if parent_index is not None and item.get("ParentIndexNumber") != parent_index:
        return False

    index = _int_param(params, "indexNumber")
    if index is not None and item.get("IndexNumber") != index:
        return False

    sort_name = (item.get("SortName") or item.get("Name") or "").lower()
    starts_with = params.get("nameStartsWith", "").lower()
    if starts_with and not sort_name.startswith(starts_with):
        return False

    at_least = params.get("nameStartsWithOrGreater", "").lower()
    if at_least and sort_name < at_least:
        return False

    less_than = params.get("nameLessThan", "").lower()
    if less_than and sort_name > less_than:
        return False

    genres = multi_values(params, "genres", "|")
    if genres and not set(item.get("Genres") or []).intersection(genres):
        return False

    studios = multi_values(params, "studios", "|")
    if studios:
        names = {s["Name"] for s in item.get("Studios") or []}
        if not names.intersection(studios):
            return False

    ratings = multi_values(params, "officialRatings", "|")
    if ratings and item.get("OfficialRating", "") not in ratings:
        return False

    min_community = _float_param(params, "minCommunityRating")
    if min_community is not None and (item.get("CommunityRating") or 0) < min_community:
        return False

    min_critic = _float_param(params, "minCriticRating")
    if min_critic is not None and (item.get("CriticRating") or 0) < min_critic:
        return False

    premiere = item.get("PremiereDate") or ZERO_TIME
    min_premiere = parse_iso8601(params.get("minPremiereDate", ""))
    if min_premiere is not None and premiere < format_time(min_premiere):
        return False

    max_premiere = parse_iso8601(params.get("maxPremiereDate", ""))
    if max_premiere is not None and premiere > format_time(max_premiere):
        return False

    years = multi_values(params, "years")
    if years:
        wanted = {int(y) for y in years if y.isdigit()}
        if item.get("ProductionYear") not in wanted:
            return False

    user_data = _user_data(item)
    is_played = _bool_param(params, "isPlayed")
    if is_played is not None and bool(user_data.get("Played")) != is_played:
        return False

    is_favorite = _bool_param(params, "isFavorite")
    if is_favorite is not None and bool(user_data.get("IsFavorite")) != is_favorite:
        return False

    for f in multi_values(params, "filters"):
        if f in ("IsFavorite", "IsFavoriteOrLikes") and not user_data.get("IsFavorite"):
            return False
        if f == "IsPlayed" and not user_data.get("Played"):
            return False
        if f == "IsUnplayed" and user_data.get("Played"):
            return False
        if f == "IsResumable" and not _is_resumable(item):
            return False

    return True


def apply_filter(items: List[dict], params: QueryParams) -> List[dict]:
    return [item for item in items if item_matches(item, params)]


def _sort_name(item: dict) -> str:
    return item.get("SortName") or item.get("Name") or ""


SORT_KEYS: Dict[str, Callable[[dict], object]] = {
    "communityrating": lambda i: i.get("CommunityRating") or 0,
    "criticrating": lambda i: i.get("CriticRating") or 0,
    "datecreated": lambda i: i.get("DateCreated") or ZERO_TIME,
    "datelastcontentadded": lambda i: i.get("DateCreated") or ZERO_TIME,
    "dateplayed": lambda i: _user_data(i).get("LastPlayedDate") or ZERO_TIME,
    "indexnumber": lambda i: i.get("IndexNumber") or 0,
    "isfavoriteorliked": lambda i: bool(_user_data(i).get("IsFavorite")),
    "isfolder": lambda i: bool(i.get("IsFolder")),
    "isplayed": lambda i: bool(_user_data(i).get("Played")),
    "isunplayed": lambda i: not _user_data(i).get("Played"),
    "officialrating": lambda i: i.get("OfficialRating") or "",
    "parentindexnumber": lambda i: i.get("ParentIndexNumber") or 0,
    "premieredate": lambda i: i.get("PremiereDate") or ZERO_TIME,
    "productionyear": lambda i: i.get("ProductionYear") or 0,
    "runtime": lambda i: i.get("RunTimeTicks") or 0,
    "name": _sort_name,
    "seriessortname": _sort_name,
    "sortname": _sort_name,
    "default": _sort_name,
}


def apply_sorting(items: List[dict], params: QueryParams) -> List[dict]:
    """Stable multi-key sort on sortBy, all keys in one sortOrder direction"""
    fields = [f.lower() for f in multi_values(params, "sortBy")]
    if not fields:
        return items

    descending = params.get("sortOrder", "").lower().startswith("descending")
    result = list(items)
    # least significant key first, python's sort is stable
    for field in reversed(fields):
        if field == "random":
            random.shuffle(result)
            continue
        key = SORT_KEYS.get(field)
        if key is None:
            continue
        result.sort(key=key, reverse=descending)
    return result


def apply_paginating(items: List[dict], params: QueryParams) -> Tuple[List[dict], int]:
    start_index = _int_param(params, "startIndex") or 0
    if 0 <= start_index < len(items):
        items = items[start_index:]
    elif start_index >= len(items):
        items = []
    limit = _int_param(params, "limit")
    if limit is not None and 0 < limit < len(items):
        items = items[:limit]
    return items, max(start_index, 0)


def items_response(items: List[dict], params: QueryParams, filtered: bool = False) -> dict:
    """Filter, sort and page a list into {Items, TotalRecordCount, StartIndex}"""
    if not filtered:
        items = apply_filter(items, params)
    total = len(items)
    page, start_index = apply_paginating(apply_sorting(items, params), params)
    return {"Items": page, "TotalRecordCount": total, "StartIndex": start_index}


def without_params(params: QueryParams, *keys: str) -> QueryParams:
    """Copy of params with the given keys removed"""
    return QueryParams([(k, v) for k, v in params.multi_items() if k not in keys])
