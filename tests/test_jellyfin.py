"""Id namespacing, request normalization and the listing pipeline"""

import pytest
from starlette.datastructures import QueryParams
from starlette.routing import Route

from jellofin.jellyfin import ids
from jellofin.jellyfin.listing import apply_sorting, items_response, parse_iso8601
from jellofin.jellyfin.normalizer import (
    RouteIndex,
    normalize_path,
    normalize_query,
    normalize_query_key,
)


def test_prefixed_ids():
    assert ids.make_episode_id("abc") == "episode_abc"
    assert ids.trim_prefix("episode_abc") == "abc"
    assert ids.trim_prefix("abc") == "abc"
    assert ids.is_collection_id("collection_1")
    assert not ids.is_collection_id(ids.make_favorites_id())
    assert ids.is_playlist_collection_id(ids.make_playlist_collection_id())


@pytest.mark.parametrize("name", ["Sci-Fi", "Warner Bros.", "AC/DC & Friends", "Zoë"])
def test_name_ids_decode(name):
    assert ids.decode_genre_id(ids.make_genre_id(name)) == name
    assert "/" not in ids.make_studio_id(name)


def test_name_id_rejects_garbage():
    with pytest.raises(ValueError):
        ids.decode_person_id("genre_abc")


def _index():
    async def endpoint(request):
        pass

    paths = [
        "/Items",
        "/Items/{item_id}",
        "/Items/{item_id}/Images/{image_type}",
        "/Users/{user_id}/Items",
        "/Users/AuthenticateByName",
        "/Shows/NextUp",
        "/System/Info/Public",
    ]
    return RouteIndex.from_routes([Route(p, endpoint) for p in paths])


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/emby/items", "/Items"),
        ("/EMBY/Emby/items/", "/Items"),
        ("//items//abc/images/primary", "/Items/abc/Images/primary"),
        ("/users/authenticatebyname", "/Users/AuthenticateByName"),
        ("/users/u1/items", "/Users/u1/Items"),
        ("/shows/nextup", "/Shows/NextUp"),
        ("/system/info/public", "/System/Info/Public"),
        ("/unknown/Path", "/unknown/Path"),
        ("/", "/"),
    ],
)
def test_normalize_path(path, expected):
    index = _index()
    assert normalize_path(path, index) == expected
    # idempotent
    assert normalize_path(expected, index) == expected


def test_normalize_query():
    assert normalize_query_key("parentid") == "parentId"
    assert normalize_query_key("IS4K") == "is4K"
    assert normalize_query_key("SomethingElse") == "somethingElse"

    query = normalize_query("ParentId=collection_1&Fields=Overview&SortBy=SortName")
    assert query == "parentId=collection_1&sortBy=SortName"
    assert normalize_query(query) == query


def _items():
    return [
        {"Id": "a", "Name": "Alien", "SortName": "alien", "Type": "Movie",
         "ProductionYear": 1979, "CommunityRating": 8.5, "Genres": ["Horror"]},
        {"Id": "b", "Name": "Brazil", "SortName": "brazil", "Type": "Movie",
         "ProductionYear": 1985, "CommunityRating": 7.9, "Genres": ["Comedy"]},
        {"Id": "c", "Name": "Columbo", "SortName": "columbo", "Type": "Series",
         "ProductionYear": 1971, "CommunityRating": 8.5, "Genres": ["Crime"]},
    ]


def test_sorting_is_stable_and_multi_key():
    params = QueryParams("sortBy=CommunityRating,SortName&sortOrder=Descending")
    assert [i["Id"] for i in apply_sorting(_items(), params)] == ["c", "a", "b"]
    params = QueryParams("sortBy=ProductionYear")
    assert [i["Id"] for i in apply_sorting(_items(), params)] == ["c", "a", "b"]


def test_items_response_filters_and_pages():
    result = items_response(_items(), QueryParams("includeItemTypes=Movie&limit=1"))
    assert result["TotalRecordCount"] == 2
    assert [i["Id"] for i in result["Items"]] == ["a"]

    result = items_response(_items(), QueryParams("startIndex=2"))
    assert result == {"Items": [_items()[2]], "TotalRecordCount": 3, "StartIndex": 2}

    result = items_response(_items(), QueryParams("startIndex=10"))
    assert result["Items"] == [] and result["TotalRecordCount"] == 3


def test_parse_iso8601():
    assert parse_iso8601("2024-01-02T03:04:05.000Z").year == 2024
    assert parse_iso8601("nonsense") is None
