"""
Request normalizer

Jellyfin clients deviate from the published API in path casing, query key
casing and an optional /emby prefix. This middleware rewrites every request
to the canonical spelling before routing, e.g.

    /emby/items?ParentId=123  ->  /Items?parentId=123
"""

import re
from typing import Dict, List, Tuple
from urllib.parse import parse_qsl, quote, urlencode

from starlette.routing import BaseRoute

EMBY_PREFIX = "/emby"

# Query parameters dropped, items are always returned in full
REMOVE_PARAMS = {"fields"}

CANONICAL_PARAMS = [
    "api_key",
    "apiKey",
    "appearsInItemId",
    "code",
    "enableImages",
    "enableUserData",
    "excludeItemIds",
    "excludeItemTypes",
    "fillHeight",
    "fillWidth",
    "filters",
    "genreIds",
    "genres",
    "height",
    "id",
    "ids",
    "includeHidden",
    "includeItemTypes",
    "indexNumber",
    "is4K",
    "isFavorite",
    "isHd",
    "isPlayed",
    "limit",
    "maxHeight",
    "maxPremiereDate",
    "maxWidth",
    "mediaTypes",
    "minCommunityRating",
    "minCriticRating",
    "minPremiereDate",
    "name",
    "nameLessThan",
    "nameStartsWith",
    "nameStartsWithOrGreater",
    "officialRatings",
    "parentId",
    "parentIndexNumber",
    "personIds",
    "quality",
    "recursive",
    "searchTerm",
    "seasonId",
    "secret",
    "seriesId",
    "sortBy",
    "sortOrder",
    "startIndex",
    "studioIds",
    "studios",
    "tag",
    "userId",
    "width",
    "years",
]
QUERY_PARAMETERS: Dict[str, str] = {name.lower(): name for name in CANONICAL_PARAMS}

_slashes = re.compile(r"/{2,}")


def _is_param(segment: str) -> bool:
    return segment.startswith("{") and segment.endswith("}")


class RouteIndex:
    """Canonical spelling of static path segments, by segment count"""

    def __init__(self):
        self.by_segment_count: Dict[int, List[Dict[int, str]]] = {}

    def add(self, template: str):
        segments = [s for s in template.split("/") if s]
        static = {i: s for i, s in enumerate(segments) if not _is_param(s)}
        templates = self.by_segment_count.setdefault(len(segments), [])
        if static not in templates:
            templates.append(static)

    @classmethod
    def from_routes(cls, routes: List[BaseRoute]) -> "RouteIndex":
        index = cls()
        for route in routes:
            path = getattr(route, "path", None)
            if path:
                index.add(path)
        return index

    def canonical(self, path: str) -> str:
        """Rewrite static segments after the matching template with most of them"""
        segments = [s for s in path.split("/") if s]
        best = None
        for static in self.by_segment_count.get(len(segments), []):
            if all(segments[i].lower() == s.lower() for i, s in static.items()):
                if best is None or len(static) > len(best):
                    best = static
        if best is None:
            return path
        for i, canonical in best.items():
            segments[i] = canonical
        return "/" + "/".join(segments)


def normalize_path(path: str, index: RouteIndex) -> str:
    path = _slashes.sub("/", path) or "/"
    while path.lower() == EMBY_PREFIX or path.lower().startswith(EMBY_PREFIX + "/"):
        path = path[len(EMBY_PREFIX):] or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return index.canonical(path)


def normalize_query_key(key: str) -> str:
    lowered = key.lower()
    if lowered in QUERY_PARAMETERS:
        return QUERY_PARAMETERS[lowered]
    return key[:1].lower() + key[1:]


def normalize_query(query: str) -> str:
    pairs: List[Tuple[str, str]] = []
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key.lower() in REMOVE_PARAMS:
            continue
        pairs.append((normalize_query_key(key), value))
    return urlencode(pairs)


class RequestNormalizerMiddleware:
    """Pure ASGI middleware, the route index is built on the first request"""

    def __init__(self, app, router):
        self.app = app
        self.router = router
        self._index = None

    @property
    def index(self) -> RouteIndex:
        if self._index is None:
            self._index = RouteIndex.from_routes(self.router.routes)
        return self._index

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope = dict(scope)
        path = normalize_path(scope.get("path", "/"), self.index)
        scope["path"] = path
        scope["raw_path"] = quote(path).encode("ascii")

        query = scope.get("query_string", b"")
        if query:
            scope["query_string"] = normalize_query(query.decode("latin-1")).encode("ascii")
        await self.app(scope, receive, send)
