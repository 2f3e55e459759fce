"""Notflix API: a read-only JSON view of the collections and their files"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, JSONResponse, Response

from ..library.catalog import Catalog
from ..library.entities import CatalogItem, Collection, Episode, Movie, Season, Show, Subtitle
from ..library.subtitles import read_vtt
from ..services.image_resizer import ImageResizer, content_type_for
from ..services.log_service import log_service
from .deps import get_catalog, get_resizer
from .images import serve_image_file

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
}
DATA_CACHE_CONTROL = "max-age=86400, stale-while-revalidate=300"
METHODS = ["GET", "HEAD", "OPTIONS"]

logger = log_service.get_logger("notflix")

router = APIRouter(tags=["notflix"])


def escape_path(p: str) -> str:
    return quote(p) if p else ""


def _date(dt: Optional[datetime]) -> str:
    return dt.strftime("%Y-%m-%d") if dt else ""


def _millis(dt: Optional[datetime]) -> int:
    return int(dt.timestamp() * 1000) if dt else 0


def _subs(subs: List[Subtitle]) -> List[dict]:
    return [{"lang": s.lang, "path": escape_path(s.path)} for s in subs]


def _compact(d: dict) -> dict:
    """Drop empty optional fields"""
    return {k: v for k, v in d.items() if v not in (None, "", [], 0, False)}


def collection_json(c: Collection) -> dict:
    return {"id": c.id, "name": c.name, "type": c.type}


def item_json(item: CatalogItem) -> dict:
    metadata = item.metadata
    studios = metadata.studios()
    data = {
        "id": item.id,
        "name": item.name,
        "path": escape_path(item.path),
        "baseurl": item.base_url,
        "type": "movie" if isinstance(item, Movie) else "show",
        "nfo": {
            "id": item.id,
            "title": metadata.title(),
            "plot": metadata.plot(),
            "premiered": _date(metadata.premiered()),
            "mpaa": metadata.official_rating(),
            "aired": _date(metadata.premiered()),
            "studio": studios[0] if studios else "",
            "rating": item.rating(),
        },
    }
    optional = {
        "sortName": item.sort_name,
        "banner": escape_path(item.banner),
        "fanart": escape_path(item.fanart),
        "folder": escape_path(item.folder),
        "poster": escape_path(item.poster),
        "rating": item.rating(),
        "votes": item.votes(),
        "genre": item.genres(),
        "year": item.year(),
    }
    if isinstance(item, Movie):
        optional.update(
            {
                "firstvideo": _millis(item.created),
                "lastvideo": _millis(item.created),
                "video": escape_path(item.file_name),
                "srtsubs": _subs(item.srt_subs),
                "vttsubs": _subs(item.vtt_subs),
            }
        )
    else:
        optional.update(
            {
                "firstvideo": _millis(item.first_video),
                "lastvideo": _millis(item.last_video),
                "seasonAllBanner": escape_path(item.season_all_banner),
                "seasonAllPoster": escape_path(item.season_all_poster),
            }
        )
    data.update(_compact(optional))
    return data


def episode_json(episode: Episode, with_nfo: bool) -> dict:
    data = {
        "name": episode.name,
        "seasonno": episode.season_no,
        "episodeno": episode.episode_no,
        "video": escape_path(episode.file_name),
    }
    if with_nfo:
        data["nfo"] = {
            "title": episode.metadata.title(),
            "plot": episode.metadata.plot(),
            "season": str(episode.season_no),
            "episode": str(episode.episode_no),
            "aired": _date(episode.metadata.premiered()),
        }
    data.update(
        _compact(
            {
                "double": episode.double,
                "sortName": episode.sort_name,
                "thumb": escape_path(episode.thumb),
                "srtsubs": _subs(episode.srt_subs),
                "vttsubs": _subs(episode.vtt_subs),
            }
        )
    )
    return data


def season_json(season: Season, with_nfo: bool) -> dict:
    data = {"seasonno": season.season_no}
    data.update(
        _compact(
            {
                "banner": escape_path(season.banner),
                "fanart": escape_path(season.fanart),
                "poster": escape_path(season.poster),
                "episodes": [episode_json(ep, with_nfo) for ep in season.episodes],
            }
        )
    )
    return data


def _json(content, status_code: int = 200, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers={**CORS_HEADERS, **(headers or {})})


def _not_found() -> JSONResponse:
    return _json({"status": 404, "message": "Not found"}, status_code=404)


def _etag(stamp: Optional[datetime]) -> Optional[str]:
    """ETag for a modification time, None when the item has none"""
    if stamp is None:
        return None
    return f'"{_millis(stamp)}"'


def _respond(request: Request, content, etag: Optional[str]) -> Response:
    headers = {"ETag": etag} if etag else None
    if etag and request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={**CORS_HEADERS, **(headers or {})})
    if request.method == "HEAD":
        return Response(status_code=200, headers={**CORS_HEADERS, **(headers or {})})
    return _json(content, headers=headers)


def _get_collection(catalog: Catalog, coll: str) -> Optional[Collection]:
    return catalog.get_collection(coll)


@router.api_route("/api/collections", methods=METHODS)
async def get_collections(request: Request, catalog: Catalog = Depends(get_catalog)):
    if request.method == "OPTIONS":
        return Response(headers=CORS_HEADERS)
    return _json([collection_json(c) for c in catalog.collections()])


@router.api_route("/api/collection/{coll}", methods=METHODS)
async def get_collection(coll: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    if request.method == "OPTIONS":
        return Response(headers=CORS_HEADERS)
    c = _get_collection(catalog, coll)
    if c is None:
        return _not_found()
    return _json(collection_json(c))


@router.api_route("/api/collection/{coll}/genres", methods=METHODS)
async def get_collection_genres(coll: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    """Number of items per genre"""
    if request.method == "OPTIONS":
        return Response(headers=CORS_HEADERS)
    c = _get_collection(catalog, coll)
    if c is None:
        return _not_found()
    counts = {}
    for item in c.items:
        for g in item.genres():
            if g:
                counts[g] = counts.get(g, 0) + 1
    return _json(counts)


@router.api_route("/api/collection/{coll}/items", methods=METHODS)
async def get_collection_items(coll: str, request: Request, catalog: Catalog = Depends(get_catalog)):
    """All items of a collection, tagged with the time of the newest video"""
    if request.method == "OPTIONS":
        return Response(headers=CORS_HEADERS)
    c = _get_collection(catalog, coll)
    if c is None:
        return _not_found()
    stamps = [i.last_video for i in c.items if isinstance(i, Show) and i.last_video]
    etag = _etag(max(stamps) if stamps else None)
    return _respond(request, [item_json(i) for i in c.items], etag)


@router.api_route("/api/collection/{coll}/item/{item_id}", methods=METHODS)
async def get_collection_item(
    coll: str, item_id: str, request: Request, catalog: Catalog = Depends(get_catalog)
):
    """One item, with seasons and episodes for shows; `nonfo` leaves out episode NFO"""
    if request.method == "OPTIONS":
        return Response(headers=CORS_HEADERS)
    item = catalog.find_item(coll, item_id)
    if item is None:
        return _not_found()

    stamp = item.created if isinstance(item, Movie) else item.last_video
    data = item_json(item)
    if isinstance(item, Show) and item.seasons:
        with_nfo = "nonfo" not in request.query_params
        data["seasons"] = [season_json(s, with_nfo) for s in item.seasons]
    return _respond(request, data, _etag(stamp))


@router.api_route("/data/{coll}/{path:path}", methods=METHODS)
async def get_data_file(
    coll: str,
    path: str,
    request: Request,
    catalog: Catalog = Depends(get_catalog),
    resizer: ImageResizer = Depends(get_resizer),
):
    """
    A file from a collection directory.

    Images go through the resizer, a missing .vtt subtitle is converted from
    the .srt next to it, anything else is served as is with range support.
    """
    if request.method == "OPTIONS":
        return Response(headers=CORS_HEADERS)
    c = _get_collection(catalog, coll)
    if c is None:
        return _not_found()

    root = Path(c.data_dir()).resolve()
    file_path = (root / path).resolve()
    try:
        file_path.relative_to(root)
    except ValueError:
        logger.warning(f"Rejected path outside collection {coll}: {path}")
        return _json({"status": 403, "message": "Access denied"}, status_code=403)

    headers = {**CORS_HEADERS, "Cache-Control": DATA_CACHE_CONTROL}
    suffix = file_path.suffix.lower()
    if suffix in (".vtt", ".srt"):
        try:
            data = file_path.read_bytes() if suffix == ".srt" else read_vtt(file_path)
        except OSError:
            return _not_found()
        media_type = "text/vtt" if suffix == ".vtt" else "application/x-subrip"
        return Response(content=data, media_type=media_type, headers=headers)

    if file_path.is_dir():
        return _json({"status": 403, "message": "Access denied"}, status_code=403)
    if not file_path.is_file():
        return _not_found()

    if content_type_for(file_path) is not None:
        response = await serve_image_file(request, resizer, file_path, 0, DATA_CACHE_CONTROL)
        response.headers.update(CORS_HEADERS)
        return response
    return FileResponse(file_path, headers=headers)
