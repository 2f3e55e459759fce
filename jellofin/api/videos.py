"""Video and subtitle streaming routes"""

from pathlib import Path
from typing import List, Tuple

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, Response

from ..jellyfin import ids
from ..jellyfin.errors import ERR_ITEM_NOT_FOUND, JellyfinError
from ..jellyfin.items import SUBTITLE_STREAM_OFFSET
from ..library.catalog import Catalog
from ..library.entities import Movie, Subtitle
from ..library.subtitles import read_vtt
from ..services.log_service import log_service
from .deps import get_catalog

VIDEO_TYPES = {
    ".mp4": "video/mp4",
    ".m4v": "video/x-m4v",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
}

logger = log_service.get_logger("stream")

router = APIRouter(prefix="/Videos", tags=["videos"])


def playable_file(catalog: Catalog, item_id: str) -> Tuple[Path, Path, List[Subtitle]]:
    """Item directory, video file and subtitles of a movie or episode"""
    if ids.is_episode_id(item_id):
        c, show, _, episode = catalog.get_episode(ids.trim_prefix(item_id))
        if episode is None:
            raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
        base = Path(c.directory) / show.path
        return base, base / episode.file_name, episode.vtt_subs

    c, item = catalog.get_item(ids.trim_prefix(item_id))
    if item is None or not isinstance(item, Movie) or not item.file_name:
        raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
    base = Path(c.directory) / item.path
    return base, base / item.file_name, item.vtt_subs


@router.api_route("/{item_id}/{stream}", methods=["GET", "HEAD"])
async def stream_video(item_id: str, stream: str, catalog: Catalog = Depends(get_catalog)):
    """Direct play of the video file, range requests included"""
    if not stream.lower().startswith("stream"):
        raise JellyfinError(404, "Not found")
    _, path, _ = playable_file(catalog, item_id)
    if not path.is_file():
        logger.warning(f"Video file {path} of item {item_id} is missing")
        raise JellyfinError(404, "File not found")
    media_type = VIDEO_TYPES.get(path.suffix.lower(), "application/octet-stream")
    return FileResponse(path, media_type=media_type)


@router.get("/{item_id}/{media_source_id}/Subtitles/{index}/{offset}/{stream}")
@router.get("/{item_id}/{media_source_id}/Subtitles/{index}/{stream}")
async def stream_subtitle(
    item_id: str,
    media_source_id: str,
    index: int,
    stream: str,
    catalog: Catalog = Depends(get_catalog),
):
    """External subtitle as WebVTT, converted from SubRip when needed"""
    base, _, subtitles = playable_file(catalog, item_id)
    position = index - SUBTITLE_STREAM_OFFSET
    if position < 0 or position >= len(subtitles):
        raise JellyfinError(404, "Subtitle not found")

    try:
        data = read_vtt(base / subtitles[position].path)
    except OSError as e:
        logger.warning(f"Cannot read subtitle {subtitles[position].path}: {e}")
        raise JellyfinError(404, "Subtitle not found")
    return Response(content=data, media_type="text/vtt")
