"""Item image API routes"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, RedirectResponse, Response

from ..config import ServerConfig
from ..jellyfin import ids
from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.errors import ERR_ITEM_NOT_FOUND, JellyfinError
from ..jellyfin.items import IMAGE_TYPE_COLLECTION
from ..library.catalog import Catalog
from ..library.entities import Movie, Show
from ..services.image_resizer import ImageResizer, content_type_for
from ..services.log_service import log_service
from ..services.state_store import NotFoundError, StateStore
from .deps import get_catalog, get_config, get_resizer, get_store
from .users import receive_image, serve_stored_image

TAG_PREFIX_REDIRECT = "redirect_"
TAG_PREFIX_FILE = "file_"

REDIRECT_CACHE_CONTROL = "max-age=2592000"
FILE_CACHE_CONTROL = "max-age=2592000"

logger = log_service.get_logger("image")

router = APIRouter(tags=["images"])


def _int_arg(request: Request, *names: str) -> int:
    for name in names:
        value = request.query_params.get(name)
        if value:
            try:
                return max(int(float(value)), 0)
            except ValueError:
                raise JellyfinError(400, f"invalid {name}")
    return 0


def _stored_image_id(item_id: str) -> bool:
    """Folders whose images live in the database rather than on disk"""
    return (
        ids.is_collection_id(item_id)
        or ids.is_favorites_id(item_id)
        or ids.is_playlist_collection_id(item_id)
        or ids.is_playlist_id(item_id)
        or ids.is_genre_id(item_id)
        or ids.is_studio_id(item_id)
    )


def image_file(catalog: Catalog, item_id: str, image_type: str) -> Optional[Path]:
    """Absolute path of an item's image slot, None when the slot is empty"""
    kind = image_type.lower()

    if ids.is_episode_id(item_id):
        c, show, season, episode = catalog.get_episode(ids.trim_prefix(item_id))
        if episode is None:
            raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
        base = Path(c.directory) / show.path
        if kind in ("primary", "thumb") and episode.thumb:
            return base / episode.thumb
        if kind == "backdrop" and show.fanart:
            return base / show.fanart
        return None

    if ids.is_season_id(item_id):
        c, show, season = catalog.get_season(ids.trim_prefix(item_id))
        if season is None:
            raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
        base = Path(c.directory) / show.path
        if kind == "primary":
            name = season.poster_image() or show.poster
        elif kind == "backdrop":
            name = season.fanart or show.fanart
        elif kind == "banner":
            name = season.banner_image() or show.banner
        else:
            name = ""
        return base / name if name else None

    c, item = catalog.get_item(item_id)
    if item is None or not isinstance(item, (Movie, Show)):
        raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
    slots = {
        "primary": item.poster,
        "backdrop": item.fanart,
        "logo": item.logo,
        "banner": item.banner,
        "thumb": item.fanart,
    }
    name = slots.get(kind, "")
    return Path(c.directory) / item.path / name if name else None


def _inside_collection(catalog: Catalog, path: Path) -> bool:
    resolved = path.resolve()
    for c in catalog.collections():
        try:
            resolved.relative_to(Path(c.directory).resolve())
            return True
        except ValueError:
            continue
    return False


async def serve_image_file(
    request: Request, resizer: ImageResizer, path: Path, quality: int,
    cache_control: Optional[str] = None,
) -> Response:
    """Send an image through the resizer, honouring size and quality arguments"""
    width = _int_arg(request, "width", "fillWidth", "w")
    height = _int_arg(request, "height", "fillHeight", "h")
    max_width = _int_arg(request, "maxWidth", "mw")
    max_height = _int_arg(request, "maxHeight", "mh")
    requested_quality = _int_arg(request, "quality", "q")
    if requested_quality:
        quality = min(requested_quality, 100)

    try:
        image = await resizer.open_file(path, width, height, max_width, max_height, quality)
    except OSError:
        raise JellyfinError(404, "File not found")

    headers = {"Cache-Control": cache_control} if cache_control else None
    media_type = image.content_type or "application/octet-stream"
    if image.data is not None:
        return Response(content=image.data, media_type=media_type, headers=headers)
    return FileResponse(image.path, media_type=media_type, headers=headers)


@router.get("/Items/{item_id}/Images")
async def list_item_images(
    item_id: str,
    catalog: Catalog = Depends(get_catalog),
    store: StateStore = Depends(get_store),
):
    """Image slots present on an item"""
    images = []
    if _stored_image_id(item_id):
        if await store.has_image(item_id, IMAGE_TYPE_COLLECTION) is not None:
            images.append({"ImageIndex": 0, "ImageType": "Primary", "ImageTag": item_id})
        return images
    if ids.is_person_id(item_id) or ids.is_root_id(item_id):
        return images
    for image_type in ("Primary", "Backdrop", "Logo"):
        if image_file(catalog, item_id, image_type) is not None:
            images.append(
                {"ImageIndex": len(images), "ImageType": image_type, "ImageTag": item_id}
            )
    return images


@router.get("/Items/{item_id}/RemoteImages")
async def remote_images(item_id: str):
    return {"Images": [], "TotalRecordCount": 0, "Providers": []}


@router.get("/Items/{item_id}/RemoteImages/Providers")
async def remote_image_providers(item_id: str):
    return [{"Name": "Local Repository", "SupportedImages": ["Primary"]}]


@router.api_route("/Items/{item_id}/Images/{image_type}", methods=["GET", "HEAD"])
@router.api_route("/Items/{item_id}/Images/{image_type}/{index}", methods=["GET", "HEAD"])
async def get_item_image(
    item_id: str,
    image_type: str,
    request: Request,
    index: Optional[int] = None,
    catalog: Catalog = Depends(get_catalog),
    store: StateStore = Depends(get_store),
    resizer: ImageResizer = Depends(get_resizer),
    config: ServerConfig = Depends(get_config),
):
    """
    Serve posters, backdrops, logos and thumbs.

    The tag query parameter may point elsewhere: `redirect_<url>` sends the
    client to an external image, `file_<path>` serves a local image file
    from inside one of the collection directories.
    """
    tag = request.query_params.get("tag", "")
    if tag.startswith(TAG_PREFIX_REDIRECT):
        return RedirectResponse(
            tag[len(TAG_PREFIX_REDIRECT):],
            status_code=302,
            headers={"Cache-Control": REDIRECT_CACHE_CONTROL},
        )
    if tag.startswith(TAG_PREFIX_FILE):
        path = Path(tag[len(TAG_PREFIX_FILE):])
        if not path.is_absolute() or content_type_for(path) is None:
            raise JellyfinError(400, "invalid image tag")
        if not _inside_collection(catalog, path):
            raise JellyfinError(403, "Forbidden")
        return await serve_image_file(request, resizer, path, 0, FILE_CACHE_CONTROL)

    if _stored_image_id(item_id):
        return await serve_stored_image(store, item_id, image_type.lower())
    if ids.is_person_id(item_id) or ids.is_root_id(item_id):
        raise JellyfinError(404, "Image not found")

    path = image_file(catalog, item_id, image_type)
    if path is None:
        logger.debug(f"No {image_type} image for item {item_id}")
        raise JellyfinError(404, f"{image_type} image not found")

    # backdrops are sent as they are unless a size is asked for
    quality = 0 if image_type.lower() == "backdrop" else config.jellyfin.imagequalityposter
    return await serve_image_file(request, resizer, path, quality)


@router.post("/Items/{item_id}/Images/{image_type}")
@router.post("/Items/{item_id}/Images/{image_type}/{index}")
async def upload_item_image(
    item_id: str,
    image_type: str,
    request: Request,
    index: Optional[int] = None,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    """Store an uploaded primary image for any item"""
    if image_type.lower() != "primary":
        raise JellyfinError(400, "Only primary images can be uploaded")
    await receive_image(request, store, item_id, IMAGE_TYPE_COLLECTION)
    return Response(status_code=204)


@router.delete("/Items/{item_id}/Images/{image_type}")
@router.delete("/Items/{item_id}/Images/{image_type}/{index}")
async def delete_item_image(
    item_id: str,
    image_type: str,
    index: Optional[int] = None,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    try:
        await store.delete_image(item_id, image_type.lower())
    except NotFoundError:
        raise JellyfinError(404, "Image not found")
    return Response(status_code=204)


@router.api_route("/Genres/{name}/Images/{image_type}", methods=["GET", "HEAD"])
@router.api_route("/Genres/{name}/Images/{image_type}/{index}", methods=["GET", "HEAD"])
async def get_genre_image(
    name: str, image_type: str, index: Optional[int] = None,
    store: StateStore = Depends(get_store),
):
    return await serve_stored_image(store, ids.make_genre_id(name), image_type.lower())


@router.post("/Genres/{name}/Images/{image_type}")
async def upload_genre_image(
    name: str, image_type: str, request: Request,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    await receive_image(request, store, ids.make_genre_id(name), image_type.lower())
    return Response(status_code=204)


@router.api_route("/Studios/{name}/Images/{image_type}", methods=["GET", "HEAD"])
@router.api_route("/Studios/{name}/Images/{image_type}/{index}", methods=["GET", "HEAD"])
async def get_studio_image(
    name: str, image_type: str, index: Optional[int] = None,
    store: StateStore = Depends(get_store),
):
    return await serve_stored_image(store, ids.make_studio_id(name), image_type.lower())


@router.post("/Studios/{name}/Images/{image_type}")
async def upload_studio_image(
    name: str, image_type: str, request: Request,
    store: StateStore = Depends(get_store),
    context: RequestContext = Depends(get_request_context),
):
    await receive_image(request, store, ids.make_studio_id(name), image_type.lower())
    return Response(status_code=204)
