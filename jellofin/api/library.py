"""Library view API routes: user views, media folders and refresh"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import Response

from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.errors import JellyfinError
from ..jellyfin.items import ItemBuilder
from ..services.log_service import log_service
from .deps import get_item_builder

router = APIRouter(tags=["library"])


def _views(builder: ItemBuilder) -> dict:
    folders = builder.collection_root_overview()
    return {"Items": folders, "TotalRecordCount": len(folders), "StartIndex": 0}


@router.get("/UserViews")
@router.get("/Users/{user_id}/Views")
async def get_user_views(builder: ItemBuilder = Depends(get_item_builder)):
    """Top level folders: collections, favorites and playlists"""
    return _views(builder)


@router.get("/Library/MediaFolders")
async def get_media_folders(builder: ItemBuilder = Depends(get_item_builder)):
    return _views(builder)


@router.get("/UserViews/GroupingOptions")
@router.get("/Users/{user_id}/GroupingOptions")
async def get_grouping_options(builder: ItemBuilder = Depends(get_item_builder)):
    folders = [builder.collection(c) for c in builder.catalog.collections()]
    return [{"Name": f["Name"], "Id": f["Id"]} for f in folders]


@router.get("/Library/VirtualFolders")
async def get_virtual_folders(builder: ItemBuilder = Depends(get_item_builder)):
    folders = []
    for c in builder.catalog.collections():
        item = builder.collection(c)
        folders.append(
            {
                "Name": item["Name"],
                "ItemId": item["Id"],
                "PrimaryImageItemId": item["Id"],
                "CollectionType": item.get("CollectionType", ""),
                "Locations": ["/"],
            }
        )
    return folders


@router.post("/Library/Refresh")
async def refresh_library(
    request: Request,
    background_tasks: BackgroundTasks,
    context: RequestContext = Depends(get_request_context),
):
    """Start a full rescan of every collection"""
    if not context.is_admin:
        raise JellyfinError(403, "Admin rights required")
    library = request.app.state.library
    if library.is_scanning:
        log_service.info("Library refresh requested while a scan is running")
    else:
        log_service.info(f"Library refresh requested by {context.user.username}")
        background_tasks.add_task(library.scan_all)
    return Response(status_code=204)
