"""System API routes (info, health, plugins, tasks)"""

import os
import platform
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.errors import JellyfinError
from ..jellyfin.items import format_time
from ..services.log_service import log_service
from .deps import get_server_id

SERVER_VERSION = "10.11.6"
PRODUCT_NAME = "Jellyfin Server"

BITRATE_TEST_DEFAULT = 102400
BITRATE_TEST_MAX = 20 * 1024 * 1024

SCAN_TASK_ID = "3a025083141d3c17dd96d5f9b951287b"

router = APIRouter(tags=["system"])


def local_address(request: Request) -> str:
    return f"{request.url.scheme}://{request.headers.get('host', request.url.netloc)}"


@router.get("/health")
async def health():
    """Liveness probe"""
    return PlainTextResponse("Healthy", headers={"Cache-Control": "no-cache, no-store"})


@router.get("/GetUtcTime")
async def get_utc_time():
    now = format_time(datetime.now(timezone.utc))
    return {"RequestReceptionTime": now, "ResponseTransmissionTime": now}


@router.get("/System/Info/Public")
async def system_info_public(request: Request, server_id: str = Depends(get_server_id)):
    """Unauthenticated server identity, first call of every client"""
    user_agent = request.headers.get("user-agent", "")
    # these clients need web assets we do not serve and hang without them
    if user_agent.startswith("Jellyfin/1") and "JellyfinMediaPlayer" in user_agent:
        return Response(status_code=418)
    return {
        "Id": server_id,
        "LocalAddress": local_address(request),
        # the iOS client checks for this exact product name
        "ProductName": PRODUCT_NAME,
        "ServerName": request.app.state.config.server_name,
        "Version": SERVER_VERSION,
        "StartupWizardCompleted": True,
    }


@router.get("/System/Info")
async def system_info(
    request: Request,
    server_id: str = Depends(get_server_id),
    context: RequestContext = Depends(get_request_context),
):
    return {
        "Id": server_id,
        "ServerName": request.app.state.config.server_name,
        "Version": SERVER_VERSION,
        "ProductName": PRODUCT_NAME,
        "LocalAddress": local_address(request),
        "OperatingSystem": platform.system(),
        "OperatingSystemDisplayName": platform.system(),
        "SystemArchitecture": platform.machine(),
        "HasPendingRestart": False,
        "IsShuttingDown": False,
        "SupportsLibraryMonitor": True,
        "WebSocketPortNumber": request.app.state.config.listen.port,
        "CompletedInstallations": [],
        "CanSelfRestart": True,
        "CanLaunchWebBrowser": False,
        "ProgramDataPath": "/jellyfin",
        "WebPath": "/jellyfin/web",
        "ItemsByNamePath": "/jellyfin/metadata",
        "CachePath": "/jellyfin/cache",
        "LogPath": "/jellyfin/log",
        "InternalMetadataPath": "/jellyfin/metadata",
        "TranscodingTempPath": "/jellyfin/cache/transcodes",
        "EncoderLocation": "System",
        "HasUpdateAvailable": False,
        "StartupWizardCompleted": True,
        "CastReceiverApplications": [
            {"Id": "F007D354", "Name": "Stable"},
            {"Id": "6F511C87", "Name": "Unstable"},
        ],
    }


@router.get("/System/Ping")
@router.post("/System/Ping")
async def system_ping():
    return JSONResponse(PRODUCT_NAME)


@router.get("/System/Endpoint")
async def system_endpoint(context: RequestContext = Depends(get_request_context)):
    # no local network detection
    return {"IsLocal": False, "IsInNetwork": False}


@router.get("/System/Logs")
async def system_logs(context: RequestContext = Depends(get_request_context)):
    return []


@router.get("/System/Logs/Log")
async def system_log_lines(
    limit: int = Query(100, ge=1, le=1000),
    context: RequestContext = Depends(get_request_context),
):
    """Most recent lines of the in-memory log buffer, admins only"""
    if not context.is_admin:
        raise JellyfinError(403, "Forbidden")
    return PlainTextResponse("\n".join(log_service.get_logs(limit)))


@router.post("/System/Restart")
@router.post("/System/Shutdown")
async def system_restart(context: RequestContext = Depends(get_request_context)):
    return Response(status_code=403)


@router.get("/Plugins")
async def plugins(context: RequestContext = Depends(get_request_context)):
    return []


@router.get("/ScheduledTasks")
async def scheduled_tasks(request: Request, context: RequestContext = Depends(get_request_context)):
    now = format_time(datetime.now(timezone.utc))
    library = request.app.state.library
    return [
        {
            "Name": "Scan collections",
            "State": "Running" if library is not None and library.is_scanning else "Idle",
            "Id": SCAN_TASK_ID,
            "Key": "ScanCollections",
            "Category": "Library",
            "Triggers": [],
            "LastExecutionResult": {
                "StartTimeUtc": now,
                "EndTimeUtc": now,
                "Status": "Completed",
                "Name": "Scan collections",
                "Key": "ScanCollections",
                "Id": SCAN_TASK_ID,
            },
        }
    ]


@router.get("/Playback/BitrateTest")
async def bitrate_test(
    size: int = Query(BITRATE_TEST_DEFAULT),
    context: RequestContext = Depends(get_request_context),
):
    """Random payload of the requested size for client bandwidth probing"""
    if size < 0 or size > BITRATE_TEST_MAX:
        raise JellyfinError(400, "invalid size")
    return Response(content=os.urandom(size), media_type="application/octet-stream")
