"""Main FastAPI application"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from . import __version__
from .api import (
    genres,
    images,
    items,
    library,
    misc,
    notflix,
    persons,
    playlists,
    playstate,
    quickconnect,
    sessions,
    shows,
    system,
    users,
    videos,
)
from .config import ServerConfig, settings
from .database import Database
from .jellyfin.errors import register_error_handlers
from .jellyfin.normalizer import RequestNormalizerMiddleware
from .library.catalog import Catalog
from .middleware import AccessLogMiddleware, IPAccessMiddleware, parse_networks
from .services.auth_service import AuthService
from .services.image_resizer import ImageResizer
from .services.library_service import LibraryService
from .services.log_service import log_service
from .services.scheduler_service import SchedulerService
from .services.state_store import StateStore
from .services.tls_reloader import TLSReloader

ROUTERS = [
    system,
    users,
    items,
    shows,
    images,
    videos,
    playstate,
    sessions,
    playlists,
    persons,
    genres,
    library,
    misc,
    quickconnect,
    notflix,
]


def _build_catalog(config: ServerConfig) -> Catalog:
    catalog = Catalog()
    for c in config.collections:
        catalog.add_collection(
            c.name,
            c.type,
            c.directory,
            collection_id=c.id,
            base_url=c.baseurl,
            hls_server=c.hlsserver,
        )
    return catalog


def create_app(
    config: ServerConfig,
    resizer: Optional[ImageResizer] = None,
    background_jobs: bool = True,
) -> FastAPI:
    """
    Build the application for one configuration.

    Collections are scanned once during startup before the first request
    is served. With background_jobs off no scheduler runs, which keeps
    tests deterministic; state then only reaches the database on shutdown.
    """
    tls = None
    if config.tls_enabled:
        tls = TLSReloader(config.listen.tlscert, config.listen.tlskey)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        # Startup
        db = Database(config.database_path)
        await db.init()
        store = StateStore(db)
        await store.load()

        catalog = _build_catalog(config)
        library_service = LibraryService(catalog, store, settings.SCAN_PACE)
        await library_service.scan_all()

        app.state.catalog = catalog
        app.state.store = store
        app.state.library = library_service
        app.state.auth_service = AuthService(store)
        app.state.resizer = resizer or ImageResizer(Path(config.cachedir) / "imagecache")

        scheduler = SchedulerService(store, library_service if background_jobs else None, tls)
        app.state.scheduler = scheduler
        if background_jobs:
            await scheduler.start()
        log_service.info(f"Server {config.server_name} ({config.server_id}) ready")
        try:
            yield
        except asyncio.CancelledError:
            pass
        finally:
            # Shutdown
            if scheduler.is_running:
                await scheduler.stop()
            else:
                await store.flush_user_data()
                await store.flush_access_tokens()
            await db.dispose()

    app = FastAPI(
        title="Jellofin",
        description="Jellyfin compatible media server",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.server_id = config.server_id
    app.state.tls = tls
    app.state.library = None

    register_error_handlers(app)
    for module in ROUTERS:
        app.include_router(module.router)

    # Last added runs first
    app.add_middleware(RequestNormalizerMiddleware, router=app.router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(IPAccessMiddleware, networks=parse_networks(config.listen.ipacl))
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(AccessLogMiddleware)
    return app
