"""Dependencies shared by the API routers"""

from fastapi import Depends, Request

from ..config import ServerConfig
from ..jellyfin.auth import RequestContext, get_request_context
from ..jellyfin.items import ItemBuilder
from ..library.catalog import Catalog
from ..services.auth_service import AuthService
from ..services.image_resizer import ImageResizer
from ..services.state_store import StateStore


def get_config(request: Request) -> ServerConfig:
    return request.app.state.config


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_store(request: Request) -> StateStore:
    return request.app.state.store


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_resizer(request: Request) -> ImageResizer:
    return request.app.state.resizer


def get_server_id(request: Request) -> str:
    return request.app.state.server_id


async def get_item_builder(
    request: Request, context: RequestContext = Depends(get_request_context)
) -> ItemBuilder:
    """Item builder bound to the authenticated user"""
    state = request.app.state
    return await ItemBuilder.for_user(state.catalog, state.store, state.server_id, context.user.id)
