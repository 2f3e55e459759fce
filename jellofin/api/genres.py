"""Genre and studio API routes"""

from typing import Callable, List

from fastapi import APIRouter, Depends, Request

from ..jellyfin.items import ItemBuilder
from ..jellyfin.listing import apply_sorting
from ..library.catalog import Catalog
from .deps import get_catalog, get_item_builder
from .items import items_in_scope

router = APIRouter(tags=["genres"])


def _unique_refs(items: List[dict], field: str) -> List[dict]:
    """Distinct {Name, Id} references of a field across items, first seen first"""
    refs = []
    seen = set()
    for item in items:
        for ref in item.get(field) or []:
            if ref.get("Name") and ref["Id"] not in seen:
                seen.add(ref["Id"])
                refs.append(ref)
    return refs


def _listing(request: Request, builder: ItemBuilder, field: str, make: Callable, counts: dict):
    params = request.query_params
    scope = items_in_scope(builder, params.get("parentId", ""))
    folders = [make(ref["Name"], counts.get(ref["Name"], 0)) for ref in _unique_refs(scope, field)]
    folders = apply_sorting(folders, params)
    return {"Items": folders, "TotalRecordCount": len(folders), "StartIndex": 0}


@router.get("/Genres")
async def get_genres(
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    """Genres used by the items under parentId"""
    return _listing(request, builder, "GenreItems", builder.genre, catalog.genre_item_count())


@router.get("/Genres/{name}")
async def get_genre(
    name: str,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    return builder.genre(name, catalog.genre_item_count().get(name, 0))


@router.get("/Studios")
async def get_studios(
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    return _listing(request, builder, "Studios", builder.studio, catalog.studio_item_count())


@router.get("/Studios/{name}")
async def get_studio(
    name: str,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    return builder.studio(name, catalog.studio_item_count().get(name, 0))
