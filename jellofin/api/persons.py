"""Person API routes"""

from typing import Dict, List, Tuple

from fastapi import APIRouter, Depends, Request

from ..jellyfin.errors import JellyfinError
from ..jellyfin.items import ItemBuilder
from ..jellyfin.listing import items_response
from ..library.catalog import Catalog
from ..library.entities import Movie
from ..services.log_service import log_service
from .deps import get_catalog, get_item_builder

router = APIRouter(prefix="/Persons", tags=["persons"])


def person_counts(catalog: Catalog) -> Dict[str, Tuple[int, int, int]]:
    """Movies, shows and episodes each actor appears in, keyed by lowercased name"""
    counts: Dict[str, List[int]] = {}
    for item in catalog.all_items():
        for name in item.metadata.actors():
            entry = counts.setdefault(name.lower(), [0, 0, 0])
            if isinstance(item, Movie):
                entry[0] += 1
            else:
                entry[1] += 1
                entry[2] += item.episode_count()
    return {k: tuple(v) for k, v in counts.items()}


def _person_items(builder: ItemBuilder, catalog: Catalog, names: List[str]) -> List[dict]:
    counts = person_counts(catalog)
    return [builder.person(name, *counts.get(name.lower(), (0, 0, 0))) for name in names]


@router.get("")
async def get_persons(
    request: Request,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    """All known actors, the cast of one item, or the result of a name search"""
    params = request.query_params
    search_term = params.get("searchTerm", "")
    appears_in = params.get("appearsInItemId", "")

    if appears_in:
        item = builder.item_by_id(appears_in)
        names = [p["Name"] for p in item.get("People") or []]
    elif search_term:
        names = catalog.search.search_person(search_term)
        log_service.debug(f"Person search for '{search_term}' found {len(names)} persons")
    else:
        names = sorted(set(catalog.search.people.values()))

    return items_response(_person_items(builder, catalog, names), params)


@router.get("/{name}")
async def get_person(
    name: str,
    builder: ItemBuilder = Depends(get_item_builder),
    catalog: Catalog = Depends(get_catalog),
):
    if not name:
        raise JellyfinError(400, "Missing person name")
    movies, series, episodes = person_counts(catalog).get(name.lower(), (0, 0, 0))
    return builder.person(name, movies, series, episodes)
