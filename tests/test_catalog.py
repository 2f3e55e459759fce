"""Catalog publishing, lookups, next up and the search index"""

import pytest

from jellofin.library.catalog import Catalog, CatalogError
from jellofin.library.idhash import id_hash
from jellofin.library.search import SearchDocument, SearchIndex, analyze
from jellofin.services.library_service import LibraryService


@pytest.fixture
async def catalog(media_dir):
    catalog = Catalog()
    catalog.add_collection("Movies", "movies", str(media_dir / "movies"), collection_id="1")
    catalog.add_collection("Shows", "shows", str(media_dir / "shows"), collection_id="2")
    await LibraryService(catalog, None).scan_all()
    return catalog


def _episode(catalog, file_name):
    return catalog.get_episode(id_hash(file_name))[3]


def test_add_collection_rejects_bad_config(tmp_path):
    catalog = Catalog()
    with pytest.raises(CatalogError):
        catalog.add_collection("Music", "music", str(tmp_path))
    catalog.add_collection("Movies", "movies", str(tmp_path))
    with pytest.raises(CatalogError):
        catalog.add_collection("Movies", "movies", str(tmp_path))
    assert catalog.collections()[0].id == id_hash("Movies")


async def test_every_item_resolves_by_id(catalog):
    for item in catalog.all_items():
        c, found = catalog.get_item(item.id)
        assert found is item
        assert c.id in ("1", "2")
    show = catalog.items("2")[0]
    for season in show.seasons:
        assert catalog.get_season(season.id)[2] is season
        for episode in season.episodes:
            assert catalog.get_episode(episode.id)[3] is episode


async def test_find_item_by_name(catalog):
    assert catalog.find_item("1", "Casablanca (1942)").id == id_hash("Casablanca (1942)")
    assert catalog.find_item("1", "Nope") is None


async def test_details(catalog):
    details = catalog.details()
    assert details.movie_count == 1
    assert details.show_count == 1
    assert details.episode_count == 3
    assert set(details.genres) == {"Drama", "Sci-Fi", "Comedy"}
    assert details.official_ratings == ["PG"]
    assert 1942 in details.years


async def test_next_up_walks_seasons(catalog):
    e1 = _episode(catalog, "Example.Show.S01E01.mp4")
    e2 = _episode(catalog, "Example.Show.S01E02.mp4")
    e3 = _episode(catalog, "Example.Show.S02E01.mp4")

    assert catalog.next_up([e1.id]) == [e2.id]
    assert catalog.next_up([e1.id, e2.id]) == [e3.id]
    # order of the history does not matter, the furthest episode wins
    assert catalog.next_up([e2.id, e1.id]) == [e3.id]
    assert catalog.next_up([e1.id, e3.id]) == []
    assert catalog.next_up(["unknown"]) == []


async def test_rescan_drops_deleted_items(catalog, media_dir):
    (media_dir / "movies" / "Casablanca (1942)" / "casablanca.mp4").unlink()
    await LibraryService(catalog, None, pace=0.0).rescan()
    assert catalog.items("1") == []
    assert catalog.get_item(id_hash("Casablanca (1942)")) == (None, None)


async def test_catalog_search_index(catalog):
    assert catalog.search.search_item("casablanca") == [id_hash("Casablanca (1942)")]
    assert catalog.search.search_person("bogart") == ["Humphrey Bogart"]


def _index():
    return SearchIndex(
        [
            SearchDocument(id="m1", parent_id="p", name="The Matrix", sort_name="matrix",
                           genres=["Sci-Fi"], people=["Keanu Reeves"]),
            SearchDocument(id="m2", parent_id="p", name="The Matrix Reloaded",
                           sort_name="matrix reloaded", genres=["Sci-Fi"],
                           people=["Keanu Reeves"]),
            SearchDocument(id="m3", parent_id="p", name="Casablanca", sort_name="casablanca",
                           genres=["Drama"]),
            SearchDocument(id="m4", parent_id="other", name="The Matrix Revisited",
                           sort_name="matrix revisited", genres=["Sci-Fi"]),
        ]
    )


def test_analyze():
    assert analyze("The Lords of the Rings") == ["lord", "ring"]
    assert analyze("Glass") == ["glass"]


def test_search_ranks_exact_name_first():
    index = _index()
    assert index.search_item("casablanca") == ["m3"]
    assert index.search_item("the matrix")[0] == "m1"
    assert index.search_item("") == []


def test_search_is_fuzzy():
    assert set(_index().search_item("matrx")) == {"m1", "m2", "m4"}


def test_similar_stays_in_parent():
    index = _index()
    assert index.similar("m1") == ["m2"]
    assert index.similar("missing") == []


def test_search_person():
    index = _index()
    assert index.search_person("keanu") == ["Keanu Reeves"]
    assert index.search_person("reves") == ["Keanu Reeves"]
    assert index.search_person("nobody") == []
