"""Play state bookkeeping: thresholds, play counts and resume positions"""

import pytest

from jellofin.database import Database
from jellofin.jellyfin.errors import JellyfinError
from jellofin.jellyfin.items import TICKS_PER_SECOND
from jellofin.api.playstate import update_play_state
from jellofin.library.catalog import Catalog
from jellofin.library.idhash import id_hash
from jellofin.services.library_service import LibraryService
from jellofin.services.state_store import StateStore

from .conftest import episode_id, movie_id


@pytest.fixture
async def store(tmp_path):
    db = Database(tmp_path / "jellofin.db")
    await db.init()
    s = StateStore(db)
    await s.load()
    yield s
    await db.dispose()


@pytest.fixture
async def catalog(media_dir):
    catalog = Catalog()
    catalog.add_collection("Movies", "movies", str(media_dir / "movies"), collection_id="1")
    catalog.add_collection("Shows", "shows", str(media_dir / "shows"), collection_id="2")
    await LibraryService(catalog, None).scan_all()
    return catalog


async def test_progress_is_stored_in_seconds(store, catalog):
    item = episode_id("Example.Show.S01E01.mp4")
    data = await update_play_state(store, catalog, "u1", item, 600 * TICKS_PER_SECOND, False)
    assert data.position == 600
    # episodes without metadata run for the default hour
    assert data.played_percentage == 16
    assert not data.played
    stored = await store.get_user_data("u1", id_hash("Example.Show.S01E01.mp4"))
    assert stored.position == 600


async def test_near_the_end_counts_as_played(store, catalog):
    # 600 of 610 seconds
    data = await update_play_state(store, catalog, "u1", movie_id(), 600 * TICKS_PER_SECOND, False)
    assert data.played
    assert data.position == 0
    assert data.play_count == 1

    # reporting again does not count another play
    data = await update_play_state(store, catalog, "u1", movie_id(), 605 * TICKS_PER_SECOND, False)
    assert data.play_count == 1


@pytest.mark.parametrize(
    "seconds, percentage, played",
    [
        # of the hour an episode runs without metadata
        (3492, 97, False),
        (3527, 97, False),
        (3528, 98, True),
    ],
)
async def test_played_threshold(store, catalog, seconds, percentage, played):
    item = episode_id("Example.Show.S01E02.mp4")
    data = await update_play_state(store, catalog, "u1", item, seconds * TICKS_PER_SECOND, False)
    assert data.played is played
    if played:
        assert data.position == 0
        assert data.play_count == 1
    else:
        assert data.position == seconds
        assert data.played_percentage == percentage


async def test_mark_as_watched(store, catalog):
    data = await update_play_state(store, catalog, "u1", movie_id(), 0, True)
    assert data.played and data.play_count == 1


async def test_unknown_item(store, catalog):
    with pytest.raises(JellyfinError) as e:
        await update_play_state(store, catalog, "u1", "nope", 0, False)
    assert e.value.status_code == 404
