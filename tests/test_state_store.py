"""StateStore caches, flushing and persistence"""

import pytest

from jellofin.database import Database
from jellofin.services.state_store import (
    AccessToken,
    ItemRecord,
    NotFoundError,
    StateStore,
    User,
    UserData,
    utcnow,
)


@pytest.fixture
async def db(tmp_path):
    database = Database(tmp_path / "jellofin.db")
    await database.init()
    yield database
    await database.dispose()


@pytest.fixture
async def store(db):
    s = StateStore(db)
    await s.load()
    return s


async def test_user_data_roundtrip(store):
    with pytest.raises(NotFoundError):
        await store.get_user_data("u1", "item1")

    before = utcnow()
    await store.update_user_data("u1", "item1", UserData(position=600, played_percentage=16))
    data = await store.get_user_data("u1", "item1")
    assert data.position == 600
    assert data.timestamp >= before


async def test_returned_user_data_is_a_copy(store):
    await store.update_user_data("u1", "item1", UserData(position=10))
    data = await store.get_user_data("u1", "item1")
    data.position = 999
    assert (await store.get_user_data("u1", "item1")).position == 10


async def test_flush_user_data_persists(store, db):
    await store.update_user_data("u1", "item1", UserData(position=42, favorite=True))
    assert await store.flush_user_data() == 1
    # nothing changed since
    assert await store.flush_user_data() == 0

    reloaded = StateStore(db)
    await reloaded.load()
    data = await reloaded.get_user_data("u1", "item1")
    assert data.position == 42
    assert data.favorite


async def test_favorites_and_recently_watched(store):
    await store.update_user_data("u1", "a", UserData(favorite=True))
    await store.update_user_data("u1", "b", UserData(position=100, played_percentage=3))
    await store.update_user_data("u1", "c", UserData(position=200, played_percentage=6))
    await store.update_user_data("u1", "d", UserData(played=True, played_percentage=100))
    await store.update_user_data("u2", "e", UserData(favorite=True, position=5))

    assert await store.get_favorites("u1") == ["a"]
    # newest first
    assert await store.get_recently_watched("u1", False) == ["c", "b"]
    assert await store.get_recently_watched("u1", True)[:2] == ["d", "c"]


async def test_resume_needs_a_partial_percentage(store):
    # a few seconds into a long item round down to 0%
    await store.update_user_data("u1", "early", UserData(position=20, played_percentage=0))
    await store.update_user_data("u1", "midway", UserData(position=1800, played_percentage=50))
    assert await store.get_recently_watched("u1", False) == ["midway"]


async def test_users_and_tokens(store, db):
    await store.upsert_user(User(id="u1", username="alice", password="hash", created=utcnow()))
    user = await store.get_user("alice")
    assert user.id == "u1"
    assert not user.properties.admin

    user.properties.admin = True
    await store.upsert_user(user)
    assert (await store.get_user_by_id("u1")).properties.admin

    await store.upsert_access_token(
        AccessToken(token="t1", user_id="u1", device_id="dev", created=utcnow(), last_used=utcnow())
    )
    token = await store.get_access_token("t1")
    assert token.user_id == "u1"
    assert (await store.get_access_token_by_device_id("u1", "dev")).token == "t1"
    assert await store.get_access_token("missing") is None

    await store.delete_user("u1")
    assert await store.get_user("alice") is None
    assert await store.get_access_token("t1") is None


async def test_playlist_order(store):
    playlist_id = await store.create_playlist("u1", "Mix", ["a", "b"])
    await store.add_items_to_playlist("u1", playlist_id, ["c", "a"])
    playlist = await store.get_playlist("u1", playlist_id)
    assert playlist.item_ids == ["a", "b", "c"]

    await store.move_playlist_item("u1", playlist_id, "c", 0)
    assert (await store.get_playlist("u1", playlist_id)).item_ids == ["c", "a", "b"]

    await store.delete_items_from_playlist("u1", playlist_id, ["a"])
    assert (await store.get_playlist("u1", playlist_id)).item_ids == ["c", "b"]

    # other users cannot see or modify it
    assert await store.get_playlist("u2", playlist_id) is None
    with pytest.raises(NotFoundError):
        await store.add_items_to_playlist("u2", playlist_id, ["x"])


async def test_upsert_item_keeps_id_by_name(store):
    first = await store.upsert_item(ItemRecord(id="id-1", name="Casablanca (1942)", year=1942))
    second = await store.upsert_item(ItemRecord(id="id-2", name="Casablanca (1942)", year=1943))
    assert first == second == "id-1"
    record = await store.get_item_by_name("Casablanca (1942)")
    assert record.year == 1943
    assert await store.get_item_by_name("Alien") is None
