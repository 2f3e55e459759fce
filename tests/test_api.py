"""End to end tests against the assembled application"""

import asyncio
import threading
import time

import httpx
from fastapi.testclient import TestClient

from jellofin.jellyfin.items import TICKS_PER_SECOND
from jellofin.main import create_app
from jellofin.services.image_resizer import ImageResizer

from .conftest import (
    MOVIES_COLLECTION,
    SHOW_NFO,
    auth_headers,
    episode_id,
    login,
    movie_id,
    show_id,
)


def test_public_system_info(client):
    response = client.get("/System/Info/Public")
    assert response.status_code == 200
    info = response.json()
    assert info["Id"] == "test-server"
    assert info["StartupWizardCompleted"] is True


def test_requests_without_token_are_rejected(client):
    response = client.get("/Users/Me")
    assert response.status_code == 401
    assert response.json()["status"] == 401

    response = client.get("/Items", headers=auth_headers("not-a-token"))
    assert response.status_code == 401


def test_login(client):
    session = login(client)
    assert session["ServerId"] == "test-server"
    assert session["User"]["Name"] == "alice"
    assert session["AccessToken"]

    # every login issues a fresh token
    assert login(client)["AccessToken"] != session["AccessToken"]

    response = client.post(
        "/Users/AuthenticateByName",
        json={"Username": "alice", "Pw": "wrong"},
    )
    assert response.status_code == 401


def test_movie_listing(client, headers, user_id):
    response = client.get(
        f"/Users/{user_id}/Items",
        params={"ParentId": f"collection_{MOVIES_COLLECTION}", "IncludeItemTypes": "Movie"},
        headers=headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["TotalRecordCount"] == 1
    movie = body["Items"][0]
    assert movie["Id"] == movie_id()
    assert movie["Name"] == "Casablanca"
    assert movie["Type"] == "Movie"
    assert movie["ProductionYear"] == 1942


def test_emby_prefix_and_lowercase_query(client, headers):
    response = client.get(
        "/emby/items", params={"parentid": f"collection_{MOVIES_COLLECTION}"}, headers=headers
    )
    assert response.status_code == 200
    assert [i["Id"] for i in response.json()["Items"]] == [movie_id()]


def test_item_details(client, headers):
    response = client.get(f"/Items/{movie_id()}", headers=headers)
    assert response.status_code == 200
    assert response.json()["OfficialRating"] == "PG"

    response = client.get("/Items/doesnotexist", headers=headers)
    assert response.status_code == 404


def test_resume_after_partial_playback(client, headers, user_id):
    item = episode_id("Example.Show.S01E01.mp4")
    position = 600 * TICKS_PER_SECOND
    response = client.post(
        "/Sessions/Playing/Progress",
        json={"ItemId": item, "PositionTicks": position},
        headers=headers,
    )
    assert response.status_code == 204

    response = client.get(f"/Users/{user_id}/Items/Resume", headers=headers)
    assert response.status_code == 200
    items = response.json()["Items"]
    assert [i["Id"] for i in items] == [item]
    assert items[0]["UserData"]["PlaybackPositionTicks"] == position
    assert items[0]["UserData"]["Played"] is False


def test_playing_to_the_end_marks_played(client, headers):
    response = client.post(
        "/Sessions/Playing/Stopped",
        json={"ItemId": movie_id(), "PositionTicks": 600 * TICKS_PER_SECOND},
        headers=headers,
    )
    assert response.status_code == 204

    user_data = client.get(f"/Items/{movie_id()}", headers=headers).json()["UserData"]
    assert user_data["Played"] is True
    assert user_data["PlaybackPositionTicks"] == 0
    assert user_data["PlayCount"] == 1


def test_next_up(client, headers):
    first = episode_id("Example.Show.S01E01.mp4")
    response = client.post(f"/UserPlayedItems/{first}", headers=headers)
    assert response.status_code == 200
    assert response.json()["Played"] is True

    response = client.get("/Shows/NextUp", headers=headers)
    assert response.status_code == 200
    assert [i["Id"] for i in response.json()["Items"]] == [
        episode_id("Example.Show.S01E02.mp4")
    ]


def test_show_seasons_and_episodes(client, headers):
    seasons = client.get(f"/Shows/{show_id()}/Seasons", headers=headers).json()["Items"]
    assert [s["IndexNumber"] for s in seasons] == [1, 2]

    episodes = client.get(
        f"/Shows/{show_id()}/Episodes", params={"SeasonId": seasons[0]["Id"]}, headers=headers
    ).json()["Items"]
    assert [e["IndexNumber"] for e in episodes] == [1, 2]


def test_favorites(client, headers):
    response = client.post(f"/UserFavoriteItems/{movie_id()}", headers=headers)
    assert response.status_code == 200
    assert response.json()["IsFavorite"] is True

    response = client.get("/Items", params={"isFavorite": "true", "recursive": "true"}, headers=headers)
    assert [i["Id"] for i in response.json()["Items"]] == [movie_id()]


def test_playlists(client, headers):
    response = client.post("/Playlists", json={"Name": "Evening", "Ids": [movie_id()]}, headers=headers)
    assert response.status_code == 200
    playlist_id = response.json()["Id"]
    assert playlist_id.startswith("playlist_")

    second = episode_id("Example.Show.S01E01.mp4")
    response = client.post(f"/Playlists/{playlist_id}/Items", params={"ids": second}, headers=headers)
    assert response.status_code == 204

    items = client.get(f"/Playlists/{playlist_id}/Items", headers=headers).json()["Items"]
    assert [i["Id"] for i in items] == [movie_id(), second]

    # playlists are private
    other = auth_headers(login(client, "bob", "secret")["AccessToken"])
    assert client.get(f"/Playlists/{playlist_id}", headers=other).status_code == 404


def test_poster_and_resize(client):
    response = client.get(f"/Items/{movie_id()}/Images/Primary")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"

    resized = client.get(f"/Items/{movie_id()}/Images/Primary", params={"maxWidth": "300"})
    assert resized.status_code == 200
    assert len(resized.content) < len(response.content)

    assert client.get(f"/Items/{movie_id()}/Images/Logo").status_code == 404


def test_image_redirect_tag(client):
    response = client.get(
        f"/Items/{movie_id()}/Images/Primary",
        params={"tag": "redirect_https://images.example.com/poster.jpg"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"] == "https://images.example.com/poster.jpg"
    assert response.headers["cache-control"] == "max-age=2592000"


def test_image_file_tag_is_limited_to_collections(client, tmp_path):
    outside = tmp_path / "outside.jpg"
    outside.write_bytes(b"")
    response = client.get(
        f"/Items/{movie_id()}/Images/Primary", params={"tag": f"file_{outside}"}
    )
    assert response.status_code == 403


def test_notflix_collections(client):
    response = client.get("/api/collections")
    assert response.status_code == 200
    assert {c["id"] for c in response.json()} == {"1", "2"}

    response = client.get(f"/api/collection/{MOVIES_COLLECTION}/genres")
    assert response.json() == {"Drama": 1}


def test_notflix_data_files(client):
    response = client.get(f"/data/{MOVIES_COLLECTION}/Casablanca%20(1942)/casablanca.en.vtt")
    assert response.status_code == 200
    assert response.text.startswith("WEBVTT")

    response = client.get(f"/data/{MOVIES_COLLECTION}/%2e%2e/%2e%2e/secret.txt")
    assert response.status_code == 403


def test_ip_acl(config):
    config.listen.ipacl = ["10.0.0.0/8"]
    with TestClient(create_app(config, background_jobs=False)) as c:
        response = c.get("/System/Info/Public")
    assert response.status_code == 403


class CountingResizer(ImageResizer):
    def __init__(self, cache_dir):
        super().__init__(cache_dir)
        self.renders = 0
        self._count_lock = threading.Lock()

    def _render(self, path, w, h, q, resize):
        with self._count_lock:
            self.renders += 1
        time.sleep(0.05)
        return ImageResizer._render(path, w, h, q, resize)


async def test_concurrent_image_requests_decode_once(config, tmp_path):
    resizer = CountingResizer(tmp_path / "resized")
    app = create_app(config, resizer=resizer, background_jobs=False)

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            url = f"/Items/{movie_id()}/Images/Primary?maxWidth=300"
            responses = await asyncio.gather(*[c.get(url) for _ in range(4)])

    assert [r.status_code for r in responses] == [200] * 4
    assert len({r.content for r in responses}) == 1
    assert resizer.renders == 1


def test_show_marked_played_stays_played(client, headers, user_id):
    response = client.post(f"/Users/{user_id}/PlayedItems/{show_id()}", headers=headers)
    assert response.status_code == 200

    show = client.get(f"/Users/{user_id}/Items/{show_id()}", headers=headers).json()
    assert show["UserData"]["Played"] is True
    # no episode was watched
    assert show["UserData"]["UnplayedItemCount"] == 3


def test_show_user_data_rolls_up_episodes(client, headers, user_id):
    client.post(f"/UserPlayedItems/{episode_id('Example.Show.S01E01.mp4')}", headers=headers)

    user_data = client.get(f"/Users/{user_id}/Items/{show_id()}", headers=headers).json()["UserData"]
    assert user_data["UnplayedItemCount"] == 2
    assert user_data["PlayedPercentage"] == 33
    assert user_data["Played"] is False
    assert user_data["LastPlayedDate"]

    seasons = client.get(f"/Shows/{show_id()}/Seasons", headers=headers).json()["Items"]
    assert [s["UserData"]["UnplayedItemCount"] for s in seasons] == [1, 1]
    assert [s["UserData"]["PlayedPercentage"] for s in seasons] == [50, 0]


def test_episodes_do_not_inherit_show_rating(config, media_dir):
    nfo = media_dir / "shows" / "Example Show" / "tvshow.nfo"
    nfo.write_text(SHOW_NFO.replace("</tvshow>", "  <mpaa>TV-14</mpaa>\n</tvshow>"))

    with TestClient(create_app(config, background_jobs=False)) as c:
        headers = auth_headers(login(c)["AccessToken"])
        show = c.get(f"/Items/{show_id()}", headers=headers).json()
        assert show["OfficialRating"] == "TV-14"

        episodes = c.get(f"/Shows/{show_id()}/Episodes", headers=headers).json()["Items"]
        assert len(episodes) == 3
        assert all(not e.get("OfficialRating") for e in episodes)
