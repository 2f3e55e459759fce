"""Shared fixtures: a small media tree, a configured app and a logged-in client"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from jellofin.config import ServerConfig
from jellofin.library.idhash import id_hash
from jellofin.main import create_app

MOVIES_COLLECTION = "1"
SHOWS_COLLECTION = "2"

CASABLANCA_NFO = """<?xml version="1.0" encoding="UTF-8"?>
<movie>
  <title>Casablanca</title>
  <plot>A cynical nightclub owner protects an old flame.</plot>
  <year>1942</year>
  <genre>Drama</genre>
  <rating>8.5</rating>
  <mpaa>PG</mpaa>
  <studio>Warner Bros.</studio>
  <actor><name>Humphrey Bogart</name><role>Rick Blaine</role></actor>
  <actor><name>Ingrid Bergman</name><role>Ilsa Lund</role></actor>
  <fileinfo>
    <streamdetails>
      <video><codec>h264</codec><width>1920</width><height>1080</height>
        <durationinseconds>610</durationinseconds></video>
      <audio><codec>aac</codec><channels>2</channels><language>eng</language></audio>
    </streamdetails>
  </fileinfo>
</movie>
"""

SHOW_NFO = """<tvshow>
  <title>Example Show</title>
  <plot>Things happen, then more things happen.</plot>
  <genre>Sci-Fi / Comedy</genre>
</tvshow>
"""

SHOW_EPISODES = (
    "Example.Show.S01E01.mp4",
    "Example.Show.S01E02.mp4",
    "Example.Show.S02E01.mp4",
)

SRT = """1
00:00:01,000 --> 00:00:02,500
Here's looking at you, kid.
"""

AUTH_HEADER = 'MediaBrowser Client="pytest", Device="test", DeviceId="device-1", Version="1.0"'


def make_image(path: Path, size=(600, 900), color=(200, 30, 30)):
    path.parent.mkdir(parents=True, exist_ok=True)
    fmt = "PNG" if path.suffix.lower() == ".png" else "JPEG"
    Image.new("RGB", size, color).save(path, fmt)
    return path


@pytest.fixture
def media_dir(tmp_path) -> Path:
    """Movies with one NFO-described film and shows with one three episode series"""
    root = tmp_path / "media"

    movie = root / "movies" / "Casablanca (1942)"
    movie.mkdir(parents=True)
    (movie / "casablanca.mp4").write_bytes(b"\x00" * 4096)
    (movie / "casablanca.nfo").write_text(CASABLANCA_NFO)
    (movie / "casablanca.en.srt").write_text(SRT)
    make_image(movie / "poster.jpg")
    make_image(movie / "fanart.jpg", size=(1280, 720), color=(20, 20, 120))

    show = root / "shows" / "Example Show"
    show.mkdir(parents=True)
    (show / "tvshow.nfo").write_text(SHOW_NFO)
    make_image(show / "poster.jpg")
    for name in SHOW_EPISODES:
        (show / name).write_bytes(b"\x00" * 1024)
    return root


@pytest.fixture
def config(tmp_path, media_dir) -> ServerConfig:
    return ServerConfig.model_validate(
        {
            "dbdir": str(tmp_path / "db"),
            "cachedir": str(tmp_path / "cache"),
            "collections": [
                {
                    "id": MOVIES_COLLECTION,
                    "name": "Movies",
                    "type": "movies",
                    "directory": str(media_dir / "movies"),
                },
                {
                    "id": SHOWS_COLLECTION,
                    "name": "Shows",
                    "type": "shows",
                    "directory": str(media_dir / "shows"),
                },
            ],
            "jellyfin": {"serverid": "test-server", "autoregister": True},
        }
    )


@pytest.fixture
def app(config):
    return create_app(config, background_jobs=False)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def login(client: TestClient, username: str = "alice", password: str = "pw") -> dict:
    response = client.post(
        "/Users/AuthenticateByName",
        json={"Username": username, "Pw": password},
        headers={"X-Emby-Authorization": AUTH_HEADER},
    )
    assert response.status_code == 200, response.text
    return response.json()


def auth_headers(token: str) -> dict:
    return {"X-Emby-Authorization": f'{AUTH_HEADER}, Token="{token}"'}


@pytest.fixture
def session(client):
    """Login response of the first (admin) user"""
    return login(client)


@pytest.fixture
def headers(session) -> dict:
    return auth_headers(session["AccessToken"])


@pytest.fixture
def user_id(session) -> str:
    return session["User"]["Id"]


def movie_id() -> str:
    return id_hash("Casablanca (1942)")


def show_id() -> str:
    return id_hash("Example Show")


def episode_id(file_name: str) -> str:
    return "episode_" + id_hash(file_name)
