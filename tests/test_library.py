"""Identifiers, metadata providers and the filesystem scanner"""

import string

import pytest

from jellofin.library.entities import Collection, Movie, Show
from jellofin.library.genre import normalize_genre, normalize_genres
from jellofin.library.idhash import ID_LENGTH, id_hash, random_id, sort_name
from jellofin.library.metadata import FilenameMetadata, NfoMetadata, parse_premiered
from jellofin.library.nfo import decode_nfo
from jellofin.library.scanner import Scanner, parse_episode_name
from jellofin.library.subtitles import read_vtt, srt_to_vtt

BASE62 = set(string.digits + string.ascii_letters)


@pytest.mark.parametrize("value", ["", "Casablanca (1942)", "Ünïcödé", "x" * 1000])
def test_id_hash_is_deterministic_base62(value):
    first = id_hash(value)
    assert len(first) == ID_LENGTH
    assert set(first) <= BASE62
    assert id_hash(value) == first


def test_id_hash_differs_between_inputs():
    assert id_hash("Casablanca (1942)") != id_hash("Casablanca (1943)")


def test_random_id():
    a, b = random_id(), random_id()
    assert len(a) == ID_LENGTH and set(a) <= BASE62
    assert a != b


def test_sort_name_drops_leading_article():
    assert sort_name("The Matrix") == "matrix"
    assert sort_name("A Fish Called Wanda") == "fish called wanda"
    assert sort_name("...And Justice for All") == "and justice for all"


def test_genres_are_split_normalized_and_deduplicated():
    assert normalize_genre("science fiction") == "Sci-Fi"
    assert normalize_genre("Kaiju") == "Kaiju"
    assert normalize_genres(["sci-fi / comedy", "Comedy", "X"]) == ["Sci-Fi", "Comedy"]
    assert normalize_genres(["drama, war"]) == ["Drama", "War"]


def test_premiered_formats():
    assert parse_premiered("1942-11-26").year == 1942
    assert parse_premiered("1942/11/26").month == 11
    assert parse_premiered("26 Nov 1942").day == 26
    assert parse_premiered("garbage") is None


def test_decode_nfo_fields():
    nfo = decode_nfo(
        b"<movie><title>Alien</title><year>1979</year><rating>8.46</rating>"
        b"<votes>bad</votes><genre>Horror/Sci-Fi</genre>"
        b"<plot>In space &eacute; no one can hear you scream &amp; more.</plot></movie>"
    )
    assert nfo.title == "Alien"
    assert nfo.year == 1979
    assert nfo.votes == 0
    assert nfo.genre == ["Horror", "Sci-Fi"]
    assert "é" in nfo.plot


def test_decode_multi_episode_nfo_uses_first_episode():
    data = (
        b"<xbmcmultiepisode><episodedetails><title>First</title></episodedetails>"
        b"<episodedetails><title>Second</title></episodedetails></xbmcmultiepisode>"
    )
    assert decode_nfo(data).title == "First"


def test_nfo_metadata_never_fails(tmp_path):
    broken = tmp_path / "broken.nfo"
    broken.write_bytes(b"\xff\xfe not xml at all")
    metadata = NfoMetadata(broken)
    assert metadata.title() == ""
    assert metadata.rating() == 0.0
    assert metadata.audio_language() == "eng"

    missing = NfoMetadata(tmp_path / "missing.nfo")
    assert missing.genres() == []
    assert missing.duration() == 0


def test_nfo_duration_prefers_runtime(tmp_path):
    path = tmp_path / "movie.nfo"
    path.write_text(
        "<movie><runtime>102</runtime><fileinfo><streamdetails><video>"
        "<durationinseconds>6100</durationinseconds></video></streamdetails>"
        "</fileinfo></movie>"
    )
    assert NfoMetadata(path).duration() == 102 * 60


def test_filename_metadata_heuristics():
    metadata = FilenameMetadata("Some.Movie.2160p.x264.AAC.5.1", 2001)
    assert metadata.video_codec() == "h264"
    assert (metadata.video_width(), metadata.video_height()) == (3840, 2160)
    assert metadata.audio_codec() == "aac"
    assert metadata.audio_channels() == 6
    assert metadata.year() == 2001


@pytest.mark.parametrize(
    "name, hint, expected",
    [
        ("Show.S01E02", -1, (1, 2, False)),
        ("Show S03E04-E05", -1, (3, 4, True)),
        ("show.2x07", -1, (2, 7, False)),
        ("E05 The Heist", 3, (3, 5, False)),
        ("07 - Pilot", 1, (1, 7, False)),
        ("Making of", -1, None),
    ],
)
def test_parse_episode_name(name, hint, expected):
    assert parse_episode_name(name, hint) == expected


def test_srt_to_vtt():
    vtt = srt_to_vtt("1\r\n00:00:01,000 --> 00:00:02,500\r\nHello\r\n")
    assert vtt.startswith("WEBVTT\n\n")
    assert "00:00:01.000 --> 00:00:02.500" in vtt


def test_read_vtt_converts_missing_file(tmp_path):
    (tmp_path / "movie.en.srt").write_text("1\n00:00:01,000 --> 00:00:02,000\nHi\n")
    data = read_vtt(tmp_path / "movie.en.vtt")
    assert data.startswith(b"WEBVTT")


def _collection(path, kind):
    return Collection(id="c", name="c", type=kind, directory=str(path))


def test_scan_movies(media_dir):
    items = Scanner().scan(_collection(media_dir / "movies", "movies"))
    assert len(items) == 1
    movie = items[0]
    assert isinstance(movie, Movie)
    assert movie.name == "Casablanca (1942)"
    assert movie.file_name == "casablanca.mp4"
    assert movie.poster == "poster.jpg"
    assert movie.fanart == "fanart.jpg"
    assert movie.year() == 1942
    assert movie.genres() == ["Drama"]
    assert [s.lang for s in movie.srt_subs] == ["en"]
    # a vtt entry is synthesized for every srt
    assert [s.path for s in movie.vtt_subs] == ["casablanca.en.vtt"]


def test_movie_ignores_nfo_of_another_video(tmp_path):
    movie_dir = tmp_path / "movies" / "Film (1999)"
    movie_dir.mkdir(parents=True)
    (movie_dir / "film.mp4").write_bytes(b"")
    (movie_dir / "other.nfo").write_text("<movie><title>Wrong</title><mpaa>R</mpaa></movie>")

    movie = Scanner().scan(_collection(tmp_path / "movies", "movies"))[0]
    assert isinstance(movie.metadata, FilenameMetadata)
    assert movie.metadata.title() != "Wrong"
    assert movie.official_rating() == ""
    assert movie.year() == 1999


def test_scan_shows(media_dir):
    items = Scanner().scan(_collection(media_dir / "shows", "shows"))
    assert len(items) == 1
    show = items[0]
    assert isinstance(show, Show)
    assert [s.season_no for s in show.seasons] == [1, 2]
    assert [e.episode_no for e in show.seasons[0].episodes] == [1, 2]
    assert show.genres() == ["Sci-Fi", "Comedy"]


def test_scan_skips_hidden_and_empty_dirs(tmp_path):
    root = tmp_path / "shows"
    (root / ".hidden").mkdir(parents=True)
    (root / "+ staging").mkdir()
    (root / "Empty Show").mkdir()
    (root / "Season Dirs" / "S01").mkdir(parents=True)
    (root / "Season Dirs" / "S01" / "01 - Pilot.mp4").write_bytes(b"")
    (root / "Season Dirs" / "Specials").mkdir()
    (root / "Season Dirs" / "Specials" / "E01 Behind the scenes.mp4").write_bytes(b"")

    items = Scanner().scan(_collection(root, "shows"))
    assert [i.name for i in items] == ["Season Dirs"]
    seasons = items[0].seasons
    assert [s.season_no for s in seasons] == [0, 1]
    assert seasons[0].name == "Specials"
    assert seasons[1].episodes[0].file_name == "S01/01 - Pilot.mp4"


def test_scan_empty_collection(tmp_path):
    (tmp_path / "empty").mkdir()
    assert Scanner().scan(_collection(tmp_path / "empty", "movies")) == []
