"""External item identifiers

Catalog ids are flat 20 character base62 strings. Every id handed to a
client carries a type prefix, except movies and shows which go out bare.
"""

import base64
import binascii

# Parent of all collections
COLLECTION_ROOT_ID = "e9d5075a555c1cbc394eec4cef295274"
# Generated collection holding the playlists of a user
PLAYLIST_COLLECTION_ID = "2f0340563593c4d98b97c9bfa21ce23c"
# Generated collection holding the favorites of a user
FAVORITES_COLLECTION_ID = "f4a0b1c2d3e5c4b8a9e6f7d8e9a0b1c2"

ZERO_ID = "0" * 32

SEPARATOR = "_"
PREFIX_ROOT = "root_"
PREFIX_COLLECTION = "collection_"
PREFIX_COLLECTION_FAVORITES = "collectionfavorites_"
PREFIX_COLLECTION_PLAYLIST = "collectionplaylist_"
PREFIX_SEASON = "season_"
PREFIX_EPISODE = "episode_"
PREFIX_PLAYLIST = "playlist_"
PREFIX_GENRE = "genre_"
PREFIX_STUDIO = "studio_"
PREFIX_PERSON = "person_"
PREFIX_DISPLAY_PREFERENCES = "dp_"


def trim_prefix(item_id: str) -> str:
    """Strip everything up to and including the first separator"""
    index = item_id.find(SEPARATOR)
    if index == -1:
        return item_id
    return item_id[index + 1:]


def _encode_name(prefix: str, name: str) -> str:
    # base64url keeps '%' and '/' out of ids, some clients choke on them
    encoded = base64.urlsafe_b64encode(name.encode("utf-8")).decode("ascii")
    return prefix + encoded.rstrip("=")


def _decode_name(prefix: str, item_id: str) -> str:
    if not item_id.startswith(prefix):
        raise ValueError(f"Invalid id {item_id}")
    encoded = item_id[len(prefix):]
    encoded += "=" * (-len(encoded) % 4)
    try:
        return base64.urlsafe_b64decode(encoded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError) as e:
        raise ValueError(f"Cannot decode id {item_id}") from e


def make_root_id() -> str:
    return PREFIX_ROOT + COLLECTION_ROOT_ID


def make_collection_id(collection_id: str) -> str:
    return PREFIX_COLLECTION + collection_id


def make_favorites_id() -> str:
    return PREFIX_COLLECTION_FAVORITES + FAVORITES_COLLECTION_ID


def make_playlist_collection_id() -> str:
    return PREFIX_COLLECTION_PLAYLIST + PLAYLIST_COLLECTION_ID


def make_playlist_id(playlist_id: str) -> str:
    return PREFIX_PLAYLIST + playlist_id


def make_season_id(season_id: str) -> str:
    return PREFIX_SEASON + season_id


def make_episode_id(episode_id: str) -> str:
    return PREFIX_EPISODE + episode_id


def make_display_preferences_id(dp_id: str) -> str:
    return PREFIX_DISPLAY_PREFERENCES + dp_id


def make_genre_id(genre: str) -> str:
    return _encode_name(PREFIX_GENRE, genre)


def make_studio_id(studio: str) -> str:
    return _encode_name(PREFIX_STUDIO, studio)


def make_person_id(name: str) -> str:
    return _encode_name(PREFIX_PERSON, name)


def decode_genre_id(item_id: str) -> str:
    return _decode_name(PREFIX_GENRE, item_id)


def decode_studio_id(item_id: str) -> str:
    return _decode_name(PREFIX_STUDIO, item_id)


def decode_person_id(item_id: str) -> str:
    return _decode_name(PREFIX_PERSON, item_id)


def is_root_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_ROOT)


def is_collection_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_COLLECTION)


def is_favorites_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_COLLECTION_FAVORITES)


def is_playlist_collection_id(item_id: str) -> bool:
    # there is exactly one playlist collection
    return item_id == make_playlist_collection_id()


def is_playlist_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_PLAYLIST)


def is_season_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_SEASON)


def is_episode_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_EPISODE)


def is_genre_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_GENRE)


def is_studio_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_STUDIO)


def is_person_id(item_id: str) -> bool:
    return item_id.startswith(PREFIX_PERSON)
