"""Pydantic schemas for request validation"""

from .auth import (
    AuthenticateByName,
    AuthenticateWithQuickConnect,
    CreateUserByName,
    JellyfinBody,
    UpdateUserPassword,
)
from .playlists import CreatePlaylist, UpdatePlaylist
from .playstate import PlaybackReport

__all__ = [
    "AuthenticateByName",
    "AuthenticateWithQuickConnect",
    "CreateUserByName",
    "JellyfinBody",
    "UpdateUserPassword",
    "CreatePlaylist",
    "UpdatePlaylist",
    "PlaybackReport",
]
