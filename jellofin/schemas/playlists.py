"""Playlist request bodies"""

from typing import List, Optional

from .auth import JellyfinBody


class CreatePlaylist(JellyfinBody):
    Name: Optional[str] = None
    Ids: List[str] = []
    UserId: Optional[str] = None
    MediaType: Optional[str] = None


class UpdatePlaylist(JellyfinBody):
    Name: Optional[str] = None
    Ids: Optional[List[str]] = None
