"""Database models"""

from .access_token import AccessToken
from .image import Image
from .item import Item
from .play_state import PlayState
from .playlist import Playlist, PlaylistItem
from .quick_connect import QuickConnect
from .user import User
from .user_property import UserProperty

__all__ = [
    "AccessToken",
    "Image",
    "Item",
    "PlayState",
    "Playlist",
    "PlaylistItem",
    "QuickConnect",
    "User",
    "UserProperty",
]
