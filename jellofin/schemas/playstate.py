"""Playback reporting request bodies"""

from typing import Optional

from .auth import JellyfinBody


class PlaybackReport(JellyfinBody):
    """Body of /Sessions/Playing, /Sessions/Playing/Progress and /Sessions/Playing/Stopped"""

    ItemId: Optional[str] = None
    PositionTicks: Optional[int] = None
    MediaSourceId: Optional[str] = None
    PlaySessionId: Optional[str] = None
    IsPaused: bool = False
    Failed: bool = False
