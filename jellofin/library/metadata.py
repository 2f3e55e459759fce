"""Metadata providers: NFO sidecar backed or filename heuristics"""

import re
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .nfo import Nfo, load_nfo

PREMIERED_FORMATS = (
    "%H:%M:%S",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%d %b %Y",
    "%d %b %Y %H:%M:%S",
)

DEFAULT_FRAME_RATE = 23.976
DEFAULT_LANGUAGE = "eng"


def parse_premiered(value: str) -> Optional[datetime]:
    """Parse a date in any of the formats NFO files are seen to use"""
    value = value.strip()
    if not value:
        return None
    for fmt in PREMIERED_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


class Metadata(ABC):
    """Read-only metadata accessors shared by both providers"""

    @abstractmethod
    def title(self) -> str: ...

    @abstractmethod
    def plot(self) -> str: ...

    @abstractmethod
    def tagline(self) -> str: ...

    @abstractmethod
    def genres(self) -> List[str]: ...

    @abstractmethod
    def year(self) -> int: ...

    @abstractmethod
    def set_year(self, year: int): ...

    @abstractmethod
    def premiered(self) -> Optional[datetime]: ...

    @abstractmethod
    def rating(self) -> float: ...

    @abstractmethod
    def votes(self) -> int: ...

    @abstractmethod
    def official_rating(self) -> str: ...

    @abstractmethod
    def studios(self) -> List[str]: ...

    @abstractmethod
    def directors(self) -> List[str]: ...

    @abstractmethod
    def writers(self) -> List[str]: ...

    @abstractmethod
    def actors(self) -> Dict[str, str]: ...

    @abstractmethod
    def provider_ids(self) -> Dict[str, str]: ...

    @abstractmethod
    def duration(self) -> int: ...

    @abstractmethod
    def video_codec(self) -> str: ...

    @abstractmethod
    def video_bitrate(self) -> int: ...

    @abstractmethod
    def video_frame_rate(self) -> float: ...

    @abstractmethod
    def video_height(self) -> int: ...

    @abstractmethod
    def video_width(self) -> int: ...

    @abstractmethod
    def audio_codec(self) -> str: ...

    @abstractmethod
    def audio_bitrate(self) -> int: ...

    @abstractmethod
    def audio_channels(self) -> int: ...

    @abstractmethod
    def audio_language(self) -> str: ...


class NfoMetadata(Metadata):
    """Metadata from a Kodi NFO file, parsed on first access"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._year = 0
        self._nfo: Optional[Nfo] = None
        self._lock = threading.Lock()

    @property
    def nfo(self) -> Nfo:
        if self._nfo is None:
            with self._lock:
                if self._nfo is None:
                    self._nfo = load_nfo(self.path) or Nfo()
        return self._nfo

    def title(self) -> str:
        return self.nfo.title

    def plot(self) -> str:
        return self.nfo.plot

    def tagline(self) -> str:
        return self.nfo.tagline

    def genres(self) -> List[str]:
        return list(self.nfo.genre)

    def set_year(self, year: int):
        self._year = year

    def year(self) -> int:
        if self._year:
            return self._year
        if self.nfo.year:
            return self.nfo.year
        premiered = self.premiered()
        return premiered.year if premiered else 0

    def premiered(self) -> Optional[datetime]:
        for value in (self.nfo.aired, self.nfo.premiered):
            parsed = parse_premiered(value)
            if parsed is not None:
                return parsed
        return None

    def rating(self) -> float:
        return round(self.nfo.rating, 1)

    def votes(self) -> int:
        return self.nfo.votes

    def official_rating(self) -> str:
        return self.nfo.mpaa

    def studios(self) -> List[str]:
        return [self.nfo.studio] if self.nfo.studio else []

    def directors(self) -> List[str]:
        return list(self.nfo.director)

    def writers(self) -> List[str]:
        return list(self.nfo.credits)

    def actors(self) -> Dict[str, str]:
        return {a.name: a.role for a in self.nfo.actor}

    def provider_ids(self) -> Dict[str, str]:
        ids = {}
        for uid in self.nfo.uniqueid:
            if not uid.value:
                continue
            if uid.default:
                ids["default"] = uid.value
            if uid.type:
                ids[uid.type.lower()] = uid.value
        return ids

    def duration(self) -> int:
        if self.nfo.runtime:
            return self.nfo.runtime * 60
        return self.nfo.video.durationinseconds

    def video_codec(self) -> str:
        return self.nfo.video.codec

    def video_bitrate(self) -> int:
        return self.nfo.video.bitrate

    def video_frame_rate(self) -> float:
        return round(self.nfo.video.framerate, 2)

    def video_height(self) -> int:
        return self.nfo.video.height

    def video_width(self) -> int:
        return self.nfo.video.width

    def audio_codec(self) -> str:
        return self.nfo.audio.codec

    def audio_bitrate(self) -> int:
        return self.nfo.audio.bitrate

    def audio_channels(self) -> int:
        return self.nfo.audio.channels

    def audio_language(self) -> str:
        if len(self.nfo.audio.language) >= 3:
            return self.nfo.audio.language[:3]
        return DEFAULT_LANGUAGE


_h264 = re.compile(r"(?i)[hx].?264")
_h265 = re.compile(r"(?i)x265|h.?265|hevc")
_aac = re.compile(r"(?i)\baac")
_ac3 = re.compile(r"(?i)\b(ac3|dd5)")
_stereo = re.compile(r"\b2\.0\b")
_surround = re.compile(r"\b5\.1\b")
_resolutions = (
    (re.compile(r"(?i)2160|\b4k\b"), 3840, 2160),
    (re.compile(r"1080"), 1920, 1080),
    (re.compile(r"720"), 1280, 720),
)


class FilenameMetadata(Metadata):
    """Metadata guessed from a file or directory name"""

    def __init__(self, name: str, year: int = 0):
        self.name = name
        self._year = year

        self._video_codec = "unknown"
        if _h264.search(name):
            self._video_codec = "h264"
        elif _h265.search(name):
            self._video_codec = "hevc"

        self._width = 0
        self._height = 0
        for pattern, width, height in _resolutions:
            if pattern.search(name):
                self._width, self._height = width, height
                break

        self._audio_codec = "unknown"
        if _aac.search(name):
            self._audio_codec = "aac"
        elif _ac3.search(name):
            self._audio_codec = "ac3"

        self._channels = 0
        if _stereo.search(name):
            self._channels = 2
        elif _surround.search(name):
            self._channels = 6

    def title(self) -> str:
        return self.name

    def plot(self) -> str:
        return ""

    def tagline(self) -> str:
        return ""

    def genres(self) -> List[str]:
        return []

    def set_year(self, year: int):
        self._year = year

    def year(self) -> int:
        return self._year

    def premiered(self) -> Optional[datetime]:
        if not self._year:
            return None
        return datetime(self._year, 1, 1)

    def rating(self) -> float:
        return 0.0

    def votes(self) -> int:
        return 0

    def official_rating(self) -> str:
        return ""

    def studios(self) -> List[str]:
        return []

    def directors(self) -> List[str]:
        return []

    def writers(self) -> List[str]:
        return []

    def actors(self) -> Dict[str, str]:
        return {}

    def provider_ids(self) -> Dict[str, str]:
        return {}

    def duration(self) -> int:
        return 0

    def video_codec(self) -> str:
        return self._video_codec

    def video_bitrate(self) -> int:
        return 0

    def video_frame_rate(self) -> float:
        return DEFAULT_FRAME_RATE

    def video_height(self) -> int:
        return self._height

    def video_width(self) -> int:
        return self._width

    def audio_codec(self) -> str:
        return self._audio_codec

    def audio_bitrate(self) -> int:
        return 0

    def audio_channels(self) -> int:
        return self._channels

    def audio_language(self) -> str:
        return DEFAULT_LANGUAGE
