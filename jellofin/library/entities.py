"""Catalog entities: collections, movies, shows, seasons, episodes"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .metadata import FilenameMetadata, Metadata

COLLECTION_MOVIES = "movies"
COLLECTION_SHOWS = "shows"
COLLECTION_TYPES = (COLLECTION_MOVIES, COLLECTION_SHOWS)


@dataclass
class Subtitle:
    lang: str
    path: str


@dataclass
class Episode:
    id: str
    name: str
    season_no: int
    episode_no: int
    file_name: str
    base_name: str
    double: bool = False
    file_size: int = 0
    thumb: str = ""
    srt_subs: List[Subtitle] = field(default_factory=list)
    vtt_subs: List[Subtitle] = field(default_factory=list)
    created: Optional[datetime] = None
    metadata: Metadata = field(default_factory=lambda: FilenameMetadata(""))

    @property
    def sort_name(self) -> str:
        return f"{self.season_no:03d}{self.episode_no:04d}"

    def duration(self) -> int:
        return self.metadata.duration()


@dataclass
class Season:
    id: str
    season_no: int
    banner: str = ""
    fanart: str = ""
    poster: str = ""
    season_all_banner: str = ""
    season_all_poster: str = ""
    episodes: List[Episode] = field(default_factory=list)

    @property
    def name(self) -> str:
        if self.season_no == 0:
            return "Specials"
        return f"Season {self.season_no}"

    def poster_image(self) -> str:
        return self.poster or self.season_all_poster

    def banner_image(self) -> str:
        return self.banner or self.season_all_banner

    def duration(self) -> int:
        return sum(ep.duration() for ep in self.episodes)


@dataclass
class Item:
    """Fields shared by movies and shows"""

    id: str
    name: str
    sort_name: str
    path: str
    base_url: str = ""
    banner: str = ""
    fanart: str = ""
    folder: str = ""
    poster: str = ""
    logo: str = ""
    first_video: Optional[datetime] = None
    last_video: Optional[datetime] = None
    metadata: Metadata = field(default_factory=lambda: FilenameMetadata(""))

    def genres(self) -> List[str]:
        return self.metadata.genres()

    def year(self) -> int:
        return self.metadata.year()

    def rating(self) -> float:
        return self.metadata.rating()

    def votes(self) -> int:
        return self.metadata.votes()

    def official_rating(self) -> str:
        return self.metadata.official_rating()


@dataclass
class Movie(Item):
    file_name: str = ""
    file_size: int = 0
    srt_subs: List[Subtitle] = field(default_factory=list)
    vtt_subs: List[Subtitle] = field(default_factory=list)

    @property
    def created(self) -> Optional[datetime]:
        return self.first_video

    def file_path(self) -> str:
        return str(Path(self.path) / self.file_name)

    def duration(self) -> int:
        return self.metadata.duration()


@dataclass
class Show(Item):
    season_all_banner: str = ""
    season_all_poster: str = ""
    seasons: List[Season] = field(default_factory=list)

    def episode_count(self) -> int:
        return sum(len(s.episodes) for s in self.seasons)

    def episodes(self) -> List[Episode]:
        return [ep for s in self.seasons for ep in s.episodes]

    def duration(self) -> int:
        return sum(s.duration() for s in self.seasons)


CatalogItem = Union[Movie, Show]


@dataclass
class Collection:
    id: str
    name: str
    type: str
    directory: str
    base_url: str = ""
    hls_server: str = ""
    items: List[CatalogItem] = field(default_factory=list)

    def data_dir(self) -> str:
        return self.directory
