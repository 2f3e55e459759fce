"""In-memory catalog of collections and their items"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..services.log_service import log_service
from .entities import (
    COLLECTION_SHOWS,
    COLLECTION_TYPES,
    CatalogItem,
    Collection,
    Episode,
    Movie,
    Season,
    Show,
)
from .idhash import id_hash
from .search import SearchDocument, SearchIndex


class CatalogError(Exception):
    """Invalid catalog configuration"""


@dataclass
class CatalogDetails:
    movie_count: int = 0
    show_count: int = 0
    episode_count: int = 0
    genres: List[str] = field(default_factory=list)
    studios: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    official_ratings: List[str] = field(default_factory=list)
    years: List[int] = field(default_factory=list)


class _Snapshot:
    """Id indexes over a set of published collections"""

    def __init__(self, collections: List[Collection]):
        self.items: Dict[str, Tuple[Collection, CatalogItem]] = {}
        self.seasons: Dict[str, Tuple[Collection, Show, Season]] = {}
        self.episodes: Dict[str, Tuple[Collection, Show, Season, Episode]] = {}

        # first occurrence wins
        for c in collections:
            for item in c.items:
                self.items.setdefault(item.id, (c, item))
                if isinstance(item, Show):
                    for season in item.seasons:
                        self.seasons.setdefault(season.id, (c, item, season))
                        for ep in season.episodes:
                            self.episodes.setdefault(ep.id, (c, item, season, ep))


class Catalog:
    """Registry of collections, rebuilt per collection by the scanner"""

    def __init__(self):
        self._collections: List[Collection] = []
        self._lock = threading.Lock()
        self._snapshot = _Snapshot([])
        self.search = SearchIndex()

    def add_collection(
        self,
        name: str,
        collection_type: str,
        directory: str,
        collection_id: str = "",
        base_url: str = "",
        hls_server: str = "",
    ) -> Collection:
        """Register a collection; an unknown type is a configuration error"""
        if collection_type not in COLLECTION_TYPES:
            raise CatalogError(f"Unknown collection type {collection_type}")

        collection = Collection(
            id=collection_id or id_hash(name),
            name=name,
            type=collection_type,
            directory=directory,
            base_url=base_url,
            hls_server=hls_server,
        )
        if self.get_collection(collection.id) is not None:
            raise CatalogError(f"Duplicate collection id {collection.id}")

        log_service.info(
            f"Adding collection {collection.name}, id: {collection.id}, "
            f"type: {collection.type}, directory: {collection.directory}"
        )
        with self._lock:
            self._collections = self._collections + [collection]
        return collection

    def publish(self, collection_id: str, items: List[CatalogItem], reindex: bool = True):
        """Atomically replace the item list of one collection"""
        with self._lock:
            collections = []
            for c in self._collections:
                if c.id == collection_id:
                    c = Collection(
                        id=c.id,
                        name=c.name,
                        type=c.type,
                        directory=c.directory,
                        base_url=c.base_url,
                        hls_server=c.hls_server,
                        items=list(items),
                    )
                collections.append(c)
            snapshot = _Snapshot(collections)
            self._collections = collections
            self._snapshot = snapshot
        if reindex:
            self.build_search_index()

    def collections(self) -> List[Collection]:
        return self._collections

    def get_collection(self, collection_id: str) -> Optional[Collection]:
        for c in self._collections:
            if c.id == collection_id:
                return c
        return None

    def items(self, collection_id: str) -> List[CatalogItem]:
        c = self.get_collection(collection_id)
        return c.items if c else []

    def all_items(self) -> List[CatalogItem]:
        return [item for c in self._collections for item in c.items]

    def get_item(self, item_id: str) -> Tuple[Optional[Collection], Optional[CatalogItem]]:
        found = self._snapshot.items.get(item_id)
        if found is None:
            return None, None
        return found

    def find_item(self, collection_id: str, key: str) -> Optional[CatalogItem]:
        """Item of one collection by id or by directory name"""
        for item in self.items(collection_id):
            if item.id == key or item.name == key:
                return item
        return None

    def get_season(self, season_id: str):
        """Returns (collection, show, season) or a tuple of Nones"""
        return self._snapshot.seasons.get(season_id, (None, None, None))

    def get_episode(self, episode_id: str):
        """Returns (collection, show, season, episode) or a tuple of Nones"""
        return self._snapshot.episodes.get(episode_id, (None, None, None, None))

    def next_up(self, watched_episode_ids: List[str]) -> List[str]:
        """Per show, the episode following the furthest watched one"""
        furthest: Dict[str, Tuple[Show, int, int, int, int]] = {}

        for episode_id in watched_episode_ids:
            c, show, season, episode = self.get_episode(episode_id)
            if episode is None or c.type != COLLECTION_SHOWS:
                continue
            season_idx = next((i for i, s in enumerate(show.seasons) if s is season), -1)
            ep_idx = next((i for i, e in enumerate(season.episodes) if e is episode), -1)
            if season_idx < 0 or ep_idx < 0:
                continue

            entry = furthest.get(show.id)
            position = (season.season_no, episode.episode_no)
            if entry is None or position > (entry[1], entry[2]):
                furthest[show.id] = (show, season.season_no, episode.episode_no, season_idx, ep_idx)

        next_ids = []
        for show, _, _, season_idx, ep_idx in furthest.values():
            season = show.seasons[season_idx]
            if ep_idx + 1 < len(season.episodes):
                next_ids.append(season.episodes[ep_idx + 1].id)
            elif season_idx + 1 < len(show.seasons) and show.seasons[season_idx + 1].episodes:
                next_ids.append(show.seasons[season_idx + 1].episodes[0].id)
        return next_ids

    def details(self) -> CatalogDetails:
        """Union of genres, studios, ratings and years across all items"""
        details = CatalogDetails()
        for item in self.all_items():
            if isinstance(item, Movie):
                details.movie_count += 1
            else:
                details.show_count += 1
                details.episode_count += item.episode_count()
            for g in item.genres():
                if g and g not in details.genres:
                    details.genres.append(g)
            for s in item.metadata.studios():
                if s and s not in details.studios:
                    details.studios.append(s)
            rating = item.official_rating()
            if rating and rating not in details.official_ratings:
                details.official_ratings.append(rating)
            year = item.year()
            if year and year not in details.years:
                details.years.append(year)
        details.years.sort()
        return details

    def statistics(self) -> CatalogDetails:
        """Movie, show and episode counts only"""
        stats = CatalogDetails()
        for item in self.all_items():
            if isinstance(item, Movie):
                stats.movie_count += 1
            else:
                stats.show_count += 1
                stats.episode_count += item.episode_count()
        return stats

    def genre_item_count(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for item in self.all_items():
            for g in item.genres():
                if g:
                    counts[g] = counts.get(g, 0) + 1
        return counts

    def studio_item_count(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for item in self.all_items():
            for s in item.metadata.studios():
                if s:
                    counts[s] = counts.get(s, 0) + 1
        return counts

    def build_search_index(self):
        """Rebuild the search index from the current snapshot"""
        index = SearchIndex()
        for c in self._collections:
            for item in c.items:
                index.add(
                    SearchDocument(
                        id=item.id,
                        parent_id=c.id,
                        name=item.name,
                        sort_name=item.sort_name,
                        overview=item.metadata.plot(),
                        genres=item.genres(),
                        people=list(item.metadata.actors().keys()),
                        year=item.year(),
                    )
                )
        self.search = index
        log_service.scan(f"Search index built with {len(index)} items")
