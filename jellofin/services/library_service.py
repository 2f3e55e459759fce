"""Library management service"""

import asyncio
import time
from typing import List, Optional, Tuple

from ..library.catalog import Catalog
from ..library.entities import CatalogItem, Collection
from ..library.metadata import NfoMetadata
from ..library.scanner import Scanner
from .log_service import log_service
from .state_store import ItemRecord, StateStore


def _millis(dt) -> int:
    return int(dt.timestamp() * 1000) if dt else 0


def item_record(item: CatalogItem) -> ItemRecord:
    """Summary row persisted for every scanned item"""
    nfotime = 0
    if isinstance(item.metadata, NfoMetadata):
        try:
            nfotime = int(item.metadata.path.stat().st_mtime)
        except OSError:
            nfotime = 0
    return ItemRecord(
        id=item.id,
        name=item.name,
        votes=item.votes(),
        year=item.year(),
        genre=",".join(item.genres()),
        rating=item.rating(),
        nfotime=nfotime,
        firstvideo=_millis(item.first_video),
        lastvideo=_millis(item.last_video),
    )


class LibraryService:
    """Scan collections from disk and publish them into the catalog"""

    def __init__(self, catalog: Catalog, store: Optional[StateStore], pace: float = 0.5):
        self.catalog = catalog
        self.store = store
        self.pace = pace
        self.is_scanning = False

    def _scan(self, collection: Collection, paced: bool) -> Tuple[List[CatalogItem], List[ItemRecord]]:
        scanner = Scanner(pace=self.pace if paced else 0.0)
        items = scanner.scan(collection)
        return items, [item_record(item) for item in items]

    async def scan_collection(self, collection: Collection, paced: bool = False) -> int:
        """Rebuild one collection and swap it into the catalog"""
        started = time.monotonic()
        items, records = await asyncio.to_thread(self._scan, collection, paced)

        if self.store is not None:
            for item, record in zip(items, records):
                try:
                    item.id = await self.store.upsert_item(record)
                except Exception as e:
                    log_service.error(f"Failed to store item {item.name}: {e}")

        self.catalog.publish(collection.id, items)
        log_service.scan(
            f"Scanned collection {collection.name}: {len(items)} items "
            f"in {time.monotonic() - started:.1f}s"
        )
        return len(items)

    async def scan_all(self, paced: bool = False):
        """Scan every configured collection in turn"""
        if self.is_scanning:
            log_service.info("Library scan already running")
            return
        self.is_scanning = True
        try:
            for collection in self.catalog.collections():
                try:
                    await self.scan_collection(collection, paced=paced)
                except Exception as e:
                    log_service.error(f"Scan of collection {collection.name} failed: {e}")
        finally:
            self.is_scanning = False

    async def rescan(self):
        """Background pass, paced to spread disk I/O"""
        await self.scan_all(paced=True)
