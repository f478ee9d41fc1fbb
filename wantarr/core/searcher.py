"""Recherche par batch des items en cache."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional

from wantarr.config import SearchSettings
from wantarr.core.models import MediaItem
from wantarr.core.sync import SyncResult, refresh_cache
from wantarr.db.cache import MediaCache
from wantarr.errors import WantarrError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SearchReport:
    """Résumé d'un run de recherche."""
    cached: int = 0
    batches: int = 0
    searched: int = 0
    skipped: int = 0  # cherchés récemment
    dropped: int = 0  # dernier batch incomplet non envoyé
    stopped_on_queue: bool = False
    sync: Optional[SyncResult] = None


class BatchSearcher:
    """Envoie les items en cache au PVR par batch de taille fixe.

    Batches run strictly one after another. After each successful batch its
    items are stamped with the batch start time and written back at once.
    """

    def __init__(
        self,
        pvr,
        cache: MediaCache,
        batch_size: int = 10,
        flush_partial_batch: bool = False,
        max_queue_size: Optional[int] = None,
        skip_searched_within: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.pvr = pvr
        self.cache = cache
        self.batch_size = batch_size
        self.flush_partial_batch = flush_partial_batch
        self.max_queue_size = max_queue_size
        self.skip_searched_within = skip_searched_within
        self.clock = clock

    @classmethod
    def from_settings(cls, pvr, cache: MediaCache, settings: SearchSettings, **kwargs) -> "BatchSearcher":
        return cls(
            pvr,
            cache,
            batch_size=settings.batch_size,
            flush_partial_batch=settings.flush_partial_batch,
            max_queue_size=settings.max_queue_size,
            skip_searched_within=settings.skip_searched_within,
            **kwargs,
        )

    def batches(self, items: List[MediaItem]) -> Iterator[List[MediaItem]]:
        """Split items into batches; a short trailing batch only if flushing."""
        for start in range(0, len(items), self.batch_size):
            batch = items[start:start + self.batch_size]
            if len(batch) < self.batch_size and not self.flush_partial_batch:
                return
            yield batch

    def _recently_searched(self, item: MediaItem, now: datetime) -> bool:
        if self.skip_searched_within is None or item.last_search is None:
            return False
        return now - item.last_search < self.skip_searched_within

    def _queue_full(self) -> bool:
        if self.max_queue_size is None:
            return False
        queue_size = self.pvr.get_queue_size()
        if queue_size >= self.max_queue_size:
            logger.info(f"Queue size {queue_size} reached limit {self.max_queue_size}, stopping")
            return True
        return False

    def run(self, list_kind: str) -> SearchReport:
        items = self.cache.get_items(self.pvr.name, list_kind)
        report = SearchReport(cached=len(items))
        logger.debug(f"Retrieved {len(items)} media items from database")

        now = self.clock()
        pending = [i for i in items if not self._recently_searched(i, now)]
        report.skipped = len(items) - len(pending)
        if report.skipped:
            logger.info(f"Skipping {report.skipped} media items searched within {self.skip_searched_within}")

        for batch in self.batches(pending):
            if self._queue_full():
                report.stopped_on_queue = True
                break

            ids = [item.item_id for item in batch]
            search_time = self.clock()
            if not self.pvr.search(ids):
                raise WantarrError(f"Failed searching for items: {ids}")

            stamped = [item.searched_at(search_time) for item in batch]
            self.cache.set_items(self.pvr.name, list_kind, stamped)
            report.batches += 1
            report.searched += len(batch)
            logger.info(f"Searched for {len(batch)} items (batch {report.batches})")

        if not report.stopped_on_queue:
            report.dropped = len(pending) % self.batch_size if not self.flush_partial_batch else 0
            if report.dropped:
                logger.warning(
                    f"Trailing batch of {report.dropped} items is smaller than {self.batch_size}, not searched"
                )

        return report


def search_wanted(
    pvr,
    cache: MediaCache,
    list_kind: str,
    settings: Optional[SearchSettings] = None,
    refresh: bool = False,
    **kwargs,
) -> SearchReport:
    """Refresh the cache if needed, then search the cached items in batches."""
    settings = settings or SearchSettings()
    sync = refresh_cache(pvr, cache, list_kind, force=refresh)
    report = BatchSearcher.from_settings(pvr, cache, settings, **kwargs).run(list_kind)
    report.sync = sync
    logger.info(
        f"Finished {list_kind} search for {pvr.name}: {report.searched} searched in "
        f"{report.batches} batches, {report.dropped} dropped, {report.skipped} skipped"
    )
    return report
