"""Synchronisation du cache local avec la wanted list du serveur."""
import logging
from dataclasses import dataclass, field
from typing import Set

from wantarr.db.cache import MediaCache

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    refreshed: bool
    fetched: int = 0
    removed: int = 0
    removed_ids: Set[int] = field(default_factory=set)


def refresh_cache(pvr, cache: MediaCache, list_kind: str, force: bool = False) -> SyncResult:
    """Refresh the cached wanted list of ``pvr`` when forced or empty.

    The previous id set is captured before the fresh list is written, so the
    ids that disappeared from the server can be deleted afterwards.
    """
    previous_ids = cache.get_item_ids(pvr.name, list_kind)
    if previous_ids and not force:
        logger.info(f"Using {len(previous_ids)} cached {list_kind} media items for {pvr.name}")
        return SyncResult(refreshed=False)

    logger.info(f"Retrieving {list_kind} media from {pvr.backend.family}: {pvr.name!r}")
    fresh = pvr.fetch_wanted(list_kind)

    logger.debug("Stashing media items in database...")
    cache.replace_items(pvr.name, list_kind, fresh)
    logger.info(f"Stashed {len(fresh)} media items")

    gone: Set[int] = set()
    removed = 0
    if previous_ids:
        gone = previous_ids - {item.item_id for item in fresh}
        removed = cache.delete_items(pvr.name, list_kind, gone)
        logger.info(f"Removed {removed} media items from database that are no longer {list_kind}")

    return SyncResult(refreshed=True, fetched=len(fresh), removed=removed, removed_ids=gone)
