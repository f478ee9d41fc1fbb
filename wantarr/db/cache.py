"""Local cache of wanted media items, partitioned by (pvr, list kind)."""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from wantarr.core.models import MediaItem, validate_list_kind
from wantarr.db.database import get_db_sync
from wantarr.db.models import MediaItemRecord
from wantarr.errors import CacheError

logger = logging.getLogger(__name__)

# SQLite caps bound parameters per statement
_DELETE_CHUNK = 500


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_item(record: MediaItemRecord) -> MediaItem:
    return MediaItem(
        item_id=record.item_id,
        air_date_utc=_to_utc(record.air_date_utc),
        last_search=_to_utc(record.last_search),
    )


class MediaCache:
    """Cache SQLite des wanted lists.

    Use as a context manager: the session is opened on enter and closed on
    every exit path. Each write commits immediately so a crash keeps what was
    already written.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory
        self._session: Optional[Session] = None

    def __enter__(self) -> "MediaCache":
        try:
            self._session = self._session_factory() if self._session_factory else get_db_sync()
        except SQLAlchemyError as e:
            raise CacheError(f"Failed opening cache session: {e}") from e
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._session is None:
            return
        try:
            if exc_type is not None:
                self._session.rollback()
        finally:
            self._session.close()
            self._session = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise CacheError("Cache is not open")
        return self._session

    @staticmethod
    def _key(pvr_name: str, list_kind: str):
        return pvr_name.lower(), validate_list_kind(list_kind)

    def count(self, pvr_name: str, list_kind: str) -> int:
        pvr, kind = self._key(pvr_name, list_kind)
        try:
            return self.session.scalar(
                select(func.count()).select_from(MediaItemRecord).where(
                    MediaItemRecord.pvr_name == pvr, MediaItemRecord.list_kind == kind
                )
            ) or 0
        except SQLAlchemyError as e:
            raise CacheError(f"Failed counting cached {kind} items for {pvr}: {e}") from e

    def get_items(self, pvr_name: str, list_kind: str) -> List[MediaItem]:
        """All cached items of a partition, in fetch order."""
        pvr, kind = self._key(pvr_name, list_kind)
        try:
            records = self.session.scalars(
                select(MediaItemRecord)
                .where(MediaItemRecord.pvr_name == pvr, MediaItemRecord.list_kind == kind)
                .order_by(MediaItemRecord.position, MediaItemRecord.id)
            ).all()
        except SQLAlchemyError as e:
            raise CacheError(f"Failed retrieving cached {kind} items for {pvr}: {e}") from e
        return [_to_item(r) for r in records]

    def get_item_ids(self, pvr_name: str, list_kind: str) -> Set[int]:
        pvr, kind = self._key(pvr_name, list_kind)
        try:
            return set(self.session.scalars(
                select(MediaItemRecord.item_id).where(
                    MediaItemRecord.pvr_name == pvr, MediaItemRecord.list_kind == kind
                )
            ).all())
        except SQLAlchemyError as e:
            raise CacheError(f"Failed retrieving cached {kind} item ids for {pvr}: {e}") from e

    def _write(self, pvr: str, kind: str, items: List[MediaItem], in_order: bool) -> None:
        existing = {
            r.item_id: r
            for r in self.session.scalars(
                select(MediaItemRecord).where(
                    MediaItemRecord.pvr_name == pvr,
                    MediaItemRecord.list_kind == kind,
                )
            ).all()
        }
        if in_order:
            # ids absent from items sort after the fresh list
            for record in existing.values():
                record.position += len(items)
        next_position = max((r.position for r in existing.values()), default=-1) + 1
        for index, item in enumerate(items):
            record = existing.get(item.item_id)
            if record is None:
                record = MediaItemRecord(pvr_name=pvr, list_kind=kind, item_id=item.item_id,
                                         position=next_position)
                next_position += 1
                self.session.add(record)
                existing[item.item_id] = record
            if in_order:
                record.position = index
            record.air_date_utc = _to_utc(item.air_date_utc)
            record.last_search = _to_utc(item.last_search)

    def set_items(self, pvr_name: str, list_kind: str, items: Iterable[MediaItem]) -> int:
        """Write items, overwriting any cached row with the same item id.

        Cached rows keep their place in the partition; unknown ids go last.
        """
        pvr, kind = self._key(pvr_name, list_kind)
        items = list(items)
        try:
            self._write(pvr, kind, items, in_order=False)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CacheError(f"Failed stashing {kind} items for {pvr}: {e}") from e
        logger.debug(f"Stored {len(items)} {kind} items for {pvr}")
        return len(items)

    def replace_items(self, pvr_name: str, list_kind: str, items: Iterable[MediaItem]) -> int:
        """Overwrite the partition with a freshly fetched list, in fetch order.

        Every given item is rewritten whole (``last_search`` included). Cached
        ids missing from ``items`` are left for ``delete_items``.
        """
        pvr, kind = self._key(pvr_name, list_kind)
        items = list(items)
        try:
            self._write(pvr, kind, items, in_order=True)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CacheError(f"Failed replacing {kind} items for {pvr}: {e}") from e
        logger.debug(f"Replaced {len(items)} {kind} items for {pvr}")
        return len(items)

    def delete_items(self, pvr_name: str, list_kind: str, item_ids: Iterable[int]) -> int:
        """Delete the given item ids from a partition; returns rows removed."""
        pvr, kind = self._key(pvr_name, list_kind)
        ids = list(item_ids)
        if not ids:
            return 0
        removed = 0
        try:
            for start in range(0, len(ids), _DELETE_CHUNK):
                result = self.session.execute(
                    delete(MediaItemRecord).where(
                        MediaItemRecord.pvr_name == pvr,
                        MediaItemRecord.list_kind == kind,
                        MediaItemRecord.item_id.in_(ids[start:start + _DELETE_CHUNK]),
                    )
                )
                removed += result.rowcount
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise CacheError(f"Failed removing {kind} items for {pvr}: {e}") from e
        return removed
