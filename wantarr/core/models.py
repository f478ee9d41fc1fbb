"""Core business models."""
from dataclasses import dataclass, replace
from typing import Optional
from datetime import datetime

# Wanted list kinds
MISSING = "missing"
CUTOFF = "cutoff"
LIST_KINDS = (MISSING, CUTOFF)

# Command states
QUEUED = "queued"
STARTED = "started"
COMPLETED = "completed"
FAILED = "failed"
PENDING_STATES = (QUEUED, STARTED)


@dataclass
class MediaItem:
    """Item du wanted list (épisode, film, album ou livre)."""
    item_id: int
    air_date_utc: Optional[datetime] = None
    last_search: Optional[datetime] = None  # None tant qu'aucun batch n'a réussi

    def searched_at(self, when: datetime) -> "MediaItem":
        """Copy of this item stamped with a search time."""
        return replace(self, last_search=when)


@dataclass
class CommandStatus:
    """État d'une commande côté serveur, observé par polling."""
    command_id: int
    status: str
    name: Optional[str] = None
    message: Optional[str] = None
    started: Optional[datetime] = None
    ended: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATES


def validate_list_kind(list_kind: str) -> str:
    if list_kind not in LIST_KINDS:
        raise ValueError(f"unknown wanted list kind: {list_kind!r}")
    return list_kind
