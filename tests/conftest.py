"""
Fixtures pytest partagees pour les tests wantarr.

- Settings client rapides (pas d'attente entre polls ni entre retries)
- Cache SQLite en memoire
- Faux PVR pour les tests du driver de recherche
"""

from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

import pytest

from wantarr.config import ClientSettings, PvrConfig, RetrySettings
from wantarr.core.models import MediaItem
from wantarr.db.cache import MediaCache
from wantarr.db.database import close_db, init_db
from wantarr.errors import RemoteJobFailed

SONARR_URL = "http://sonarr:8989"
SONARR_API = f"{SONARR_URL}/api/v3"
RADARR_URL = "http://radarr:7878"
RADARR_API = f"{RADARR_URL}/api/v3"


@pytest.fixture
def client_settings() -> ClientSettings:
    """Settings with tiny pages and no waiting."""
    return ClientSettings(
        page_size=2,
        timeout=5,
        poll_interval=0,
        retry=RetrySettings(max_attempts=3, status_codes=[504], backoff_min=0, backoff_max=0),
    )


@pytest.fixture
def sonarr_config() -> PvrConfig:
    return PvrConfig(type="sonarr_v4", url=SONARR_URL, api_key="sonarr-key")


@pytest.fixture
def radarr_config() -> PvrConfig:
    return PvrConfig(type="radarr_v5", url=RADARR_URL, api_key="radarr-key")


@pytest.fixture
def session_factory():
    """In-memory database, dropped after the test."""
    factory = init_db(":memory:")
    yield factory
    close_db()


@pytest.fixture
def cache(session_factory) -> Iterator[MediaCache]:
    with MediaCache(session_factory) as c:
        yield c


def make_items(ids, air_date: Optional[datetime] = None) -> List[MediaItem]:
    air_date = air_date or datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [MediaItem(item_id=i, air_date_utc=air_date) for i in ids]


class FakeBackend:
    family = "sonarr"
    type = "sonarr_v4"


class FakePvr:
    """PVR en memoire: enregistre les recherches et les fetchs."""

    def __init__(self, name: str = "Sonarr", wanted: Optional[List[MediaItem]] = None,
                 queue_sizes: Optional[List[int]] = None, fail_on_batch: Optional[int] = None):
        self.name = name
        self.backend = FakeBackend()
        self.wanted = wanted or []
        self.queue_sizes = list(queue_sizes or [])
        self.fail_on_batch = fail_on_batch
        self.fetch_calls: List[str] = []
        self.searches: List[List[int]] = []

    def fetch_wanted(self, list_kind: str) -> List[MediaItem]:
        self.fetch_calls.append(list_kind)
        return list(self.wanted)

    def get_queue_size(self) -> int:
        return self.queue_sizes.pop(0) if self.queue_sizes else 0

    def search(self, item_ids: List[int]) -> bool:
        self.searches.append(list(item_ids))
        if self.fail_on_batch is not None and len(self.searches) == self.fail_on_batch:
            raise RemoteJobFailed(99, "failed", "indexer unavailable")
        return True


class FakeClock:
    """Horloge qui avance d'une minute a chaque appel."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        self.calls: List[datetime] = []

    def __call__(self) -> datetime:
        current = self.now
        self.calls.append(current)
        self.now = self.now + timedelta(minutes=1)
        return current


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
