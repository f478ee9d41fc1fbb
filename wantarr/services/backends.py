"""Backend descriptors for the supported PVR families.

Every *arr server speaks the same REST dialect with small differences: where
the API lives, which field names the search command takes, whether wanted
lists are paged or must be derived from the full movie library, and how air
dates are encoded. A ``Backend`` captures those differences so a single
``PvrClient`` can drive all of them.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from wantarr.core.models import MediaItem, MISSING, CUTOFF
from wantarr.errors import ConfigurationError, DecodeError
from wantarr.services.models import MovieRecord, QueuePage, parse_bare_date, parse_timestamp
from wantarr.utils.http_client import join_url

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Backend:
    """Paged backend (Sonarr, Whisparr, Lidarr, Readarr)."""
    type: str
    family: str
    major_version: str
    api_suffix: str
    command_name: str
    ids_field: str
    date_field: str = "airDateUtc"
    bare_date: bool = False
    paged: bool = True
    # URL fragment meaning the configured URL already points at the API
    api_marker: str = "/api"

    def is_compatible(self, version: str) -> bool:
        return version[:1] == self.major_version

    def api_url(self, url: str) -> str:
        if self.api_marker in url:
            return url.rstrip("/")
        return join_url(url, self.api_suffix)

    def search_payload(self, item_ids: List[int]) -> Dict[str, Any]:
        return {"name": self.command_name, self.ids_field: list(item_ids)}

    def queue_size(self, payload: Any) -> int:
        try:
            return QueuePage.model_validate(payload).total_records
        except ValidationError as e:
            raise DecodeError(f"failed decoding queue api response from {self.family}: {e}") from e

    def parse_date(self, value: Any):
        if not self.bare_date:
            return parse_timestamp(value)
        # Whisparr sends bare dates; anything unreadable leaves the item undated
        try:
            return parse_bare_date(value)
        except ValueError:
            pass
        try:
            return parse_timestamp(value)
        except ValueError:
            logger.warning("unparseable_release_date", backend=self.type, value=value)
            return None

    def wanted_items(self, records: List[Dict[str, Any]], list_kind: str) -> List[MediaItem]:
        """Convert one page of wanted records into media items.

        The server already filtered the page for ``list_kind``.
        """
        items = []
        for record in records:
            try:
                items.append(MediaItem(
                    item_id=int(record["id"]),
                    air_date_utc=self.parse_date(record.get(self.date_field)),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise DecodeError(
                    f"failed decoding wanted {list_kind} record from {self.family}: {record!r}"
                ) from e
        return items


@dataclass(frozen=True)
class MovieBackend(Backend):
    """Unpaged backend (Radarr): wanted lists are filtered from /movie."""
    paged: bool = False
    date_field: str = "inCinemas"

    def queue_size(self, payload: Any) -> int:
        if isinstance(payload, list):
            return len(payload)
        # Radarr v3+ can also answer with a paged queue
        return super().queue_size(payload)

    @staticmethod
    def is_wanted(movie: MovieRecord, list_kind: str) -> bool:
        if list_kind == MISSING:
            return movie.monitored and movie.status == "released" and not movie.has_file
        if list_kind == CUTOFF:
            return movie.movie_file is not None and movie.movie_file.quality_cutoff_not_met
        return False

    def wanted_items(self, records: List[Dict[str, Any]], list_kind: str) -> List[MediaItem]:
        items = []
        for record in records:
            try:
                movie = MovieRecord.model_validate(record)
            except ValidationError as e:
                raise DecodeError(f"failed decoding movie record from {self.family}: {e}") from e
            if not self.is_wanted(movie, list_kind):
                continue
            items.append(MediaItem(item_id=movie.id, air_date_utc=movie.release_date()))
        return items


def _episodes(type_: str, major: str) -> Backend:
    return Backend(type=type_, family="sonarr", major_version=major, api_suffix="/api/v3",
                   command_name="EpisodeSearch", ids_field="episodeIds")


def _movies(type_: str, major: str) -> MovieBackend:
    return MovieBackend(type=type_, family="radarr", major_version=major, api_suffix="/api/v3",
                        command_name="MoviesSearch", ids_field="movieIds", api_marker="/api/v3")


BACKENDS: Dict[str, Backend] = {
    b.type: b
    for b in (
        _episodes("sonarr_v3", "3"),
        _episodes("sonarr_v4", "4"),
        Backend(type="whisparr_v2", family="whisparr", major_version="2", api_suffix="/api/v3",
                command_name="EpisodeSearch", ids_field="episodeIds",
                date_field="releaseDate", bare_date=True),
        Backend(type="lidarr_v2", family="lidarr", major_version="2", api_suffix="/api/v1",
                command_name="AlbumSearch", ids_field="albumIds", date_field="releaseDate"),
        Backend(type="readarr_v0", family="readarr", major_version="0", api_suffix="/api/v1",
                command_name="BookSearch", ids_field="bookIds", date_field="releaseDate"),
        _movies("radarr_v3", "3"),
        _movies("radarr_v4", "4"),
        _movies("radarr_v5", "5"),
    )
}


def get_backend(pvr_type: str) -> Backend:
    backend: Optional[Backend] = BACKENDS.get(pvr_type.lower())
    if backend is None:
        raise ConfigurationError(f"unsupported pvr type provided: {pvr_type!r}")
    return backend
