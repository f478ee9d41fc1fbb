"""Generic *arr API client."""
import threading
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from wantarr.config import ClientSettings, PvrConfig
from wantarr.core.models import CommandStatus, MediaItem, validate_list_kind
from wantarr.errors import ClientNotInitialized, DecodeError, IncompatibleVersion, UnexpectedStatus
from wantarr.services.backends import Backend, get_backend
from wantarr.services.command import CommandPoller
from wantarr.services.models import CommandResponse, CommandStatusResponse, SystemStatus, WantedPage
from wantarr.utils.http_client import RobustHTTPClient, join_url

logger = structlog.get_logger(__name__)


class PvrClient:
    """Service pour interagir avec un serveur Sonarr/Radarr/Lidarr/Readarr/Whisparr."""

    def __init__(
        self,
        name: str,
        pvr_config: PvrConfig,
        settings: Optional[ClientSettings] = None,
        backend: Optional[Backend] = None,
        cancel_event: Optional[threading.Event] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.name = name
        self.settings = settings or ClientSettings()
        self.backend = backend or get_backend(pvr_config.type)
        self.api_url = self.backend.api_url(pvr_config.url)
        self.cancel_event = cancel_event or threading.Event()
        self.version: Optional[str] = None
        self.log = logger.bind(pvr=name, backend=self.backend.type)

        retry = self.settings.retry
        self.http = RobustHTTPClient(
            service_name=name,
            default_timeout=self.settings.timeout,
            max_attempts=retry.max_attempts,
            retry_status_codes=retry.status_codes,
            backoff_min=retry.backoff_min,
            backoff_max=retry.backoff_max,
            headers={"X-Api-Key": pvr_config.api_key},
            transport=transport,
        )
        self.poller = CommandPoller(
            self._get_command_status,
            interval=self.settings.poll_interval,
            timeout=self.settings.poll_timeout,
            cancel_event=self.cancel_event,
        )

    @property
    def initialized(self) -> bool:
        return self.version is not None

    def _require_init(self) -> None:
        if not self.initialized:
            raise ClientNotInitialized(f"{self.backend.family} pvr {self.name!r} used before initialize()")

    def _url(self, path: str) -> str:
        return join_url(self.api_url, path)

    def _call(self, method: str, path: str, what: str, expected: int = 200,
              params: Optional[Dict[str, Any]] = None, json: Optional[Any] = None) -> Any:
        """Send one API request, validate the status code and decode the JSON body."""
        response = self.http.request(method, self._url(path), params=params, json=json)
        if response.status_code != expected:
            raise UnexpectedStatus(
                f"failed retrieving valid {what} api response from {self.backend.family} {self.name!r}",
                response.status_code,
                expected,
            )
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(
                f"failed decoding {what} api response from {self.backend.family} {self.name!r}: {e}"
            ) from e

    def _decode(self, model: type, payload: Any, what: str) -> BaseModel:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(
                f"failed decoding {what} api response from {self.backend.family} {self.name!r}: {e}"
            ) from e

    def _get_command_status(self, command_id: int) -> CommandStatus:
        payload = self._call("GET", f"/command/{command_id}", "command status")
        s = self._decode(CommandStatusResponse, payload, "command status")
        return CommandStatus(
            command_id=command_id,
            status=s.status,
            name=s.name,
            message=s.message,
            started=s.started,
            ended=s.ended,
        )

    def initialize(self) -> str:
        """Check the server version and unlock the other operations."""
        payload = self._call("GET", "/system/status", "system status")
        status = self._decode(SystemStatus, payload, "system status")
        if not self.backend.is_compatible(status.version):
            raise IncompatibleVersion(self.name, self.backend.family, status.version)
        self.version = status.version
        self.log.debug("pvr_initialized", version=status.version)
        return status.version

    def get_queue_size(self) -> int:
        """Nombre d'éléments actuellement dans la file de téléchargement."""
        self._require_init()
        payload = self._call("GET", "/queue", "queue")
        queue_size = self.backend.queue_size(payload)
        self.log.debug("queue_retrieved", queue_size=queue_size)
        return queue_size

    def fetch_wanted(self, list_kind: str) -> List[MediaItem]:
        """Récupère la liste wanted complète (missing ou cutoff)."""
        self._require_init()
        validate_list_kind(list_kind)
        self.log.info("retrieving_wanted_media", list_kind=list_kind)

        if self.backend.paged:
            items = self._fetch_paged(list_kind)
        else:
            payload = self._call("GET", "/movie", "movies")
            if not isinstance(payload, list):
                raise DecodeError(f"failed decoding movies api response from {self.backend.family} {self.name!r}: "
                                  f"expected a list, got {type(payload).__name__}")
            items = self.backend.wanted_items(payload, list_kind)

        self.log.info("wanted_media_retrieved", list_kind=list_kind, media_items=len(items))
        return items

    def _fetch_paged(self, list_kind: str) -> List[MediaItem]:
        page_size = self.settings.page_size
        params = {
            "sortKey": self.settings.sort_key,
            "pageSize": page_size,
            "monitored": "true",
        }
        what = f"wanted {list_kind}"
        items: List[MediaItem] = []
        page = 1

        while True:
            params["page"] = page
            payload = self._call("GET", f"/wanted/{list_kind}", what, params=params)
            wanted = self._decode(WantedPage, payload, what)
            items.extend(self.backend.wanted_items(wanted.records, list_kind))
            self.log.debug("wanted_page_retrieved", list_kind=list_kind, page=page, records=len(wanted.records))

            # Short (or empty) page is the last one
            if len(wanted.records) < page_size:
                break
            page += 1

        return items

    def search(self, item_ids: List[int]) -> bool:
        """Lance une recherche pour un batch d'ids et attend la fin de la commande.

        Returns True once the command completes. Failed, unknown, timed out or
        cancelled commands raise instead.
        """
        self._require_init()
        payload = self._call(
            "POST", "/command", "command", expected=201,
            json=self.backend.search_payload(item_ids),
        )
        command = self._decode(CommandResponse, payload, "command")

        self.log.debug("monitoring_search_status", command_id=command.id, items=len(item_ids))
        self.poller.wait(command.id)
        return True

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "PvrClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def get_pvr(name: str, pvr_config: PvrConfig, settings: Optional[ClientSettings] = None, **kwargs) -> PvrClient:
    """Build the client for a configured PVR; unknown types raise ConfigurationError."""
    return PvrClient(name, pvr_config, settings=settings, backend=get_backend(pvr_config.type), **kwargs)
