"""HTTP client with retries and timeouts."""
import httpx
from typing import Optional, Dict, Any, Iterable
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_random_exponential,
    retry_if_exception_type,
    RetryCallState
)
import structlog

from wantarr.errors import TransportError

logger = structlog.get_logger(__name__)


class RetryableStatus(Exception):
    """Response carried a status code configured as transient."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


def join_url(base: str, *parts: str) -> str:
    """Join URL path segments without doubling slashes."""
    url = base.rstrip("/")
    for part in parts:
        url = f"{url}/{part.strip('/')}"
    return url


class RobustHTTPClient:
    """HTTP client with retries and timeouts, one per remote service."""

    def __init__(
        self,
        service_name: str,
        default_timeout: float = 120.0,
        max_attempts: int = 6,
        retry_status_codes: Iterable[int] = (504,),
        backoff_min: float = 0.5,
        backoff_max: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.service_name = service_name
        self.default_timeout = default_timeout
        self.max_attempts = max_attempts
        self.retry_status_codes = frozenset(retry_status_codes)
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max
        self._client = httpx.Client(
            timeout=default_timeout,
            headers=headers,
            transport=transport,
        )

    def _log_retry(self, retry_state: RetryCallState):
        """Log retry attempts."""
        logger.warning(
            "http_retry_attempt",
            service=self.service_name,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            wait_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
            error=str(retry_state.outcome.exception())
        )

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = self._client.request(method, url, **kwargs)
        if response.status_code in self.retry_status_codes:
            raise RetryableStatus(response)
        return response

    def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        timeout: Optional[float] = None
    ) -> httpx.Response:
        """Send a request, retrying transient failures with jittered backoff.

        Any status code outside ``retry_status_codes`` is returned to the caller
        untouched; validating it is the caller's job.
        """
        retryer = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(multiplier=self.backoff_min, min=self.backoff_min, max=self.backoff_max),
            retry=retry_if_exception_type((httpx.TransportError, RetryableStatus)),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            return retryer(
                self._send,
                method,
                url,
                params=params,
                json=json,
                timeout=timeout or self.default_timeout,
            )
        except RetryableStatus as e:
            logger.error(
                "http_request_failed",
                service=self.service_name,
                url=url,
                status_code=e.response.status_code,
                attempts=self.max_attempts,
            )
            raise TransportError(
                f"{method} {url} returned HTTP {e.response.status_code} "
                f"after {self.max_attempts} attempts"
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "http_request_failed",
                service=self.service_name,
                url=url,
                error=str(e),
                attempts=self.max_attempts,
            )
            raise TransportError(f"{method} {url} failed after {self.max_attempts} attempts: {e}") from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RobustHTTPClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
