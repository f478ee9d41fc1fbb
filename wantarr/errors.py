"""Exceptions raised by wantarr. All of them abort the current run."""
from typing import Optional


class WantarrError(Exception):
    """Base class for every fatal wantarr error."""


class ConfigurationError(WantarrError):
    """Unknown PVR name or type, or an unreadable configuration file."""


class IncompatibleVersion(WantarrError):
    """Server reported a major version the backend does not support."""

    def __init__(self, pvr_name: str, backend: str, version: str):
        self.pvr_name = pvr_name
        self.backend = backend
        self.version = version
        super().__init__(f"unsupported version of {backend} pvr {pvr_name!r}: {version}")


class ClientNotInitialized(WantarrError):
    """Client used before initialize() succeeded."""


class TransportError(WantarrError):
    """Network or HTTP failure after retries were exhausted."""


class UnexpectedStatus(WantarrError):
    """Response code differs from the one the call expects."""

    def __init__(self, message: str, status_code: int, expected: int):
        self.status_code = status_code
        self.expected = expected
        super().__init__(f"{message}: got HTTP {status_code}, expected {expected}")


class DecodeError(WantarrError):
    """Malformed JSON body or field."""


class RemoteJobFailed(WantarrError):
    """Remote command ended in failure or reported an unknown status."""

    def __init__(self, command_id: int, status: str, message: Optional[str] = None):
        self.command_id = command_id
        self.status = status
        self.message = message
        if status == "failed":
            text = f"search command {command_id} failed with message: {message!r}"
        else:
            text = f"search command {command_id} failed with unexpected status {status!r}, message: {message!r}"
        super().__init__(text)


class PollTimeout(RemoteJobFailed):
    """Command did not reach a terminal state before the deadline."""

    def __init__(self, command_id: int, status: str, timeout: float):
        self.timeout = timeout
        WantarrError.__init__(
            self, f"search command {command_id} still {status!r} after {timeout:g}s"
        )
        self.command_id = command_id
        self.status = status
        self.message = None


class SearchCancelled(RemoteJobFailed):
    """Polling was aborted by the caller."""

    def __init__(self, command_id: int, status: str):
        WantarrError.__init__(self, f"waiting on search command {command_id} cancelled (last status {status!r})")
        self.command_id = command_id
        self.status = status
        self.message = None


class CacheError(WantarrError):
    """Local persistence failure."""
