"""Polling of asynchronous PVR commands."""
import threading
import time
from typing import Callable, Optional

import structlog

from wantarr.core.models import CommandStatus, COMPLETED, FAILED
from wantarr.errors import PollTimeout, RemoteJobFailed, SearchCancelled

logger = structlog.get_logger(__name__)


class CommandPoller:
    """Attend qu'une commande distante atteigne un état terminal.

    ``fetch_status`` performs one fresh request per poll. The first poll is
    immediate, later ones are spaced by ``interval`` seconds. ``timeout`` bounds
    the whole wait (None waits forever) and ``cancel_event`` lets another
    thread abort it.
    """

    def __init__(
        self,
        fetch_status: Callable[[int], CommandStatus],
        interval: float = 10.0,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetch_status = fetch_status
        self.interval = interval
        self.timeout = timeout
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock

    def wait(self, command_id: int) -> CommandStatus:
        """Block until ``command_id`` completes and return its final status.

        Raises RemoteJobFailed on ``failed`` or any status outside the known
        set, PollTimeout once the deadline passes and SearchCancelled when the
        cancel event is set.
        """
        log = logger.bind(command_id=command_id)
        deadline = None if self.timeout is None else self.clock() + self.timeout
        polls = 0

        while True:
            status = self.fetch_status(command_id)
            polls += 1
            log.debug("command_status_retrieved", status=status.status, polls=polls)

            if status.status == COMPLETED:
                return status
            if status.status == FAILED or not status.is_pending:
                raise RemoteJobFailed(command_id, status.status, status.message)

            delay = self.interval
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    raise PollTimeout(command_id, status.status, self.timeout)
                delay = min(delay, remaining)

            # Event.wait doubles as an interruptible sleep
            if self.cancel_event.wait(delay):
                log.warning("command_wait_cancelled", status=status.status)
                raise SearchCancelled(command_id, status.status)
