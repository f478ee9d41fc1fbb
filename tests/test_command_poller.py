"""
Tests de la machine a etats de polling des commandes.

Ces tests verifient:
- queued -> started -> completed reussit apres exactement 3 polls
- failed et les statuts inconnus echouent immediatement
- Le delai global et l'annulation interrompent l'attente
"""

import threading
from typing import List

import pytest

from wantarr.core.models import CommandStatus
from wantarr.errors import PollTimeout, RemoteJobFailed, SearchCancelled
from wantarr.services.command import CommandPoller


class ScriptedStatus:
    """Rend une suite de statuts, un par poll."""

    def __init__(self, statuses: List[str], message: str = None):
        self.statuses = list(statuses)
        self.message = message
        self.polls = 0

    def __call__(self, command_id: int) -> CommandStatus:
        status = self.statuses[min(self.polls, len(self.statuses) - 1)]
        self.polls += 1
        return CommandStatus(command_id=command_id, status=status, message=self.message)


class TickingClock:
    def __init__(self, step: float):
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


def test_completed_after_three_polls() -> None:
    fetch = ScriptedStatus(["queued", "started", "completed"])

    status = CommandPoller(fetch, interval=0).wait(42)

    assert status.status == "completed"
    assert status.command_id == 42
    assert fetch.polls == 3


def test_failed_raises_with_server_message() -> None:
    fetch = ScriptedStatus(["queued", "failed"], message="No indexers available")

    with pytest.raises(RemoteJobFailed) as exc_info:
        CommandPoller(fetch, interval=0).wait(7)

    assert exc_info.value.status == "failed"
    assert exc_info.value.message == "No indexers available"
    assert "No indexers available" in str(exc_info.value)
    assert fetch.polls == 2


def test_unknown_status_fails_without_further_polls() -> None:
    fetch = ScriptedStatus(["queued", "weird", "completed"])

    with pytest.raises(RemoteJobFailed, match="unexpected status 'weird'"):
        CommandPoller(fetch, interval=0).wait(7)

    assert fetch.polls == 2


def test_deadline_raises_poll_timeout() -> None:
    fetch = ScriptedStatus(["started"])
    poller = CommandPoller(fetch, interval=0, timeout=5, clock=TickingClock(step=2))

    with pytest.raises(PollTimeout) as exc_info:
        poller.wait(3)

    assert exc_info.value.status == "started"
    assert isinstance(exc_info.value, RemoteJobFailed)
    assert fetch.polls >= 2


def test_no_timeout_keeps_polling_until_terminal() -> None:
    fetch = ScriptedStatus(["queued"] * 50 + ["completed"])

    CommandPoller(fetch, interval=0, timeout=None).wait(1)

    assert fetch.polls == 51


def test_cancel_event_aborts_wait() -> None:
    cancel = threading.Event()
    cancel.set()
    fetch = ScriptedStatus(["queued", "completed"])

    with pytest.raises(SearchCancelled):
        CommandPoller(fetch, interval=30, cancel_event=cancel).wait(9)

    assert fetch.polls == 1


def test_cancel_does_not_mask_completion_on_first_poll() -> None:
    cancel = threading.Event()
    cancel.set()
    fetch = ScriptedStatus(["completed"])

    assert CommandPoller(fetch, interval=30, cancel_event=cancel).wait(9).status == "completed"
