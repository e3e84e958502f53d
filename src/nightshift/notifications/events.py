"""Engine events and the in-process event bus.

Events are fire-and-forget: a failing subscriber is logged and skipped,
never propagated back into the run thread that emitted the event.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, ClassVar

from pydantic import BaseModel

from nightshift.runs.models import RunStatus

logger = logging.getLogger(__name__)


# ── Payloads ─────────────────────────────────────────────────────────────────


class NightshiftEvent(BaseModel):
    name: ClassVar[str] = ""

    run_id: str

    def to_message(self) -> dict[str, Any]:
        return {"event": self.name, "data": self.model_dump(mode="json")}


class RunStarted(NightshiftEvent):
    name: ClassVar[str] = "run-started"

    project_id: str


class CheckStarted(NightshiftEvent):
    name: ClassVar[str] = "check-started"

    check_id: str
    check_name: str


class ExecuteCheck(NightshiftEvent):
    """Request for the external executor to run one check."""

    name: ClassVar[str] = "execute-check"

    project_id: str
    check_id: str
    check_name: str
    session_id: str
    worktree_id: str
    worktree_path: str
    prompt: str
    model: str | None = None
    provider: str | None = None
    backend: str | None = None


class CheckDone(NightshiftEvent):
    name: ClassVar[str] = "check-done"

    check_id: str
    status: RunStatus


class RunCompleted(NightshiftEvent):
    name: ClassVar[str] = "run-completed"

    project_id: str
    status: RunStatus
    total_checks: int
    worktree_id: str | None = None


class RunFailed(NightshiftEvent):
    name: ClassVar[str] = "run-failed"

    project_id: str
    error: str


Subscriber = Callable[[NightshiftEvent], Any]


# ── Bus ──────────────────────────────────────────────────────────────────────


class EventBus:
    """Thread-safe fan-out of engine events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, event: NightshiftEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        logger.debug("Event %s for run %s", event.name, event.run_id)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber error (%s)", event.name)
