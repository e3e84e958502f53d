"""Completion bridge — connects executor reports to a blocked run thread.

The run thread arms the run's channel for the session of the check it is
about to execute, then blocks in ``wait``. The executor, on a different
call stack entirely, reports back through ``CompletionBridge.deliver``,
which resolves the armed future. Checks are sequential, so at most one
future is pending per run; only the first value delivered for it is used.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass

from nightshift.errors import CompletionChannelDisconnectedError, CompletionTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckCompletion:
    """Completion report for one check."""

    session_id: str
    success: bool
    error: str | None = None


class CompletionChannel:
    """Single-producer, single-consumer completion signal for one run."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._lock = threading.Lock()
        self._future: Future[CheckCompletion] | None = None
        self._session_id: str | None = None
        self._interrupt: CheckCompletion | None = None
        self._closed = False

    def arm(self, session_id: str) -> None:
        """Prepare to receive the completion of the given session."""
        future: Future[CheckCompletion] = Future()
        with self._lock:
            if self._closed:
                future.set_exception(CompletionChannelDisconnectedError("Completion channel disconnected"))
            elif self._interrupt is not None:
                future.set_result(self._interrupt)
            self._future = future
            self._session_id = session_id

    def deliver(self, completion: CheckCompletion) -> bool:
        """Resolve the armed wait. Returns False if the value was dropped."""
        with self._lock:
            future = self._future
            expected = self._session_id
        if future is None or future.done():
            return False
        if completion.session_id and expected and completion.session_id != expected:
            logger.debug(
                "Dropping stale completion for session %s on run %s",
                completion.session_id, self.run_id,
            )
            return False
        try:
            future.set_result(completion)
        except InvalidStateError:
            # Lost the race with another delivery
            return False
        return True

    def interrupt(self, completion: CheckCompletion) -> None:
        """Resolve the current wait and every later one with ``completion``."""
        with self._lock:
            self._interrupt = completion
            future = self._future
        if future is not None and not future.done():
            try:
                future.set_result(completion)
            except InvalidStateError:
                pass

    def close(self) -> None:
        with self._lock:
            self._closed = True
            future = self._future
        if future is not None and not future.done():
            try:
                future.set_exception(CompletionChannelDisconnectedError("Completion channel disconnected"))
            except InvalidStateError:
                pass

    def wait(self, timeout: float) -> CheckCompletion:
        """Block until the armed check completes.

        Raises CompletionTimeoutError or CompletionChannelDisconnectedError.
        """
        with self._lock:
            future = self._future
        if future is None:
            raise CompletionChannelDisconnectedError("Completion channel was never armed")
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            raise CompletionTimeoutError(f"Check timed out after {timeout:g}s")


class CompletionBridge:
    """Correlation table of run_id -> open completion channel."""

    def __init__(self) -> None:
        self._channels: dict[str, CompletionChannel] = {}
        self._lock = threading.Lock()

    def open(self, run_id: str) -> CompletionChannel:
        channel = CompletionChannel(run_id)
        with self._lock:
            self._channels[run_id] = channel
        return channel

    def get(self, run_id: str) -> CompletionChannel | None:
        with self._lock:
            return self._channels.get(run_id)

    def is_open(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._channels

    def deliver(self, run_id: str, completion: CheckCompletion) -> bool:
        """Forward a report. Unknown or closed runs are a silent no-op."""
        channel = self.get(run_id)
        if channel is None:
            logger.debug("No open completion channel for run %s", run_id)
            return False
        return channel.deliver(completion)

    def interrupt(self, run_id: str, completion: CheckCompletion) -> bool:
        channel = self.get(run_id)
        if channel is None:
            return False
        channel.interrupt(completion)
        return True

    def close(self, run_id: str) -> None:
        """Remove the run's channel. Safe to call more than once."""
        with self._lock:
            channel = self._channels.pop(run_id, None)
        if channel is not None:
            channel.close()
