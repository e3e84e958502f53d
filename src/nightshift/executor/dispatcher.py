"""Executor dispatcher — forwards execute-check events to a remote runner.

Each execute-check request is handled on its own worker thread: the
prompt is run in the worktree through the runner, and the outcome is
reported back to the engine through ``report_check_done``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from nightshift.config import settings
from nightshift.executor.client import ExecutorClient, ExecutorError, ExecutorOfflineError
from nightshift.executor.models import CheckRunRequest
from nightshift.notifications.events import ExecuteCheck, NightshiftEvent

logger = logging.getLogger(__name__)

ReportFn = Callable[[str, str, bool, str | None], None]


class ExecutorDispatcher:
    """Event-bus subscriber that runs checks on the executor."""

    def __init__(
        self,
        client: ExecutorClient,
        report: ReportFn,
        timeout_sec: int | None = None,
    ) -> None:
        self.client = client
        self.report = report
        self.timeout_sec = timeout_sec or int(settings.check_timeout_seconds)

    def handle(self, event: NightshiftEvent) -> None:
        if not isinstance(event, ExecuteCheck):
            return
        threading.Thread(
            target=self.execute,
            args=(event,),
            name=f"nightshift-exec-{event.session_id[:8]}",
            daemon=True,
        ).start()

    def execute(self, event: ExecuteCheck) -> None:
        """Run one check and report its outcome. Never raises."""
        logger.info(
            "Executing check %s for run %s in %s", event.check_id, event.run_id, event.worktree_path,
        )
        try:
            result = self.client.run_check(CheckRunRequest(
                sessionId=event.session_id,
                cwd=event.worktree_path,
                prompt=event.prompt,
                model=event.model,
                provider=event.provider,
                backend=event.backend or "claude",
                timeoutSec=self.timeout_sec,
            ))
        except (ExecutorOfflineError, ExecutorError) as e:
            logger.warning("Executor failed for check %s: %s", event.check_id, e)
            self.report(event.run_id, event.session_id, False, str(e))
            return

        if result.exitCode == 0:
            self.report(event.run_id, event.session_id, True, None)
        else:
            error = result.stderr.strip()[:500] or f"exit code {result.exitCode}"
            logger.warning("Check %s exited %d: %s", event.check_id, result.exitCode, error[:200])
            self.report(event.run_id, event.session_id, False, error)
