"""Nightshift orchestration engine.

Drives one run per project through its lifecycle:

    pending → running → completed | partially_completed | failed | cancelled

Flow of a run (one background thread per run):
1. Acquire the project's maintenance worktree (failure aborts the run).
2. Persist the run as ``running`` and announce it.
3. Compute eligible checks (cooldowns apply to scheduled runs only).
4. Execute checks strictly one at a time: bind a session, ask the external
   executor to run the prompt, block on the completion bridge until it
   reports back or the check times out.
5. Finalize: ``partially_completed`` if any check failed, else ``completed``.

Cancellation is cooperative. It is checked before each check starts and
again as soon as the wait for the in-flight check returns; a hung executor
cannot be killed, only abandoned.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable

from nightshift.checks.catalog import all_checks, find_check
from nightshift.config import settings
from nightshift.engine.bridge import CheckCompletion, CompletionBridge, CompletionChannel
from nightshift.engine.run_state import RunRegistry
from nightshift.errors import (
    CancelledByUserError,
    CompletionChannelDisconnectedError,
    CompletionTimeoutError,
    NightshiftError,
    PersistenceError,
    ProjectNotFoundError,
    ProjectNotRunnableError,
    SessionCreationError,
)
from nightshift.notifications.events import (
    CheckDone,
    CheckStarted,
    EventBus,
    ExecuteCheck,
    RunCompleted,
    RunFailed,
    RunStarted,
)
from nightshift.projects.registry import NightshiftConfig, ProjectRegistry, Worktree
from nightshift.runs.models import CheckResult, NightshiftRun, RunStatus, RunTrigger
from nightshift.runs.store import RunStore
from nightshift.sessions.binder import SessionBinder
from nightshift.worktrees.provisioner import WorktreeProvisioner

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_HOURS = 24


def resolve_prompt(config: NightshiftConfig, check_id: str) -> str:
    """Per-check custom prompt if non-empty, else the catalog default."""
    override = config.check_configs.get(check_id)
    if override and override.custom_prompt:
        return override.custom_prompt
    check = find_check(check_id)
    return check.prompt_template if check else ""


def effective_cooldown_hours(config: NightshiftConfig, check_id: str) -> int:
    override = config.check_configs.get(check_id)
    if override and override.cooldown_hours_override is not None:
        return override.cooldown_hours_override
    check = find_check(check_id)
    return check.cooldown_hours if check else DEFAULT_COOLDOWN_HOURS


class NightshiftEngine:
    """Owns all run bookkeeping: busy projects, cancellation, completion channels."""

    def __init__(
        self,
        registry: ProjectRegistry,
        store: RunStore,
        worktrees: WorktreeProvisioner,
        sessions: SessionBinder,
        events: EventBus | None = None,
        check_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.store = store
        self.worktrees = worktrees
        self.sessions = sessions
        self.events = events or EventBus()
        self.check_timeout = check_timeout if check_timeout is not None else settings.check_timeout_seconds
        self._clock = clock
        self._runs = RunRegistry()
        self._bridge = CompletionBridge()
        self._threads: dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

    def _now(self) -> int:
        return int(self._clock())

    # ── Public API ───────────────────────────────────────────────────────

    def start_run(self, project_id: str, trigger: RunTrigger = RunTrigger.MANUAL) -> str:
        """Validate and spawn a run in the background. Returns the run id.

        Raises ProjectNotFoundError, ProjectNotRunnableError or
        AlreadyRunningError before any background work starts.
        """
        project = self.registry.get(project_id)
        if not project:
            raise ProjectNotFoundError(project_id)
        if project.is_folder:
            raise ProjectNotRunnableError("Cannot run Nightshift on a folder")
        if not project.repo_path:
            raise ProjectNotRunnableError("Project has no path")

        config = project.nightshift or NightshiftConfig()
        run_id = str(uuid.uuid4())
        self._runs.start_run(run_id, project_id)

        thread = threading.Thread(
            target=self.execute_run,
            args=(run_id, project_id, config, trigger),
            name=f"nightshift-{run_id[:8]}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads[run_id] = thread
        thread.start()

        logger.info("Started nightshift run %s for project %s (%s)", run_id, project_id, trigger.value)
        return run_id

    def cancel_run(self, run_id: str) -> bool:
        """Request cancellation. Returns False if the run is not active."""
        if not self._runs.stop_run(run_id):
            return False
        # Wake the blocked wait instead of letting it run into the timeout
        self._bridge.interrupt(run_id, CheckCompletion(session_id="", success=False, error="Cancelled"))
        logger.info("Cancellation requested for nightshift run %s", run_id)
        return True

    def report_check_done(
        self,
        run_id: str,
        session_id: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        """Executor entry point. Unknown or finished runs are ignored."""
        self._bridge.deliver(run_id, CheckCompletion(session_id=session_id, success=success, error=error))

    def is_project_running(self, project_id: str) -> bool:
        return self._runs.is_project_running(project_id)

    def active_runs(self) -> dict[str, str]:
        return self._runs.active_runs()

    def join(self, run_id: str, timeout: float | None = None) -> bool:
        """Wait for a run thread to exit. Returns True if it has finished."""
        with self._threads_lock:
            thread = self._threads.get(run_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel every active run and wait briefly for the threads."""
        for run_id in list(self.active_runs()):
            self.cancel_run(run_id)
        with self._threads_lock:
            run_ids = list(self._threads)
        for run_id in run_ids:
            self.join(run_id, timeout)

    def eligible_checks(
        self,
        project_id: str,
        config: NightshiftConfig,
        trigger: RunTrigger,
    ) -> list[str]:
        """Check ids to run, in catalog order. Manual runs bypass cooldowns."""
        skip_cooldown = trigger == RunTrigger.MANUAL
        now = self._now()
        enabled: list[str] = []

        for check in all_checks():
            if check.id in config.disabled_checks:
                continue
            if not (check.default_enabled or check.id in config.extra_enabled_checks):
                continue

            if not skip_cooldown:
                try:
                    last_run = self.store.last_check_completion_time(project_id, check.id)
                except PersistenceError as e:
                    logger.warning("Cooldown lookup failed for %s: %s", check.id, e)
                    last_run = None
                cooldown_secs = effective_cooldown_hours(config, check.id) * 3600
                if last_run is not None and now < last_run + cooldown_secs:
                    logger.debug("Skipping check %s: still in cooldown", check.id)
                    continue

            enabled.append(check.id)

        return enabled

    # ── Run execution ────────────────────────────────────────────────────

    def execute_run(
        self,
        run_id: str,
        project_id: str,
        config: NightshiftConfig,
        trigger: RunTrigger,
    ) -> None:
        """Body of a run thread. Never raises."""
        run = NightshiftRun(id=run_id, project_id=project_id, trigger=trigger, started_at=self._now())
        try:
            self._execute(run, config)
        except Exception as e:
            logger.exception("Nightshift run %s crashed", run_id)
            if not run.status.is_terminal:
                self._fail(run, f"Unexpected error: {e}")
        finally:
            self._bridge.close(run_id)
            self._runs.end_run(run_id)
            with self._threads_lock:
                self._threads.pop(run_id, None)

    def _execute(self, run: NightshiftRun, config: NightshiftConfig) -> None:
        try:
            project = self.registry.get(run.project_id)
            if project is None:
                raise ProjectNotFoundError(run.project_id)
            worktree = self.worktrees.get_or_create(project)
        except NightshiftError as e:
            logger.error("Failed to get/create nightshift worktree: %s", e)
            self._fail(run, f"Failed to get/create worktree: {e}")
            return

        run.status = RunStatus.RUNNING
        run.started_at = self._now()
        run.worktree_id = worktree.id
        run.worktree_path = worktree.path
        run.branch_name = worktree.branch
        self._persist(run)
        self.events.emit(RunStarted(run_id=run.id, project_id=run.project_id))

        check_ids = self.eligible_checks(run.project_id, config, run.trigger)
        if not check_ids:
            logger.info("No checks to run for project %s", run.project_id)
            self._finalize(run, worktree, cancelled=self._runs.is_cancelled(run.id))
            return

        channel = self._bridge.open(run.id)
        cancelled = False

        for check_id in check_ids:
            if self._runs.is_cancelled(run.id):
                logger.info("Nightshift run %s was cancelled", run.id)
                cancelled = True
                break

            result = self._run_check(run, config, worktree, channel, check_id)
            run.check_results.append(result)
            self.events.emit(CheckDone(run_id=run.id, check_id=check_id, status=result.status))

            if result.status == RunStatus.CANCELLED:
                cancelled = True
                break

            self._persist(run)

        self._finalize(run, worktree, cancelled=cancelled)

    def _run_check(
        self,
        run: NightshiftRun,
        config: NightshiftConfig,
        worktree: Worktree,
        channel: CompletionChannel,
        check_id: str,
    ) -> CheckResult:
        check = find_check(check_id)
        check_name = check.name if check else check_id

        try:
            session = self.sessions.create(worktree, check_id, check_name, run.id, config)
        except SessionCreationError as e:
            logger.error("Failed to create session for check %s: %s", check_id, e)
            return CheckResult(check_id=check_id, status=RunStatus.FAILED, error=str(e))

        prompt = resolve_prompt(config, check_id)

        # Arm before announcing so a synchronous report is never lost
        channel.arm(session.id)
        self.events.emit(CheckStarted(run_id=run.id, check_id=check_id, check_name=check_name))
        self.events.emit(
            ExecuteCheck(
                run_id=run.id,
                project_id=run.project_id,
                check_id=check_id,
                check_name=check_name,
                session_id=session.id,
                worktree_id=worktree.id,
                worktree_path=worktree.path,
                prompt=prompt,
                model=config.model,
                provider=config.provider,
                backend=config.backend,
            )
        )

        t0 = time.monotonic()

        def _elapsed() -> int:
            return int(time.monotonic() - t0)

        try:
            completion = self._await_completion(channel, run.id)
        except CancelledByUserError:
            return CheckResult(
                check_id=check_id,
                status=RunStatus.CANCELLED,
                session_id=session.id,
                duration_secs=_elapsed(),
                error="Cancelled",
            )
        except (CompletionTimeoutError, CompletionChannelDisconnectedError) as e:
            logger.warning("Check %s on run %s failed: %s", check_id, run.id, e)
            return CheckResult(
                check_id=check_id,
                status=RunStatus.FAILED,
                session_id=session.id,
                duration_secs=_elapsed(),
                error=str(e),
            )

        if completion.success:
            return CheckResult(
                check_id=check_id,
                status=RunStatus.COMPLETED,
                session_id=completion.session_id or session.id,
                duration_secs=_elapsed(),
            )

        logger.warning("Check %s on run %s reported failure: %s", check_id, run.id, completion.error)
        return CheckResult(
            check_id=check_id,
            status=RunStatus.FAILED,
            session_id=completion.session_id or session.id,
            duration_secs=_elapsed(),
            error=completion.error,
        )

    def _await_completion(self, channel: CompletionChannel, run_id: str) -> CheckCompletion:
        completion = channel.wait(self.check_timeout)
        # A cancel racing a real completion still wins
        if self._runs.is_cancelled(run_id):
            raise CancelledByUserError("Cancelled")
        return completion

    # ── Finalization ─────────────────────────────────────────────────────

    def _finalize(self, run: NightshiftRun, worktree: Worktree, cancelled: bool) -> None:
        run.completed_at = self._now()
        if cancelled:
            run.status = RunStatus.CANCELLED
        elif run.has_failures:
            run.status = RunStatus.PARTIALLY_COMPLETED
        else:
            run.status = RunStatus.COMPLETED
        self._persist(run)

        self.events.emit(
            RunCompleted(
                run_id=run.id,
                project_id=run.project_id,
                status=run.status,
                total_checks=len(run.check_results),
                worktree_id=worktree.id,
            )
        )
        logger.info(
            "Nightshift run %s finished: status=%s, checks=%d",
            run.id, run.status.value, len(run.check_results),
        )

    def _fail(self, run: NightshiftRun, error: str) -> None:
        run.status = RunStatus.FAILED
        run.completed_at = self._now()
        run.error = error
        self._persist(run)
        self.events.emit(RunFailed(run_id=run.id, project_id=run.project_id, error=error))

    def _persist(self, run: NightshiftRun) -> None:
        try:
            self.store.save_run(run)
        except PersistenceError as e:
            logger.error("Failed to save nightshift run %s: %s", run.id, e)
