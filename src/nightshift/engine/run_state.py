"""Registry of active nightshift runs.

Each active run has a threading.Event that is set to signal the run loop
to stop before its next check. A project with an active run is "busy";
at most one run per project may be active.
"""

from __future__ import annotations

import threading

from nightshift.errors import AlreadyRunningError


class RunRegistry:
    """Busy-project set and per-run cancellation flags.

    The lock is only held for single map mutations, never across a wait.
    """

    def __init__(self) -> None:
        # run_id -> (project_id, stop_event)
        self._active_runs: dict[str, tuple[str, threading.Event]] = {}
        self._busy_projects: set[str] = set()
        self._lock = threading.Lock()

    def start_run(self, run_id: str, project_id: str) -> threading.Event:
        """Mark the project busy and register the run.

        Raises AlreadyRunningError if the project already has an active run.
        """
        stop_event = threading.Event()
        with self._lock:
            if project_id in self._busy_projects:
                raise AlreadyRunningError(project_id)
            self._busy_projects.add(project_id)
            self._active_runs[run_id] = (project_id, stop_event)
        return stop_event

    def stop_run(self, run_id: str) -> bool:
        """Signal the run to stop. Returns True if the run was found."""
        with self._lock:
            entry = self._active_runs.get(run_id)
        if entry:
            entry[1].set()
            return True
        return False

    def end_run(self, run_id: str) -> None:
        """Remove a finished run and release its project."""
        with self._lock:
            entry = self._active_runs.pop(run_id, None)
            if entry:
                self._busy_projects.discard(entry[0])

    def is_cancelled(self, run_id: str) -> bool:
        with self._lock:
            entry = self._active_runs.get(run_id)
        return bool(entry and entry[1].is_set())

    def is_project_running(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._busy_projects

    def active_runs(self) -> dict[str, str]:
        """Snapshot of run_id -> project_id for active runs."""
        with self._lock:
            return {run_id: entry[0] for run_id, entry in self._active_runs.items()}
