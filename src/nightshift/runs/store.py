"""Run history storage — one JSON file per project.

Layout: ``<data_dir>/nightshift/runs/<project_id>.json`` holding an array
of run records, capped at ``max_runs`` (oldest by ``started_at`` evicted).
Every write goes to a temp file that is then renamed over the original,
so a crash never leaves a truncated history file.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from nightshift.config import settings
from nightshift.errors import PersistenceError
from nightshift.runs.models import NightshiftRun, RunStatus

logger = logging.getLogger(__name__)

DATA_DIR = Path(settings.data_dir)
MAX_RUNS_PER_PROJECT = settings.max_runs_per_project


class RunStore:
    """File-backed, bounded run history."""

    def __init__(
        self,
        data_dir: Path | str | None = None,
        max_runs: int = MAX_RUNS_PER_PROJECT,
    ) -> None:
        self._runs_dir = Path(data_dir or DATA_DIR) / "nightshift" / "runs"
        self._max_runs = max_runs
        # Guards every read-modify-write-rename cycle
        self._lock = threading.Lock()

    @property
    def runs_dir(self) -> Path:
        return self._runs_dir

    def _path(self, project_id: str) -> Path:
        return self._runs_dir / f"{project_id}.json"

    def _read(self, path: Path) -> list[NightshiftRun]:
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return [NightshiftRun.from_dict(r) for r in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Failed to read nightshift runs from {path}: {e}") from e

    def _write(self, path: Path, runs: list[NightshiftRun]) -> None:
        tmp_path = path.with_suffix(".tmp")
        try:
            self._runs_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps([r.to_dict() for r in runs], indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Failed to write nightshift runs to {path}: {e}") from e

    # ── Public API ───────────────────────────────────────────────────────

    def load_runs(self, project_id: str) -> list[NightshiftRun]:
        """All stored runs for a project, in file order."""
        with self._lock:
            return self._read(self._path(project_id))

    def save_run(self, run: NightshiftRun) -> None:
        """Append a run, or replace the stored run with the same id."""
        with self._lock:
            path = self._path(run.project_id)
            runs = self._read(path)

            for i, existing in enumerate(runs):
                if existing.id == run.id:
                    runs[i] = run
                    break
            else:
                runs.append(run)

            if len(runs) > self._max_runs:
                runs.sort(key=lambda r: r.started_at, reverse=True)
                evicted = runs[self._max_runs:]
                runs = runs[: self._max_runs]
                logger.debug(
                    "Evicted %d old runs for project %s", len(evicted), run.project_id,
                )

            self._write(path, runs)

    def list_runs(self, project_id: str, limit: int | None = None) -> list[NightshiftRun]:
        """Runs for a project, newest first, optionally capped."""
        runs = sorted(self.load_runs(project_id), key=lambda r: r.started_at, reverse=True)
        if limit is not None:
            runs = runs[: max(limit, 0)]
        return runs

    def find_run(self, run_id: str) -> NightshiftRun | None:
        """Find a run by id across every project file."""
        with self._lock:
            if not self._runs_dir.exists():
                return None
            for path in sorted(self._runs_dir.glob("*.json")):
                try:
                    runs = self._read(path)
                except PersistenceError as e:
                    logger.warning("Skipping unreadable run file: %s", e)
                    continue
                for run in runs:
                    if run.id == run_id:
                        return run
        return None

    def last_check_completion_time(self, project_id: str, check_id: str) -> int | None:
        """Start time of the latest run holding a Completed result for the check."""
        times = [
            run.started_at
            for run in self.load_runs(project_id)
            if any(
                r.check_id == check_id and r.status == RunStatus.COMPLETED
                for r in run.check_results
            )
        ]
        return max(times) if times else None
