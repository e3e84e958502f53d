"""Session binder — one session per check, bound to the maintenance worktree.

Sessions are stored in ``<data_dir>/sessions/<worktree_id>.json``. The
executor picks a session up by id from the execute-check event and runs
the check prompt in it.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from nightshift.config import settings
from nightshift.errors import SessionCreationError
from nightshift.projects.registry import NightshiftConfig, Worktree

logger = logging.getLogger(__name__)

BACKENDS = ("claude", "codex", "opencode")


@dataclass
class Session:
    """A unit of work the executor runs one check prompt in."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    worktree_id: str = ""
    backend: str = "claude"
    model: str | None = None
    provider: str | None = None
    source: str = "nightshift"
    check_id: str = ""
    run_id: str = ""
    created_at: int = field(default_factory=lambda: int(time.time()))


def session_name(check_name: str, ts: float | None = None) -> str:
    """``DD-MM-YYYY @ HH.MM - Check Name`` in local time."""
    stamp = datetime.fromtimestamp(ts if ts is not None else time.time())
    return f"{stamp.strftime('%d-%m-%Y @ %H.%M')} - {check_name}"


class SessionBinder:
    """Creates and lists nightshift sessions per worktree."""

    def __init__(self, data_dir: Path | str | None = None) -> None:
        self._dir = Path(data_dir or settings.data_dir) / "sessions"
        self._lock = threading.Lock()

    def _path(self, worktree_id: str) -> Path:
        return self._dir / f"{worktree_id}.json"

    def list_sessions(self, worktree_id: str) -> list[Session]:
        path = self._path(worktree_id)
        if not path.exists():
            return []
        raw = json.loads(path.read_text(encoding="utf-8"))
        return [Session(**s) for s in raw.get("sessions", [])]

    def create(
        self,
        worktree: Worktree,
        check_id: str,
        check_name: str,
        run_id: str,
        config: NightshiftConfig,
    ) -> Session:
        backend = config.backend if config.backend in BACKENDS else "claude"
        session = Session(
            name=session_name(check_name),
            worktree_id=worktree.id,
            backend=backend,
            model=config.model,
            provider=config.provider,
            check_id=check_id,
            run_id=run_id,
        )

        with self._lock:
            try:
                sessions = self.list_sessions(worktree.id)
                sessions.append(session)
                data: dict[str, Any] = {
                    "active_session_id": session.id,
                    "sessions": [asdict(s) for s in sessions],
                }
                self._dir.mkdir(parents=True, exist_ok=True)
                self._path(worktree.id).write_text(json.dumps(data, indent=2), encoding="utf-8")
            except (OSError, ValueError, TypeError) as e:
                raise SessionCreationError(f"Failed to create session: {e}") from e

        logger.debug("Created nightshift session %s for check %s", session.id, check_id)
        return session
