"""Error taxonomy for the Nightshift engine.

Pre-flight errors (project lookup, single-flight guard) surface to the
caller of ``start_run``. Everything else is captured into the run record
by the engine and never escapes the background run thread.
"""

from __future__ import annotations


class NightshiftError(Exception):
    """Base class for all Nightshift errors."""


class ProjectNotFoundError(NightshiftError):
    """Raised when a project id is not in the registry."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class ProjectNotRunnableError(NightshiftError):
    """Raised for folders and projects without a path."""


class AlreadyRunningError(NightshiftError):
    """Raised when a project already has an active run."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Nightshift is already running for project {project_id}")


class WorktreeProvisionError(NightshiftError):
    """Raised when the maintenance worktree cannot be acquired."""


class SessionCreationError(NightshiftError):
    """Raised when a session cannot be bound for a check."""


class CompletionTimeoutError(NightshiftError):
    """Raised when no completion arrives within the check timeout."""


class CompletionChannelDisconnectedError(NightshiftError):
    """Raised when a completion channel closes under a waiting check."""


class CancelledByUserError(NightshiftError):
    """Raised inside the run loop when the run has been cancelled."""


class PersistenceError(NightshiftError):
    """Raised when run history cannot be read or written."""
