"""Run history models — one NightshiftRun per execution attempt."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (RunStatus.PENDING, RunStatus.RUNNING)


class RunTrigger(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


@dataclass
class CheckResult:
    """Outcome of one check within a run."""

    check_id: str
    status: RunStatus
    session_id: str | None = None
    duration_secs: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_id": self.check_id,
            "status": self.status.value,
            "session_id": self.session_id,
            "duration_secs": self.duration_secs,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CheckResult":
        return cls(
            check_id=raw["check_id"],
            status=RunStatus(raw["status"]),
            session_id=raw.get("session_id"),
            duration_secs=int(raw.get("duration_secs", 0)),
            error=raw.get("error"),
        )


@dataclass
class NightshiftRun:
    """A complete run record. Timestamps are unix seconds."""

    id: str
    project_id: str
    trigger: RunTrigger = RunTrigger.MANUAL
    status: RunStatus = RunStatus.PENDING
    started_at: int = field(default_factory=lambda: int(time.time()))
    completed_at: int | None = None
    check_results: list[CheckResult] = field(default_factory=list)
    worktree_id: str | None = None
    worktree_path: str | None = None
    branch_name: str | None = None
    pr_url: str | None = None
    pr_number: int | None = None
    error: str | None = None

    @property
    def has_failures(self) -> bool:
        return any(r.status == RunStatus.FAILED for r in self.check_results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "trigger": self.trigger.value,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "check_results": [r.to_dict() for r in self.check_results],
            "worktree_id": self.worktree_id,
            "worktree_path": self.worktree_path,
            "branch_name": self.branch_name,
            "pr_url": self.pr_url,
            "pr_number": self.pr_number,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "NightshiftRun":
        return cls(
            id=raw["id"],
            project_id=raw["project_id"],
            trigger=RunTrigger(raw.get("trigger", RunTrigger.MANUAL.value)),
            status=RunStatus(raw.get("status", RunStatus.PENDING.value)),
            started_at=int(raw.get("started_at", 0)),
            completed_at=raw.get("completed_at"),
            check_results=[CheckResult.from_dict(r) for r in raw.get("check_results") or []],
            worktree_id=raw.get("worktree_id"),
            worktree_path=raw.get("worktree_path"),
            branch_name=raw.get("branch_name"),
            pr_url=raw.get("pr_url"),
            pr_number=raw.get("pr_number"),
            error=raw.get("error"),
        )
