"""Project registry — loads projects.yaml and provides typed models.

Single source of truth for project metadata, per-project Nightshift
configuration and the maintenance worktrees registered for each project.
The engine, scheduler and API all consume this.
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from nightshift.config import settings

logger = logging.getLogger(__name__)

REGISTRY_PATH = Path(settings.projects_file)

_SCHEDULE_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ── Data models ──────────────────────────────────────────────────────────────


class PostAction(str, Enum):
    NOTHING = "nothing"  # leave changes uncommitted in the worktree
    COMMIT = "commit"
    COMMIT_AND_PR = "commit_and_pr"


@dataclass
class CheckConfig:
    """Per-check overrides. None means use the catalog default."""

    custom_prompt: str | None = None
    cooldown_hours_override: int | None = None


@dataclass
class NightshiftConfig:
    """Per-project Nightshift configuration."""

    enabled: bool = False
    disabled_checks: list[str] = field(default_factory=list)
    extra_enabled_checks: list[str] = field(default_factory=list)
    schedule_time: str | None = None  # "HH:MM", None = manual only
    target_branch: str | None = None
    model: str | None = None
    provider: str | None = None
    backend: str | None = None  # claude | codex | opencode
    post_action: PostAction = PostAction.NOTHING
    check_configs: dict[str, CheckConfig] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "disabled_checks": list(self.disabled_checks),
            "extra_enabled_checks": list(self.extra_enabled_checks),
            "schedule_time": self.schedule_time,
            "target_branch": self.target_branch,
            "model": self.model,
            "provider": self.provider,
            "backend": self.backend,
            "post_action": self.post_action.value,
            "check_configs": {
                check_id: {
                    "custom_prompt": c.custom_prompt,
                    "cooldown_hours_override": c.cooldown_hours_override,
                }
                for check_id, c in self.check_configs.items()
            },
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "NightshiftConfig":
        raw = raw or {}
        check_configs = {}
        for check_id, c in (raw.get("check_configs") or {}).items():
            c = c or {}
            check_configs[check_id] = CheckConfig(
                custom_prompt=c.get("custom_prompt"),
                cooldown_hours_override=c.get("cooldown_hours_override"),
            )
        return cls(
            enabled=bool(raw.get("enabled", False)),
            disabled_checks=list(raw.get("disabled_checks") or []),
            extra_enabled_checks=list(raw.get("extra_enabled_checks") or []),
            schedule_time=raw.get("schedule_time") or None,
            target_branch=raw.get("target_branch"),
            model=raw.get("model"),
            provider=raw.get("provider"),
            backend=raw.get("backend"),
            post_action=PostAction(raw.get("post_action") or PostAction.NOTHING.value),
            check_configs=check_configs,
        )


@dataclass
class Project:
    """A registered project."""

    id: str
    name: str
    repo_path: str = ""  # local checkout, empty = not runnable
    is_folder: bool = False  # grouping container, not a repository
    default_branch: str = "main"
    worktrees_dir: str = ""
    nightshift: NightshiftConfig | None = None


@dataclass
class Worktree:
    """An isolated working copy of a project on its own branch."""

    id: str
    project_id: str
    name: str
    path: str
    branch: str
    created_at: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "path": self.path,
            "branch": self.branch,
            "created_at": self.created_at,
        }


def validate_schedule_time(value: str | None) -> None:
    """Raise ValueError unless value is None, empty or a valid HH:MM."""
    if value and not _SCHEDULE_RE.match(value):
        raise ValueError(f"Invalid schedule time '{value}', expected HH:MM")


# ── Registry ─────────────────────────────────────────────────────────────────


class ProjectRegistry:
    """Loads and caches projects and worktrees from projects.yaml."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or REGISTRY_PATH
        self._projects: list[Project] = []
        self._worktrees: list[Worktree] = []
        self._loaded = False
        self._lock = threading.Lock()

    def load(self, force: bool = False) -> list[Project]:
        """Parse projects.yaml and return Project list.

        An unreadable or unparsable file keeps the previously loaded
        projects and worktrees.
        """
        if self._loaded and not force:
            return self._projects

        with self._lock:
            if not self._path.exists():
                logger.warning("Registry file not found: %s", self._path)
                raw: dict[str, Any] = {}
            else:
                try:
                    raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
                    if not isinstance(raw, dict):
                        raise ValueError(f"expected a mapping, got {type(raw).__name__}")
                except (OSError, ValueError, yaml.YAMLError) as e:
                    logger.error(
                        "Failed to parse %s: %s (keeping %d cached projects)",
                        self._path, e, len(self._projects),
                    )
                    self._loaded = True
                    return self._projects

            projects: list[Project] = []
            for entry in raw.get("projects", []) or []:
                try:
                    projects.append(_parse_project(entry))
                except Exception as e:
                    logger.warning("Skipping malformed project entry: %s", e)

            worktrees: list[Worktree] = []
            for entry in raw.get("worktrees", []) or []:
                try:
                    worktrees.append(_parse_worktree(entry))
                except Exception as e:
                    logger.warning("Skipping malformed worktree entry: %s", e)

            self._projects = projects
            self._worktrees = worktrees
            self._loaded = True
        logger.info("Loaded %d projects from registry", len(projects))
        return projects

    @property
    def projects(self) -> list[Project]:
        return self.load()

    def get(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def reload(self) -> list[Project]:
        """Force reload from disk."""
        return self.load(force=True)

    # ── Nightshift config ────────────────────────────────────────────────

    def get_config(self, project_id: str) -> NightshiftConfig | None:
        """Return the project's config (defaults if unset), None if unknown."""
        project = self.get(project_id)
        if not project:
            return None
        return project.nightshift or NightshiftConfig()

    def save_config(self, project_id: str, config: NightshiftConfig) -> None:
        """Persist a project's Nightshift config to projects.yaml.

        Raises ``KeyError`` for unknown projects and ``ValueError`` for an
        invalid schedule time.
        """
        validate_schedule_time(config.schedule_time)
        project = self.get(project_id)
        if not project:
            raise KeyError(project_id)

        with self._lock:
            raw = self._read_raw()
            for entry in raw.get("projects") or []:
                if entry.get("id") == project_id:
                    entry["nightshift"] = config.to_dict()
                    break
            self._write_raw(raw)
            project.nightshift = config
        logger.info("Saved nightshift config for project '%s'", project_id)

    # ── Worktrees ────────────────────────────────────────────────────────

    def find_worktree(self, project_id: str, name: str) -> Worktree | None:
        self.load()
        return next(
            (w for w in self._worktrees if w.project_id == project_id and w.name == name),
            None,
        )

    def add_worktree(self, worktree: Worktree) -> None:
        """Register a worktree and persist it to projects.yaml."""
        self.load()
        with self._lock:
            raw = self._read_raw()
            entries: list[dict[str, Any]] = raw.get("worktrees") or []
            entries.append(worktree.to_dict())
            raw["worktrees"] = entries
            self._write_raw(raw)
            self._worktrees.append(worktree)
        logger.info("Registered worktree '%s' for project '%s'", worktree.id, worktree.project_id)

    # ── File helpers ─────────────────────────────────────────────────────

    def _read_raw(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            return yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except Exception as e:
            raise RuntimeError(f"Could not read registry file: {e}") from e

    def _write_raw(self, raw: dict[str, Any]) -> None:
        """Replace projects.yaml atomically so readers never see a partial file."""
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(
            yaml.dump(raw, allow_unicode=True, sort_keys=False, default_flow_style=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, self._path)


# ── Parsers ──────────────────────────────────────────────────────────────────


def _parse_project(raw: dict[str, Any]) -> Project:
    raw_ns = raw.get("nightshift")
    return Project(
        id=raw["id"],
        name=raw.get("name", raw["id"]),
        repo_path=raw.get("repo_path", "") or "",
        is_folder=bool(raw.get("is_folder", False)),
        default_branch=raw.get("default_branch", "main"),
        worktrees_dir=raw.get("worktrees_dir", "") or "",
        nightshift=NightshiftConfig.from_dict(raw_ns) if raw_ns is not None else None,
    )


def _parse_worktree(raw: dict[str, Any]) -> Worktree:
    return Worktree(
        id=raw["id"],
        project_id=raw["project_id"],
        name=raw.get("name", ""),
        path=raw.get("path", ""),
        branch=raw.get("branch", ""),
        created_at=int(raw.get("created_at", 0)),
    )

