"""Worktree provisioner — one dedicated maintenance worktree per project.

The worktree is looked up by its well-known name and reused across runs.
When it does not exist yet it is created with ``git worktree add`` on a new
``nightshift`` branch; if that branch already exists (left over from an
earlier worktree) the existing branch is checked out instead.
"""

from __future__ import annotations

import logging
import re
import subprocess
import uuid
from pathlib import Path

from nightshift.config import settings
from nightshift.errors import WorktreeProvisionError
from nightshift.projects.registry import Project, ProjectRegistry, Worktree

logger = logging.getLogger(__name__)

WORKTREE_NAME = "nightshift"
BRANCH_NAME = "nightshift"


def _run_git(args: list[str], cwd: str, timeout_sec: int) -> subprocess.CompletedProcess[str]:
    """Run git without a shell. Raises WorktreeProvisionError on any failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout_sec,
            encoding="utf-8",
            errors="replace",
        )
    except subprocess.TimeoutExpired:
        raise WorktreeProvisionError(f"git {args[0]} timed out after {timeout_sec}s")
    except (FileNotFoundError, NotADirectoryError) as e:
        raise WorktreeProvisionError(f"git not runnable in {cwd}: {e}") from e
    if result.returncode != 0:
        raise WorktreeProvisionError(
            f"git {' '.join(args)} failed (exit {result.returncode}): {result.stderr.strip()}"
        )
    return result


def _slug(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]+", "-", name).strip("-") or "project"


class WorktreeProvisioner:
    """Idempotent get-or-create for a project's maintenance worktree."""

    def __init__(
        self,
        registry: ProjectRegistry,
        worktrees_root: Path | str | None = None,
        git_timeout: int | None = None,
    ) -> None:
        self.registry = registry
        self._root = Path(worktrees_root or settings.worktrees_dir)
        self._git_timeout = git_timeout or settings.git_timeout_seconds

    def worktree_path(self, project: Project) -> Path:
        base = Path(project.worktrees_dir) if project.worktrees_dir else self._root
        return base / _slug(project.name) / WORKTREE_NAME

    def get_or_create(self, project: Project) -> Worktree:
        existing = self.registry.find_worktree(project.id, WORKTREE_NAME)
        if existing:
            logger.debug("Reusing nightshift worktree %s", existing.id)
            return existing

        if not project.repo_path:
            raise WorktreeProvisionError(f"Project {project.id} has no path")

        path = self.worktree_path(project)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorktreeProvisionError(f"Cannot create {path.parent}: {e}") from e

        try:
            _run_git(
                ["worktree", "add", "-b", BRANCH_NAME, str(path), project.default_branch],
                cwd=project.repo_path,
                timeout_sec=self._git_timeout,
            )
        except WorktreeProvisionError as e:
            # Branch is probably left over from a previous worktree
            logger.info("New branch failed (%s), trying existing branch", e)
            _run_git(
                ["worktree", "add", str(path), BRANCH_NAME],
                cwd=project.repo_path,
                timeout_sec=self._git_timeout,
            )

        worktree = Worktree(
            id=str(uuid.uuid4()),
            project_id=project.id,
            name=WORKTREE_NAME,
            path=str(path),
            branch=BRANCH_NAME,
        )
        try:
            self.registry.add_worktree(worktree)
        except (OSError, RuntimeError) as e:
            raise WorktreeProvisionError(f"Failed to register worktree: {e}") from e

        logger.info("Created nightshift worktree %s at %s", worktree.id, worktree.path)
        return worktree
