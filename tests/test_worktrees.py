"""Tests for worktree provisioning and session binding."""

from __future__ import annotations

import json
import subprocess
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from nightshift.errors import WorktreeProvisionError
from nightshift.projects.registry import NightshiftConfig, ProjectRegistry, Worktree
from nightshift.sessions.binder import SessionBinder, session_name
from nightshift.worktrees.provisioner import BRANCH_NAME, WorktreeProvisioner


def _completed(returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = ""
    result.stderr = stderr
    return result


@pytest.fixture
def provisioner(registry: ProjectRegistry, tmp_path: Path) -> WorktreeProvisioner:
    return WorktreeProvisioner(registry, worktrees_root=tmp_path / "worktrees", git_timeout=5)


class TestWorktreeProvisioner:
    def test_creates_worktree_on_new_branch(self, provisioner, registry, tmp_path):
        with patch("nightshift.worktrees.provisioner.subprocess.run", return_value=_completed()) as run:
            wt = provisioner.get_or_create(registry.get("app"))

        args = run.call_args.args[0]
        assert args[:5] == ["git", "worktree", "add", "-b", BRANCH_NAME]
        assert args[-1] == "main"
        assert run.call_args.kwargs["cwd"] == str(tmp_path / "repo")
        assert wt.branch == "nightshift"
        assert wt.path == str(tmp_path / "worktrees" / "App" / "nightshift")
        assert registry.find_worktree("app", "nightshift") == wt

    def test_reuses_existing_worktree(self, provisioner, registry):
        with patch("nightshift.worktrees.provisioner.subprocess.run", return_value=_completed()) as run:
            first = provisioner.get_or_create(registry.get("app"))
            second = provisioner.get_or_create(registry.get("app"))
        assert first.id == second.id
        assert run.call_count == 1

    def test_falls_back_to_existing_branch(self, provisioner, registry):
        results = [_completed(128, "fatal: a branch named 'nightshift' already exists"), _completed()]
        with patch("nightshift.worktrees.provisioner.subprocess.run", side_effect=results) as run:
            wt = provisioner.get_or_create(registry.get("app"))

        assert run.call_count == 2
        assert run.call_args.args[0] == ["git", "worktree", "add", wt.path, BRANCH_NAME]

    def test_both_attempts_fail(self, provisioner, registry):
        with patch(
            "nightshift.worktrees.provisioner.subprocess.run",
            return_value=_completed(128, "fatal: not a git repository"),
        ):
            with pytest.raises(WorktreeProvisionError, match="not a git repository"):
                provisioner.get_or_create(registry.get("app"))
        assert registry.find_worktree("app", "nightshift") is None

    def test_git_timeout(self, provisioner, registry):
        with patch(
            "nightshift.worktrees.provisioner.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="git", timeout=5),
        ):
            with pytest.raises(WorktreeProvisionError, match="timed out"):
                provisioner.get_or_create(registry.get("app"))

    def test_project_worktrees_dir_override(self, provisioner, registry, tmp_path):
        project = registry.get("app")
        project.worktrees_dir = str(tmp_path / "custom")
        assert provisioner.worktree_path(project) == tmp_path / "custom" / "App" / "nightshift"


class TestSessionBinder:
    def _worktree(self) -> Worktree:
        return Worktree(id="wt-1", project_id="app", name="nightshift", path="/tmp/wt", branch="nightshift")

    def test_session_name_format(self):
        ts = datetime(2026, 3, 5, 2, 7).timestamp()
        assert session_name("Lint Fix", ts) == "05-03-2026 @ 02.07 - Lint Fix"

    def test_create_persists_and_activates(self, tmp_path: Path):
        binder = SessionBinder(data_dir=tmp_path)
        config = NightshiftConfig(model="opus", provider="anthropic", backend="codex")
        session = binder.create(self._worktree(), "lint-fix", "Lint Fix", "run-1", config)

        assert session.backend == "codex"
        assert session.model == "opus"
        assert session.source == "nightshift"
        assert session.name.endswith(" - Lint Fix")

        raw = json.loads((tmp_path / "sessions" / "wt-1.json").read_text())
        assert raw["active_session_id"] == session.id
        assert [s.id for s in binder.list_sessions("wt-1")] == [session.id]

    def test_unknown_backend_defaults_to_claude(self, tmp_path: Path):
        binder = SessionBinder(data_dir=tmp_path)
        session = binder.create(self._worktree(), "lint-fix", "Lint Fix", "run-1", NightshiftConfig(backend="vim"))
        assert session.backend == "claude"

    def test_sessions_accumulate(self, tmp_path: Path):
        binder = SessionBinder(data_dir=tmp_path)
        a = binder.create(self._worktree(), "lint-fix", "Lint Fix", "run-1", NightshiftConfig())
        b = binder.create(self._worktree(), "dead-code", "Dead Code", "run-1", NightshiftConfig())
        assert [s.id for s in binder.list_sessions("wt-1")] == [a.id, b.id]
        raw = json.loads((tmp_path / "sessions" / "wt-1.json").read_text())
        assert raw["active_session_id"] == b.id
