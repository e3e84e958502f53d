"""Shared test fixtures."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
import yaml

from nightshift.engine.orchestrator import NightshiftEngine
from nightshift.errors import WorktreeProvisionError
from nightshift.notifications.events import EventBus, ExecuteCheck, NightshiftEvent
from nightshift.projects.registry import Project, ProjectRegistry, Worktree
from nightshift.runs.store import RunStore
from nightshift.sessions.binder import SessionBinder

DEFAULT_CHECKS = [
    "lint-fix",
    "dead-code",
    "doc-drift",
    "security-audit",
    "test-gaps",
    "dependency-audit",
    "type-safety",
    "error-handling",
]


class FakeProvisioner:
    """Stands in for WorktreeProvisioner without touching git."""

    def __init__(self, tmp_path: Path) -> None:
        self.fail = False
        self.calls = 0
        self.worktree = Worktree(
            id="wt-1",
            project_id="app",
            name="nightshift",
            path=str(tmp_path / "worktrees" / "app" / "nightshift"),
            branch="nightshift",
        )

    def get_or_create(self, project: Project) -> Worktree:
        self.calls += 1
        if self.fail:
            raise WorktreeProvisionError("git worktree add failed (exit 128): not a git repository")
        return self.worktree


class EventRecorder:
    """Collects every event emitted on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[NightshiftEvent] = []
        self._lock = threading.Lock()
        bus.subscribe(self._record)

    def _record(self, event: NightshiftEvent) -> None:
        with self._lock:
            self.events.append(event)

    @property
    def names(self) -> list[str]:
        with self._lock:
            return [e.name for e in self.events]

    def of_type(self, cls: type) -> list[NightshiftEvent]:
        with self._lock:
            return [e for e in self.events if isinstance(e, cls)]


class AutoExecutor:
    """Reports check outcomes synchronously from the execute-check event.

    ``outcomes`` maps check id to (success, error). Checks listed in
    ``hang`` are never reported; ``cancel_on`` cancels the run instead.
    """

    def __init__(self, engine: NightshiftEngine) -> None:
        self.engine = engine
        self.outcomes: dict[str, tuple[bool, str | None]] = {}
        self.hang: set[str] = set()
        self.cancel_on: str | None = None
        self.dispatched = threading.Event()
        engine.events.subscribe(self.handle)

    def handle(self, event: NightshiftEvent) -> None:
        if not isinstance(event, ExecuteCheck):
            return
        self.dispatched.set()
        if event.check_id == self.cancel_on:
            self.engine.cancel_run(event.run_id)
            return
        if event.check_id in self.hang or "*" in self.hang:
            return
        success, error = self.outcomes.get(event.check_id, (True, None))
        self.engine.report_check_done(event.run_id, event.session_id, success, error)


@pytest.fixture
def projects_yaml(tmp_path: Path) -> Path:
    """A projects.yaml with one runnable project, a folder and a pathless project."""
    data = {
        "projects": [
            {
                "id": "app",
                "name": "App",
                "repo_path": str(tmp_path / "repo"),
                "default_branch": "main",
                "nightshift": {"enabled": True, "schedule_time": "02:00"},
            },
            {"id": "group", "name": "Group", "is_folder": True},
            {"id": "nopath", "name": "No Path"},
        ]
    }
    path = tmp_path / "projects.yaml"
    path.write_text(yaml.dump(data))
    return path


@pytest.fixture
def registry(projects_yaml: Path) -> ProjectRegistry:
    reg = ProjectRegistry(path=projects_yaml)
    reg.load()
    return reg


@pytest.fixture
def store(tmp_path: Path) -> RunStore:
    return RunStore(data_dir=tmp_path / "data")


@pytest.fixture
def provisioner(tmp_path: Path) -> FakeProvisioner:
    return FakeProvisioner(tmp_path)


@pytest.fixture
def engine(registry, store, provisioner, tmp_path: Path) -> NightshiftEngine:
    eng = NightshiftEngine(
        registry=registry,
        store=store,
        worktrees=provisioner,
        sessions=SessionBinder(data_dir=tmp_path / "data"),
        events=EventBus(),
        check_timeout=5.0,
    )
    yield eng
    eng.shutdown(timeout=2.0)


@pytest.fixture
def recorder(engine: NightshiftEngine) -> EventRecorder:
    return EventRecorder(engine.events)


@pytest.fixture
def executor(engine: NightshiftEngine, recorder: EventRecorder) -> AutoExecutor:
    # recorder subscribes first
    return AutoExecutor(engine)
