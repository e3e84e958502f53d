"""FastAPI server for Nightshift."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nightshift import __version__
from nightshift.api.routes import nightshift_router
from nightshift.config import settings
from nightshift.engine.orchestrator import NightshiftEngine
from nightshift.engine.scheduler import NightshiftScheduler
from nightshift.executor.client import ExecutorClient
from nightshift.executor.dispatcher import ExecutorDispatcher
from nightshift.notifications.events import EventBus
from nightshift.notifications.webhook import WebhookNotifier
from nightshift.projects.registry import ProjectRegistry
from nightshift.runs.store import RunStore
from nightshift.sessions.binder import SessionBinder
from nightshift.worktrees.provisioner import WorktreeProvisioner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the engine and its collaborators on startup."""
    registry = ProjectRegistry(path=Path(settings.projects_file))
    try:
        registry.load()
        logger.info("Project registry loaded: %d projects", len(registry.projects))
    except Exception:
        logger.warning("Failed to load %s, no projects available", settings.projects_file)
    app.state.registry = registry

    run_store = RunStore(data_dir=settings.data_dir)
    app.state.run_store = run_store

    events = EventBus()
    engine = NightshiftEngine(
        registry=registry,
        store=run_store,
        worktrees=WorktreeProvisioner(registry),
        sessions=SessionBinder(data_dir=settings.data_dir),
        events=events,
    )
    app.state.engine = engine

    notifier = WebhookNotifier()
    if notifier.is_enabled:
        events.subscribe(notifier.handle)
        logger.info("Slack notifications enabled")

    if settings.executor_base_url:
        dispatcher = ExecutorDispatcher(
            client=ExecutorClient(settings.executor_base_url, settings.executor_token),
            report=engine.report_check_done,
        )
        events.subscribe(dispatcher.handle)
        logger.info("Executor dispatcher enabled, base_url=%s", settings.executor_base_url)

    scheduler = NightshiftScheduler(engine, registry)
    app.state.scheduler = scheduler
    try:
        await scheduler.start()
    except Exception:
        logger.exception("Nightshift scheduler failed to start")

    yield

    # Shutdown
    await scheduler.stop()
    engine.shutdown()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Nightshift - Maintenance Run Orchestrator",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(nightshift_router, prefix="/api")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
