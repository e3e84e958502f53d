"""Nightshift scheduler — fires scheduled runs at each project's HH:MM.

A single asyncio loop polls once per ``poll_interval`` seconds. Matching
is exact at minute granularity, so a tick that is missed (process asleep,
clock jump) skips that day's occurrence.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from nightshift.config import settings
from nightshift.engine.orchestrator import NightshiftEngine
from nightshift.errors import NightshiftError
from nightshift.projects.registry import ProjectRegistry
from nightshift.runs.models import RunTrigger

logger = logging.getLogger(__name__)


class NightshiftScheduler:
    """Background poller that triggers scheduled runs."""

    def __init__(
        self,
        engine: NightshiftEngine,
        registry: ProjectRegistry,
        poll_interval: float | None = None,
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.poll_interval = poll_interval or float(settings.scheduler_poll_interval)
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self.last_tick: str | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="nightshift-scheduler")
        logger.info("Nightshift scheduler started (interval=%ss)", self.poll_interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Nightshift scheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.poll_interval)
                if not self._running:
                    break
                await asyncio.get_running_loop().run_in_executor(None, self.run_due)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Nightshift scheduler tick failed")

    def run_due(self, now: datetime | None = None) -> list[str]:
        """Start every run scheduled for the current local minute.

        Returns the ids of the runs started.
        """
        now_hhmm = (now or datetime.now()).strftime("%H:%M")
        self.last_tick = now_hhmm
        started: list[str] = []

        try:
            projects = self.registry.reload()
        except Exception:
            logger.exception("Nightshift scheduler: failed to load projects")
            return started

        for project in projects:
            try:
                if project.is_folder or not project.repo_path:
                    continue
                config = project.nightshift
                if not config or not config.enabled:
                    continue
                if not config.schedule_time or config.schedule_time != now_hhmm:
                    continue
                if self.engine.is_project_running(project.id):
                    continue

                logger.info(
                    "Nightshift scheduler: triggering run for project %s at %s",
                    project.name, now_hhmm,
                )
                run_id = self.engine.start_run(project.id, RunTrigger.SCHEDULED)
                started.append(run_id)
            except NightshiftError as e:
                logger.error("Nightshift scheduler: failed to start run for %s: %s", project.name, e)
            except Exception:
                logger.exception("Nightshift scheduler: error for project %s", project.id)

        return started
