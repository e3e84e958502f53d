"""Nightshift API routes.

Endpoints (prefix /api/nightshift):
  GET  /checks                                 - catalog metadata
  GET  /checks/{check_id}/prompt               - default prompt text
  GET  /projects/{project_id}/config           - nightshift config
  PUT  /projects/{project_id}/config           - save nightshift config
  POST /projects/{project_id}/runs             - start a manual run
  GET  /projects/{project_id}/runs             - run history, newest first
  GET  /runs/{run_id}                          - single run
  POST /runs/{run_id}/cancel                   - cancel an active run
  POST /runs/{run_id}/checks/{check_id}/done   - executor completion report
  GET  /status                                 - active runs + scheduler
  GET  /events                                 - SSE stream of engine events
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from nightshift.checks.catalog import all_check_metadata, get_default_prompt
from nightshift.engine.orchestrator import NightshiftEngine
from nightshift.errors import AlreadyRunningError, ProjectNotFoundError, ProjectNotRunnableError
from nightshift.notifications.events import NightshiftEvent
from nightshift.projects.registry import NightshiftConfig, ProjectRegistry
from nightshift.runs.models import RunTrigger
from nightshift.runs.store import RunStore

logger = logging.getLogger(__name__)

nightshift_router = APIRouter(prefix="/nightshift", tags=["nightshift"])


# ── Request models ───────────────────────────────────────────────────────────


class CheckConfigBody(BaseModel):
    custom_prompt: str | None = None
    cooldown_hours_override: int | None = Field(default=None, ge=0)


class NightshiftConfigBody(BaseModel):
    enabled: bool = False
    disabled_checks: list[str] = []
    extra_enabled_checks: list[str] = []
    schedule_time: str | None = None
    target_branch: str | None = None
    model: str | None = None
    provider: str | None = None
    backend: str | None = None
    post_action: str = "nothing"
    check_configs: dict[str, CheckConfigBody] = {}


class CheckDoneBody(BaseModel):
    session_id: str = ""
    success: bool
    error: str | None = None


# ── Helpers ──────────────────────────────────────────────────────────────────


def _engine(request: Request) -> NightshiftEngine:
    return request.app.state.engine  # type: ignore[no-any-return]


def _registry(request: Request) -> ProjectRegistry:
    return request.app.state.registry  # type: ignore[no-any-return]


def _store(request: Request) -> RunStore:
    return request.app.state.run_store  # type: ignore[no-any-return]


# ── Checks ───────────────────────────────────────────────────────────────────


@nightshift_router.get("/checks")
def list_checks() -> dict[str, Any]:
    """List all built-in checks."""
    return {"checks": all_check_metadata()}


@nightshift_router.get("/checks/{check_id}/prompt")
def default_prompt(check_id: str) -> dict[str, Any]:
    """Built-in prompt for a check (for reset-to-default)."""
    prompt = get_default_prompt(check_id)
    if prompt is None:
        raise HTTPException(status_code=404, detail=f"Unknown check: {check_id}")
    return {"check_id": check_id, "prompt": prompt}


# ── Config ───────────────────────────────────────────────────────────────────


@nightshift_router.get("/projects/{project_id}/config")
def get_config(project_id: str, request: Request) -> dict[str, Any]:
    config = _registry(request).get_config(project_id)
    if config is None:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    return {"project_id": project_id, "config": config.to_dict()}


@nightshift_router.put("/projects/{project_id}/config")
def save_config(project_id: str, body: NightshiftConfigBody, request: Request) -> dict[str, Any]:
    try:
        config = NightshiftConfig.from_dict(body.model_dump())
        _registry(request).save_config(project_id, config)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"project_id": project_id, "config": config.to_dict(), "status": "saved"}


# ── Runs ─────────────────────────────────────────────────────────────────────


@nightshift_router.post("/projects/{project_id}/runs")
def start_run(project_id: str, request: Request) -> dict[str, Any]:
    """Start a manual run. Returns immediately; progress arrives as events."""
    try:
        run_id = _engine(request).start_run(project_id, RunTrigger.MANUAL)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProjectNotRunnableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"run_id": run_id, "status": "started"}


@nightshift_router.get("/projects/{project_id}/runs")
def list_runs(project_id: str, request: Request, limit: int | None = None) -> dict[str, Any]:
    runs = _store(request).list_runs(project_id, limit=limit)
    return {"project_id": project_id, "runs": [r.to_dict() for r in runs], "count": len(runs)}


@nightshift_router.get("/runs/{run_id}")
def get_run(run_id: str, request: Request) -> dict[str, Any]:
    run = _store(request).find_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return {"run": run.to_dict()}


@nightshift_router.post("/runs/{run_id}/cancel")
def cancel_run(run_id: str, request: Request) -> dict[str, Any]:
    return {"run_id": run_id, "cancelled": _engine(request).cancel_run(run_id)}


@nightshift_router.post("/runs/{run_id}/checks/{check_id}/done")
def report_check_done(
    run_id: str, check_id: str, body: CheckDoneBody, request: Request,
) -> dict[str, str]:
    """Executor completion report. Late or unknown reports are accepted and ignored."""
    _engine(request).report_check_done(run_id, body.session_id, body.success, body.error)
    return {"status": "ok"}


@nightshift_router.get("/status")
def status(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "active_runs": engine.active_runs(),
        "scheduler": {
            "running": bool(scheduler and scheduler.is_running),
            "last_tick": scheduler.last_tick if scheduler else None,
        },
    }


# ── SSE stream ───────────────────────────────────────────────────────────────


def _offer(queue: asyncio.Queue[dict[str, Any]], message: dict[str, Any]) -> None:
    try:
        queue.put_nowait(message)
    except asyncio.QueueFull:
        pass  # slow consumer, drop the event


@nightshift_router.get("/events")
async def event_stream(request: Request) -> StreamingResponse:
    """Server-Sent Events stream of engine events (execute-check included)."""
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=200)
    loop = asyncio.get_running_loop()

    def _on_event(event: NightshiftEvent) -> None:
        # Called from run threads
        loop.call_soon_threadsafe(_offer, queue, event.to_message())

    unsubscribe = _engine(request).events.subscribe(_on_event)

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=30)
                    yield f"event: {message['event']}\ndata: {json.dumps(message['data'])}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
