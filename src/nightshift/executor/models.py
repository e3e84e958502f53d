"""Pydantic models for the executor (runner) API."""

from __future__ import annotations

from pydantic import BaseModel


class CheckRunRequest(BaseModel):
    """Run one check prompt in a worktree."""

    sessionId: str
    cwd: str
    prompt: str
    model: str | None = None
    provider: str | None = None
    backend: str = "claude"
    timeoutSec: int = 600


class CmdResult(BaseModel):
    exitCode: int
    stdout: str
    stderr: str
    durationMs: int
