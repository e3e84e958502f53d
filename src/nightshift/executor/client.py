"""httpx-based client for the remote executor (runner) API.

All methods return typed responses or raise ExecutorOfflineError / ExecutorError.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from nightshift.executor.models import CheckRunRequest, CmdResult

logger = logging.getLogger(__name__)


class ExecutorOfflineError(Exception):
    """Raised when the executor is unreachable."""


class ExecutorError(Exception):
    """Raised when the executor returns an error."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Executor error {status_code}: {detail}")


class ExecutorClient:
    """Synchronous httpx client for the executor."""

    def __init__(self, base_url: str, token: str = "", timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout

    @property
    def _headers(self) -> dict[str, str]:
        h: dict[str, str] = {}
        if self._token:
            h["X-Nightshift-Token"] = self._token
        return h

    def _request(
        self,
        method: str,
        path: str,
        json_data: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        try:
            with httpx.Client(timeout=timeout or self._timeout) as client:
                resp = client.request(
                    method,
                    f"{self._base_url}{path}",
                    headers=self._headers,
                    json=json_data,
                )
        except httpx.ConnectError:
            raise ExecutorOfflineError("Executor is offline or unreachable")
        except httpx.TimeoutException:
            raise ExecutorOfflineError("Executor request timed out")

        if resp.status_code >= 400:
            detail = resp.text
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                pass
            raise ExecutorError(resp.status_code, str(detail))
        return resp

    # ── High-level methods ───────────────────────────────────────────────

    def run_check(self, req: CheckRunRequest) -> CmdResult:
        """POST /checks/run"""
        resp = self._request(
            "POST", "/checks/run", req.model_dump(), timeout=float(req.timeoutSec) + 30,
        )
        return CmdResult(**resp.json())
