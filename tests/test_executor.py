"""Tests for the executor client and dispatcher."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest
from conftest import DEFAULT_CHECKS

from nightshift.executor.client import ExecutorClient, ExecutorError, ExecutorOfflineError
from nightshift.executor.dispatcher import ExecutorDispatcher
from nightshift.executor.models import CheckRunRequest, CmdResult
from nightshift.notifications.events import ExecuteCheck, RunStarted
from nightshift.runs.models import RunStatus


def _event(check_id: str = "lint-fix") -> ExecuteCheck:
    return ExecuteCheck(
        run_id="run-1",
        project_id="app",
        check_id=check_id,
        check_name="Lint Fix",
        session_id="sess-1",
        worktree_id="wt-1",
        worktree_path="/tmp/wt",
        prompt="fix lint",
        model="opus",
    )


def _result(exit_code: int, stderr: str = "") -> CmdResult:
    return CmdResult(exitCode=exit_code, stdout="", stderr=stderr, durationMs=1200)


class TestExecutorClient:
    def test_offline(self):
        client = ExecutorClient("http://localhost:17777")
        with patch("nightshift.executor.client.httpx.Client") as client_cls:
            client_cls.return_value.__enter__.return_value.request.side_effect = httpx.ConnectError("refused")
            with pytest.raises(ExecutorOfflineError):
                client.run_check(CheckRunRequest(sessionId="s", cwd="/tmp", prompt="p"))

    def test_timeout_maps_to_offline(self):
        client = ExecutorClient("http://localhost:17777")
        with patch("nightshift.executor.client.httpx.Client") as client_cls:
            client_cls.return_value.__enter__.return_value.request.side_effect = httpx.ReadTimeout("slow")
            with pytest.raises(ExecutorOfflineError, match="timed out"):
                client.run_check(CheckRunRequest(sessionId="s", cwd="/tmp", prompt="p"))

    def test_error_detail(self):
        client = ExecutorClient("http://localhost:17777/", token="secret")
        resp = MagicMock(status_code=500, text="boom")
        resp.json.return_value = {"detail": "runner crashed"}
        with patch("nightshift.executor.client.httpx.Client") as client_cls:
            http = client_cls.return_value.__enter__.return_value
            http.request.return_value = resp
            with pytest.raises(ExecutorError) as exc:
                client.run_check(CheckRunRequest(sessionId="s", cwd="/tmp", prompt="p"))

        assert exc.value.status_code == 500
        assert exc.value.detail == "runner crashed"
        method, url = http.request.call_args.args
        assert (method, url) == ("POST", "http://localhost:17777/checks/run")
        assert http.request.call_args.kwargs["headers"] == {"X-Nightshift-Token": "secret"}

    def test_run_check(self):
        client = ExecutorClient("http://localhost:17777")
        resp = MagicMock(status_code=200)
        resp.json.return_value = {"exitCode": 0, "stdout": "ok", "stderr": "", "durationMs": 10}
        with patch("nightshift.executor.client.httpx.Client") as client_cls:
            client_cls.return_value.__enter__.return_value.request.return_value = resp
            result = client.run_check(CheckRunRequest(sessionId="s", cwd="/tmp", prompt="p"))
        assert result.exitCode == 0
        assert result.stdout == "ok"


class TestExecutorDispatcher:
    def _dispatcher(self, client: MagicMock) -> tuple[ExecutorDispatcher, MagicMock]:
        report = MagicMock()
        return ExecutorDispatcher(client=client, report=report, timeout_sec=60), report

    def test_success(self):
        client = MagicMock()
        client.run_check.return_value = _result(0)
        dispatcher, report = self._dispatcher(client)
        dispatcher.execute(_event())

        report.assert_called_once_with("run-1", "sess-1", True, None)
        req = client.run_check.call_args.args[0]
        assert req.sessionId == "sess-1"
        assert req.cwd == "/tmp/wt"
        assert req.backend == "claude"
        assert req.timeoutSec == 60

    def test_nonzero_exit_uses_stderr(self):
        client = MagicMock()
        client.run_check.return_value = _result(1, "lint failed\n")
        dispatcher, report = self._dispatcher(client)
        dispatcher.execute(_event())
        report.assert_called_once_with("run-1", "sess-1", False, "lint failed")

    def test_nonzero_exit_without_stderr(self):
        client = MagicMock()
        client.run_check.return_value = _result(2)
        dispatcher, report = self._dispatcher(client)
        dispatcher.execute(_event())
        report.assert_called_once_with("run-1", "sess-1", False, "exit code 2")

    def test_offline_reports_failure(self):
        client = MagicMock()
        client.run_check.side_effect = ExecutorOfflineError("Executor is offline or unreachable")
        dispatcher, report = self._dispatcher(client)
        dispatcher.execute(_event())
        report.assert_called_once_with("run-1", "sess-1", False, "Executor is offline or unreachable")

    def test_ignores_other_events(self):
        client = MagicMock()
        dispatcher, _ = self._dispatcher(client)
        dispatcher.handle(RunStarted(run_id="run-1", project_id="app"))
        client.run_check.assert_not_called()


class TestDispatcherWithEngine:
    def test_full_run_through_dispatcher(self, engine, store):
        client = MagicMock()
        client.run_check.return_value = _result(0)
        dispatcher = ExecutorDispatcher(client=client, report=engine.report_check_done, timeout_sec=30)
        engine.events.subscribe(dispatcher.handle)

        run_id = engine.start_run("app")
        assert engine.join(run_id, 10)
        run = store.find_run(run_id)

        assert [r.check_id for r in run.check_results] == DEFAULT_CHECKS
        assert client.run_check.call_count == len(DEFAULT_CHECKS)
        assert run.status == RunStatus.COMPLETED
        assert all(r.session_id for r in run.check_results)
