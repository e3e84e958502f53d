"""Tests for the completion bridge and run registry."""

from __future__ import annotations

import threading
import time

import pytest

from nightshift.engine.bridge import CheckCompletion, CompletionBridge, CompletionChannel
from nightshift.engine.run_state import RunRegistry
from nightshift.errors import (
    AlreadyRunningError,
    CompletionChannelDisconnectedError,
    CompletionTimeoutError,
)


class TestCompletionChannel:
    def test_deliver_then_wait(self):
        channel = CompletionChannel("r1")
        channel.arm("s1")
        assert channel.deliver(CheckCompletion("s1", True))
        assert channel.wait(1.0) == CheckCompletion("s1", True)

    def test_wait_unblocks_from_other_thread(self):
        channel = CompletionChannel("r1")
        channel.arm("s1")
        threading.Timer(0.05, channel.deliver, args=(CheckCompletion("s1", False, "boom"),)).start()
        result = channel.wait(2.0)
        assert not result.success
        assert result.error == "boom"

    def test_deliver_before_arm_is_dropped(self):
        channel = CompletionChannel("r1")
        assert not channel.deliver(CheckCompletion("s1", True))

    def test_only_first_value_counts(self):
        channel = CompletionChannel("r1")
        channel.arm("s1")
        assert channel.deliver(CheckCompletion("s1", False, "first"))
        assert not channel.deliver(CheckCompletion("s1", True))
        assert channel.wait(1.0).error == "first"

    def test_stale_session_is_dropped(self):
        channel = CompletionChannel("r1")
        channel.arm("s2")
        assert not channel.deliver(CheckCompletion("s1", True))
        assert channel.deliver(CheckCompletion("s2", True))

    def test_empty_session_id_accepted(self):
        channel = CompletionChannel("r1")
        channel.arm("s1")
        assert channel.deliver(CheckCompletion("", True))

    def test_timeout(self):
        channel = CompletionChannel("r1")
        channel.arm("s1")
        start = time.monotonic()
        with pytest.raises(CompletionTimeoutError, match="timed out"):
            channel.wait(0.1)
        assert time.monotonic() - start < 2.0

    def test_close_disconnects_waiter(self):
        channel = CompletionChannel("r1")
        channel.arm("s1")
        channel.close()
        with pytest.raises(CompletionChannelDisconnectedError):
            channel.wait(1.0)

    def test_interrupt_is_sticky(self):
        channel = CompletionChannel("r1")
        channel.interrupt(CheckCompletion("", False, "Cancelled"))
        channel.arm("s1")
        assert channel.wait(0.5).error == "Cancelled"

    def test_interrupt_wakes_pending_wait(self):
        channel = CompletionChannel("r1")
        channel.arm("s1")
        threading.Timer(0.05, channel.interrupt, args=(CheckCompletion("", False, "Cancelled"),)).start()
        assert channel.wait(2.0).error == "Cancelled"


class TestCompletionBridge:
    def test_deliver_to_unknown_run(self):
        bridge = CompletionBridge()
        assert not bridge.deliver("missing", CheckCompletion("s1", True))
        assert not bridge.interrupt("missing", CheckCompletion("", False))

    def test_routes_by_run_id(self):
        bridge = CompletionBridge()
        a = bridge.open("a")
        b = bridge.open("b")
        a.arm("sa")
        b.arm("sb")
        assert bridge.deliver("b", CheckCompletion("sb", True))
        assert b.wait(0.5).success
        with pytest.raises(CompletionTimeoutError):
            a.wait(0.05)

    def test_close_is_idempotent(self):
        bridge = CompletionBridge()
        bridge.open("a")
        assert bridge.is_open("a")
        bridge.close("a")
        bridge.close("a")
        assert not bridge.is_open("a")
        assert not bridge.deliver("a", CheckCompletion("s", True))


class TestRunRegistry:
    def test_single_flight_per_project(self):
        runs = RunRegistry()
        runs.start_run("r1", "app")
        with pytest.raises(AlreadyRunningError):
            runs.start_run("r2", "app")
        runs.start_run("r3", "other")
        assert runs.active_runs() == {"r1": "app", "r3": "other"}

    def test_end_releases_project(self):
        runs = RunRegistry()
        runs.start_run("r1", "app")
        assert runs.is_project_running("app")
        runs.end_run("r1")
        assert not runs.is_project_running("app")
        runs.start_run("r2", "app")

    def test_stop_run(self):
        runs = RunRegistry()
        event = runs.start_run("r1", "app")
        assert not runs.is_cancelled("r1")
        assert runs.stop_run("r1")
        assert event.is_set()
        assert runs.is_cancelled("r1")
        assert not runs.stop_run("missing")

    def test_concurrent_starts_admit_one(self):
        runs = RunRegistry()
        admitted: list[str] = []
        barrier = threading.Barrier(8)

        def _start(i: int) -> None:
            barrier.wait()
            try:
                runs.start_run(f"r{i}", "app")
                admitted.append(f"r{i}")
            except AlreadyRunningError:
                pass

        threads = [threading.Thread(target=_start, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(admitted) == 1
