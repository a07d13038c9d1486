"""
Unit tests for the blocking bridge.
"""

import asyncio
import concurrent.futures
import threading

import pytest

from dbaas.bottomless.replicator import BlockingBridge


class TestBlockingBridge:
    """Tests for BlockingBridge."""

    @pytest.fixture
    def bridge(self):
        bridge = BlockingBridge(name="test-bridge")
        bridge.start()
        yield bridge
        bridge.stop()

    def test_run_returns_result(self, bridge):
        async def answer():
            return 42

        assert bridge.run(answer()) == 42

    def test_runs_on_bridge_thread(self, bridge):
        async def thread_name():
            return threading.current_thread().name

        assert bridge.run(thread_name()) == "test-bridge"

    def test_blocks_until_done(self, bridge):
        done = []

        async def slow():
            await asyncio.sleep(0.05)
            done.append(True)

        bridge.run(slow())

        assert done == [True]

    def test_exception_propagates(self, bridge):
        async def fail():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            bridge.run(fail())

    def test_timeout(self, bridge):
        async def forever():
            await asyncio.sleep(10)

        with pytest.raises(concurrent.futures.TimeoutError):
            bridge.run(forever(), timeout=0.05)

    def test_same_loop_across_calls(self, bridge):
        async def current_loop():
            return asyncio.get_running_loop()

        assert bridge.run(current_loop()) is bridge.run(current_loop())

    def test_start_is_idempotent(self, bridge):
        bridge.start()

        assert bridge.is_running

    def test_run_after_stop(self):
        bridge = BlockingBridge()
        bridge.start()
        bridge.stop()

        async def noop():
            return None

        coro = noop()
        with pytest.raises(RuntimeError):
            bridge.run(coro)
        coro.close()

    def test_context_manager(self):
        async def answer():
            return "ok"

        with BlockingBridge() as bridge:
            assert bridge.run(answer()) == "ok"
        assert not bridge.is_running
