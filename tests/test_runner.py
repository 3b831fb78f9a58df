r"""
Tests for contention_bench.runner channel and timing modules.
"""

import asyncio
import threading

import pytest

from contention_bench.runner import ContextRegistry, RunChannel, Timer, now_ms
from contention_bench.types import ExecutionContextHandle

from conftest import FakeContext


class TestTimer:
    def test_timer_basic(self):
        with Timer() as t:
            sum(range(1000))
        assert t.elapsed_ms >= 0
        assert t.ended_ms >= t.started_ms

    def test_timer_with_clock(self):
        ticks = iter([100.0, 350.0])
        with Timer(lambda: next(ticks)) as t:
            pass
        assert t.started_ms == 100.0
        assert t.ended_ms == 350.0
        assert t.elapsed_ms == 250.0
        assert t.elapsed_seconds == 0.25

    def test_now_ms_monotonic(self):
        first = now_ms()
        second = now_ms()
        assert second >= first


class TestRunChannel:
    def test_post_dispatches_with_generation(self):
        received = []
        channel = RunChannel(7, lambda generation, message: received.append((generation, message)))

        channel.post({"type": "CONTEXT_READY", "contextId": 0})

        assert received == [(7, {"type": "CONTEXT_READY", "contextId": 0})]
        assert channel.generation == 7

    def test_closed_channel_drops(self):
        received = []
        channel = RunChannel(1, lambda generation, message: received.append(message))

        channel.close()
        channel.post({"type": "TEST_COMPLETE", "contextId": 0})

        assert channel.closed
        assert received == []

    def test_threadsafe_requires_loop(self):
        channel = RunChannel(1, lambda generation, message: None)
        with pytest.raises(RuntimeError):
            channel.post_threadsafe({"type": "CONTEXT_READY"})

    @pytest.mark.asyncio
    async def test_post_from_worker_thread(self):
        loop = asyncio.get_running_loop()
        received = asyncio.Event()
        threads = []

        def dispatch(generation, message):
            threads.append(threading.get_ident())
            received.set()

        channel = RunChannel(1, dispatch, loop=loop)
        worker = threading.Thread(target=channel.post_threadsafe, args=({"type": "CONTEXT_READY"},))
        worker.start()
        worker.join()

        await asyncio.wait_for(received.wait(), 1)
        assert threads == [threading.get_ident()]


class TestContextRegistry:
    @pytest.mark.asyncio
    async def test_register_and_lookup(self):
        channel = RunChannel(1, lambda generation, message: None)
        handle = ExecutionContextHandle(id=0, spawn_time=0.0, generation=1)
        context = FakeContext(handle, channel, auto_ready=False)
        registry = ContextRegistry()

        registry.register(handle, context)

        assert 0 in registry
        assert registry.get(0) is context
        assert registry.handle(0) is handle
        assert registry.get(1) is None
        assert list(registry) == [context]
        with pytest.raises(KeyError):
            registry.register(handle, context)

    @pytest.mark.asyncio
    async def test_close_all(self):
        channel = RunChannel(1, lambda generation, message: None)
        registry = ContextRegistry()
        contexts = []
        for context_id in range(3):
            handle = ExecutionContextHandle(id=context_id, spawn_time=0.0)
            context = FakeContext(handle, channel, auto_ready=False)
            registry.register(handle, context)
            contexts.append(context)

        registry.close_all()

        assert all(c.closed for c in contexts)
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_close_all_continues_after_failure(self):
        class Broken(FakeContext):
            def close(self) -> None:
                raise RuntimeError("close failed")

        channel = RunChannel(1, lambda generation, message: None)
        registry = ContextRegistry()
        broken_handle = ExecutionContextHandle(id=0, spawn_time=0.0)
        ok_handle = ExecutionContextHandle(id=1, spawn_time=0.0)
        ok = FakeContext(ok_handle, channel, auto_ready=False)
        registry.register(broken_handle, Broken(broken_handle, channel, auto_ready=False))
        registry.register(ok_handle, ok)

        registry.close_all()

        assert ok.closed
        assert len(registry) == 0
