r"""
Tests for contention_bench.runner.orchestrator module.
"""

import asyncio

import pytest

from contention_bench.errors import ConfigurationError, LifecycleError, RunCancelledError
from contention_bench.messages import START_TEST
from contention_bench.runner.orchestrator import RunOrchestrator
from contention_bench.types import RunState, TestConfiguration

from conftest import URLS, FakeContextFactory, completion, settle


@pytest.fixture
def orchestrator(factory, accumulator):
    return RunOrchestrator(factory, statistics=accumulator)


def _finish(factory: FakeContextFactory, generation: int, durations: dict[int, float]) -> None:
    contexts = factory.of(generation)
    for context_id, duration in durations.items():
        contexts[context_id].complete(duration)


class TestStart:
    @pytest.mark.asyncio
    async def test_empty_urls_rejected(self, orchestrator):
        config = TestConfiguration(context_count=3, resource_urls=())

        with pytest.raises(ConfigurationError, match="URLs"):
            orchestrator.start(config)

        assert orchestrator.state is RunState.IDLE
        assert orchestrator.generation == 0
        assert orchestrator.history == []

    @pytest.mark.asyncio
    async def test_start_spawns_and_commands_contexts(self, orchestrator, factory, config):
        orchestrator.start(config)
        assert orchestrator.state is RunState.RUNNING
        await settle()

        contexts = factory.of(1)
        assert sorted(contexts) == [0, 1, 2]
        for context_id, context in contexts.items():
            assert context.messages == [
                {"type": START_TEST, "contextId": context_id, "urls": list(URLS), "generation": 1}
            ]
        assert len(orchestrator.registry) == 3

    @pytest.mark.asyncio
    async def test_command_waits_for_readiness(self, accumulator, config):
        factory = FakeContextFactory(auto_ready=False)
        orchestrator = RunOrchestrator(factory, statistics=accumulator)

        orchestrator.start(config)
        await settle()
        contexts = factory.of(1)
        assert not any(c.started for c in contexts.values())

        contexts[1].ready()
        assert contexts[1].started
        assert not contexts[0].started

    @pytest.mark.asyncio
    async def test_spawns_are_staggered(self, orchestrator, factory, staggered_config):
        orchestrator.start(staggered_config)
        await settle()
        assert len(factory.of(1)) == 1

        await asyncio.sleep(0.25)
        handles = [factory.of(1)[cid].handle for cid in range(3)]
        gaps = [b.spawn_time - a.spawn_time for a, b in zip(handles, handles[1:])]
        assert all(gap >= staggered_config.spawn_delay_ms for gap in gaps)

    @pytest.mark.asyncio
    async def test_wait_without_run(self, orchestrator):
        with pytest.raises(LifecycleError):
            await orchestrator.wait()


class TestCompletion:
    @pytest.mark.asyncio
    async def test_run_completes_with_statistics(self, orchestrator, factory, config):
        future = orchestrator.start(config)
        await settle()

        _finish(factory, 1, {2: 120.0, 0: 95.0, 1: 110.0})
        result = await orchestrator.wait(future)

        assert result.generation == 1
        assert result.is_complete
        assert result.mean_context_duration_ms == pytest.approx(108.33, abs=0.01)
        assert orchestrator.statistics.completed_run_count == 1
        assert orchestrator.statistics.cumulative_average_ms == pytest.approx(108.33, abs=0.01)
        assert orchestrator.last_result is result
        assert orchestrator.state is RunState.IDLE
        assert all(c.closed for c in factory.of(1).values())
        assert len(orchestrator.registry) == 0

    @pytest.mark.asyncio
    async def test_second_run_updates_running_average(self, orchestrator, factory, config):
        orchestrator.start(config)
        await settle()
        _finish(factory, 1, {2: 120.0, 0: 95.0, 1: 110.0})
        await orchestrator.wait()

        orchestrator.start(config)
        await settle()
        _finish(factory, 2, {0: 80.0, 1: 90.0, 2: 100.0})
        result = await orchestrator.wait()

        assert result.mean_context_duration_ms == pytest.approx(90.0)
        assert orchestrator.statistics.completed_run_count == 2
        assert orchestrator.statistics.cumulative_average_ms == pytest.approx(99.17, abs=0.01)

    @pytest.mark.asyncio
    async def test_run_helper(self, orchestrator, factory, config):
        task = asyncio.create_task(orchestrator.run(config))
        await settle()
        _finish(factory, 1, {0: 10.0, 1: 20.0, 2: 30.0})

        result = await task
        assert result.mean_context_duration_ms == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_lifecycle_history(self, orchestrator, factory, config):
        orchestrator.start(config)
        await settle()
        _finish(factory, 1, {0: 1.0, 1: 1.0, 2: 1.0})

        transitions = [(t.from_state, t.to_state) for t in orchestrator.history]
        assert transitions == [
            (RunState.IDLE, RunState.RUNNING),
            (RunState.RUNNING, RunState.COMPLETED),
            (RunState.COMPLETED, RunState.IDLE),
        ]

    @pytest.mark.asyncio
    async def test_progress_callback(self, orchestrator, factory, config):
        progress = []
        orchestrator.set_progress_callback(lambda done, total: progress.append((done, total)))
        orchestrator.start(config)
        await settle()

        contexts = factory.of(1)
        contexts[1].complete(5.0)
        contexts[1].complete(5.0)
        contexts[0].complete(5.0)
        contexts[2].complete(5.0)

        assert progress == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_final_progress_precedes_completion(self, orchestrator, factory, config):
        events = []
        orchestrator.set_progress_callback(
            lambda done, total: events.append(("progress", done, orchestrator.state))
        )
        orchestrator.add_result_listener(lambda result, stats: events.append(("result", None, orchestrator.state)))
        orchestrator.start(config)
        await settle()

        _finish(factory, 1, {0: 5.0, 1: 5.0, 2: 5.0})

        assert events == [
            ("progress", 1, RunState.RUNNING),
            ("progress", 2, RunState.RUNNING),
            ("progress", 3, RunState.RUNNING),
            ("result", None, RunState.COMPLETED),
        ]

    @pytest.mark.asyncio
    async def test_cancel_from_progress_callback(self, orchestrator, factory, accumulator, config):
        orchestrator.set_progress_callback(lambda done, total: orchestrator.cancel() if done == total else None)
        future = orchestrator.start(config)
        await settle()

        _finish(factory, 1, {0: 5.0, 1: 5.0, 2: 5.0})

        assert future.cancelled()
        assert orchestrator.state is RunState.IDLE
        assert accumulator.snapshot.completed_run_count == 0

    @pytest.mark.asyncio
    async def test_listeners_receive_result(self, orchestrator, factory, config):
        received = []

        def failing(result, stats):
            raise RuntimeError("listener failure")

        orchestrator.add_result_listener(failing)
        orchestrator.add_result_listener(lambda result, stats: received.append((result, stats)))
        orchestrator.start(config)
        await settle()
        _finish(factory, 1, {0: 30.0, 1: 60.0, 2: 90.0})

        result = await orchestrator.wait()
        assert received == [(result, orchestrator.statistics)]
        assert orchestrator.state is RunState.IDLE

    @pytest.mark.asyncio
    async def test_duplicate_and_malformed_events_do_not_count(self, orchestrator, factory, config):
        orchestrator.start(config)
        await settle()
        contexts = factory.of(1)

        contexts[0].complete(10.0)
        contexts[0].complete(500.0)
        contexts[0].channel.post(completion(9, 10.0))
        contexts[0].channel.post({"type": "SOMETHING_ELSE"})

        assert orchestrator.completed_contexts == 1
        assert orchestrator.state is RunState.RUNNING

        contexts[1].complete(20.0)
        contexts[2].complete(30.0)
        result = await orchestrator.wait()
        assert result.context_results[0].total_duration == 10.0

    @pytest.mark.asyncio
    async def test_ready_from_unknown_context_ignored(self, orchestrator, factory, config):
        orchestrator.start(config)
        await settle()

        factory.of(1)[0].channel.post({"type": "CONTEXT_READY", "contextId": 7})

        assert all(len(c.messages) == 1 for c in factory.of(1).values())

    @pytest.mark.asyncio
    async def test_mismatched_generation_field_dropped(self, orchestrator, factory, config):
        orchestrator.start(config)
        await settle()

        factory.of(1)[0].channel.post(completion(0, 10.0, generation=99))

        assert orchestrator.completed_contexts == 0


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_idle_is_noop(self, orchestrator):
        assert orchestrator.cancel() is False
        assert orchestrator.state is RunState.IDLE

    @pytest.mark.asyncio
    async def test_cancel_discards_run(self, orchestrator, factory, accumulator, config):
        future = orchestrator.start(config)
        await settle()
        factory.of(1)[0].complete(95.0)

        assert orchestrator.cancel() is True

        assert orchestrator.state is RunState.IDLE
        assert future.cancelled()
        assert accumulator.snapshot.completed_run_count == 0
        assert all(c.closed for c in factory.of(1).values())
        with pytest.raises(RunCancelledError):
            await orchestrator.wait(future)

        transitions = [(t.from_state, t.to_state) for t in orchestrator.history]
        assert transitions[-2:] == [(RunState.RUNNING, RunState.CANCELLED), (RunState.CANCELLED, RunState.IDLE)]

    @pytest.mark.asyncio
    async def test_run_raises_when_cancelled(self, orchestrator, config):
        task = asyncio.create_task(orchestrator.run(config))
        await settle()

        orchestrator.cancel()

        with pytest.raises(RunCancelledError):
            await task

    @pytest.mark.asyncio
    async def test_late_events_after_cancel_ignored(self, orchestrator, factory, accumulator, config):
        orchestrator.start(config)
        await settle()
        old = factory.of(1)
        orchestrator.cancel()

        for context_id, context in old.items():
            context.complete(50.0 + context_id)
            context.ready()

        assert accumulator.snapshot.completed_run_count == 0
        assert orchestrator.last_result is None
        assert all(len(c.messages) == 1 for c in old.values())

    @pytest.mark.asyncio
    async def test_cancel_stops_pending_spawns(self, orchestrator, factory, staggered_config):
        orchestrator.start(staggered_config)
        await settle()
        orchestrator.cancel()

        await asyncio.sleep(0.25)
        assert len(factory.of(1)) == 1

    @pytest.mark.asyncio
    async def test_waiter_cancellation_keeps_run_alive(self, orchestrator, factory, config):
        future = orchestrator.start(config)
        waiter = asyncio.create_task(orchestrator.wait(future))
        await settle()

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert not future.cancelled()
        assert orchestrator.state is RunState.RUNNING


class TestRestart:
    @pytest.mark.asyncio
    async def test_start_while_running_supersedes(self, orchestrator, factory, accumulator, config):
        first = orchestrator.start(config)
        await settle()
        second = orchestrator.start(config)
        await settle()

        assert first.cancelled()
        assert orchestrator.generation == 2

        _finish(factory, 1, {0: 1000.0, 1: 1000.0, 2: 1000.0})
        assert orchestrator.completed_contexts == 0

        _finish(factory, 2, {0: 10.0, 1: 20.0, 2: 30.0})
        result = await orchestrator.wait(second)
        assert result.generation == 2
        assert accumulator.snapshot.completed_run_count == 1
        assert accumulator.snapshot.cumulative_average_ms == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_reset_statistics(self, orchestrator, factory, config):
        orchestrator.start(config)
        await settle()
        _finish(factory, 1, {0: 10.0, 1: 10.0, 2: 10.0})

        stats = orchestrator.reset_statistics()
        assert stats.completed_run_count == 0
        assert orchestrator.statistics.cumulative_average_ms == 0.0
