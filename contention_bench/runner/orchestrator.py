r"""
Run orchestrator for coordinating spawns, completions and statistics.

    from contention_bench.runner import RunOrchestrator
    from contention_bench.contexts import TaskContextFactory

    orchestrator = RunOrchestrator(TaskContextFactory())
    result = await orchestrator.run(config)

Lifecycle:

    IDLE -> RUNNING -> COMPLETED -> IDLE
               |
               +-----> CANCELLED -> IDLE
"""

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from contention_bench.errors import ConfigurationError, LifecycleError, RunCancelledError, StaleRunEvent
from contention_bench.log import get_logger
from contention_bench.messages import CONTEXT_READY, TEST_COMPLETE, start_command
from contention_bench.protocols import ContextFactory
from contention_bench.runner.channel import ContextRegistry, RunChannel
from contention_bench.runner.collector import CompletionCollector
from contention_bench.runner.spawner import Spawner
from contention_bench.runner.statistics import StatisticsAccumulator, get_statistics
from contention_bench.runner.timing import Clock, now_ms
from contention_bench.types import (
    ExecutionContextHandle,
    RunningStatistics,
    RunResult,
    RunState,
    TestConfiguration,
)

__all__ = ["RunOrchestrator", "ProgressCallback", "ResultListener", "StateTransition", "TRANSITIONS"]

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]
ResultListener = Callable[[RunResult, RunningStatistics], None]

TRANSITIONS: dict[RunState, tuple[RunState, ...]] = {
    RunState.IDLE: (RunState.RUNNING,),
    RunState.RUNNING: (RunState.COMPLETED, RunState.CANCELLED),
    RunState.COMPLETED: (RunState.IDLE,),
    RunState.CANCELLED: (RunState.IDLE,),
}


@dataclass(frozen=True, slots=True)
class StateTransition:
    """Record of a lifecycle transition.

    Attributes:
        from_state: State left.
        to_state: State entered.
        generation: Run generation at the time of the transition.
        timestamp: Harness clock timestamp (ms).
    """

    from_state: RunState
    to_state: RunState
    generation: int
    timestamp: float


class RunOrchestrator:
    """Owns the run lifecycle and composes spawner, collector and statistics.

    All state is mutated on the event loop that called ``start``.
    """

    def __init__(
        self,
        context_factory: ContextFactory,
        *,
        statistics: StatisticsAccumulator | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._factory = context_factory
        self._statistics = statistics if statistics is not None else get_statistics()
        self._clock = clock
        self._spawner = Spawner(self._on_spawn, clock=clock)
        self._state = RunState.IDLE
        self._generation = 0
        self._history: list[StateTransition] = []
        self._progress_callback: ProgressCallback | None = None
        self._listeners: list[ResultListener] = []

        self._config: TestConfiguration | None = None
        self._channel: RunChannel | None = None
        self._registry = ContextRegistry()
        self._collector: CompletionCollector | None = None
        self._run_future: asyncio.Future[RunResult] | None = None
        self._last_result: RunResult | None = None

    @property
    def state(self) -> RunState:
        """Current lifecycle state."""
        return self._state

    @property
    def generation(self) -> int:
        """Token of the current (or last) run."""
        return self._generation

    @property
    def statistics(self) -> RunningStatistics:
        """Current cross-run statistics."""
        return self._statistics.snapshot

    @property
    def accumulator(self) -> StatisticsAccumulator:
        return self._statistics

    @property
    def last_result(self) -> RunResult | None:
        """Most recently completed run."""
        return self._last_result

    @property
    def history(self) -> list[StateTransition]:
        """Lifecycle transitions so far."""
        return list(self._history)

    @property
    def completed_contexts(self) -> int:
        """Contexts of the active run that have reported."""
        return self._collector.completed_count if self._collector else 0

    @property
    def registry(self) -> ContextRegistry:
        """Live contexts of the active run."""
        return self._registry

    def set_progress_callback(self, callback: ProgressCallback) -> None:
        """Set callback(completed, total) invoked after each recorded completion, before the run finalizes."""
        self._progress_callback = callback

    def add_result_listener(self, listener: ResultListener) -> None:
        """Register a consumer for finished runs."""
        self._listeners.append(listener)

    def start(self, config: TestConfiguration) -> asyncio.Future[RunResult]:
        """Start a run.

        Args:
            config: Run configuration.

        Returns:
            Future resolved with the RunResult; cancelled if the run is cancelled.

        Raises:
            ConfigurationError: If the configuration has no resource URLs.
        """
        if not config.resource_urls:
            raise ConfigurationError("Please add some URLs first: resource_urls is empty")

        if self._state is RunState.RUNNING:
            logger.info("run_superseded", generation=self._generation)
            self.cancel()
        if self._state is not RunState.IDLE:
            raise LifecycleError(f"Cannot start a run from {self._state.name}")

        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        start_time = self._clock()

        self._config = config
        self._transition(RunState.RUNNING)
        self._registry = ContextRegistry()
        self._channel = RunChannel(generation, self._dispatch, loop=loop)
        self._collector = CompletionCollector(
            config.context_count,
            start_time=start_time,
            generation=generation,
            on_complete=self._on_run_complete,
            on_record=self._on_progress,
            clock=self._clock,
        )
        self._run_future = loop.create_future()

        logger.info(
            "run_started",
            generation=generation,
            contexts=config.context_count,
            resources=len(config.resource_urls),
            spawn_delay_ms=config.spawn_delay_ms,
        )
        self._spawner.begin(config.context_count, config.spawn_delay_ms, generation=generation)
        return self._run_future

    async def run(self, config: TestConfiguration) -> RunResult:
        """Start a run and wait for its result.

        Raises:
            ConfigurationError: If the configuration has no resource URLs.
            RunCancelledError: If the run is cancelled before it completes.
        """
        future = self.start(config)
        return await self.wait(future)

    async def wait(self, future: asyncio.Future[RunResult] | None = None) -> RunResult:
        """Wait for a run future (the active run by default)."""
        future = future if future is not None else self._run_future
        if future is None:
            raise LifecycleError("No run has been started")
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if future.cancelled() and not (task is not None and task.cancelling()):
                raise RunCancelledError("Run was cancelled before completion") from None
            raise

    def cancel(self) -> bool:
        """Cancel the active run.

        Returns:
            True if a running run was cancelled, False if nothing was running.
        """
        if self._state is not RunState.RUNNING:
            logger.debug("cancel_ignored", state=self._state.name)
            return False

        generation = self._generation
        completed = self.completed_contexts
        self._spawner.cancel()
        if self._collector is not None:
            self._collector.cancel()
        self._transition(RunState.CANCELLED)
        self._teardown()
        if self._run_future is not None and not self._run_future.done():
            self._run_future.cancel()
        self._transition(RunState.IDLE)
        logger.info("run_cancelled", generation=generation, completed_contexts=completed)
        return True

    def reset_statistics(self) -> RunningStatistics:
        """Reset cross-run statistics to {0, 0}."""
        return self._statistics.reset()

    def _transition(self, to_state: RunState) -> None:
        if to_state not in TRANSITIONS[self._state]:
            raise LifecycleError(f"Invalid transition {self._state.name} -> {to_state.name}")
        self._history.append(
            StateTransition(
                from_state=self._state,
                to_state=to_state,
                generation=self._generation,
                timestamp=self._clock(),
            )
        )
        self._state = to_state

    def _teardown(self) -> None:
        if self._channel is not None:
            self._channel.close()
        self._registry.close_all()

    def _check_current(self, generation: int) -> None:
        if generation != self._generation or self._state is not RunState.RUNNING:
            raise StaleRunEvent(generation, self._generation)

    def _on_spawn(self, handle: ExecutionContextHandle) -> None:
        try:
            self._check_current(handle.generation)
        except StaleRunEvent as e:
            logger.debug("stale_spawn", generation=e.generation, current=e.current)
            return

        assert self._channel is not None
        try:
            context = self._factory(handle, self._channel)
        except Exception:
            logger.exception("context_spawn_failed", generation=handle.generation, context_id=handle.id)
            return
        self._registry.register(handle, context)
        logger.debug("context_spawned", generation=handle.generation, context_id=handle.id)

    def _dispatch(self, generation: int, message: Mapping[str, Any]) -> None:
        try:
            self._check_current(generation)
        except StaleRunEvent as e:
            logger.debug("stale_event", generation=e.generation, current=e.current)
            return

        kind = message.get("type") if isinstance(message, Mapping) else None
        if kind == CONTEXT_READY:
            self._on_context_ready(message)
        elif kind == TEST_COMPLETE:
            self._on_completion(message)
        else:
            logger.warning("unknown_message", generation=generation, type=kind)

    def _on_context_ready(self, message: Mapping[str, Any]) -> None:
        assert self._config is not None
        context_id = message.get("contextId")
        context = self._registry.get(context_id) if type(context_id) is int else None
        if context is None:
            logger.warning("ready_from_unknown_context", generation=self._generation, context_id=context_id)
            return
        context.post_message(start_command(context_id, self._config.resource_urls, generation=self._generation))

    def _on_completion(self, message: Mapping[str, Any]) -> None:
        collector = self._collector
        assert collector is not None
        reported = message.get("generation")
        if reported is not None and reported != self._generation:
            logger.debug("stale_event", generation=reported, current=self._generation)
            return

        collector.observe(message)

    def _on_progress(self, completed: int, total: int) -> None:
        if self._progress_callback:
            self._safe_call(self._progress_callback, completed, total)

    def _on_run_complete(self, result: RunResult) -> None:
        self._spawner.cancel()
        self._transition(RunState.COMPLETED)
        snapshot = self._statistics.record_run(result)
        self._last_result = result
        self._teardown()

        logger.info(
            "run_completed",
            generation=result.generation,
            total_duration_ms=round(result.total_duration, 3),
            mean_context_ms=round(result.mean_context_duration_ms, 3),
            runs=snapshot.completed_run_count,
            average_ms=round(snapshot.cumulative_average_ms, 3),
        )
        for listener in list(self._listeners):
            self._safe_call(listener, result, snapshot)

        self._transition(RunState.IDLE)
        if self._run_future is not None and not self._run_future.done():
            self._run_future.set_result(result)

    def _safe_call(self, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("listener_failed", generation=self._generation)
