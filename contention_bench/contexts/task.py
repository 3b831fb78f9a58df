r"""
Execution context backed by an asyncio task.

Each context runs in its own task: it signals readiness on the run
channel, waits for its START_TEST command, runs the workload and posts
exactly one TEST_COMPLETE event.

    factory = TaskContextFactory(HttpFetchWorkload())
    orchestrator = RunOrchestrator(factory)
"""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from contention_bench.contexts.http import HttpFetchWorkload
from contention_bench.log import get_logger
from contention_bench.messages import START_TEST, completion_event, ready_signal
from contention_bench.protocols import Workload
from contention_bench.runner.channel import RunChannel
from contention_bench.runner.timing import Timer
from contention_bench.types import ExecutionContextHandle, ResourceTiming

__all__ = ["TaskContext", "TaskContextFactory"]

logger = get_logger(__name__)


class TaskContext:
    """Execution context running its workload in a dedicated task."""

    def __init__(self, handle: ExecutionContextHandle, channel: RunChannel, workload: Workload) -> None:
        self._handle = handle
        self._channel = channel
        self._workload = workload
        loop = asyncio.get_running_loop()
        self._command: asyncio.Future[Mapping[str, Any]] = loop.create_future()
        self._task = loop.create_task(self._main(), name=f"context-{handle.generation}-{handle.id}")

    @property
    def context_id(self) -> int:
        return self._handle.id

    @property
    def handle(self) -> ExecutionContextHandle:
        return self._handle

    @property
    def done(self) -> bool:
        return self._task.done()

    def post_message(self, message: Mapping[str, Any]) -> None:
        if message.get("type") != START_TEST or message.get("contextId") != self.context_id:
            logger.warning("unexpected_command", context_id=self.context_id, type=message.get("type"))
            return
        if self._command.done():
            logger.debug("duplicate_start_command", context_id=self.context_id)
            return
        self._command.set_result(message)

    def close(self) -> None:
        if not self._command.done():
            self._command.cancel()
        if not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()

    async def _main(self) -> None:
        self._channel.post(ready_signal(self.context_id))
        command = await self._command

        urls: Sequence[str] = command.get("urls", ())
        with Timer() as elapsed:
            try:
                timings, total_duration = await self._workload.fetch_all(urls)
            except Exception as e:
                logger.exception("workload_failed", context_id=self.context_id)
                error = f"{type(e).__name__}: {e}"
            else:
                error = None

        if error is None:
            self._channel.post(completion_event(self.context_id, timings, total_duration))
            return

        # A failed workload still reports exactly once.
        failed = [
            ResourceTiming.from_times(url, elapsed.started_ms, elapsed.ended_ms, error=error) for url in urls
        ]
        event = completion_event(self.context_id, failed, elapsed.elapsed_ms)
        event["error"] = error
        self._channel.post(event)


class TaskContextFactory:
    """Builds a TaskContext per spawn, sharing one workload definition."""

    def __init__(self, workload: Workload | None = None) -> None:
        self._workload = workload if workload is not None else HttpFetchWorkload()

    @property
    def workload(self) -> Workload:
        return self._workload

    def __call__(self, handle: ExecutionContextHandle, channel: RunChannel) -> TaskContext:
        return TaskContext(handle, channel, self._workload)
