r"""
Shared pytest fixtures for contention-bench tests.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest
import structlog

from contention_bench.messages import START_TEST, completion_event, ready_signal
from contention_bench.runner.channel import RunChannel
from contention_bench.runner.statistics import StatisticsAccumulator
from contention_bench.types import ExecutionContextHandle, ResourceTiming, TestConfiguration

URLS = (
    "https://cdn.example.com/a.js",
    "https://cdn.example.com/b.js",
)


class FakeContext:
    """Execution context driven by the test instead of a workload."""

    def __init__(self, handle: ExecutionContextHandle, channel: RunChannel, *, auto_ready: bool = True) -> None:
        self.handle = handle
        self.channel = channel
        self.messages: list[dict[str, Any]] = []
        self.closed = False
        if auto_ready:
            asyncio.get_running_loop().call_soon(self.ready)

    @property
    def context_id(self) -> int:
        return self.handle.id

    @property
    def started(self) -> bool:
        return any(m.get("type") == START_TEST for m in self.messages)

    def ready(self) -> None:
        self.channel.post(ready_signal(self.handle.id))

    def post_message(self, message: Mapping[str, Any]) -> None:
        self.messages.append(dict(message))

    def close(self) -> None:
        self.closed = True

    def complete(self, total_duration: float) -> None:
        timing = ResourceTiming.from_times(URLS[0], 0.0, total_duration)
        self.channel.post(completion_event(self.handle.id, [timing], total_duration))


class FakeContextFactory:
    """Records every context it creates, keyed by (generation, id)."""

    def __init__(self, *, auto_ready: bool = True) -> None:
        self.auto_ready = auto_ready
        self.contexts: dict[tuple[int, int], FakeContext] = {}

    def __call__(self, handle: ExecutionContextHandle, channel: RunChannel) -> FakeContext:
        context = FakeContext(handle, channel, auto_ready=self.auto_ready)
        self.contexts[(handle.generation, handle.id)] = context
        return context

    def of(self, generation: int) -> dict[int, FakeContext]:
        return {cid: ctx for (gen, cid), ctx in self.contexts.items() if gen == generation}


async def settle(rounds: int = 5) -> None:
    """Let pending callbacks and tasks on the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def completion(context_id: int, total_duration: float, **overrides: Any) -> dict[str, Any]:
    """Well-formed completion event."""
    event = completion_event(
        context_id,
        [ResourceTiming.from_times(URLS[0], 10.0, 10.0 + total_duration)],
        total_duration,
    )
    event.update(overrides)
    return event


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()


@pytest.fixture
def factory() -> FakeContextFactory:
    return FakeContextFactory()


@pytest.fixture
def accumulator() -> StatisticsAccumulator:
    return StatisticsAccumulator()


@pytest.fixture
def config() -> TestConfiguration:
    return TestConfiguration(context_count=3, resource_urls=URLS)


@pytest.fixture
def staggered_config() -> TestConfiguration:
    return TestConfiguration(context_count=3, resource_urls=URLS, spawn_delay_ms=100)
