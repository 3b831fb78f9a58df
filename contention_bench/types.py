r"""
Core types for resource-load contention runs.

    from contention_bench.types import TestConfiguration, RunResult

    config = TestConfiguration(context_count=4, resource_urls=("https://a/x.js",))
    result = await orchestrator.run(config)
    print(f"Mean per context: {result.mean_context_duration_ms:.2f}ms")
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum, auto
from types import MappingProxyType
from typing import Any

from contention_bench.errors import ConfigurationError

__all__ = [
    "RunState",
    "TestConfiguration",
    "ExecutionContextHandle",
    "ResourceTiming",
    "ContextResult",
    "RunResult",
    "RunningStatistics",
    "UrlSet",
]


class RunState(IntEnum):
    """Run lifecycle state."""

    IDLE = auto()
    RUNNING = auto()
    COMPLETED = auto()
    CANCELLED = auto()


@dataclass(frozen=True, slots=True)
class TestConfiguration:
    """Configuration for a single run.

    Attributes:
        context_count: Number of execution contexts to spawn.
        resource_urls: URLs every context fetches, in order.
        spawn_delay_ms: Delay between two consecutive spawns.
    """

    __test__ = False

    context_count: int
    resource_urls: tuple[str, ...]
    spawn_delay_ms: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.context_count, bool) or not isinstance(self.context_count, int):
            raise ConfigurationError(f"context_count must be an integer, got {self.context_count!r}")
        if self.context_count < 1:
            raise ConfigurationError(f"context_count must be positive, got {self.context_count}")
        if isinstance(self.spawn_delay_ms, bool) or not isinstance(self.spawn_delay_ms, int):
            raise ConfigurationError(f"spawn_delay_ms must be an integer, got {self.spawn_delay_ms!r}")
        if self.spawn_delay_ms < 0:
            raise ConfigurationError(f"spawn_delay_ms must be non-negative, got {self.spawn_delay_ms}")
        # Accept any sequence but store an immutable copy.
        object.__setattr__(self, "resource_urls", tuple(self.resource_urls))


@dataclass(frozen=True, slots=True)
class ExecutionContextHandle:
    """Identity of a spawned execution context.

    Attributes:
        id: Zero-based id, unique per run, assigned in spawn order.
        spawn_time: Harness clock timestamp (ms) of the spawn.
        generation: Run token of the spawn sequence that produced it.
    """

    id: int
    spawn_time: float
    generation: int = 0


@dataclass(frozen=True, slots=True)
class ResourceTiming:
    """Load timing of one resource inside a context.

    Attributes:
        url: Resource URL.
        start_time: Fetch start (ms).
        end_time: Fetch end (ms).
        duration: Fetch duration (ms).
        extra: Any additional fields reported by the workload.
    """

    url: str
    start_time: float
    end_time: float
    duration: float
    extra: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @classmethod
    def from_times(cls, url: str, start_time: float, end_time: float, **extra: Any) -> "ResourceTiming":
        return cls(
            url=url,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            extra=dict(extra),
        )

    def to_message(self) -> dict[str, Any]:
        """Wire representation used in completion events."""
        data: dict[str, Any] = {
            "url": self.url,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
        }
        data.update(self.extra)
        return data


@dataclass(frozen=True, slots=True)
class ContextResult:
    """Result reported by one execution context.

    Attributes:
        context_id: Id of the reporting context.
        timings: Per-resource timings in reported order.
        total_duration: Aggregate duration reported by the context (ms).
    """

    context_id: int
    timings: tuple[ResourceTiming, ...]
    total_duration: float

    @property
    def resources_loaded(self) -> int:
        """Number of resources the context reported."""
        return len(self.timings)


@dataclass(frozen=True, slots=True)
class RunResult:
    """A finalized run.

    Attributes:
        context_results: Results keyed by context id.
        context_count: Number of contexts the run was configured with.
        start_time: Run start (ms, harness clock).
        end_time: Arrival time of the last required completion (ms).
        generation: Run token of the run.
    """

    context_results: Mapping[int, ContextResult] = field(hash=False)
    context_count: int
    start_time: float
    end_time: float
    generation: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "context_results", MappingProxyType(dict(self.context_results)))

    @property
    def total_duration(self) -> float:
        """Wall time from start to finalization (ms)."""
        return self.end_time - self.start_time

    @property
    def is_complete(self) -> bool:
        """True if every configured context has reported."""
        return len(self.context_results) == self.context_count

    @property
    def results(self) -> list[ContextResult]:
        """Context results ordered by context id."""
        return [self.context_results[key] for key in sorted(self.context_results)]

    @property
    def mean_context_duration_ms(self) -> float:
        """Arithmetic mean of per-context total durations (ms)."""
        if not self.context_results:
            return 0.0
        return sum(r.total_duration for r in self.context_results.values()) / len(self.context_results)


@dataclass(frozen=True, slots=True)
class RunningStatistics:
    """Cross-run statistics.

    Attributes:
        completed_run_count: Number of runs folded in.
        cumulative_average_ms: Mean across runs of each run's mean context duration.
    """

    completed_run_count: int = 0
    cumulative_average_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class UrlSet:
    """Named preset of resource URLs."""

    name: str
    urls: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "urls", tuple(self.urls))
