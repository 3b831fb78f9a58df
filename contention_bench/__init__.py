r"""
contention-bench: resource-load contention harness.

Spawns N independent execution contexts on a controllable cadence,
has each fetch the same list of resources, collects their out-of-order
completions and folds every completed run into a running average.

    from contention_bench import RunOrchestrator, TestConfiguration
    from contention_bench.contexts import TaskContextFactory

    orchestrator = RunOrchestrator(TaskContextFactory())
    result = await orchestrator.run(
        TestConfiguration(context_count=8, resource_urls=urls, spawn_delay_ms=50)
    )
"""

from contention_bench.config import DEFAULT_CONTEXT_COUNT, PRESETS, get_preset
from contention_bench.errors import ConfigurationError, ContentionBenchError, RunCancelledError
from contention_bench.runner import RunOrchestrator, StatisticsAccumulator, get_statistics
from contention_bench.types import (
    ContextResult,
    ExecutionContextHandle,
    ResourceTiming,
    RunningStatistics,
    RunResult,
    RunState,
    TestConfiguration,
    UrlSet,
)

__all__ = [
    "ConfigurationError",
    "ContentionBenchError",
    "ContextResult",
    "DEFAULT_CONTEXT_COUNT",
    "ExecutionContextHandle",
    "PRESETS",
    "ResourceTiming",
    "RunCancelledError",
    "RunOrchestrator",
    "RunResult",
    "RunState",
    "RunningStatistics",
    "StatisticsAccumulator",
    "TestConfiguration",
    "UrlSet",
    "get_preset",
    "get_statistics",
]

__version__ = "0.1.0"
