r"""
Run orchestration core.

Staggered spawning, completion collection, lifecycle state and
cross-run statistics.

    from contention_bench.runner import RunOrchestrator

    orchestrator = RunOrchestrator(context_factory)
    result = await orchestrator.run(config)
"""

from contention_bench.runner.channel import ContextRegistry, RunChannel
from contention_bench.runner.collector import CompletionCollector
from contention_bench.runner.orchestrator import RunOrchestrator, StateTransition
from contention_bench.runner.spawner import Spawner
from contention_bench.runner.statistics import StatisticsAccumulator, get_statistics
from contention_bench.runner.timing import Timer, now_ms

__all__ = [
    "CompletionCollector",
    "ContextRegistry",
    "RunChannel",
    "RunOrchestrator",
    "Spawner",
    "StateTransition",
    "StatisticsAccumulator",
    "Timer",
    "get_statistics",
    "now_ms",
]
