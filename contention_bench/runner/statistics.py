r"""
Cross-run statistics accumulator.

Folds each completed run's mean per-context duration into a running
average. A process-wide instance is shared by default.

    from contention_bench.runner.statistics import get_statistics

    stats = get_statistics()
    stats.record(108.33)
    print(stats.snapshot.cumulative_average_ms)
"""

import statistics as _stats

from contention_bench.errors import IncompleteRunError
from contention_bench.log import get_logger
from contention_bench.types import RunningStatistics, RunResult

__all__ = ["StatisticsAccumulator", "get_statistics"]

logger = get_logger(__name__)


class StatisticsAccumulator:
    """Running average of run mean durations."""

    def __init__(self) -> None:
        self._snapshot = RunningStatistics()
        self._history: list[float] = []

    @property
    def snapshot(self) -> RunningStatistics:
        """Current statistics (immutable)."""
        return self._snapshot

    @property
    def history(self) -> tuple[float, ...]:
        """Recorded run means, oldest first."""
        return tuple(self._history)

    def record(self, run_mean_ms: float) -> RunningStatistics:
        """Fold one run mean into the running average.

        Args:
            run_mean_ms: Arithmetic mean of the run's per-context durations.

        Returns:
            Updated statistics.
        """
        old = self._snapshot
        count = old.completed_run_count + 1
        average = (old.cumulative_average_ms * old.completed_run_count + run_mean_ms) / count
        self._snapshot = RunningStatistics(completed_run_count=count, cumulative_average_ms=average)
        self._history.append(run_mean_ms)
        logger.debug("statistics_recorded", run_mean_ms=run_mean_ms, runs=count, average_ms=average)
        return self._snapshot

    def record_run(self, result: RunResult) -> RunningStatistics:
        """Fold a finished run.

        Raises:
            IncompleteRunError: If not every context of the run has reported.
        """
        if not result.is_complete:
            msg = f"Run has {len(result.context_results)}/{result.context_count} context results"
            raise IncompleteRunError(msg)
        return self.record(result.mean_context_duration_ms)

    def recompute(self) -> float:
        """Average recomputed directly from the stored history."""
        if not self._history:
            return 0.0
        return _stats.fmean(self._history)

    def reset(self) -> RunningStatistics:
        """Restore the initial {0, 0} state."""
        self._snapshot = RunningStatistics()
        self._history.clear()
        return self._snapshot


_DEFAULT = StatisticsAccumulator()


def get_statistics() -> StatisticsAccumulator:
    """Process-wide statistics accumulator."""
    return _DEFAULT
