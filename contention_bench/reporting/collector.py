r"""
Session result collection.

Consumes finished runs from the orchestrator and keeps them, with
the statistics snapshot after each run, for export.

    from contention_bench.reporting.collector import ResultCollector

    collector = ResultCollector()
    collector.start_session(config)
    orchestrator.add_result_listener(collector.add_run)
"""

import platform
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from contention_bench.types import RunningStatistics, RunResult, TestConfiguration

__all__ = ["CollectedRun", "EnvironmentInfo", "ResultCollector", "SessionInfo"]


@dataclass
class SessionInfo:
    """Information about a session of runs.

    Attributes:
        session_id: Unique session identifier.
        started_at: Session start timestamp.
        completed_at: Session end timestamp (empty if ongoing).
        context_count: Contexts per run.
        spawn_delay_ms: Delay between spawns.
        resource_urls: URLs fetched by every context.
    """

    session_id: str = ""
    started_at: str = ""
    completed_at: str = ""
    context_count: int = 0
    spawn_delay_ms: int = 0
    resource_urls: list[str] = field(default_factory=list)


@dataclass
class EnvironmentInfo:
    """Information about the machine running the harness."""

    platform: str = ""
    python_version: str = ""
    cpu: str = ""


@dataclass(frozen=True, slots=True)
class CollectedRun:
    """A finished run and the statistics right after it."""

    result: RunResult
    statistics: RunningStatistics


class ResultCollector:
    """Collects finished runs of a session."""

    def __init__(self) -> None:
        self._runs: list[CollectedRun] = []
        self._session = SessionInfo()
        self._environment = EnvironmentInfo()

    def start_session(self, config: TestConfiguration) -> None:
        """Start a new session for the given configuration."""
        started_at = datetime.now(UTC)
        self._session = SessionInfo(
            session_id=f"contention_{started_at.strftime('%Y%m%d_%H%M%S')}",
            started_at=started_at.isoformat(),
            context_count=config.context_count,
            spawn_delay_ms=config.spawn_delay_ms,
            resource_urls=list(config.resource_urls),
        )
        self._environment = EnvironmentInfo(
            platform=platform.system().lower(),
            python_version=f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            cpu=platform.processor() or "unknown",
        )

    def end_session(self) -> None:
        """End the current session."""
        self._session.completed_at = datetime.now(UTC).isoformat()

    def add_run(self, result: RunResult, statistics: RunningStatistics) -> None:
        """Record a finished run. Usable as an orchestrator result listener."""
        self._runs.append(CollectedRun(result=result, statistics=statistics))

    @property
    def runs(self) -> list[CollectedRun]:
        return self._runs

    @property
    def session(self) -> SessionInfo:
        return self._session

    @property
    def environment(self) -> EnvironmentInfo:
        return self._environment

    @property
    def statistics(self) -> RunningStatistics:
        """Statistics after the last collected run."""
        if not self._runs:
            return RunningStatistics()
        return self._runs[-1].statistics

    def to_dict(self) -> dict[str, Any]:
        """Convert collected data to dictionary."""
        stats = self.statistics
        return {
            "session": {
                "id": self._session.session_id,
                "started_at": self._session.started_at,
                "completed_at": self._session.completed_at,
                "context_count": self._session.context_count,
                "spawn_delay_ms": self._session.spawn_delay_ms,
                "resource_urls": self._session.resource_urls,
            },
            "environment": {
                "platform": self._environment.platform,
                "python_version": self._environment.python_version,
                "cpu": self._environment.cpu,
            },
            "runs": [self._run_to_dict(run) for run in self._runs],
            "statistics": {
                "completed_run_count": stats.completed_run_count,
                "cumulative_average_ms": stats.cumulative_average_ms,
            },
        }

    def _run_to_dict(self, run: CollectedRun) -> dict[str, Any]:
        result = run.result
        return {
            "generation": result.generation,
            "start_time": result.start_time,
            "end_time": result.end_time,
            "total_duration_ms": result.total_duration,
            "mean_context_duration_ms": result.mean_context_duration_ms,
            "contexts": [
                {
                    "context_id": r.context_id,
                    "total_duration_ms": r.total_duration,
                    "timings": [t.to_message() for t in r.timings],
                }
                for r in result.results
            ],
        }
