r"""
Export formats for run results.

    from contention_bench.reporting.formats import JsonExporter, MarkdownExporter

    exporter = JsonExporter()
    exporter.export(collector, "results.json")
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path

from contention_bench.reporting.collector import CollectedRun, ResultCollector

__all__ = ["BaseExporter", "JsonExporter", "CsvExporter", "MarkdownExporter", "EXPORTERS"]


class BaseExporter(ABC):
    """Base class for result exporters."""

    extension: str = ""

    def export(self, collector: ResultCollector, path: str | Path) -> None:
        """Export results to file."""
        Path(path).write_text(self.to_string(collector))

    @abstractmethod
    def to_string(self, collector: ResultCollector) -> str:
        """Export results to string."""
        ...


class JsonExporter(BaseExporter):
    """Export results to JSON format."""

    extension = ".json"

    def __init__(self, *, indent: int = 2) -> None:
        self._indent = indent

    def to_string(self, collector: ResultCollector) -> str:
        return json.dumps(collector.to_dict(), indent=self._indent)


class CsvExporter(BaseExporter):
    """Export one row per context per run."""

    extension = ".csv"

    def to_string(self, collector: ResultCollector) -> str:
        lines = ["session_id,run,context,duration_ms,resources_loaded,run_mean_ms,cumulative_average_ms"]

        session_id = collector.session.session_id

        for index, run in enumerate(collector.runs, start=1):
            for context in run.result.results:
                line = ",".join([
                    session_id,
                    str(index),
                    str(context.context_id),
                    f"{context.total_duration:.3f}",
                    str(context.resources_loaded),
                    f"{run.result.mean_context_duration_ms:.3f}",
                    f"{run.statistics.cumulative_average_ms:.3f}",
                ])
                lines.append(line)

        return "\n".join(lines)


class MarkdownExporter(BaseExporter):
    """Export results to Markdown format."""

    extension = ".md"

    def to_string(self, collector: ResultCollector) -> str:
        lines: list[str] = []
        session = collector.session
        env = collector.environment
        stats = collector.statistics

        lines.append("# Resource Load Contention Report")
        lines.append("")
        lines.append(f"**Session:** {session.session_id}")
        lines.append(f"**Contexts:** {session.context_count}")
        lines.append(f"**Spawn delay:** {session.spawn_delay_ms}ms")
        lines.append(f"**Date:** {session.started_at[:10] if session.started_at else 'N/A'}")
        lines.append("")

        lines.append("## Environment")
        lines.append("")
        lines.append(f"- Platform: {env.platform}")
        lines.append(f"- Python: {env.python_version}")
        lines.append(f"- CPU: {env.cpu}")
        lines.append("")

        lines.append("## Resources")
        lines.append("")
        for url in session.resource_urls:
            lines.append(f"- {url}")
        lines.append("")

        lines.append("## Summary")
        lines.append("")
        lines.append(f"- Completed runs: {stats.completed_run_count}")
        lines.append(f"- Average load duration: {stats.cumulative_average_ms:.2f}ms")
        lines.append("")
        self._add_summary_table(collector, lines)

        for index, run in enumerate(collector.runs, start=1):
            lines.append(f"## Run {index}")
            lines.append("")
            self._add_run_table(run, lines)

        return "\n".join(lines)

    def _add_summary_table(self, collector: ResultCollector, lines: list[str]) -> None:
        lines.append("| Run | Total Duration (ms) | Mean per Context (ms) | Running Average (ms) |")
        lines.append("|-----|---------------------|-----------------------|----------------------|")

        for index, run in enumerate(collector.runs, start=1):
            lines.append(
                f"| {index} | {run.result.total_duration:.2f} | {run.result.mean_context_duration_ms:.2f} "
                f"| {run.statistics.cumulative_average_ms:.2f} |"
            )

        lines.append("")

    def _add_run_table(self, run: CollectedRun, lines: list[str]) -> None:
        lines.append("| Context | Duration (ms) | Resources Loaded |")
        lines.append("|---------|---------------|------------------|")

        for context in run.result.results:
            lines.append(f"| Context {context.context_id + 1} | {context.total_duration:.2f} | {context.resources_loaded} |")

        lines.append("")


EXPORTERS: dict[str, type[BaseExporter]] = {
    "json": JsonExporter,
    "csv": CsvExporter,
    "markdown": MarkdownExporter,
}
