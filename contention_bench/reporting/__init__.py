r"""
Result collection and reporting.

Collects finished runs and exports them to JSON, CSV and Markdown.

    from contention_bench.reporting import ResultCollector, MarkdownExporter

    collector = ResultCollector()
    collector.add_run(result, statistics)
    MarkdownExporter().export(collector, "report.md")
"""

from contention_bench.reporting.collector import CollectedRun, ResultCollector, SessionInfo
from contention_bench.reporting.formats import EXPORTERS, CsvExporter, JsonExporter, MarkdownExporter

__all__ = [
    "CollectedRun",
    "CsvExporter",
    "EXPORTERS",
    "JsonExporter",
    "MarkdownExporter",
    "ResultCollector",
    "SessionInfo",
]
