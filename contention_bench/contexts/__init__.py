r"""
Execution contexts and workloads.

    from contention_bench.contexts import HttpFetchWorkload, TaskContextFactory

    factory = TaskContextFactory(HttpFetchWorkload(timeout=10.0))
"""

from contention_bench.contexts.http import HttpFetchWorkload
from contention_bench.contexts.task import TaskContext, TaskContextFactory

__all__ = [
    "HttpFetchWorkload",
    "TaskContext",
    "TaskContextFactory",
]
