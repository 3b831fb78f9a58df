r"""
Protocol definitions for execution contexts and workloads.

An execution context is created by a ContextFactory for every spawn,
bound to the run's channel. It signals readiness through the channel,
receives a START_TEST command via post_message, runs its workload and
posts exactly one TEST_COMPLETE event back.

    from contention_bench.protocols import ExecutionContext

    class MyContext:
        def __init__(self, handle, channel): ...
        @property
        def context_id(self) -> int: ...
        def post_message(self, message) -> None: ...
        def close(self) -> None: ...
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from contention_bench.types import ExecutionContextHandle, ResourceTiming

if TYPE_CHECKING:
    from contention_bench.runner.channel import RunChannel

__all__ = [
    "ExecutionContext",
    "ContextFactory",
    "Workload",
]


@runtime_checkable
class ExecutionContext(Protocol):
    """Protocol for an isolated unit that runs the fetch workload."""

    @property
    def context_id(self) -> int:
        """Id assigned at spawn."""
        ...

    def post_message(self, message: Mapping[str, Any]) -> None:
        """Deliver a command (START_TEST) to the context."""
        ...

    def close(self) -> None:
        """Release the context. Must be safe to call more than once."""
        ...


class ContextFactory(Protocol):
    """Builds an execution context for a freshly spawned handle."""

    def __call__(self, handle: ExecutionContextHandle, channel: "RunChannel") -> ExecutionContext: ...


@runtime_checkable
class Workload(Protocol):
    """Fetch workload executed inside a context."""

    async def fetch_all(self, urls: Sequence[str]) -> tuple[list[ResourceTiming], float]:
        """Fetch every URL.

        Returns:
            Per-resource timings and the aggregate duration in milliseconds.
        """
        ...
