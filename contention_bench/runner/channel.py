r"""
Per-run event channel and context registry.

Every run gets a fresh RunChannel tagged with the run generation.
Contexts post readiness and completion messages into it; once the
run finalizes or is cancelled the channel is closed and anything
posted afterwards is dropped.

    channel = RunChannel(generation=3, dispatch=orchestrator_dispatch)
    channel.post({"type": "CONTEXT_READY", "contextId": 0})
    channel.close()
"""

import asyncio
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from contention_bench.log import get_logger
from contention_bench.protocols import ExecutionContext
from contention_bench.types import ExecutionContextHandle

__all__ = ["ContextRegistry", "Dispatch", "RunChannel"]

logger = get_logger(__name__)

Dispatch = Callable[[int, Mapping[str, Any]], None]


class RunChannel:
    """Single-consumer inbound channel scoped to one run."""

    def __init__(
        self,
        generation: int,
        dispatch: Dispatch,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._generation = generation
        self._dispatch = dispatch
        self._loop = loop
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, message: Mapping[str, Any]) -> None:
        """Deliver a message on the control loop thread."""
        if self._closed:
            logger.debug("channel_closed_drop", generation=self._generation, type=_kind(message))
            return
        self._dispatch(self._generation, message)

    def post_threadsafe(self, message: Mapping[str, Any]) -> None:
        """Deliver a message from a thread other than the control loop."""
        if self._loop is None:
            raise RuntimeError("RunChannel was created without an event loop")
        self._loop.call_soon_threadsafe(self.post, message)

    def close(self) -> None:
        self._closed = True


@dataclass(slots=True)
class _Entry:
    handle: ExecutionContextHandle
    context: ExecutionContext


class ContextRegistry:
    """Maps context id to its live execution context."""

    def __init__(self) -> None:
        self._entries: dict[int, _Entry] = {}

    def register(self, handle: ExecutionContextHandle, context: ExecutionContext) -> None:
        if handle.id in self._entries:
            raise KeyError(f"Context {handle.id} already registered")
        self._entries[handle.id] = _Entry(handle=handle, context=context)

    def get(self, context_id: int) -> ExecutionContext | None:
        entry = self._entries.get(context_id)
        return entry.context if entry else None

    def handle(self, context_id: int) -> ExecutionContextHandle | None:
        entry = self._entries.get(context_id)
        return entry.handle if entry else None

    def __contains__(self, context_id: object) -> bool:
        return context_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ExecutionContext]:
        return iter([entry.context for entry in self._entries.values()])

    def close_all(self) -> None:
        """Close every registered context and forget them."""
        entries, self._entries = self._entries, {}
        for context_id, entry in entries.items():
            try:
                entry.context.close()
            except Exception:
                logger.exception("context_close_failed", context_id=context_id)


def _kind(message: Any) -> Any:
    return message.get("type") if isinstance(message, Mapping) else type(message).__name__
