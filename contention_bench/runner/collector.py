r"""
Completion collector for a single run.

Holds one single-use future per context id and acts as a join
barrier: when every id has reported, the run is finalized exactly
once. Events are matched by ``contextId`` only, so arrival order
does not matter.

    collector = CompletionCollector(3, start_time=now_ms())
    collector.observe({"type": "TEST_COMPLETE", "contextId": 2, "timings": [], "totalDuration": 120})
    ...
    result = await collector.result
"""

import asyncio
from collections.abc import Callable
from typing import Any

from contention_bench.errors import DuplicateCompletion, MalformedCompletionEvent
from contention_bench.log import get_logger
from contention_bench.messages import parse_completion
from contention_bench.runner.timing import Clock, now_ms
from contention_bench.types import ContextResult, RunResult

__all__ = ["CompletionCallback", "CompletionCollector", "RecordCallback"]

logger = get_logger(__name__)

CompletionCallback = Callable[[RunResult], None]
RecordCallback = Callable[[int, int], None]


class CompletionCollector:
    """Collects one ContextResult per context and detects run completeness."""

    def __init__(
        self,
        context_count: int,
        *,
        start_time: float | None = None,
        generation: int = 0,
        on_complete: CompletionCallback | None = None,
        on_record: RecordCallback | None = None,
        clock: Clock = now_ms,
    ) -> None:
        if context_count < 0:
            raise ValueError(f"context_count must be non-negative, got {context_count}")

        loop = asyncio.get_running_loop()
        self._context_count = context_count
        self._generation = generation
        self._on_complete = on_complete
        self._on_record = on_record
        self._clock = clock
        self._start_time = clock() if start_time is None else start_time
        self._slots: dict[int, asyncio.Future[ContextResult]] = {
            context_id: loop.create_future() for context_id in range(context_count)
        }
        self._recorded: dict[int, ContextResult] = {}
        self._result: asyncio.Future[RunResult] = loop.create_future()
        self._cancelled = False

        if context_count == 0:
            self._finalize()

    @property
    def context_count(self) -> int:
        return self._context_count

    @property
    def completed_count(self) -> int:
        """Number of distinct contexts recorded so far."""
        return len(self._recorded)

    @property
    def pending_ids(self) -> list[int]:
        """Ids still awaited, ascending."""
        return [cid for cid in range(self._context_count) if cid not in self._recorded]

    @property
    def finalized(self) -> bool:
        return self._result.done() and not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def accepting(self) -> bool:
        """True while events can still be recorded."""
        return not self._cancelled and not self._result.done()

    @property
    def result(self) -> asyncio.Future[RunResult]:
        """Future resolved with the RunResult on finalization."""
        return self._result

    def wait_for(self, context_id: int) -> asyncio.Future[ContextResult]:
        """Future for a single context's result."""
        return self._slots[context_id]

    def observe(self, event: Any) -> bool:
        """Accept an inbound completion event.

        Malformed and duplicate events are logged and dropped.

        Returns:
            True if the event was recorded.
        """
        if not self.accepting:
            logger.debug("collector_closed_drop", generation=self._generation)
            return False

        try:
            self._record(event)
        except MalformedCompletionEvent as e:
            logger.warning(
                "malformed_completion",
                generation=self._generation,
                context_id=e.context_id,
                reason=e.reason,
            )
            return False
        except DuplicateCompletion as e:
            logger.debug("duplicate_completion", generation=self._generation, context_id=e.context_id)
            return False

        if self._on_record is not None:
            self._on_record(len(self._recorded), self._context_count)
        if self.accepting and len(self._recorded) == self._context_count:
            self._finalize()
        return True

    def cancel(self) -> None:
        """Discard partial results and stop accepting events. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        self._recorded.clear()
        for slot in self._slots.values():
            slot.cancel()
        self._result.cancel()

    def _record(self, event: Any) -> None:
        context_result = parse_completion(event, self._context_count)
        context_id = context_result.context_id
        if context_id in self._recorded:
            raise DuplicateCompletion(context_id)

        self._recorded[context_id] = context_result
        self._slots[context_id].set_result(context_result)

    def _finalize(self) -> None:
        run_result = RunResult(
            context_results=self._recorded,
            context_count=self._context_count,
            start_time=self._start_time,
            end_time=self._clock(),
            generation=self._generation,
        )
        self._result.set_result(run_result)
        logger.debug(
            "run_finalized",
            generation=self._generation,
            contexts=self._context_count,
            total_duration_ms=round(run_result.total_duration, 3),
        )
        if self._on_complete is not None:
            self._on_complete(run_result)
