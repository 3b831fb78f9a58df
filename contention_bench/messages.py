r"""
Message protocol between the orchestrator and execution contexts.

    readiness   context -> core   {"type": "CONTEXT_READY", "contextId": 0}
    start       core -> context   {"type": "START_TEST", "contextId": 0, "urls": [...], "generation": 1}
    completion  context -> core   {"type": "TEST_COMPLETE", "contextId": 0,
                                   "timings": [{url, startTime, endTime, duration}, ...],
                                   "totalDuration": 123.4}
"""

import math
from collections.abc import Mapping, Sequence
from typing import Any

from contention_bench.errors import MalformedCompletionEvent
from contention_bench.types import ContextResult, ResourceTiming

__all__ = [
    "CONTEXT_READY",
    "START_TEST",
    "TEST_COMPLETE",
    "ready_signal",
    "start_command",
    "completion_event",
    "parse_completion",
]

CONTEXT_READY = "CONTEXT_READY"
START_TEST = "START_TEST"
TEST_COMPLETE = "TEST_COMPLETE"

_TIMING_FIELDS = ("url", "startTime", "endTime", "duration")


def ready_signal(context_id: int) -> dict[str, Any]:
    return {"type": CONTEXT_READY, "contextId": context_id}


def start_command(context_id: int, urls: Sequence[str], *, generation: int) -> dict[str, Any]:
    return {
        "type": START_TEST,
        "contextId": context_id,
        "urls": list(urls),
        "generation": generation,
    }


def completion_event(
    context_id: int,
    timings: Sequence[ResourceTiming],
    total_duration: float,
) -> dict[str, Any]:
    return {
        "type": TEST_COMPLETE,
        "contextId": context_id,
        "timings": [t.to_message() for t in timings],
        "totalDuration": total_duration,
    }


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


def _parse_timing(raw: Any, index: int, context_id: int) -> ResourceTiming:
    if not isinstance(raw, Mapping):
        raise MalformedCompletionEvent(f"timings[{index}] is not an object", context_id=context_id)
    url = raw.get("url")
    if not isinstance(url, str):
        raise MalformedCompletionEvent(f"timings[{index}].url missing", context_id=context_id)
    start, end = raw.get("startTime"), raw.get("endTime")
    if not _is_number(start) or not _is_number(end):
        raise MalformedCompletionEvent(f"timings[{index}] has no numeric startTime/endTime", context_id=context_id)
    duration = raw.get("duration", end - start)
    if not _is_number(duration):
        raise MalformedCompletionEvent(f"timings[{index}].duration is not numeric", context_id=context_id)
    extra = {k: v for k, v in raw.items() if k not in _TIMING_FIELDS}
    return ResourceTiming(url=url, start_time=start, end_time=end, duration=duration, extra=extra)


def parse_completion(message: Any, context_count: int) -> ContextResult:
    """Validate a completion event and build its ContextResult.

    Args:
        message: Inbound event.
        context_count: Number of contexts in the run; valid ids are [0, context_count).

    Returns:
        ContextResult carrying the reported timings.

    Raises:
        MalformedCompletionEvent: If the event does not have the expected shape.
    """
    if not isinstance(message, Mapping):
        raise MalformedCompletionEvent(f"event is not an object: {type(message).__name__}")

    kind = message.get("type", TEST_COMPLETE)
    if kind != TEST_COMPLETE:
        raise MalformedCompletionEvent(f"unexpected event type {kind!r}")

    context_id = message.get("contextId")
    if isinstance(context_id, bool) or not isinstance(context_id, int):
        raise MalformedCompletionEvent("contextId missing or not an integer", context_id=context_id)
    if not 0 <= context_id < context_count:
        raise MalformedCompletionEvent(
            f"contextId {context_id} outside [0, {context_count})", context_id=context_id
        )

    raw_timings = message.get("timings")
    if isinstance(raw_timings, str | bytes) or not isinstance(raw_timings, Sequence):
        raise MalformedCompletionEvent("timings missing or not a list", context_id=context_id)

    total = message.get("totalDuration")
    if not _is_number(total):
        raise MalformedCompletionEvent("totalDuration missing or not numeric", context_id=context_id)

    timings = tuple(_parse_timing(raw, i, context_id) for i, raw in enumerate(raw_timings))
    return ContextResult(context_id=context_id, timings=timings, total_duration=total)
