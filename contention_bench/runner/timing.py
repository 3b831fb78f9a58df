r"""
Harness clock and timing utilities.

All timestamps in the harness are milliseconds on a monotonic clock,
comparable across contexts running in the same process.

    from contention_bench.runner.timing import Timer, now_ms

    with Timer() as t:
        await fetch()
    print(f"{t.started_ms} -> {t.ended_ms}: {t.elapsed_ms}ms")
"""

import time
from collections.abc import Callable
from typing import Any

__all__ = ["Clock", "Timer", "now_ms"]

Clock = Callable[[], float]


def now_ms() -> float:
    """Current harness time in milliseconds."""
    return time.perf_counter_ns() / 1_000_000


class Timer:
    """Context manager for timing code blocks on the harness clock.

        with Timer() as t:
            do_something()
        print(f"Elapsed: {t.elapsed_ms}ms")
    """

    def __init__(self, clock: Clock = now_ms) -> None:
        self._clock = clock
        self._start: float = 0.0
        self._end: float = 0.0

    def __enter__(self) -> "Timer":
        self._start = self._clock()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._end = self._clock()

    @property
    def started_ms(self) -> float:
        """Timestamp at block entry."""
        return self._start

    @property
    def ended_ms(self) -> float:
        """Timestamp at block exit."""
        return self._end

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        return self._end - self._start

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return self.elapsed_ms / 1_000
