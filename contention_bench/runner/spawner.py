r"""
Staggered spawn scheduler.

Emits execution-context handles one at a time, ``delay_ms`` apart,
on the running event loop. A new ``begin`` cancels the previous
sequence; ``cancel`` stops any further emission.

    spawner = Spawner(on_spawn=lambda handle: print(handle.id))
    done = spawner.begin(4, 100)
    handles = await done
"""

import asyncio
from collections.abc import Callable

from contention_bench.log import get_logger
from contention_bench.runner.timing import Clock, now_ms
from contention_bench.types import ExecutionContextHandle

__all__ = ["SpawnCallback", "Spawner"]

logger = get_logger(__name__)

SpawnCallback = Callable[[ExecutionContextHandle], None]


class Spawner:
    """Brings execution-context handles into existence at a fixed cadence."""

    def __init__(self, on_spawn: SpawnCallback, *, clock: Clock = now_ms) -> None:
        self._on_spawn = on_spawn
        self._clock = clock
        self._task: asyncio.Task[tuple[ExecutionContextHandle, ...]] | None = None
        self._sequence = 0
        self._emitted: list[ExecutionContextHandle] = []

    @property
    def active(self) -> bool:
        """True while a sequence is still emitting."""
        return self._task is not None and not self._task.done()

    @property
    def emitted(self) -> tuple[ExecutionContextHandle, ...]:
        """Handles emitted by the current (or last) sequence."""
        return tuple(self._emitted)

    def begin(
        self,
        count: int,
        delay_ms: float,
        *,
        generation: int = 0,
    ) -> asyncio.Future[tuple[ExecutionContextHandle, ...]]:
        """Start emitting ``count`` handles.

        Args:
            count: Number of handles to emit.
            delay_ms: Minimum delay between consecutive emissions.
            generation: Run token stamped on every emitted handle.

        Returns:
            Future resolving to the emitted handles once the sequence ends.
            It is cancelled if the sequence is cancelled.
        """
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be non-negative, got {delay_ms}")

        self.cancel()
        self._sequence += 1
        self._emitted = []
        loop = asyncio.get_running_loop()

        if count == 0:
            done: asyncio.Future[tuple[ExecutionContextHandle, ...]] = loop.create_future()
            done.set_result(())
            return done

        self._task = loop.create_task(
            self._emit(self._sequence, count, delay_ms, generation),
            name=f"spawner-{generation}",
        )
        return self._task

    def cancel(self) -> None:
        """Stop all future emissions. Idempotent."""
        self._sequence += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("spawn_sequence_cancelled", emitted=len(self._emitted))

    async def _emit(
        self,
        sequence: int,
        count: int,
        delay_ms: float,
        generation: int,
    ) -> tuple[ExecutionContextHandle, ...]:
        emitted: list[ExecutionContextHandle] = []
        last: float | None = None

        for context_id in range(count):
            if last is not None:
                target = last + delay_ms
                while (remaining := target - self._clock()) > 0:
                    await asyncio.sleep(remaining / 1_000)

            if sequence != self._sequence:
                break

            handle = ExecutionContextHandle(id=context_id, spawn_time=self._clock(), generation=generation)
            last = handle.spawn_time
            emitted.append(handle)
            self._emitted.append(handle)
            self._on_spawn(handle)

        return tuple(emitted)
