r"""
HTTP fetch workload.

Fetches every URL concurrently through its own ``httpx.AsyncClient``,
so each execution context has an isolated connection pool, and
records one ResourceTiming per URL. Failed fetches still yield a
timing carrying an ``error`` field.

    workload = HttpFetchWorkload(timeout=10.0)
    timings, total_ms = await workload.fetch_all(["https://example.com/app.js"])
"""

import asyncio
from collections.abc import Mapping, Sequence

import httpx

from contention_bench.log import get_logger
from contention_bench.runner.timing import Clock, Timer, now_ms
from contention_bench.types import ResourceTiming

__all__ = ["DEFAULT_TIMEOUT_SECONDS", "HttpFetchWorkload"]

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpFetchWorkload:
    """Concurrent GET of every resource with per-resource timing."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._transport = transport
        self._clock = clock

    async def fetch_all(self, urls: Sequence[str]) -> tuple[list[ResourceTiming], float]:
        """Fetch all URLs concurrently.

        Args:
            urls: Resource URLs.

        Returns:
            Timings in the order of ``urls`` and the wall time (ms) from
            the first request to the last response.
        """
        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            with Timer(self._clock) as total:
                timings = await asyncio.gather(*(self._fetch(client, url) for url in urls))
        return list(timings), total.elapsed_ms

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> ResourceTiming:
        extra: dict[str, object] = {}
        with Timer(self._clock) as t:
            try:
                response = await client.get(url)
                extra["status"] = response.status_code
                extra["bytes"] = len(response.content)
            except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as e:
                extra["error"] = f"{type(e).__name__}: {e}"
                logger.warning("resource_fetch_failed", url=url, error=extra["error"])
        return ResourceTiming.from_times(url, t.started_ms, t.ended_ms, **extra)
