"""Rate limiter for external catalog API calls."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from reelsynth.constants import CATALOG_MAX_REQUESTS_PER_WINDOW, CATALOG_WINDOW_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    max_requests: int = CATALOG_MAX_REQUESTS_PER_WINDOW  # Max requests per window
    window_seconds: float = CATALOG_WINDOW_SECONDS


@dataclass
class _QueuedCall:
    """A call waiting for budget in the current window."""

    factory: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    context: str


class RateLimiter:
    """Windowed rate limiter with a FIFO queue and a single drain task.

    Calls are executed one at a time in arrival order. When the window's
    budget is spent the drain loop sleeps for the rest of the window.
    There is no fairness across callers: a hot caller can fill the window.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or RateLimitConfig()
        if self.config.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self._clock = clock
        self._sleep = sleep
        self._queue: deque[_QueuedCall] = deque()
        self._drain_task: asyncio.Task | None = None
        self._request_count = 0
        self._window_start = clock()

    async def execute(self, fn: Callable[[], Awaitable[T]], context: str = "default") -> T:
        """Queue ``fn`` and wait for its result.

        Args:
            fn: Zero-argument coroutine factory (e.g. ``lambda: client.get(url)``)
            context: Label used in log messages
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append(_QueuedCall(fn, future, context))

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain(), name="rate_limiter_drain")

        return await future

    async def _drain(self) -> None:
        """Run queued calls while the window has budget."""
        window = self.config.window_seconds
        limit = self.config.max_requests

        while self._queue:
            now = self._clock()
            elapsed = now - self._window_start

            if elapsed >= window:
                self._request_count = 0
                self._window_start = now
                elapsed = 0.0

            if self._request_count < limit:
                call = self._queue.popleft()
                if call.future.done():
                    # Caller went away (cancelled) before its turn
                    continue
                self._request_count += 1
                logger.debug(
                    f"Rate limiter [{call.context}]: executing request "
                    f"({self._request_count}/{limit}), {len(self._queue)} queued"
                )
                try:
                    result = await call.factory()
                except asyncio.CancelledError:
                    call.future.cancel()
                    raise
                except Exception as e:
                    if not call.future.done():
                        call.future.set_exception(e)
                else:
                    if not call.future.done():
                        call.future.set_result(result)
            else:
                wait = window - elapsed
                logger.info(
                    f"Rate limit reached ({limit}/{window:.1f}s), waiting {wait:.3f}s "
                    f"with {len(self._queue)} queued"
                )
                await self._sleep(wait)

    def get_stats(self) -> dict[str, float]:
        """Get current rate limiter statistics."""
        return {
            "requests_in_window": self._request_count,
            "max_requests": self.config.max_requests,
            "window_seconds": self.config.window_seconds,
            "queued": len(self._queue),
        }
