"""Token bucket shared by every quiz session."""
import asyncio
import logging
import time
from typing import Awaitable, Callable

from errors import RateLimitCancelled

logger = logging.getLogger(__name__)

# Float slack so a refill of exactly one permit is never rounded away.
_EPSILON = 1e-9


class RateLimiter:
    """Async token bucket.

    Permits refill continuously at ``rate`` per second up to ``burst``; the
    bucket starts full. Waiters are admitted one at a time in arrival order.
    ``clock`` and ``sleep`` can be swapped for fakes in tests.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst < 1:
            raise ValueError(f"burst must be at least 1, got {burst}")
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = asyncio.Lock()
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Refuse every pending and future acquire()."""
        if not self.closed:
            logger.debug("Rate limiter closed")
        self._closed.set()

    async def acquire(self) -> None:
        """Wait for one permit. Raises RateLimitCancelled once closed."""
        async with self._lock:
            while True:
                if self.closed:
                    raise RateLimitCancelled("rate limiter closed")
                self._refill()
                if self._tokens >= 1 - _EPSILON:
                    self._tokens = max(self._tokens - 1, 0.0)
                    return
                await self._pause((1 - self._tokens) / self.rate)

    async def _pause(self, delay: float) -> None:
        # Sleep, but wake early if the limiter is closed meanwhile.
        sleeper = asyncio.ensure_future(self._sleep(delay))
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({sleeper, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            closer.cancel()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(now - self._updated, 0.0)
        self._updated = now
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate)
