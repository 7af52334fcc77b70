import asyncio
import time
from typing import Optional


class RateLimiter:
    """Token bucket shared by every remote call of a migration or verification.

    Paces requests only; rejected calls are never retried.
    """

    def __init__(
        self,
        requests_per_second: float = 10.0,
        burst_size: int = 10,
    ) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be > 0")
        if burst_size < 1:
            raise ValueError("burst_size must be >= 1")
        self._requests_per_second = requests_per_second
        self._burst_size = burst_size
        self._tokens: float = float(burst_size)
        self._last_update: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def requests_per_second(self) -> float:
        return self._requests_per_second

    @property
    def burst_size(self) -> int:
        return self._burst_size

    def _get_lock(self) -> asyncio.Lock:
        # The CLI may drive the same limiter from successive asyncio.run calls.
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def acquire(self) -> None:
        async with self._get_lock():
            now = time.monotonic()

            if self._last_update is None:
                self._last_update = now

            # Negative while earlier callers are still queued for a token.
            elapsed = now - self._last_update
            self._tokens = min(
                self._burst_size,
                self._tokens + elapsed * self._requests_per_second,
            )
            self._last_update = now

            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return

            wait_time = (1.0 - self._tokens) / self._requests_per_second
            self._tokens = 0.0
            self._last_update = now + wait_time

        await asyncio.sleep(wait_time)

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> None:
        pass
