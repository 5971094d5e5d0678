"""Token-bucket throttle for quota-limited upstreams.

The bucket refills lazily on every acquisition attempt; there is no
background timer. Waiters poll every ``1 / refill_rate`` seconds, so
ordering among concurrent waiters follows timer order and is not strictly
FIFO.

The bucket is plain shared state with no lock: every refill-check-decrement
sequence runs without an await in between, which is atomic on a single
event loop.
"""

import asyncio
import time
from collections.abc import Callable

from cryptodash.logging import get_logger

logger = get_logger(__name__)


class TokenBucket:
    """Capped, continuously refilling permit counter.

    Invariant: 0 <= tokens <= max_tokens. Each permitted call decrements
    the bucket by exactly one token.
    """

    def __init__(
        self,
        max_tokens: int,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "default",
    ) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        self._max_tokens = float(max_tokens)
        self._refill_rate = refill_rate
        self._clock = clock
        self._tokens = float(max_tokens)
        self._last_refill = clock()
        self._name = name

    @property
    def tokens(self) -> float:
        """Tokens currently available (refilled up to now)."""
        self._refill()
        return self._tokens

    @property
    def poll_interval(self) -> float:
        """Seconds between retries while the bucket is empty."""
        return 1.0 / self._refill_rate

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self._max_tokens, self._tokens + elapsed * self._refill_rate)
            self._last_refill = now

    def try_acquire(self) -> bool:
        """Take one token if available, without waiting."""
        self._refill()
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    async def acquire(self) -> None:
        """Suspend until a token is available, then take it.

        No timeout and no cancellation beyond task cancellation: a starved
        caller waits indefinitely.
        """
        waited = False
        while not self.try_acquire():
            if not waited:
                logger.debug("rate_limiter_waiting", limiter=self._name, tokens=round(self._tokens, 3))
                waited = True
            await asyncio.sleep(self.poll_interval)
