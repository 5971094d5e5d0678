"""Retry-with-backoff boundary around single upstream calls.

Every upstream call goes through here. Failures are retried a fixed number
of times with exponential backoff (longer when the upstream answered 429)
and the final failure resolves to None instead of raising. Nothing above
this module ever sees a transport, status or timeout exception.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cryptodash.config import RetrySettings
from cryptodash.exceptions import RateLimitedError
from cryptodash.logging import get_logger
from cryptodash.sources.http import JsonHttpClient
from cryptodash.sources.rate_limiter import TokenBucket

logger = get_logger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, error: Exception, settings: RetrySettings) -> float:
    """Seconds to wait after failed attempt ``attempt`` (0-based).

    Generic failures: min(base * 2**attempt, max_delay).
    Rate-limited failures: min(base * 2**attempt * multiplier, rate_limit_max_delay),
    raised to the upstream's Retry-After when it sent one.
    """
    delay = settings.base_delay * (2**attempt)
    if isinstance(error, RateLimitedError):
        delay = min(delay * settings.rate_limit_multiplier, settings.rate_limit_max_delay)
        if error.retry_after is not None:
            delay = min(max(delay, error.retry_after), settings.rate_limit_max_delay)
        return delay
    return min(delay, settings.max_delay)


async def with_retry(
    call: Callable[[], Awaitable[T]],
    settings: RetrySettings,
    *,
    source: str = "upstream",
) -> T | None:
    """Run ``call`` up to ``settings.max_retries + 1`` times.

    Returns the first successful result, or None once every attempt has failed.
    """
    attempts = settings.max_retries + 1

    for attempt in range(attempts):
        try:
            return await call()
        except Exception as e:
            if attempt == attempts - 1:
                logger.error(
                    "fetch_failed_permanently",
                    source=source,
                    attempts=attempts,
                    error=str(e) or type(e).__name__,
                )
                return None

            delay = backoff_delay(attempt, e, settings)
            if isinstance(e, RateLimitedError):
                logger.warning(
                    "rate_limit_exceeded",
                    source=source,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    delay=delay,
                )
            else:
                logger.warning(
                    "fetch_retry",
                    source=source,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    delay=delay,
                    error=str(e) or type(e).__name__,
                )
            await asyncio.sleep(delay)

    return None  # Unreachable, but satisfies type checker


class ResilientFetcher:
    """JSON GETs with retry, backoff and optional token-bucket throttling.

    Usage:
        fetcher = ResilientFetcher(http, settings.retry)
        data = await fetcher.get_json(url, source="upbit", timeout=8.0)
    """

    def __init__(self, http: JsonHttpClient, settings: RetrySettings) -> None:
        self._http = http
        self._settings = settings

    async def get_json(
        self,
        url: str,
        *,
        source: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        limiter: TokenBucket | None = None,
    ) -> Any | None:
        """Return decoded JSON from ``url``, or None after exhausting retries.

        When a limiter is given, every attempt (retries included) consumes
        one token before touching the network.
        """

        async def _attempt() -> Any:
            if limiter is not None:
                await limiter.acquire()
            return await self._http.get_json(
                url, params=params, headers=headers, timeout=timeout
            )

        return await with_retry(_attempt, self._settings, source=source)
