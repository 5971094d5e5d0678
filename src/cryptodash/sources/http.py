"""Async JSON HTTP client shared by every upstream adapter.

Wraps a single aiohttp.ClientSession with explicit connect/close, maps
HTTP 429 and other non-2xx statuses onto the project's exception taxonomy,
and enforces a per-call total timeout.
"""

from typing import Any, Self

import aiohttp

from cryptodash.exceptions import RateLimitedError, UpstreamHTTPError
from cryptodash.logging import get_logger

logger = get_logger(__name__)


def _parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds. HTTP-date values are ignored."""
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class JsonHttpClient:
    """GET-only JSON client over one pooled aiohttp session.

    Usage:
        async with JsonHttpClient() as http:
            data = await http.get_json(url, timeout=10.0)
    """

    def __init__(self, default_headers: dict[str, str] | None = None) -> None:
        self._default_headers = {"Accept": "application/json", **(default_headers or {})}
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Access the underlying session. Raises RuntimeError if not connected."""
        if self._session is None:
            raise RuntimeError("HTTP client not connected. Call connect() first.")
        return self._session

    async def connect(self) -> None:
        """Open the pooled session. Idempotent."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._default_headers)
            logger.info("http_client_connected")

    async def close(self) -> None:
        """Close the session. Must be awaited to avoid leaking connectors."""
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.info("http_client_closed")

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> Any:
        """GET ``url`` and decode the JSON body.

        Raises:
            RateLimitedError: on HTTP 429.
            UpstreamHTTPError: on any other non-2xx status.
            aiohttp.ClientError / asyncio.TimeoutError: on transport failures.
        """
        async with self.session.get(
            url,
            params=params,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            if response.status == 429:
                raise RateLimitedError(
                    url, _parse_retry_after(response.headers.get("Retry-After"))
                )
            if response.status < 200 or response.status >= 300:
                raise UpstreamHTTPError(url, response.status)
            return await response.json(content_type=None)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
