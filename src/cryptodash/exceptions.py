"""Custom exceptions for the crypto indicator dashboard.

Source adapters never let these escape: the retry boundary turns every
upstream failure into an absent value. Only AllSourcesUnavailableError
reaches callers, and only under the "fail" exhaustion policy.
"""


class DashboardError(Exception):
    """Base exception for all dashboard errors."""


class SourceError(DashboardError):
    """Raised when a single upstream call fails."""


class RateLimitedError(SourceError):
    """Raised when an upstream answers HTTP 429."""

    def __init__(self, url: str, retry_after: float | None = None) -> None:
        super().__init__(f"rate limited by {url}")
        self.url = url
        self.retry_after = retry_after


class UpstreamHTTPError(SourceError):
    """Raised when an upstream answers with a non-2xx status other than 429."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"{url} returned HTTP {status}")
        self.url = url
        self.status = status


class AllSourcesUnavailableError(DashboardError):
    """Raised when the snapshot store and every live source failed for an indicator."""

    def __init__(self, indicator: str) -> None:
        super().__init__(f"all sources unavailable for {indicator}")
        self.indicator = indicator
