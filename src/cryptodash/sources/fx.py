"""USD/KRW exchange-rate adapter.

Unlike the other adapters this one never returns None: the rate feeds the
premium ratio, where a stale approximate constant is less disruptive than
a missing value.
"""

from decimal import Decimal, InvalidOperation

from cryptodash.config import SourceSettings
from cryptodash.logging import get_logger
from cryptodash.sources.retry import ResilientFetcher

logger = get_logger(__name__)

# Approximate KRW per USD, used only when the live rate is unavailable
FALLBACK_USD_KRW_RATE = Decimal("1330")


class ExchangeRateSource:
    """KRW-per-USD quote from exchangerate-api."""

    def __init__(self, fetcher: ResilientFetcher, settings: SourceSettings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    async def fetch_usd_krw_rate(self) -> Decimal:
        """Live KRW per USD, or FALLBACK_USD_KRW_RATE on any failure."""
        data = await self._fetcher.get_json(
            self._settings.exchange_rate_url,
            source="exchange_rate",
            timeout=self._settings.exchange_timeout,
        )
        rate: Decimal | None = None
        if data is not None:
            try:
                rate = Decimal(str(data["rates"]["KRW"]))
            except (KeyError, TypeError, InvalidOperation) as e:
                logger.warning("exchange_rate_malformed_response", error=str(e))

        if rate is None or not rate.is_finite() or rate <= 0:
            logger.warning("exchange_rate_fallback_used", rate=str(FALLBACK_USD_KRW_RATE))
            return FALLBACK_USD_KRW_RATE
        return rate
