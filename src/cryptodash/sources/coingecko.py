"""CoinGecko adapter: Bitcoin dominance and the market snapshot.

CoinGecko's free tier is the one quota-limited upstream, so every attempt
(retries included) takes a token from the shared bucket first.
"""

from decimal import Decimal, InvalidOperation

from cryptodash.config import SourceSettings
from cryptodash.logging import get_logger
from cryptodash.models import CryptoMarketEntry
from cryptodash.sources.parsing import finite_decimal
from cryptodash.sources.rate_limiter import TokenBucket
from cryptodash.sources.retry import ResilientFetcher

logger = get_logger(__name__)


def _optional_decimal(value: object) -> Decimal:
    """Decimal for nullable numeric fields; null becomes zero."""
    return finite_decimal(value) if value is not None else Decimal("0")


def parse_market_entry(item: dict) -> CryptoMarketEntry:
    """Convert one /coins/markets item into a CryptoMarketEntry."""
    ath = item.get("ath")
    return CryptoMarketEntry(
        symbol=str(item["symbol"]).upper(),
        price=finite_decimal(item["current_price"]),
        change_24h=_optional_decimal(item.get("price_change_24h")),
        change_percent_24h=_optional_decimal(item.get("price_change_percentage_24h")),
        volume_24h=_optional_decimal(item.get("total_volume")),
        market_cap=_optional_decimal(item.get("market_cap")),
        all_time_high=finite_decimal(ath) if ath is not None else None,
        ath_date=item.get("ath_date"),
    )


class CoinGeckoSource:
    """Global market share and per-coin market data from CoinGecko."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        limiter: TokenBucket,
        settings: SourceSettings,
    ) -> None:
        self._fetcher = fetcher
        self._limiter = limiter
        self._settings = settings

    def _headers(self) -> dict[str, str] | None:
        api_key = self._settings.coingecko_api_key.get_secret_value()
        return {"x-cg-demo-api-key": api_key} if api_key else None

    async def fetch_bitcoin_dominance(self) -> Decimal | None:
        """BTC share of total crypto market cap, in percent, or None."""
        data = await self._fetcher.get_json(
            f"{self._settings.coingecko_base_url}/global",
            source="coingecko_global",
            headers=self._headers(),
            timeout=self._settings.request_timeout,
            limiter=self._limiter,
        )
        if data is None:
            return None
        try:
            return finite_decimal(data["data"]["market_cap_percentage"]["btc"])
        except (KeyError, TypeError, InvalidOperation) as e:
            logger.warning("coingecko_malformed_response", endpoint="global", error=str(e))
            return None

    async def fetch_crypto_markets(self) -> list[CryptoMarketEntry] | None:
        """Market snapshot for the configured coins, or None."""
        coin_ids = self._settings.market_coin_ids
        data = await self._fetcher.get_json(
            f"{self._settings.coingecko_base_url}/coins/markets",
            source="coingecko_markets",
            params={
                "vs_currency": "usd",
                "ids": ",".join(coin_ids),
                "order": "market_cap_desc",
                "per_page": str(len(coin_ids)),
                "page": "1",
                "sparkline": "false",
                "price_change_percentage": "24h",
            },
            headers=self._headers(),
            timeout=self._settings.request_timeout,
            limiter=self._limiter,
        )
        if not data:
            return None
        try:
            return [parse_market_entry(item) for item in data]
        except (KeyError, TypeError, InvalidOperation) as e:
            logger.warning("coingecko_malformed_response", endpoint="markets", error=str(e))
            return None
