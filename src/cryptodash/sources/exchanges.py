"""Spot exchange adapters: Upbit (KRW) and Binance (USD).

Binance quotes BTC against USDT; the dashboard treats USDT as USD.
"""

import json
from decimal import Decimal, InvalidOperation

from cryptodash.config import SourceSettings
from cryptodash.logging import get_logger
from cryptodash.models import CryptoMarketEntry
from cryptodash.sources.parsing import finite_decimal
from cryptodash.sources.retry import ResilientFetcher

logger = get_logger(__name__)

# Binance symbols are quoted against USDT; strip it for display
_QUOTE_SUFFIX = "USDT"


class UpbitSource:
    """KRW spot prices from Upbit."""

    def __init__(self, fetcher: ResilientFetcher, settings: SourceSettings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    async def fetch_btc_krw_price(self) -> Decimal | None:
        """Last BTC trade price in KRW, or None."""
        data = await self._fetcher.get_json(
            f"{self._settings.upbit_base_url}/ticker",
            source="upbit",
            params={"markets": "KRW-BTC"},
            timeout=self._settings.exchange_timeout,
        )
        if data is None:
            return None
        try:
            return finite_decimal(data[0]["trade_price"])
        except (KeyError, IndexError, TypeError, InvalidOperation) as e:
            logger.warning("upbit_malformed_response", error=str(e))
            return None


class BinanceSource:
    """USD(T) spot prices and 24h tickers from Binance."""

    def __init__(self, fetcher: ResilientFetcher, settings: SourceSettings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    async def fetch_btc_usd_price(self) -> Decimal | None:
        """Last BTC price in USD(T), or None."""
        data = await self._fetcher.get_json(
            f"{self._settings.binance_base_url}/ticker/price",
            source="binance",
            params={"symbol": "BTCUSDT"},
            timeout=self._settings.exchange_timeout,
        )
        if data is None:
            return None
        try:
            return finite_decimal(data["price"])
        except (KeyError, TypeError, InvalidOperation) as e:
            logger.warning("binance_malformed_response", endpoint="ticker/price", error=str(e))
            return None

    async def fetch_markets(self) -> list[CryptoMarketEntry] | None:
        """Secondary market snapshot from 24h tickers. Market cap is unknown (0)."""
        symbols = self._settings.binance_market_symbols
        data = await self._fetcher.get_json(
            f"{self._settings.binance_base_url}/ticker/24hr",
            source="binance_markets",
            params={"symbols": json.dumps(symbols, separators=(",", ":"))},
            timeout=self._settings.exchange_timeout,
        )
        if not data:
            return None
        try:
            return [
                CryptoMarketEntry(
                    symbol=item["symbol"].removesuffix(_QUOTE_SUFFIX),
                    price=finite_decimal(item["lastPrice"]),
                    change_24h=finite_decimal(item["priceChange"]),
                    change_percent_24h=finite_decimal(item["priceChangePercent"]),
                    volume_24h=finite_decimal(item["quoteVolume"]),
                )
                for item in data
            ]
        except (KeyError, TypeError, AttributeError, InvalidOperation) as e:
            logger.warning("binance_malformed_response", endpoint="ticker/24hr", error=str(e))
            return None
