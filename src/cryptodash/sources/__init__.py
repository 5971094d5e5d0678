"""Upstream market-data sources.

Every adapter performs one upstream call through the shared
ResilientFetcher and returns a value or None; none of them raise.
"""

from dataclasses import dataclass

from cryptodash.sources.coingecko import CoinGeckoSource
from cryptodash.sources.exchanges import BinanceSource, UpbitSource
from cryptodash.sources.fred import FredSource
from cryptodash.sources.fx import FALLBACK_USD_KRW_RATE, ExchangeRateSource
from cryptodash.sources.http import JsonHttpClient
from cryptodash.sources.rate_limiter import TokenBucket
from cryptodash.sources.retry import ResilientFetcher, with_retry
from cryptodash.sources.yahoo import YahooFinanceSource


@dataclass
class MarketSources:
    """The full set of adapters handed to the resolver, aggregator and collector."""

    coingecko: CoinGeckoSource
    upbit: UpbitSource
    binance: BinanceSource
    exchange_rate: ExchangeRateSource
    yahoo: YahooFinanceSource
    fred: FredSource


__all__ = [
    "FALLBACK_USD_KRW_RATE",
    "BinanceSource",
    "CoinGeckoSource",
    "ExchangeRateSource",
    "FredSource",
    "JsonHttpClient",
    "MarketSources",
    "ResilientFetcher",
    "TokenBucket",
    "UpbitSource",
    "YahooFinanceSource",
    "with_retry",
]
