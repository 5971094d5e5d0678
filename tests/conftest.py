"""Shared test fixtures for the crypto indicator dashboard."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from cryptodash.config import AppSettings, ResolverSettings, RetrySettings, SourceSettings
from cryptodash.models import CryptoMarketEntry
from cryptodash.sources import MarketSources


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (no delays, in-memory store, dummy keys)."""
    return AppSettings(
        log_level="DEBUG",
        sources=SourceSettings(
            coingecko_api_key="test-coingecko-key",  # type: ignore[arg-type]
            fred_api_key="test-fred-key",  # type: ignore[arg-type]
        ),
        retry=RetrySettings(base_delay=0.0, max_delay=0.0),
        resolver=ResolverSettings(on_exhaustion="fallback"),
    )


@pytest.fixture
def market_entries() -> list[CryptoMarketEntry]:
    """Two-coin market snapshot as the CoinGecko adapter would return it."""
    return [
        CryptoMarketEntry(
            symbol="BTC",
            price=Decimal("95000.12"),
            change_24h=Decimal("1200.5"),
            change_percent_24h=Decimal("1.28"),
            volume_24h=Decimal("42000000000"),
            market_cap=Decimal("1890000000000"),
        ),
        CryptoMarketEntry(
            symbol="ETH",
            price=Decimal("3340.55"),
            change_24h=Decimal("-20.1"),
            change_percent_24h=Decimal("-0.6"),
            volume_24h=Decimal("18000000000"),
            market_cap=Decimal("402000000000"),
        ),
    ]


@pytest.fixture
def mock_sources(market_entries: list[CryptoMarketEntry]) -> MarketSources:
    """MarketSources whose adapters all succeed with fixed values.

    Tests override individual return values to simulate failures (None).
    """
    coingecko = MagicMock()
    coingecko.fetch_bitcoin_dominance = AsyncMock(return_value=Decimal("54.5"))
    coingecko.fetch_crypto_markets = AsyncMock(return_value=market_entries)

    upbit = MagicMock()
    upbit.fetch_btc_krw_price = AsyncMock(return_value=Decimal("163000000"))

    binance = MagicMock()
    binance.fetch_btc_usd_price = AsyncMock(return_value=Decimal("4000"))
    binance.fetch_markets = AsyncMock(return_value=None)

    exchange_rate = MagicMock()
    exchange_rate.fetch_usd_krw_rate = AsyncMock(return_value=Decimal("1390"))

    yahoo = MagicMock()
    yahoo.fetch_dollar_index = AsyncMock(return_value=Decimal("104.35"))

    fred = MagicMock()
    fred.fetch_dollar_index_history = AsyncMock(return_value=None)

    return MarketSources(
        coingecko=coingecko,
        upbit=upbit,
        binance=binance,
        exchange_rate=exchange_rate,
        yahoo=yahoo,
        fred=fred,
    )
