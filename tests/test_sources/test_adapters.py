"""Tests for the upstream adapters.

The ResilientFetcher is mocked, so each test controls exactly what the
retry boundary hands back (a payload or None) and checks the adapter's
parsing and its "value or None" contract.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from cryptodash.config import SourceSettings
from cryptodash.sources.coingecko import CoinGeckoSource, parse_market_entry
from cryptodash.sources.exchanges import BinanceSource, UpbitSource
from cryptodash.sources.fred import FredSource
from cryptodash.sources.fx import FALLBACK_USD_KRW_RATE, ExchangeRateSource
from cryptodash.sources.rate_limiter import TokenBucket
from cryptodash.sources.retry import ResilientFetcher
from cryptodash.sources.yahoo import YahooFinanceSource, extract_regular_market_price

# ---------------------------------------------------------------------------
# Sample payloads (trimmed copies of real upstream responses)
# ---------------------------------------------------------------------------

COINGECKO_GLOBAL = {
    "data": {
        "active_cryptocurrencies": 13000,
        "market_cap_percentage": {"btc": 54.72, "eth": 12.1},
    }
}

COINGECKO_MARKETS = [
    {
        "id": "bitcoin",
        "symbol": "btc",
        "current_price": 95123.45,
        "price_change_24h": 1500.2,
        "price_change_percentage_24h": 1.6,
        "total_volume": 41000000000,
        "market_cap": 1880000000000,
        "ath": 108000,
        "ath_date": "2024-12-17T15:02:41.429Z",
    },
    {
        "id": "ondo-finance",
        "symbol": "ondo",
        "current_price": 1.12,
        "price_change_24h": None,
        "price_change_percentage_24h": None,
        "total_volume": 250000000,
        "market_cap": None,
        "ath": None,
        "ath_date": None,
    },
]

UPBIT_TICKER = [{"market": "KRW-BTC", "trade_price": 137500000.0}]

BINANCE_PRICE = {"symbol": "BTCUSDT", "price": "95012.34000000"}

BINANCE_24HR = [
    {
        "symbol": "BTCUSDT",
        "lastPrice": "95012.34",
        "priceChange": "-120.5",
        "priceChangePercent": "-0.127",
        "quoteVolume": "2100000000.5",
    },
    {
        "symbol": "ETHUSDT",
        "lastPrice": "3340.10",
        "priceChange": "12.0",
        "priceChangePercent": "0.36",
        "quoteVolume": "900000000",
    },
]

YAHOO_CHART = {
    "chart": {
        "result": [{"meta": {"symbol": "DX-Y.NYB", "regularMarketPrice": 104.27}}],
        "error": None,
    }
}

FRED_OBSERVATIONS = {
    "observations": [
        {"date": "2025-01-02", "value": "1.0350"},
        {"date": "2025-01-03", "value": "."},
        {"date": "2025-01-06", "value": "1.0389"},
    ]
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fetcher() -> MagicMock:
    mock = MagicMock(spec=ResilientFetcher)
    mock.get_json = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def settings() -> SourceSettings:
    return SourceSettings()


@pytest.fixture
def limiter() -> TokenBucket:
    return TokenBucket(max_tokens=10, refill_rate=0.5, name="coingecko")


class TestCoinGeckoSource:
    @pytest.mark.asyncio
    async def test_bitcoin_dominance(
        self, fetcher: MagicMock, settings: SourceSettings, limiter: TokenBucket
    ) -> None:
        fetcher.get_json.return_value = COINGECKO_GLOBAL
        source = CoinGeckoSource(fetcher, limiter, settings)

        assert await source.fetch_bitcoin_dominance() == Decimal("54.72")

        kwargs = fetcher.get_json.await_args.kwargs
        assert fetcher.get_json.await_args.args[0].endswith("/global")
        assert kwargs["limiter"] is limiter

    @pytest.mark.asyncio
    async def test_bitcoin_dominance_none_on_failure(
        self, fetcher: MagicMock, settings: SourceSettings, limiter: TokenBucket
    ) -> None:
        source = CoinGeckoSource(fetcher, limiter, settings)
        assert await source.fetch_bitcoin_dominance() is None

    @pytest.mark.asyncio
    async def test_bitcoin_dominance_none_on_malformed_payload(
        self, fetcher: MagicMock, settings: SourceSettings, limiter: TokenBucket
    ) -> None:
        fetcher.get_json.return_value = {"data": {}}
        source = CoinGeckoSource(fetcher, limiter, settings)
        assert await source.fetch_bitcoin_dominance() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
    async def test_bitcoin_dominance_non_finite_is_none(
        self, fetcher: MagicMock, settings: SourceSettings, limiter: TokenBucket, raw: str
    ) -> None:
        fetcher.get_json.return_value = {"data": {"market_cap_percentage": {"btc": raw}}}
        source = CoinGeckoSource(fetcher, limiter, settings)
        assert await source.fetch_bitcoin_dominance() is None

    @pytest.mark.asyncio
    async def test_demo_key_header_only_when_configured(
        self, fetcher: MagicMock, limiter: TokenBucket
    ) -> None:
        fetcher.get_json.return_value = COINGECKO_GLOBAL

        await CoinGeckoSource(fetcher, limiter, SourceSettings()).fetch_bitcoin_dominance()
        assert fetcher.get_json.await_args.kwargs["headers"] is None

        keyed = SourceSettings(coingecko_api_key="demo-key")  # type: ignore[arg-type]
        await CoinGeckoSource(fetcher, limiter, keyed).fetch_bitcoin_dominance()
        assert fetcher.get_json.await_args.kwargs["headers"] == {"x-cg-demo-api-key": "demo-key"}

    @pytest.mark.asyncio
    async def test_crypto_markets(
        self, fetcher: MagicMock, settings: SourceSettings, limiter: TokenBucket
    ) -> None:
        fetcher.get_json.return_value = COINGECKO_MARKETS
        source = CoinGeckoSource(fetcher, limiter, settings)

        entries = await source.fetch_crypto_markets()

        assert entries is not None
        assert [e.symbol for e in entries] == ["BTC", "ONDO"]
        assert entries[0].price == Decimal("95123.45")
        assert entries[0].all_time_high == Decimal("108000")

        params = fetcher.get_json.await_args.kwargs["params"]
        assert params["vs_currency"] == "usd"
        assert params["ids"] == ",".join(settings.market_coin_ids)

    @pytest.mark.asyncio
    async def test_crypto_markets_empty_list_is_none(
        self, fetcher: MagicMock, settings: SourceSettings, limiter: TokenBucket
    ) -> None:
        fetcher.get_json.return_value = []
        source = CoinGeckoSource(fetcher, limiter, settings)
        assert await source.fetch_crypto_markets() is None

    @pytest.mark.asyncio
    async def test_crypto_markets_non_finite_price_is_none(
        self, fetcher: MagicMock, settings: SourceSettings, limiter: TokenBucket
    ) -> None:
        fetcher.get_json.return_value = [{**COINGECKO_MARKETS[0], "current_price": "NaN"}]
        source = CoinGeckoSource(fetcher, limiter, settings)
        assert await source.fetch_crypto_markets() is None

    def test_parse_market_entry_nulls_become_zero(self) -> None:
        entry = parse_market_entry(COINGECKO_MARKETS[1])
        assert entry.change_24h == Decimal("0")
        assert entry.market_cap == Decimal("0")
        assert entry.all_time_high is None
        assert entry.ath_date is None


class TestUpbitSource:
    @pytest.mark.asyncio
    async def test_btc_krw_price(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = UPBIT_TICKER
        source = UpbitSource(fetcher, settings)

        assert await source.fetch_btc_krw_price() == Decimal("137500000.0")
        kwargs = fetcher.get_json.await_args.kwargs
        assert kwargs["params"] == {"markets": "KRW-BTC"}
        assert kwargs["timeout"] == settings.exchange_timeout

    @pytest.mark.asyncio
    async def test_empty_list_is_none(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = []
        assert await UpbitSource(fetcher, settings).fetch_btc_krw_price() is None

    @pytest.mark.asyncio
    async def test_failure_is_none(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        assert await UpbitSource(fetcher, settings).fetch_btc_krw_price() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["NaN", "Infinity", float("nan")])
    async def test_non_finite_price_is_none(
        self, fetcher: MagicMock, settings: SourceSettings, raw: object
    ) -> None:
        fetcher.get_json.return_value = [{"market": "KRW-BTC", "trade_price": raw}]
        assert await UpbitSource(fetcher, settings).fetch_btc_krw_price() is None


class TestBinanceSource:
    @pytest.mark.asyncio
    async def test_btc_usd_price(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = BINANCE_PRICE
        source = BinanceSource(fetcher, settings)

        assert await source.fetch_btc_usd_price() == Decimal("95012.34")
        assert fetcher.get_json.await_args.kwargs["params"] == {"symbol": "BTCUSDT"}

    @pytest.mark.asyncio
    async def test_malformed_price_is_none(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = {"code": -1121, "msg": "Invalid symbol."}
        assert await BinanceSource(fetcher, settings).fetch_btc_usd_price() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
    async def test_non_finite_price_is_none(
        self, fetcher: MagicMock, settings: SourceSettings, raw: str
    ) -> None:
        fetcher.get_json.return_value = {"symbol": "BTCUSDT", "price": raw}
        assert await BinanceSource(fetcher, settings).fetch_btc_usd_price() is None

    @pytest.mark.asyncio
    async def test_markets_non_finite_field_is_none(
        self, fetcher: MagicMock, settings: SourceSettings
    ) -> None:
        fetcher.get_json.return_value = [{**BINANCE_24HR[0], "lastPrice": "Infinity"}]
        assert await BinanceSource(fetcher, settings).fetch_markets() is None

    @pytest.mark.asyncio
    async def test_markets_strip_quote_suffix(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = BINANCE_24HR
        source = BinanceSource(fetcher, settings)

        entries = await source.fetch_markets()

        assert entries is not None
        assert [e.symbol for e in entries] == ["BTC", "ETH"]
        assert entries[0].change_percent_24h == Decimal("-0.127")
        assert entries[0].market_cap == Decimal("0")
        symbols = fetcher.get_json.await_args.kwargs["params"]["symbols"]
        assert symbols.startswith('["BTCUSDT","ETHUSDT"')


class TestExchangeRateSource:
    @pytest.mark.asyncio
    async def test_live_rate(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = {"base": "USD", "rates": {"KRW": 1391.25, "EUR": 0.92}}
        assert await ExchangeRateSource(fetcher, settings).fetch_usd_krw_rate() == Decimal("1391.25")

    @pytest.mark.asyncio
    async def test_failure_uses_fallback_constant(
        self, fetcher: MagicMock, settings: SourceSettings
    ) -> None:
        rate = await ExchangeRateSource(fetcher, settings).fetch_usd_krw_rate()
        assert rate == FALLBACK_USD_KRW_RATE == Decimal("1330")

    @pytest.mark.asyncio
    async def test_missing_currency_uses_fallback(
        self, fetcher: MagicMock, settings: SourceSettings
    ) -> None:
        fetcher.get_json.return_value = {"rates": {"EUR": 0.92}}
        assert await ExchangeRateSource(fetcher, settings).fetch_usd_krw_rate() == FALLBACK_USD_KRW_RATE

    @pytest.mark.asyncio
    async def test_non_positive_rate_uses_fallback(
        self, fetcher: MagicMock, settings: SourceSettings
    ) -> None:
        fetcher.get_json.return_value = {"rates": {"KRW": 0}}
        assert await ExchangeRateSource(fetcher, settings).fetch_usd_krw_rate() == FALLBACK_USD_KRW_RATE


class TestYahooFinanceSource:
    @pytest.mark.asyncio
    async def test_dollar_index(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = YAHOO_CHART
        source = YahooFinanceSource(fetcher, settings)

        assert await source.fetch_dollar_index() == Decimal("104.27")

        args, kwargs = fetcher.get_json.await_args
        assert args[0].endswith("/DX-Y.NYB")
        assert "User-Agent" in kwargs["headers"]
        assert kwargs["timeout"] == settings.dollar_index_timeout

    @pytest.mark.asyncio
    async def test_empty_result_is_none(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        fetcher.get_json.return_value = {"chart": {"result": [], "error": None}}
        assert await YahooFinanceSource(fetcher, settings).fetch_dollar_index() is None

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {},
            {"chart": None},
            {"chart": {"result": None}},
            {"chart": {"result": [None]}},
            {"chart": {"result": [{}]}},
            {"chart": {"result": [{"meta": {}}]}},
            {"chart": {"result": [{"meta": {"regularMarketPrice": None}}]}},
            {"chart": {"result": [{"meta": {"regularMarketPrice": True}}]}},
            {"chart": {"result": [{"meta": {"regularMarketPrice": "n/a"}}]}},
            {"chart": {"result": [{"meta": {"regularMarketPrice": "NaN"}}]}},
            {"chart": {"result": [{"meta": {"regularMarketPrice": float("inf")}}]}},
        ],
    )
    def test_extract_tolerates_missing_segments(self, payload: object) -> None:
        assert extract_regular_market_price(payload) is None

    def test_extract_accepts_integer_price(self) -> None:
        payload = {"chart": {"result": [{"meta": {"regularMarketPrice": 104}}]}}
        assert extract_regular_market_price(payload) == Decimal("104")


class TestFredSource:
    @pytest.mark.asyncio
    async def test_without_key_makes_no_request(self, fetcher: MagicMock, settings: SourceSettings) -> None:
        source = FredSource(fetcher, settings)

        assert source.enabled is False
        assert await source.fetch_dollar_index_history() is None
        fetcher.get_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_skips_missing_observations(self, fetcher: MagicMock) -> None:
        fetcher.get_json.return_value = FRED_OBSERVATIONS
        keyed = SourceSettings(fred_api_key="fred-key")  # type: ignore[arg-type]
        source = FredSource(fetcher, keyed)

        points = await source.fetch_dollar_index_history(days=30)

        assert points is not None
        assert [p.value for p in points] == [Decimal("1.0350"), Decimal("1.0389")]
        assert points[0].timestamp.tzinfo is not None
        params = fetcher.get_json.await_args.kwargs["params"]
        assert params["series_id"] == "DEXUSEU"
        assert params["api_key"] == "fred-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"observations": ["oops"]},
            {"observations": [None]},
            {"observations": [{"date": "2025-01-02", "value": "NaN"}]},
            {"observations": [{"date": "not-a-date", "value": "1.03"}]},
            {"results": []},
        ],
    )
    async def test_malformed_history_is_none(self, fetcher: MagicMock, payload: object) -> None:
        fetcher.get_json.return_value = payload
        keyed = SourceSettings(fred_api_key="fred-key")  # type: ignore[arg-type]
        assert await FredSource(fetcher, keyed).fetch_dollar_index_history() is None
