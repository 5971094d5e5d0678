"""Tests for DashboardAggregator: concurrent fan-out and chart data."""

import random
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from cryptodash.config import ResolverSettings
from cryptodash.exceptions import AllSourcesUnavailableError
from cryptodash.indicators.aggregator import DashboardAggregator
from cryptodash.indicators.cache import PreviousValueCache
from cryptodash.indicators.resolver import IndicatorResolver
from cryptodash.indicators.synthetic import SyntheticDataGenerator
from cryptodash.models import ChartPoint, ResolutionSource
from cryptodash.sources import MarketSources


def _aggregator(
    sources: MarketSources,
    policy: str = "fallback",
    store: MagicMock | None = None,
) -> DashboardAggregator:
    settings = ResolverSettings(on_exhaustion=policy)  # type: ignore[arg-type]
    resolver = IndicatorResolver(
        sources=sources,
        cache=PreviousValueCache(),
        settings=settings,
        synthetic=SyntheticDataGenerator(random.Random(3)),
    )
    return DashboardAggregator(
        resolver=resolver,
        sources=sources,
        settings=settings,
        store=store,
        history_fallback_limit=100,
    )


def _kill_everything(sources: MarketSources) -> None:
    sources.coingecko.fetch_bitcoin_dominance = AsyncMock(return_value=None)
    sources.coingecko.fetch_crypto_markets = AsyncMock(return_value=None)
    sources.upbit.fetch_btc_krw_price = AsyncMock(return_value=None)
    sources.yahoo.fetch_dollar_index = AsyncMock(return_value=None)


class TestGetDashboardData:
    @pytest.mark.asyncio
    async def test_all_members_live(self, mock_sources: MarketSources) -> None:
        data = await _aggregator(mock_sources).get_dashboard_data()

        assert data.bitcoin_dominance is not None
        assert data.bitcoin_dominance.value == Decimal("54.5")
        assert data.dollar_index is not None
        assert data.crypto_prices is not None
        assert set(data.sources.values()) == {ResolutionSource.LIVE}
        assert data.errors == {}

    @pytest.mark.asyncio
    async def test_partial_failure_under_fallback(self, mock_sources: MarketSources) -> None:
        mock_sources.yahoo.fetch_dollar_index = AsyncMock(return_value=None)

        data = await _aggregator(mock_sources, "fallback").get_dashboard_data()

        assert data.sources["dollar_index"] is ResolutionSource.FALLBACK
        assert data.sources["bitcoin_dominance"] is ResolutionSource.LIVE
        assert data.errors == {}

    @pytest.mark.asyncio
    async def test_partial_failure_under_fail(self, mock_sources: MarketSources) -> None:
        mock_sources.yahoo.fetch_dollar_index = AsyncMock(return_value=None)

        data = await _aggregator(mock_sources, "fail").get_dashboard_data()

        assert data.dollar_index is None
        assert "dollar_index" in data.errors
        assert "dollar_index" not in data.sources
        assert data.bitcoin_dominance is not None
        assert data.kimchi_premium is not None
        assert data.crypto_prices is not None

    @pytest.mark.asyncio
    async def test_one_raising_member_does_not_cancel_others(self, mock_sources: MarketSources) -> None:
        mock_sources.coingecko.fetch_bitcoin_dominance = AsyncMock(side_effect=RuntimeError("boom"))

        data = await _aggregator(mock_sources, "fallback").get_dashboard_data()

        assert data.sources["bitcoin_dominance"] is ResolutionSource.FALLBACK
        assert data.sources["kimchi_premium"] is ResolutionSource.LIVE
        mock_sources.yahoo.fetch_dollar_index.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_everything_down_under_fail_raises(self, mock_sources: MarketSources) -> None:
        _kill_everything(mock_sources)

        with pytest.raises(AllSourcesUnavailableError):
            await _aggregator(mock_sources, "fail").get_dashboard_data()

    @pytest.mark.asyncio
    async def test_everything_down_under_fallback_is_synthetic(self, mock_sources: MarketSources) -> None:
        _kill_everything(mock_sources)

        data = await _aggregator(mock_sources, "fallback").get_dashboard_data()

        assert set(data.sources.values()) == {ResolutionSource.FALLBACK}
        assert data.crypto_prices is not None
        assert len(data.crypto_prices.entries) == 5


class TestGetChartData:
    @pytest.mark.asyncio
    async def test_store_history_preferred(self, mock_sources: MarketSources) -> None:
        series = [
            ChartPoint(datetime(2025, 3, 1, 10, tzinfo=timezone.utc), Decimal("54.1")),
            ChartPoint(datetime(2025, 3, 1, 11, tzinfo=timezone.utc), Decimal("54.3")),
        ]
        store = MagicMock()
        store.get_historical_series = AsyncMock(return_value=series)

        points = await _aggregator(mock_sources, store=store).get_chart_data("btc-dominance", days=2)

        assert points == series
        store.get_historical_series.assert_awaited_once_with(
            "btc_dominance", hours=48, fallback_limit=100
        )

    @pytest.mark.asyncio
    async def test_dollar_index_falls_back_to_fred(self, mock_sources: MarketSources) -> None:
        history = [ChartPoint(datetime(2025, 1, 2, tzinfo=timezone.utc), Decimal("1.035"))]
        mock_sources.fred.fetch_dollar_index_history = AsyncMock(return_value=history)
        store = MagicMock()
        store.get_historical_series = AsyncMock(return_value=[])

        points = await _aggregator(mock_sources, store=store).get_chart_data("dollar-index", days=30)

        assert points == history
        mock_sources.fred.fetch_dollar_index_history.assert_awaited_once_with(30)

    @pytest.mark.asyncio
    async def test_single_current_point_as_last_resort(self, mock_sources: MarketSources) -> None:
        store = MagicMock()
        store.get_historical_series = AsyncMock(side_effect=RuntimeError("no such table"))

        points = await _aggregator(mock_sources, store=store).get_chart_data("kimchi-premium")

        assert len(points) == 1
        assert points[0].timestamp.hour == 0
        assert points[0].timestamp.tzinfo is not None
        mock_sources.fred.fetch_dollar_index_history.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_slug(self, mock_sources: MarketSources) -> None:
        with pytest.raises(ValueError):
            await _aggregator(mock_sources).get_chart_data("eth-dominance")
