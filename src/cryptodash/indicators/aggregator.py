"""Dashboard aggregation: concurrent fan-out over every indicator resolver.

The four members settle independently through asyncio.gather with
return_exceptions=True; one failing member never cancels the others.
"""

import asyncio
from datetime import datetime, time, timezone

from cryptodash.config import ResolverSettings
from cryptodash.data.store import SnapshotStore
from cryptodash.exceptions import AllSourcesUnavailableError
from cryptodash.indicators.resolver import IndicatorResolver
from cryptodash.logging import get_logger
from cryptodash.models import (
    ChartPoint,
    CryptoMarketSnapshot,
    DashboardData,
    IndicatorName,
    IndicatorValue,
    utc_now,
)
from cryptodash.sources import MarketSources

logger = get_logger(__name__)

_MEMBERS: tuple[str, ...] = ("bitcoin_dominance", "kimchi_premium", "dollar_index", "crypto_prices")

_MEMBER_INDICATORS: dict[str, IndicatorName] = {
    "bitcoin_dominance": IndicatorName.BTC_DOMINANCE,
    "kimchi_premium": IndicatorName.KIMCHI_PREMIUM,
    "dollar_index": IndicatorName.DOLLAR_INDEX,
}


class DashboardAggregator:
    """Builds the dashboard payload and chart series for the presentation layer.

    Under the "fallback" policy every member is always present: a member
    whose resolver raised is replaced by its synthetic value. Under the
    "fail" policy failed members are None and listed in ``errors``, and
    AllSourcesUnavailableError is raised only when every member failed.
    """

    def __init__(
        self,
        resolver: IndicatorResolver,
        sources: MarketSources,
        settings: ResolverSettings,
        store: SnapshotStore | None = None,
        history_fallback_limit: int = 100,
    ) -> None:
        self._resolver = resolver
        self._sources = sources
        self._settings = settings
        self._store = store
        self._history_fallback_limit = history_fallback_limit

    async def get_dashboard_data(self) -> DashboardData:
        """Resolve all four members concurrently and combine them."""
        results = await asyncio.gather(
            self._resolver.resolve_bitcoin_dominance(),
            self._resolver.resolve_kimchi_premium(),
            self._resolver.resolve_dollar_index(),
            self._resolver.resolve_crypto_prices(),
            return_exceptions=True,
        )

        members: dict[str, IndicatorValue | CryptoMarketSnapshot | None] = {}
        sources = {}
        errors = {}

        for member, result in zip(_MEMBERS, results):
            if isinstance(result, Exception):
                if self._settings.on_exhaustion == "fail":
                    errors[member] = str(result)
                    members[member] = None
                    logger.warning("dashboard_member_failed", member=member, error=str(result))
                    continue
                logger.warning(
                    "dashboard_member_synthetic",
                    member=member,
                    error=str(result),
                )
                result = self._synthetic_member(member)

            members[member] = result
            sources[member] = result.source

        if len(errors) == len(_MEMBERS):
            logger.error("dashboard_all_members_failed", errors=errors)
            raise AllSourcesUnavailableError("dashboard")

        logger.info(
            "dashboard_data_aggregated",
            sources={k: v.value for k, v in sources.items()},
            failed=sorted(errors),
        )
        return DashboardData(
            bitcoin_dominance=members["bitcoin_dominance"],  # type: ignore[arg-type]
            kimchi_premium=members["kimchi_premium"],  # type: ignore[arg-type]
            dollar_index=members["dollar_index"],  # type: ignore[arg-type]
            crypto_prices=members["crypto_prices"],  # type: ignore[arg-type]
            sources=sources,
            errors=errors,
        )

    async def get_chart_data(self, slug: str, days: int = 7) -> list[ChartPoint]:
        """Historical series for charting, oldest first.

        Order of preference: snapshot store history, FRED (dollar index
        only), then a single point holding the current resolved value.
        Raises ValueError for unknown slugs.
        """
        name = IndicatorName(slug)

        if self._store is not None:
            try:
                series = await self._store.get_historical_series(
                    name.column,
                    hours=days * 24,
                    fallback_limit=self._history_fallback_limit,
                )
            except Exception as e:
                logger.warning("snapshot_store_unavailable", operation="history", error=str(e))
                series = []
            if series:
                logger.debug("chart_data_from_store", indicator=slug, points=len(series))
                return series

        if name is IndicatorName.DOLLAR_INDEX:
            history = await self._sources.fred.fetch_dollar_index_history(days)
            if history:
                logger.debug("chart_data_from_fred", indicator=slug, points=len(history))
                return history

        current = await self._resolver.resolve(slug)
        today = datetime.combine(utc_now().date(), time.min, tzinfo=timezone.utc)
        logger.warning("chart_data_current_value_only", indicator=slug)
        return [ChartPoint(timestamp=today, value=current.value)]

    def _synthetic_member(self, member: str) -> IndicatorValue | CryptoMarketSnapshot:
        if member == "crypto_prices":
            return self._resolver.synthetic_crypto_prices()
        return self._resolver.synthetic_indicator(_MEMBER_INDICATORS[member])
