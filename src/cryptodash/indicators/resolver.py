"""Per-indicator resolution: fresh snapshot -> live source -> terminal policy.

For every indicator the resolver tries, in order:

1. the latest persisted snapshot, if its field is set and it is no older
   than the freshness window (source "cache");
2. the live adapter or premium calculation (source "live");
3. the terminal policy from ResolverSettings.on_exhaustion: "fallback"
   returns a synthetic value (source "fallback"), "fail" raises
   AllSourcesUnavailableError.

Snapshot and live values update the shared previous-value cache before the
delta is computed. Synthetic values never touch the cache.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from decimal import Decimal

from cryptodash.config import ResolverSettings
from cryptodash.data.store import SnapshotStore
from cryptodash.exceptions import AllSourcesUnavailableError
from cryptodash.indicators.cache import PreviousValueCache
from cryptodash.indicators.premium import fetch_premium_quote
from cryptodash.indicators.synthetic import SyntheticDataGenerator
from cryptodash.logging import get_logger
from cryptodash.models import (
    CryptoMarketSnapshot,
    IndicatorName,
    IndicatorSnapshot,
    IndicatorValue,
    ResolutionSource,
    utc_now,
)
from cryptodash.sources import MarketSources

logger = get_logger(__name__)

# display name, unit, previous-value factor when nothing was observed yet
_INDICATOR_META: dict[IndicatorName, tuple[str, str, Decimal]] = {
    IndicatorName.BTC_DOMINANCE: ("Bitcoin Dominance", "%", Decimal("0.99")),
    IndicatorName.KIMCHI_PREMIUM: ("Kimchi Premium", "%", Decimal("0.95")),
    IndicatorName.DOLLAR_INDEX: ("Dollar Index", "DXY", Decimal("0.998")),
}

_EMPTY_PREMIUM_DETAILS: dict[str, Decimal | None] = {
    "upbit_price": None,
    "binance_price_krw": None,
    "usd_krw_rate": None,
}

LiveFetch = Callable[[], Awaitable[tuple[Decimal, dict[str, Decimal | None]] | None]]


def is_fresh(created_at: datetime, max_age_minutes: int, now: datetime) -> bool:
    """True if ``created_at`` is at most ``max_age_minutes`` before ``now``."""
    return now - created_at <= timedelta(minutes=max_age_minutes)


class IndicatorResolver:
    """Resolves the dashboard's indicators through the snapshot/live/fallback chain.

    Args:
        sources: Upstream adapters.
        cache: Process-wide previous-value cache.
        settings: Exhaustion policy.
        store: Snapshot store, or None to skip the snapshot tier.
        freshness_minutes: Maximum snapshot age that still counts as current.
        synthetic: Generator for the "fallback" policy.
        clock: Returns the current time (tz-aware); injectable for tests.
    """

    def __init__(
        self,
        sources: MarketSources,
        cache: PreviousValueCache,
        settings: ResolverSettings,
        store: SnapshotStore | None = None,
        freshness_minutes: int = 30,
        synthetic: SyntheticDataGenerator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._sources = sources
        self._cache = cache
        self._settings = settings
        self._store = store
        self._freshness_minutes = freshness_minutes
        self._synthetic = synthetic or SyntheticDataGenerator()
        self._clock = clock

    @property
    def on_exhaustion(self) -> str:
        return self._settings.on_exhaustion

    # ──────────────────────────────────────────────
    # Public resolvers
    # ──────────────────────────────────────────────

    async def resolve(self, slug: str) -> IndicatorValue:
        """Resolve an indicator by slug. Raises ValueError for unknown slugs."""
        name = IndicatorName(slug)
        if name is IndicatorName.BTC_DOMINANCE:
            return await self.resolve_bitcoin_dominance()
        if name is IndicatorName.KIMCHI_PREMIUM:
            return await self.resolve_kimchi_premium()
        return await self.resolve_dollar_index()

    async def resolve_bitcoin_dominance(self) -> IndicatorValue:
        async def _live() -> tuple[Decimal, dict[str, Decimal | None]] | None:
            value = await self._sources.coingecko.fetch_bitcoin_dominance()
            return (value, {}) if value is not None else None

        return await self._resolve(IndicatorName.BTC_DOMINANCE, _live)

    async def resolve_kimchi_premium(self) -> IndicatorValue:
        """Premium of Upbit's KRW price over Binance's USD price converted to KRW."""

        async def _live() -> tuple[Decimal, dict[str, Decimal | None]] | None:
            quote = await fetch_premium_quote(self._sources)
            if quote is None:
                return None
            return quote.premium, {
                "upbit_price": quote.domestic_price,
                "binance_price_krw": quote.foreign_price_converted,
                "usd_krw_rate": quote.exchange_rate,
            }

        return await self._resolve(IndicatorName.KIMCHI_PREMIUM, _live)

    async def resolve_dollar_index(self) -> IndicatorValue:
        async def _live() -> tuple[Decimal, dict[str, Decimal | None]] | None:
            value = await self._sources.yahoo.fetch_dollar_index()
            return (value, {}) if value is not None else None

        return await self._resolve(IndicatorName.DOLLAR_INDEX, _live)

    async def resolve_crypto_prices(self) -> CryptoMarketSnapshot:
        """Market snapshot: fresh snapshot -> CoinGecko -> Binance 24h -> terminal policy."""
        snapshot = await self._fresh_snapshot()
        if snapshot is not None and snapshot.crypto_prices:
            assert snapshot.created_at is not None
            logger.debug("indicator_resolved", indicator="crypto-prices", source="cache")
            return CryptoMarketSnapshot(
                entries=snapshot.crypto_prices,
                source=ResolutionSource.CACHE,
                last_updated=snapshot.created_at,
            )

        entries = await self._sources.coingecko.fetch_crypto_markets()
        if not entries:
            logger.info("market_snapshot_secondary_source", source="binance")
            entries = await self._sources.binance.fetch_markets()
        if entries:
            logger.debug("indicator_resolved", indicator="crypto-prices", source="live")
            return CryptoMarketSnapshot(
                entries=entries,
                source=ResolutionSource.LIVE,
                last_updated=self._clock(),
            )

        if self._settings.on_exhaustion == "fail":
            logger.error("indicator_sources_exhausted", indicator="crypto-prices")
            raise AllSourcesUnavailableError("crypto-prices")

        logger.warning("indicator_synthetic_fallback", indicator="crypto-prices")
        return self.synthetic_crypto_prices()

    # ──────────────────────────────────────────────
    # Synthetic values (shared with the aggregator)
    # ──────────────────────────────────────────────

    def synthetic_indicator(self, name: IndicatorName) -> IndicatorValue:
        return self._synthetic.indicator(name, now=self._clock())

    def synthetic_crypto_prices(self) -> CryptoMarketSnapshot:
        return CryptoMarketSnapshot(
            entries=self._synthetic.crypto_prices(),
            source=ResolutionSource.FALLBACK,
            last_updated=self._clock(),
        )

    # ──────────────────────────────────────────────
    # Resolution chain
    # ──────────────────────────────────────────────

    async def _resolve(self, name: IndicatorName, live: LiveFetch) -> IndicatorValue:
        snapshot = await self._fresh_snapshot()
        if snapshot is not None:
            stored = snapshot.indicator(name)
            if stored is not None:
                assert snapshot.created_at is not None
                details = _EMPTY_PREMIUM_DETAILS.copy() if name is IndicatorName.KIMCHI_PREMIUM else {}
                return self._observe(name, stored, ResolutionSource.CACHE, snapshot.created_at, details)

        result = await live()
        if result is not None:
            value, details = result
            return self._observe(name, value, ResolutionSource.LIVE, self._clock(), details)

        if self._settings.on_exhaustion == "fail":
            logger.error("indicator_sources_exhausted", indicator=name.value)
            raise AllSourcesUnavailableError(name.value)

        logger.warning("indicator_synthetic_fallback", indicator=name.value)
        return self.synthetic_indicator(name)

    def _observe(
        self,
        name: IndicatorName,
        value: Decimal,
        source: ResolutionSource,
        last_updated: datetime,
        details: dict[str, Decimal | None],
    ) -> IndicatorValue:
        display, unit, previous_factor = _INDICATOR_META[name]

        previous = self._cache.get(name.value)
        if previous is None:
            previous = value * previous_factor
        self._cache.set(name.value, value)

        logger.debug("indicator_resolved", indicator=name.value, source=source.value)
        return IndicatorValue.from_observation(
            name=display,
            value=value,
            previous_value=previous,
            unit=unit,
            last_updated=last_updated,
            source=source,
            details=details,
        )

    async def _fresh_snapshot(self) -> IndicatorSnapshot | None:
        """Latest snapshot within the freshness window, or None.

        Store failures are logged and treated as "no data".
        """
        if self._store is None:
            return None
        try:
            snapshot = await self._store.get_latest_snapshot(self._freshness_minutes)
        except Exception as e:
            logger.warning("snapshot_store_unavailable", operation="latest", error=str(e))
            return None

        if snapshot is None or snapshot.created_at is None:
            return None
        if not is_fresh(snapshot.created_at, self._freshness_minutes, self._clock()):
            return None
        return snapshot
