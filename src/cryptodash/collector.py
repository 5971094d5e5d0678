"""Snapshot collector: the snapshot store's single, append-only writer.

Each cycle queries every live source concurrently (no snapshot reads and
no synthetic values), derives the premium, records which upstreams
answered, and appends one row.
"""

import asyncio
from decimal import Decimal

from cryptodash.config import CollectorSettings
from cryptodash.data.store import SnapshotStore
from cryptodash.indicators.premium import calculate_premium, fetch_premium_inputs
from cryptodash.logging import get_logger
from cryptodash.models import CryptoMarketEntry, IndicatorSnapshot, utc_now
from cryptodash.sources import MarketSources

logger = get_logger(__name__)


def _health(value: object) -> str:
    return "ok" if value is not None else "failed"


class SnapshotCollector:
    """Collects and persists indicator snapshots, once or on an interval."""

    def __init__(
        self,
        sources: MarketSources,
        store: SnapshotStore | None,
        settings: CollectorSettings,
    ) -> None:
        self._sources = sources
        self._store = store
        self._settings = settings
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    async def collect_once(self) -> IndicatorSnapshot:
        """Run one collection cycle and persist the result.

        Returns the snapshot; its id is None if it could not be stored.
        """
        results = await asyncio.gather(
            self._sources.coingecko.fetch_bitcoin_dominance(),
            fetch_premium_inputs(self._sources),
            self._sources.coingecko.fetch_crypto_markets(),
            self._sources.yahoo.fetch_dollar_index(),
            return_exceptions=True,
        )
        for label, result in zip(("dominance", "premium_inputs", "markets", "dollar_index"), results):
            if isinstance(result, Exception):
                logger.warning("collector_source_failed", source=label, error=str(result))

        dominance: Decimal | None = None if isinstance(results[0], Exception) else results[0]
        premium_inputs = (None, None, None) if isinstance(results[1], Exception) else results[1]
        markets: list[CryptoMarketEntry] | None = None if isinstance(results[2], Exception) else results[2]
        dollar_index: Decimal | None = None if isinstance(results[3], Exception) else results[3]

        upbit_price, binance_price, usd_krw_rate = premium_inputs
        quote = calculate_premium(upbit_price, binance_price, usd_krw_rate)
        btc = next((entry for entry in markets or [] if entry.symbol == "BTC"), None)

        now = utc_now()
        snapshot = IndicatorSnapshot(
            timestamp=now,
            btc_dominance=dominance,
            kimchi_premium=quote.premium if quote is not None else None,
            dollar_index=dollar_index,
            btc_price=btc.price if btc is not None else None,
            btc_change_24h=btc.change_percent_24h if btc is not None else None,
            crypto_prices=markets or None,
            collection_source=self._settings.source_name,
            api_health={
                "coingecko": _health(dominance),
                "upbit": _health(upbit_price),
                "binance": _health(binance_price),
                "markets": _health(markets or None),
                "dollar_index": _health(dollar_index),
            },
            created_at=now,
        )

        if self._store is None:
            logger.warning("snapshot_store_disabled")
            return snapshot

        try:
            snapshot.id = await self._store.insert_snapshot(snapshot)
        except Exception as e:
            logger.error("snapshot_store_unavailable", operation="insert", error=str(e))
            return snapshot

        logger.info(
            "snapshot_collected",
            id=snapshot.id,
            btc_dominance=str(snapshot.btc_dominance),
            kimchi_premium=str(snapshot.kimchi_premium),
            dollar_index=str(snapshot.dollar_index),
            api_health=snapshot.api_health,
        )
        return snapshot

    async def start(self) -> None:
        """Begin collecting in the background every ``settings.interval`` seconds."""
        if self._running:
            logger.warning("collector_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("collector_started", interval=self._settings.interval)

    async def stop(self) -> None:
        """Stop the collection loop gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("collector_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.collect_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("collector_cycle_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._settings.interval)
