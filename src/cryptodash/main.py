"""Entry point for the crypto indicator dashboard.

Wires all components together and either serves the FastAPI JSON API
(DASHBOARD_ENABLED=true, the default) or runs the snapshot collector
headless. With the dashboard enabled, the collector (when
COLLECTOR_ENABLED=true) shares the API's event loop through FastAPI's
lifespan.

Component wiring order (in _build_components):
1. JsonHttpClient (one pooled aiohttp session)
2. TokenBucket (CoinGecko quota)
3. ResilientFetcher (retry/backoff boundary)
4. MarketSources (one adapter per upstream)
5. SnapshotDatabase + SnapshotStore (when STORE_ENABLED)
6. PreviousValueCache + SyntheticDataGenerator
7. IndicatorResolver
8. DashboardAggregator
9. SnapshotCollector
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from cryptodash.collector import SnapshotCollector
from cryptodash.config import AppSettings
from cryptodash.data.database import SnapshotDatabase
from cryptodash.data.store import SnapshotStore
from cryptodash.indicators.aggregator import DashboardAggregator
from cryptodash.indicators.cache import PreviousValueCache
from cryptodash.indicators.resolver import IndicatorResolver
from cryptodash.indicators.synthetic import SyntheticDataGenerator
from cryptodash.logging import get_logger, setup_logging
from cryptodash.sources import (
    BinanceSource,
    CoinGeckoSource,
    ExchangeRateSource,
    FredSource,
    JsonHttpClient,
    MarketSources,
    ResilientFetcher,
    TokenBucket,
    UpbitSource,
    YahooFinanceSource,
)


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Does NOT open the HTTP session or the database; that happens in the
    lifespan (dashboard mode) or run() (headless mode).

    Returns:
        Dict mapping component names to instances.
    """
    http = JsonHttpClient()
    coingecko_limiter = TokenBucket(
        max_tokens=settings.rate_limit.max_tokens,
        refill_rate=settings.rate_limit.refill_rate,
        name="coingecko",
    )
    fetcher = ResilientFetcher(http, settings.retry)

    sources = MarketSources(
        coingecko=CoinGeckoSource(fetcher, coingecko_limiter, settings.sources),
        upbit=UpbitSource(fetcher, settings.sources),
        binance=BinanceSource(fetcher, settings.sources),
        exchange_rate=ExchangeRateSource(fetcher, settings.sources),
        yahoo=YahooFinanceSource(fetcher, settings.sources),
        fred=FredSource(fetcher, settings.sources),
    )

    database: SnapshotDatabase | None = None
    store: SnapshotStore | None = None
    if settings.store.enabled:
        database = SnapshotDatabase(settings.store.db_path)
        store = SnapshotStore(database)

    resolver = IndicatorResolver(
        sources=sources,
        cache=PreviousValueCache(),
        settings=settings.resolver,
        store=store,
        freshness_minutes=settings.store.freshness_minutes,
        synthetic=SyntheticDataGenerator(),
    )
    aggregator = DashboardAggregator(
        resolver=resolver,
        sources=sources,
        settings=settings.resolver,
        store=store,
        history_fallback_limit=settings.store.history_fallback_limit,
    )
    collector = SnapshotCollector(sources, store, settings.collector)

    return {
        "http": http,
        "sources": sources,
        "database": database,
        "store": store,
        "resolver": resolver,
        "aggregator": aggregator,
        "collector": collector,
    }


async def _open_resources(components: dict[str, Any]) -> None:
    await components["http"].connect()
    if components["database"] is not None:
        await components["database"].connect()


async def _close_resources(components: dict[str, Any]) -> None:
    await components["http"].close()
    if components["database"] is not None:
        await components["database"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open shared resources on startup and close them on shutdown.

    Also runs the snapshot collector in the background when enabled.
    """
    logger = get_logger("cryptodash.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.aggregator = components["aggregator"]
    app.state.resolver = components["resolver"]
    app.state.store = components["store"]
    app.state.sources = components["sources"]
    app.state.freshness_minutes = settings.store.freshness_minutes
    app.state.history_fallback_limit = settings.store.history_fallback_limit

    await _open_resources(components)

    collector: SnapshotCollector = components["collector"]
    if settings.collector.enabled:
        await collector.start()

    logger.info(
        "lifespan_started",
        on_exhaustion=settings.resolver.on_exhaustion,
        store_enabled=settings.store.enabled,
        collector_enabled=settings.collector.enabled,
    )

    yield

    await collector.stop()
    await _close_resources(components)
    logger.info("crypto_dashboard_stopped")


async def _run_headless(
    settings: AppSettings,
    components: dict[str, Any],
    stop_event: asyncio.Event | None = None,
) -> None:
    """Run only the collector until SIGINT/SIGTERM or until ``stop_event`` is set."""
    logger = get_logger("cryptodash.main")
    collector: SnapshotCollector = components["collector"]
    if stop_event is None:
        stop_event = asyncio.Event()

    signals = (signal.SIGINT, signal.SIGTERM)
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("starting_headless_collector", interval=settings.collector.interval)

    await _open_resources(components)
    try:
        await collector.start()
        await stop_event.wait()
        logger.info("graceful_shutdown_signal")
    finally:
        await collector.stop()
        await _close_resources(components)
        for sig in signals:
            loop.remove_signal_handler(sig)
        logger.info("crypto_dashboard_stopped")


async def run() -> None:
    """Run the dashboard API, or the collector alone when the dashboard is disabled."""
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("cryptodash.main")

    components = _build_components(settings)

    if not settings.dashboard.enabled:
        await _run_headless(settings, components)
        return

    from cryptodash.dashboard.app import create_dashboard_app

    app = create_dashboard_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_with_dashboard",
        host=settings.dashboard.host,
        port=settings.dashboard.port,
    )

    config = uvicorn.Config(
        app,
        host=settings.dashboard.host,
        port=settings.dashboard.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
