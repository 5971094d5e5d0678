"""JSON API endpoints consumed by the dashboard frontend.

Every response goes through cryptodash.dashboard.formatting, the single
rounding boundary.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from cryptodash.dashboard.formatting import (
    format_chart,
    format_dashboard,
    format_indicator,
    format_snapshot,
    format_stats,
    round2,
)
from cryptodash.data.store import HISTORY_INDICATORS
from cryptodash.exceptions import AllSourcesUnavailableError

log = structlog.get_logger(__name__)

router = APIRouter()

_HISTORY_TYPES = ("latest", "historical", "all", "stats")
_DEBUG_APIS = ("upbit", "binance", "exchange")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(content={"success": False, "error": message}, status_code=status_code)


@router.get("/dashboard")
async def get_dashboard(request: Request) -> JSONResponse:
    """All indicators plus the market snapshot, with per-member sources."""
    aggregator = request.app.state.aggregator
    try:
        data = await aggregator.get_dashboard_data()
    except AllSourcesUnavailableError as e:
        log.error("dashboard_unavailable", error=str(e))
        return _error(str(e), 503)
    return JSONResponse(content=format_dashboard(data))


@router.get("/indicators/{slug}")
async def get_indicator(request: Request, slug: str) -> JSONResponse:
    """Current value of one indicator (btc-dominance, kimchi-premium, dollar-index)."""
    resolver = request.app.state.resolver
    try:
        value = await resolver.resolve(slug)
    except ValueError:
        return _error(f"Unknown indicator: {slug}", 404)
    except AllSourcesUnavailableError as e:
        return _error(str(e), 503)
    return JSONResponse(content=format_indicator(value))


@router.get("/chart/{slug}")
async def get_chart(request: Request, slug: str, days: int = 7) -> JSONResponse:
    """Chart series for one indicator, oldest first."""
    aggregator = request.app.state.aggregator
    try:
        points = await aggregator.get_chart_data(slug, days=days)
    except ValueError:
        return _error(f"Unknown indicator: {slug}", 404)
    except AllSourcesUnavailableError as e:
        return _error(str(e), 503)
    return JSONResponse(content=format_chart(points))


@router.get("/crypto-history")
async def get_crypto_history(
    request: Request,
    type: str = "latest",
    indicator: str | None = None,
    hours: int = 24,
    limit: int = 100,
    offset: int = 0,
) -> JSONResponse:
    """Direct read access to the snapshot store.

    type=latest      freshest snapshot within the freshness window
    type=historical  series for ``indicator`` over ``hours``
    type=all         paginated snapshots, newest first
    type=stats       average/min/max/count for ``indicator`` over ``hours``
    """
    store = request.app.state.store
    if store is None:
        return _error("Snapshot store is disabled", 503)
    if type not in _HISTORY_TYPES:
        return _error(f"Invalid type parameter. Use: {', '.join(_HISTORY_TYPES)}", 400)
    if type in ("historical", "stats") and indicator not in HISTORY_INDICATORS:
        return _error(
            f"indicator parameter is required for {type} data: "
            f"{', '.join(sorted(HISTORY_INDICATORS))}",
            400,
        )

    try:
        if type == "latest":
            freshness = getattr(request.app.state, "freshness_minutes", 30)
            latest = await store.get_latest_snapshot(freshness)
            return JSONResponse(content={
                "success": True,
                "data": format_snapshot(latest) if latest is not None else None,
                "isFresh": latest is not None,
            })

        if type == "historical":
            fallback_limit = getattr(request.app.state, "history_fallback_limit", 100)
            series = await store.get_historical_series(
                indicator, hours=hours, fallback_limit=fallback_limit
            )
            return JSONResponse(content={
                "success": True,
                "data": format_chart(series),
                "meta": {"indicator": indicator, "hours": hours, "count": len(series)},
            })

        if type == "all":
            snapshots = await store.get_snapshots(limit=limit, offset=offset)
            return JSONResponse(content={
                "success": True,
                "data": [format_snapshot(s) for s in snapshots],
                "meta": {"limit": limit, "offset": offset, "count": len(snapshots)},
            })

        stats = await store.get_indicator_stats(indicator, hours=hours)
        return JSONResponse(content={
            "success": True,
            "data": format_stats(stats),
            "meta": {"indicator": indicator, "hours": hours},
        })
    except Exception as e:
        log.error("crypto_history_error", type=type, indicator=indicator, error=str(e))
        return _error("Internal server error", 500)


@router.get("/debug-apis")
async def debug_apis(request: Request, api: str = "all") -> JSONResponse:
    """Probe the premium's live inputs and report what each one returned."""
    sources = request.app.state.sources
    probes = {
        "upbit": sources.upbit.fetch_btc_krw_price,
        "binance": sources.binance.fetch_btc_usd_price,
        "exchange": sources.exchange_rate.fetch_usd_krw_rate,
    }

    if api not in probes and api != "all":
        return _error(f"Invalid API parameter. Use ?api={'|'.join(_DEBUG_APIS)}|all", 400)

    selected = list(probes) if api == "all" else [api]
    results = await asyncio.gather(*(probes[name]() for name in selected), return_exceptions=True)

    report: list[dict[str, Any]] = []
    for name, result in zip(selected, results):
        if isinstance(result, Exception):
            report.append({"api": name, "success": False, "data": None, "error": str(result)})
        else:
            report.append({
                "api": name,
                "success": result is not None,
                "data": round2(result),
                "error": None,
            })

    log.info("debug_apis_probed", apis=selected, ok=[r["api"] for r in report if r["success"]])
    if api == "all":
        return JSONResponse(content={"success": True, "testResults": report})
    return JSONResponse(content=report[0])
