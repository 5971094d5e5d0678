"""Presentation-edge formatting: the only place values are rounded.

Everything below the API works on unrounded Decimals. These helpers round
to two decimal places (half-up) and convert to JSON-friendly types using
the camelCase keys the dashboard frontend expects.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from cryptodash.models import (
    ChartPoint,
    CryptoMarketEntry,
    CryptoMarketSnapshot,
    DashboardData,
    IndicatorSnapshot,
    IndicatorValue,
)

TWO_PLACES = Decimal("0.01")

_DETAIL_KEYS = {
    "upbit_price": "upbitPrice",
    "binance_price_krw": "binancePrice",
    "usd_krw_rate": "usdKrwRate",
}


def round2(value: Decimal | None) -> float | None:
    """Round half-up to two decimal places. None passes through."""
    if value is None:
        return None
    return float(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def format_indicator(value: IndicatorValue) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": value.name,
        "value": round2(value.value),
        "previousValue": round2(value.previous_value),
        "change": round2(value.change),
        "changePercent": round2(value.change_percent),
        "unit": value.unit,
        "lastUpdated": _iso(value.last_updated),
        "source": value.source.value,
    }
    for key, detail in value.details.items():
        payload[_DETAIL_KEYS.get(key, key)] = round2(detail)
    return payload


def format_market_entry(entry: CryptoMarketEntry) -> dict[str, Any]:
    return {
        "symbol": entry.symbol,
        "price": round2(entry.price),
        "change24h": round2(entry.change_24h),
        "changePercent24h": round2(entry.change_percent_24h),
        "volume24h": round2(entry.volume_24h),
        "marketCap": round2(entry.market_cap),
        "allTimeHigh": round2(entry.all_time_high),
        "athDate": entry.ath_date,
    }


def format_market_snapshot(snapshot: CryptoMarketSnapshot) -> dict[str, Any]:
    return {
        "entries": [format_market_entry(e) for e in snapshot.entries],
        "source": snapshot.source.value,
        "lastUpdated": _iso(snapshot.last_updated),
    }


def format_chart(points: list[ChartPoint]) -> list[dict[str, Any]]:
    return [{"timestamp": _iso(p.timestamp), "value": round2(p.value)} for p in points]


def format_snapshot(snapshot: IndicatorSnapshot) -> dict[str, Any]:
    return {
        "id": snapshot.id,
        "timestamp": _iso(snapshot.timestamp),
        "btcDominance": round2(snapshot.btc_dominance),
        "kimchiPremium": round2(snapshot.kimchi_premium),
        "dollarIndex": round2(snapshot.dollar_index),
        "btcPrice": round2(snapshot.btc_price),
        "btcChange24h": round2(snapshot.btc_change_24h),
        "cryptoPrices": (
            [format_market_entry(e) for e in snapshot.crypto_prices]
            if snapshot.crypto_prices is not None
            else None
        ),
        "collectionSource": snapshot.collection_source,
        "apiHealth": snapshot.api_health,
        "createdAt": _iso(snapshot.created_at),
    }


def format_stats(stats: dict | None) -> dict[str, Any] | None:
    if stats is None:
        return None
    return {
        "average": round2(stats["average"]),
        "min": round2(stats["min"]),
        "max": round2(stats["max"]),
        "count": stats["count"],
    }


def format_dashboard(data: DashboardData) -> dict[str, Any]:
    """Full dashboard payload, including per-member sources and errors."""
    return {
        "bitcoinDominance": format_indicator(data.bitcoin_dominance) if data.bitcoin_dominance else None,
        "kimchiPremium": format_indicator(data.kimchi_premium) if data.kimchi_premium else None,
        "dollarIndex": format_indicator(data.dollar_index) if data.dollar_index else None,
        "cryptoPrices": format_market_snapshot(data.crypto_prices) if data.crypto_prices else None,
        "sources": {member: source.value for member, source in data.sources.items()},
        "errors": data.errors,
    }
