"""Typed read/write access to the append-only snapshot table.

Rows are written once per collection cycle and never updated. Several rows
may share a timestamp, so every read orders by (created_at_ms, id).

Decimal values are stored as TEXT and restored as Decimal on read.
"""

import json
import time
from datetime import datetime, timezone
from decimal import Decimal

from cryptodash.data.database import SnapshotDatabase
from cryptodash.logging import get_logger
from cryptodash.models import ChartPoint, CryptoMarketEntry, IndicatorSnapshot

logger = get_logger(__name__)

# Columns that may be charted or summarized; guards the f-string SQL below
HISTORY_INDICATORS = frozenset({"btc_dominance", "kimchi_premium", "dollar_index"})

_SNAPSHOT_COLUMNS = (
    "id, timestamp, btc_dominance, kimchi_premium, dollar_index, btc_price, "
    "btc_change_24h, crypto_prices_json, collection_source, api_health, created_at_ms"
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _ms_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _decimal_or_none(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _text_or_none(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _validate_indicator(indicator: str) -> None:
    if indicator not in HISTORY_INDICATORS:
        raise ValueError(
            f"unknown indicator {indicator!r}; expected one of {sorted(HISTORY_INDICATORS)}"
        )


def _row_to_snapshot(row: tuple) -> IndicatorSnapshot:
    crypto_prices = None
    if row[7] is not None:
        crypto_prices = [CryptoMarketEntry.from_record(r) for r in json.loads(row[7])]
    return IndicatorSnapshot(
        id=row[0],
        timestamp=datetime.fromisoformat(row[1]),
        btc_dominance=_decimal_or_none(row[2]),
        kimchi_premium=_decimal_or_none(row[3]),
        dollar_index=_decimal_or_none(row[4]),
        btc_price=_decimal_or_none(row[5]),
        btc_change_24h=_decimal_or_none(row[6]),
        crypto_prices=crypto_prices,
        collection_source=row[8],
        api_health=json.loads(row[9]) if row[9] else {},
        created_at=_ms_to_datetime(row[10]),
    )


class SnapshotStore:
    """Async SQLite store for indicator snapshots.

    Usage:
        async with SnapshotDatabase("data/indicators.db") as database:
            store = SnapshotStore(database)
            latest = await store.get_latest_snapshot()
    """

    def __init__(self, database: SnapshotDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def insert_snapshot(
        self,
        snapshot: IndicatorSnapshot,
        created_at_ms: int | None = None,
    ) -> int:
        """Append one snapshot row and return its id.

        created_at_ms defaults to now; tests pass explicit values to build
        a timeline.
        """
        if created_at_ms is None:
            created_at_ms = _now_ms()

        crypto_prices_json = None
        if snapshot.crypto_prices is not None:
            crypto_prices_json = json.dumps([e.to_record() for e in snapshot.crypto_prices])

        cursor = await self._database.db.execute(
            "INSERT INTO indicator_snapshots "
            "(timestamp, btc_dominance, kimchi_premium, dollar_index, btc_price, "
            "btc_change_24h, crypto_prices_json, collection_source, api_health, created_at_ms) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                snapshot.timestamp.isoformat(),
                _text_or_none(snapshot.btc_dominance),
                _text_or_none(snapshot.kimchi_premium),
                _text_or_none(snapshot.dollar_index),
                _text_or_none(snapshot.btc_price),
                _text_or_none(snapshot.btc_change_24h),
                crypto_prices_json,
                snapshot.collection_source,
                json.dumps(snapshot.api_health),
                created_at_ms,
            ),
        )
        await self._database.db.commit()

        row_id = cursor.lastrowid
        logger.debug("inserted_snapshot", id=row_id, created_at_ms=created_at_ms)
        return row_id

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_latest_snapshot(
        self,
        max_age_minutes: int = 30,
        now_ms: int | None = None,
    ) -> IndicatorSnapshot | None:
        """Newest snapshot created within the last ``max_age_minutes``, or None."""
        if now_ms is None:
            now_ms = _now_ms()
        since_ms = now_ms - max_age_minutes * 60 * 1000

        cursor = await self._database.db.execute(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM indicator_snapshots "
            "WHERE created_at_ms >= ? ORDER BY created_at_ms DESC, id DESC LIMIT 1",
            (since_ms,),
        )
        row = await cursor.fetchone()
        return _row_to_snapshot(row) if row is not None else None

    async def get_historical_series(
        self,
        indicator: str,
        hours: int = 24,
        fallback_limit: int = 100,
        now_ms: int | None = None,
    ) -> list[ChartPoint]:
        """Chart series for one indicator, oldest first.

        Returns the non-null values inside the window. When the window is
        empty, falls back to the most recent ``fallback_limit`` non-null
        values regardless of age.
        """
        _validate_indicator(indicator)
        if now_ms is None:
            now_ms = _now_ms()
        since_ms = now_ms - hours * 3600 * 1000

        db = self._database.db
        cursor = await db.execute(
            f"SELECT created_at_ms, {indicator} FROM indicator_snapshots "
            f"WHERE created_at_ms >= ? AND {indicator} IS NOT NULL "
            "ORDER BY created_at_ms ASC, id ASC",
            (since_ms,),
        )
        rows = list(await cursor.fetchall())

        if not rows:
            logger.debug("historical_window_empty", indicator=indicator, hours=hours)
            cursor = await db.execute(
                f"SELECT created_at_ms, {indicator} FROM indicator_snapshots "
                f"WHERE {indicator} IS NOT NULL "
                "ORDER BY created_at_ms DESC, id DESC LIMIT ?",
                (fallback_limit,),
            )
            rows = list(reversed(await cursor.fetchall()))

        return [
            ChartPoint(timestamp=_ms_to_datetime(row[0]), value=Decimal(row[1]))
            for row in rows
        ]

    async def get_snapshots(self, limit: int = 100, offset: int = 0) -> list[IndicatorSnapshot]:
        """Page through all snapshots, newest first."""
        cursor = await self._database.db.execute(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM indicator_snapshots "
            "ORDER BY created_at_ms DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        rows = await cursor.fetchall()
        return [_row_to_snapshot(row) for row in rows]

    async def get_indicator_stats(
        self,
        indicator: str,
        hours: int = 24,
        now_ms: int | None = None,
    ) -> dict | None:
        """Average/min/max/count of an indicator over the window, or None if empty."""
        _validate_indicator(indicator)
        if now_ms is None:
            now_ms = _now_ms()
        since_ms = now_ms - hours * 3600 * 1000

        cursor = await self._database.db.execute(
            f"SELECT {indicator} FROM indicator_snapshots "
            f"WHERE created_at_ms >= ? AND {indicator} IS NOT NULL",
            (since_ms,),
        )
        values = [Decimal(row[0]) for row in await cursor.fetchall()]
        if not values:
            return None

        return {
            "average": sum(values, Decimal("0")) / len(values),
            "min": min(values),
            "max": max(values),
            "count": len(values),
        }
