"""Shared data models for the crypto indicator dashboard.

All prices, rates and indicator values use Decimal and stay unrounded.
Rounding happens once, at the JSON boundary (cryptodash.dashboard.formatting).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum


class ResolutionSource(str, Enum):
    """Which tier of the resolution chain produced a value."""

    CACHE = "cache"  # fresh row from the snapshot store
    LIVE = "live"
    FALLBACK = "fallback"  # synthetic value


class IndicatorName(str, Enum):
    """Indicator slugs used by the API and the previous-value cache."""

    BTC_DOMINANCE = "btc-dominance"
    KIMCHI_PREMIUM = "kimchi-premium"
    DOLLAR_INDEX = "dollar-index"

    @property
    def column(self) -> str:
        """Snapshot store column holding this indicator."""
        return self.value.replace("-", "_")


@dataclass
class IndicatorValue:
    """Current value of one indicator plus its delta from the previous observation.

    previous_value is either the last value seen in this process or a
    synthesized approximation (value * constant near 1) when there is none.
    """

    name: str
    value: Decimal
    previous_value: Decimal
    change: Decimal
    change_percent: Decimal
    unit: str
    last_updated: datetime
    source: ResolutionSource = ResolutionSource.LIVE
    details: dict[str, Decimal | None] = field(default_factory=dict)

    @classmethod
    def from_observation(
        cls,
        name: str,
        value: Decimal,
        previous_value: Decimal,
        unit: str,
        last_updated: datetime,
        source: ResolutionSource,
        details: dict[str, Decimal | None] | None = None,
    ) -> "IndicatorValue":
        """Build a value with change = value - previous and change% over |previous|.

        A zero previous value yields a change percent of 0.
        """
        change = value - previous_value
        if previous_value == 0:
            change_percent = Decimal("0")
        else:
            change_percent = change / abs(previous_value) * 100
        return cls(
            name=name,
            value=value,
            previous_value=previous_value,
            change=change,
            change_percent=change_percent,
            unit=unit,
            last_updated=last_updated,
            source=source,
            details=details or {},
        )


@dataclass
class CryptoMarketEntry:
    """One coin from the market snapshot."""

    symbol: str
    price: Decimal
    change_24h: Decimal = Decimal("0")
    change_percent_24h: Decimal = Decimal("0")
    volume_24h: Decimal = Decimal("0")
    market_cap: Decimal = Decimal("0")
    all_time_high: Decimal | None = None
    ath_date: str | None = None

    def to_record(self) -> dict:
        """Serialize for the snapshot store's crypto_prices_json column."""
        return {
            "symbol": self.symbol,
            "price": str(self.price),
            "change_24h": str(self.change_24h),
            "change_percent_24h": str(self.change_percent_24h),
            "volume_24h": str(self.volume_24h),
            "market_cap": str(self.market_cap),
            "ath": str(self.all_time_high) if self.all_time_high is not None else None,
            "ath_date": self.ath_date,
        }

    @classmethod
    def from_record(cls, record: dict) -> "CryptoMarketEntry":
        """Inverse of to_record. Missing numeric fields default to zero."""
        ath = record.get("ath")
        return cls(
            symbol=record["symbol"],
            price=Decimal(str(record["price"])),
            change_24h=Decimal(str(record.get("change_24h") or 0)),
            change_percent_24h=Decimal(str(record.get("change_percent_24h") or 0)),
            volume_24h=Decimal(str(record.get("volume_24h") or 0)),
            market_cap=Decimal(str(record.get("market_cap") or 0)),
            all_time_high=Decimal(str(ath)) if ath is not None else None,
            ath_date=record.get("ath_date"),
        )


@dataclass
class CryptoMarketSnapshot:
    """Resolved market snapshot together with the tier that produced it."""

    entries: list[CryptoMarketEntry]
    source: ResolutionSource
    last_updated: datetime


@dataclass
class PremiumQuote:
    """Result of the premium calculation, with the inputs that produced it."""

    premium: Decimal  # percent
    domestic_price: Decimal  # KRW
    foreign_price: Decimal  # USD
    foreign_price_converted: Decimal  # KRW
    exchange_rate: Decimal  # KRW per USD


@dataclass
class IndicatorSnapshot:
    """One persisted, append-only row written by a collection cycle."""

    timestamp: datetime
    btc_dominance: Decimal | None = None
    kimchi_premium: Decimal | None = None
    dollar_index: Decimal | None = None
    btc_price: Decimal | None = None
    btc_change_24h: Decimal | None = None
    crypto_prices: list[CryptoMarketEntry] | None = None
    collection_source: str = "scheduler"
    api_health: dict[str, str] = field(default_factory=dict)
    created_at: datetime | None = None
    id: int | None = None

    def indicator(self, name: IndicatorName) -> Decimal | None:
        """Return the stored value for an indicator, or None."""
        return getattr(self, name.column)


@dataclass
class ChartPoint:
    """One point of a historical chart series."""

    timestamp: datetime
    value: Decimal


@dataclass
class DashboardData:
    """Aggregated dashboard payload.

    Members that failed under the "fail" policy are None and listed in
    errors; sources records which tier produced every member that succeeded.
    """

    bitcoin_dominance: IndicatorValue | None
    kimchi_premium: IndicatorValue | None
    dollar_index: IndicatorValue | None
    crypto_prices: CryptoMarketSnapshot | None
    sources: dict[str, ResolutionSource] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)
