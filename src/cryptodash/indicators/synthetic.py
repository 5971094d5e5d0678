"""Synthetic indicator values used when every real source failed.

Each value is a fixed base plus bounded uniform jitter. The generator takes
an injectable random.Random so tests can pin the output.
"""

import random
from datetime import datetime
from decimal import Decimal

from cryptodash.models import (
    CryptoMarketEntry,
    IndicatorName,
    IndicatorValue,
    ResolutionSource,
    utc_now,
)

# (display name, unit, base, current jitter, previous jitter)
_INDICATOR_BASES: dict[IndicatorName, tuple[str, str, float, float, float]] = {
    IndicatorName.BTC_DOMINANCE: ("Bitcoin Dominance", "%", 54.2, 1.0, 0.75),
    IndicatorName.KIMCHI_PREMIUM: ("Kimchi Premium", "%", 2.3, 2.0, 1.5),
    IndicatorName.DOLLAR_INDEX: ("Dollar Index", "DXY", 104.2, 0.75, 0.6),
}

# symbol, base price (USD), base market cap, base 24h volume
_MOCK_COINS: tuple[tuple[str, float, float, float], ...] = (
    ("BTC", 95420.0, 1_890_000_000_000.0, 42_000_000_000.0),
    ("ETH", 3340.0, 402_000_000_000.0, 18_000_000_000.0),
    ("XRP", 2.15, 125_000_000_000.0, 8_500_000_000.0),
    ("ADA", 0.87, 31_000_000_000.0, 1_200_000_000.0),
    ("SOL", 185.5, 89_000_000_000.0, 3_400_000_000.0),
)

_PRICE_JITTER = 0.05  # +/-5 %
_UPBIT_PRICE_RANGE = (135_000_000.0, 140_000_000.0)  # KRW
_BINANCE_KRW_PRICE_RANGE = (132_000_000.0, 135_000_000.0)  # KRW


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


class SyntheticDataGenerator:
    """Bounded pseudo-random stand-ins for the dashboard's indicators."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def _jitter(self, base: float, spread: float) -> float:
        return base + self._rng.uniform(-spread, spread)

    def indicator(self, name: IndicatorName, now: datetime | None = None) -> IndicatorValue:
        """Synthetic IndicatorValue for ``name``."""
        display, unit, base, spread, previous_spread = _INDICATOR_BASES[name]
        details: dict[str, Decimal | None] = {}
        if name is IndicatorName.KIMCHI_PREMIUM:
            details = {
                "upbit_price": _dec(self._rng.uniform(*_UPBIT_PRICE_RANGE)),
                "binance_price_krw": _dec(self._rng.uniform(*_BINANCE_KRW_PRICE_RANGE)),
                "usd_krw_rate": None,
            }
        return IndicatorValue.from_observation(
            name=display,
            value=_dec(self._jitter(base, spread)),
            previous_value=_dec(self._jitter(base, previous_spread)),
            unit=unit,
            last_updated=now or utc_now(),
            source=ResolutionSource.FALLBACK,
            details=details,
        )

    def crypto_prices(self) -> list[CryptoMarketEntry]:
        """Synthetic market snapshot for five major coins."""
        entries = []
        for symbol, base_price, base_cap, base_volume in _MOCK_COINS:
            price = base_price * (1 + self._rng.uniform(-_PRICE_JITTER, _PRICE_JITTER))
            previous = base_price * (1 + self._rng.uniform(-0.04, 0.04))
            change = price - previous
            entries.append(
                CryptoMarketEntry(
                    symbol=symbol,
                    price=_dec(price),
                    change_24h=_dec(change),
                    change_percent_24h=_dec(change / previous * 100),
                    volume_24h=_dec(base_volume * (1 + self._rng.uniform(-0.15, 0.15))),
                    market_cap=_dec(base_cap * (1 + self._rng.uniform(-0.1, 0.1))),
                )
            )
        return entries
