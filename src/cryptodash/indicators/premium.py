"""Korea/global BTC price-gap ("kimchi premium") calculation."""

import asyncio
from decimal import Decimal

from cryptodash.logging import get_logger
from cryptodash.models import PremiumQuote
from cryptodash.sources import MarketSources

logger = get_logger(__name__)


def calculate_premium(
    domestic_price: Decimal | None,
    foreign_price: Decimal | None,
    exchange_rate: Decimal | None,
) -> PremiumQuote | None:
    """Percentage gap of a domestic price over a converted foreign price.

    foreign_converted = foreign_price * exchange_rate (domestic per foreign unit)
    premium = (domestic_price - foreign_converted) / foreign_converted * 100

    Returns None if any input is missing or non-finite, or the converted
    price is not positive; a missing input is never treated as zero. No
    rounding.
    """
    if domestic_price is None or foreign_price is None or exchange_rate is None:
        return None
    if not all(v.is_finite() for v in (domestic_price, foreign_price, exchange_rate)):
        return None

    foreign_converted = foreign_price * exchange_rate
    if foreign_converted <= 0:
        return None

    premium = (domestic_price - foreign_converted) / foreign_converted * 100
    return PremiumQuote(
        premium=premium,
        domestic_price=domestic_price,
        foreign_price=foreign_price,
        foreign_price_converted=foreign_converted,
        exchange_rate=exchange_rate,
    )


async def fetch_premium_inputs(
    sources: MarketSources,
) -> tuple[Decimal | None, Decimal | None, Decimal | None]:
    """Fetch (Upbit KRW price, Binance USD price, KRW per USD) concurrently.

    The three calls settle independently; one that raises is logged and
    reported as None without affecting the others.
    """
    results = await asyncio.gather(
        sources.upbit.fetch_btc_krw_price(),
        sources.binance.fetch_btc_usd_price(),
        sources.exchange_rate.fetch_usd_krw_rate(),
        return_exceptions=True,
    )

    inputs: list[Decimal | None] = []
    for label, result in zip(("upbit", "binance", "exchange_rate"), results):
        if isinstance(result, Exception):
            logger.warning("premium_input_failed", source=label, error=str(result))
            inputs.append(None)
        else:
            inputs.append(result)
    return inputs[0], inputs[1], inputs[2]


async def fetch_premium_quote(sources: MarketSources) -> PremiumQuote | None:
    """Fetch the three inputs and compute the premium, or None."""
    upbit_price, binance_price, usd_krw_rate = await fetch_premium_inputs(sources)
    return calculate_premium(upbit_price, binance_price, usd_krw_rate)
