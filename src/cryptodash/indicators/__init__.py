"""Indicator derivation and resolution.

Premium calculation, the previous-value cache, synthetic fallbacks, the
per-indicator resolver and the dashboard aggregator.
"""

from cryptodash.indicators.aggregator import DashboardAggregator
from cryptodash.indicators.cache import PreviousValueCache
from cryptodash.indicators.premium import calculate_premium, fetch_premium_quote
from cryptodash.indicators.resolver import IndicatorResolver
from cryptodash.indicators.synthetic import SyntheticDataGenerator

__all__ = [
    "DashboardAggregator",
    "IndicatorResolver",
    "PreviousValueCache",
    "SyntheticDataGenerator",
    "calculate_premium",
    "fetch_premium_quote",
]
