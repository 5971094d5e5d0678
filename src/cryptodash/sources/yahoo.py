"""Yahoo Finance adapter for the US dollar index (DXY)."""

from decimal import Decimal, InvalidOperation

from cryptodash.config import SourceSettings
from cryptodash.logging import get_logger
from cryptodash.sources.parsing import finite_decimal
from cryptodash.sources.retry import ResilientFetcher

logger = get_logger(__name__)


def extract_regular_market_price(data: object) -> Decimal | None:
    """Walk chart.result[0].meta.regularMarketPrice, tolerating missing segments."""
    if not isinstance(data, dict):
        return None
    chart = data.get("chart")
    if not isinstance(chart, dict):
        return None
    results = chart.get("result")
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        return None
    meta = results[0].get("meta")
    if not isinstance(meta, dict):
        return None
    price = meta.get("regularMarketPrice")
    if price is None or isinstance(price, bool):
        return None
    try:
        return finite_decimal(price)
    except InvalidOperation:
        return None


class YahooFinanceSource:
    """Currency-strength index from the Yahoo chart endpoint."""

    def __init__(self, fetcher: ResilientFetcher, settings: SourceSettings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    async def fetch_dollar_index(self) -> Decimal | None:
        """Latest regular-market DXY price, or None."""
        data = await self._fetcher.get_json(
            f"{self._settings.yahoo_chart_url}/{self._settings.dollar_index_symbol}",
            source="yahoo_finance",
            headers={"User-Agent": self._settings.user_agent},
            timeout=self._settings.dollar_index_timeout,
        )
        if data is None:
            return None
        price = extract_regular_market_price(data)
        if price is None:
            logger.warning("yahoo_finance_malformed_response", symbol=self._settings.dollar_index_symbol)
        return price
