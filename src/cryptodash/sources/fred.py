"""FRED adapter: dollar index history when the snapshot store has none."""

from datetime import datetime, timedelta, timezone
from decimal import InvalidOperation

from cryptodash.config import SourceSettings
from cryptodash.logging import get_logger
from cryptodash.models import ChartPoint
from cryptodash.sources.parsing import finite_decimal
from cryptodash.sources.retry import ResilientFetcher

logger = get_logger(__name__)

# FRED marks holidays / missing observations with "."
_MISSING_VALUE = "."


class FredSource:
    """Daily observations for the configured FRED series."""

    def __init__(self, fetcher: ResilientFetcher, settings: SourceSettings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self._settings.fred_api_key.get_secret_value())

    async def fetch_dollar_index_history(self, days: int = 365) -> list[ChartPoint] | None:
        """Observations for the last ``days`` days, oldest first, or None.

        Returns None without any network call when no API key is configured.
        """
        if not self.enabled:
            logger.debug("fred_api_key_missing")
            return None

        end = datetime.now(timezone.utc).date()
        start = end - timedelta(days=days)
        data = await self._fetcher.get_json(
            f"{self._settings.fred_base_url}/series/observations",
            source="fred",
            params={
                "series_id": self._settings.fred_series_id,
                "api_key": self._settings.fred_api_key.get_secret_value(),
                "file_type": "json",
                "observation_start": start.isoformat(),
                "observation_end": end.isoformat(),
            },
            timeout=self._settings.request_timeout,
        )
        if data is None:
            return None
        try:
            return [
                ChartPoint(
                    timestamp=datetime.fromisoformat(obs["date"]).replace(tzinfo=timezone.utc),
                    value=finite_decimal(obs["value"]),
                )
                for obs in data["observations"]
                if obs.get("value") != _MISSING_VALUE
            ]
        except (KeyError, TypeError, AttributeError, ValueError, InvalidOperation) as e:
            logger.warning("fred_malformed_response", error=str(e))
            return None
