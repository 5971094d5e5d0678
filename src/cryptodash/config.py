"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceSettings(BaseSettings):
    """Upstream market-data endpoints, credentials and per-call timeouts."""

    model_config = SettingsConfigDict(env_prefix="SOURCES_")

    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    upbit_base_url: str = "https://api.upbit.com/v1"
    binance_base_url: str = "https://api.binance.com/api/v3"
    exchange_rate_url: str = "https://api.exchangerate-api.com/v4/latest/USD"
    yahoo_chart_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    fred_base_url: str = "https://api.stlouisfed.org/fred"

    coingecko_api_key: SecretStr = SecretStr("")  # optional demo key
    fred_api_key: SecretStr = SecretStr("")  # dollar index history only

    request_timeout: float = 10.0  # seconds
    exchange_timeout: float = 8.0  # Upbit / Binance / FX
    dollar_index_timeout: float = 15.0  # Yahoo is the slowest upstream

    market_coin_ids: list[str] = [
        "bitcoin",
        "ethereum",
        "ripple",
        "cardano",
        "solana",
        "ondo-finance",
    ]
    binance_market_symbols: list[str] = [
        "BTCUSDT",
        "ETHUSDT",
        "XRPUSDT",
        "ADAUSDT",
        "SOLUSDT",
    ]
    dollar_index_symbol: str = "DX-Y.NYB"
    fred_series_id: str = "DEXUSEU"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    )


class RetrySettings(BaseSettings):
    """Retry/backoff parameters shared by every upstream adapter."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_retries: int = 2  # 3 attempts in total
    base_delay: float = 1.0
    max_delay: float = 8.0
    rate_limit_multiplier: float = 3.0  # HTTP 429 backs off harder
    rate_limit_max_delay: float = 30.0


class RateLimitSettings(BaseSettings):
    """Token bucket protecting the CoinGecko free-tier quota."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")

    max_tokens: int = 10
    refill_rate: float = 0.5  # tokens per second


class StoreSettings(BaseSettings):
    """Snapshot store configuration."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    enabled: bool = True
    db_path: str = "data/indicators.db"
    freshness_minutes: int = 30  # snapshots older than this are bypassed
    history_fallback_limit: int = 100


class ResolverSettings(BaseSettings):
    """Indicator resolution policy.

    on_exhaustion decides what happens once the snapshot store and the live
    source have both failed: "fallback" masks the gap with a synthetic value,
    "fail" raises AllSourcesUnavailableError to the caller.
    """

    model_config = SettingsConfigDict(env_prefix="RESOLVER_")

    on_exhaustion: Literal["fallback", "fail"] = "fallback"


class CollectorSettings(BaseSettings):
    """Periodic snapshot collection."""

    model_config = SettingsConfigDict(env_prefix="COLLECTOR_")

    enabled: bool = False
    interval: int = 3600  # seconds between collection cycles
    source_name: str = "scheduler"


class DashboardSettings(BaseSettings):
    """Dashboard API server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    sources: SourceSettings = SourceSettings()
    retry: RetrySettings = RetrySettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    store: StoreSettings = StoreSettings()
    resolver: ResolverSettings = ResolverSettings()
    collector: CollectorSettings = CollectorSettings()
    dashboard: DashboardSettings = DashboardSettings()
