"""Configuration values for the alphascan package."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    exchange_base_url: str = Field(
        "https://www.binance.com/bapi/defi/v1/public",
        description="Root URL of the exchange public API",
    )
    request_timeout: float = Field(10.0, description="Seconds allowed per request")
    user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        description="User-Agent header sent to the exchange",
    )

    token_list_ttl: float = Field(300.0, description="Cache TTL for the token list")
    ticker_ttl: float = Field(5.0, description="Cache TTL for tickers")
    klines_ttl: float = Field(30.0, description="Cache TTL for klines")

    kline_limit: int = Field(2, description="Daily buckets fetched for volume stats")
    range_kline_limit: int = Field(
        100, description="Daily buckets fetched for a volume range report"
    )

    batch_concurrency: int = Field(3, ge=1, description="Max detail fetches in flight")
    request_spacing: float = Field(
        0.05, ge=0, description="Seconds a batch slot stays busy after each fetch"
    )
    initial_batch_size: int = Field(25, ge=1, description="Tokens fetched on load")
    display_limit: int = Field(20, ge=1, description="Tokens shown on the dashboard")
    refresh_interval: float = Field(30.0, gt=0, description="Seconds between refreshes")
    prioritize_competitions: bool = Field(
        True, description="Fetch competition tokens first on initial load"
    )

    admin_password: str = Field("", description="Shared secret for the admin area")
    competitions_db_path: str | None = Field(
        None, description="SQLite path (defaults to ~/.alphascan/competitions.db)"
    )

    log_level: str = Field("INFO", description="Log level")

    sentry_dsn: str | None = Field(None, description="Sentry DSN")
    sentry_environment: str = Field("production", description="Sentry environment")
    sentry_traces_sample_rate: float = Field(
        0.0, description="Sentry traces sample rate"
    )


settings = Settings()
