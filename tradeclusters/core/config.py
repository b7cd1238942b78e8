"""Pydantic-settings configuration for the trade-cluster engine.

Loads every tunable from the environment (or a ``.env`` file) with defaults
sized for public exchange limits: one-hour backfill windows, a 300 ms
politeness delay, 500 ms minimum retry backoff and a 20 s HTTP timeout.
"""

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = "Trade Clusters"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    # Storage
    database_url: str = "sqlite+aiosqlite:///./data.sqlite"

    # HTTP surface
    allowed_origins: str = ""  # Comma-separated extra CORS origins
    web_dir: str = ""  # Optional directory with a static client UI
    backfill_rate_limit: str = "30/minute"

    # Backfill tuning
    backfill_window_ms: int = HOUR_MS
    default_lookback_ms: int = DAY_MS
    politeness_delay_ms: int = 300
    backoff_min_ms: int = 500
    backoff_max_ms: int = 5_000
    max_pages_per_window: int = 10
    http_timeout_seconds: float = 20.0

    # Exchange endpoints
    binance_base_url: str = "https://fapi.binance.com"
    okx_base_url: str = "https://www.okx.com"
    bybit_base_url: str = "https://api.bybit.com"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Allowed CORS origins; everything when debugging."""
        if self.debug:
            return ["*"]
        origins = ["http://localhost:3000", "http://localhost:8000"]
        origins.extend(
            o.strip() for o in self.allowed_origins.split(",") if o.strip()
        )
        return origins

    def base_url_for(self, exchange: str) -> str | None:
        """Return the configured base URL override for an exchange, if any."""
        return getattr(self, f"{exchange}_base_url", None)


# Singleton instance
settings = Settings()
