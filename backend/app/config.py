"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql://localhost/signal_engine"

    # Shared secret for the cron-triggered enqueue/worker endpoints.
    # Empty means the endpoints reject every call.
    cron_secret: str = ""

    # Kraken API
    kraken_base_url: str = "https://api.kraken.com"
    kraken_calls_per_minute: int = 60

    # Worker
    worker_batch_size: int = 5

    # Alerts: POST new signals to this webhook when set
    alert_webhook_url: str = ""
    alert_min_confidence: float = 70.0
    alert_timeout_seconds: float = 10.0

    # Market scanner
    scanner_instruments: list[str] = ["XBTUSD", "ETHUSD", "SOLUSD", "XRPUSD", "ADAUSD"]
    scanner_timeframe: str = "1h"

    # Agents seeded at startup (YAML); empty disables seeding
    agents_file: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
