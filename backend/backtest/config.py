"""Backtest configuration.

BacktestSettings: environment-level settings (database, data source).
BacktestConfig: the immutable parameters of one run.
"""

from __future__ import annotations

import os
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models.strategy import StrategyKind
from core.models.timeframe import timeframe_minutes


class BacktestSettings(BaseSettings):
    """Backtest configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BACKTEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # PostgreSQL: cached candles (read) and backtest results (write)
    database_url: str = os.environ.get(
        "DATABASE_URL", "postgresql://localhost/signal_engine"
    )
    kraken_base_url: str = "https://api.kraken.com"


_settings: BacktestSettings | None = None


def get_backtest_settings() -> BacktestSettings:
    """Get cached backtest settings instance."""
    global _settings
    if _settings is None:
        _settings = BacktestSettings()
    return _settings


class BacktestConfig(BaseModel):
    """Parameters of a single backtest run. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    instruments: list[str] = Field(min_length=1)
    strategies: list[StrategyKind] = Field(min_length=1)
    timeframe: str = "1h"
    start_date: datetime
    end_date: datetime
    initial_balance: float = Field(default=10_000.0, gt=0)
    max_position_size: float = Field(default=10.0, gt=0, le=100)  # % of balance
    stop_loss_percent: float = Field(default=2.0, gt=0)
    take_profit_percent: float = Field(default=4.0, gt=0)
    min_confidence: float = Field(default=60.0, ge=0, le=100)

    @field_validator("strategies", mode="before")
    @classmethod
    def _parse_strategies(cls, value):
        if isinstance(value, (list, tuple)):
            return [StrategyKind.parse(v) for v in value]
        return value

    @field_validator("timeframe")
    @classmethod
    def _check_timeframe(cls, value: str) -> str:
        timeframe_minutes(value)
        return value

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if len(set(self.instruments)) != len(self.instruments):
            raise ValueError("instruments must be unique")
        return self
