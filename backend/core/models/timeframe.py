"""Supported candle timeframes."""

from datetime import timedelta

# Timeframe label -> minutes per candle (Kraken OHLC intervals)
TIMEFRAME_MINUTES: dict[str, int] = {
    "1m": 1,
    "5m": 5,
    "15m": 15,
    "30m": 30,
    "1h": 60,
    "4h": 240,
    "1d": 1440,
    "1w": 10080,
    "2w": 21600,
}


def timeframe_minutes(timeframe: str) -> int:
    """Minutes per candle for a timeframe label.

    Raises:
        ValueError: If the timeframe is not supported.
    """
    try:
        return TIMEFRAME_MINUTES[timeframe]
    except KeyError:
        supported = ", ".join(TIMEFRAME_MINUTES)
        raise ValueError(f"Unsupported timeframe '{timeframe}'. Supported: {supported}") from None


def timeframe_delta(timeframe: str) -> timedelta:
    return timedelta(minutes=timeframe_minutes(timeframe))
