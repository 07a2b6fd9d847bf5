"""Exchange clients."""

from app.clients.kraken_rest import KrakenRestClient, MarketDataError, RateLimiter

__all__ = [
    "KrakenRestClient",
    "MarketDataError",
    "RateLimiter",
]
