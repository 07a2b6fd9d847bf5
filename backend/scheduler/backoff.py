"""Retry backoff policy for failed jobs."""

from datetime import timedelta

MAX_BACKOFF_SECONDS = 60


def retry_delay(attempts: int) -> timedelta:
    """Delay before the next attempt: 2**attempts seconds, capped at 60s.

    Args:
        attempts: Attempts made so far (1 after the first failure).
    """
    if attempts < 0:
        raise ValueError(f"attempts must be >= 0, got {attempts}")
    # Cap the exponent so large counts never build huge ints
    return timedelta(seconds=min(MAX_BACKOFF_SECONDS, 2 ** min(attempts, 16)))
