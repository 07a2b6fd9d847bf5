"""Shared-secret bearer auth for the cron trigger endpoints."""

import logging
import secrets

from fastapi import Depends, Header, HTTPException

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


def verify_cron_secret(
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries ``Bearer <CRON_SECRET>``.

    An unset secret rejects everything, so a misconfigured deployment
    never exposes the triggers.
    """
    expected = settings.cron_secret
    if not expected:
        logger.warning("Cron trigger called but CRON_SECRET is not configured")
        raise HTTPException(status_code=401, detail="Unauthorized")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_owner(x_owner_id: str | None = Header(None)) -> str:
    """Caller identity from the X-Owner-Id header (set by the auth proxy)."""
    if not x_owner_id:
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return x_owner_id
