"""Timestamp helpers.

Every timestamp inside a drive is timezone-aware and kept in UTC. Naive
values coming from callers are read in the configured local zone.
"""

from __future__ import annotations

from datetime import datetime

import pytz

from .config import settings

UTC = pytz.UTC


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def ensure_utc(value: datetime, tz_name: str | None = None) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Example:
        >>> ensure_utc(datetime(2024, 1, 1, 9, 0), "Asia/Kolkata")
        datetime.datetime(2024, 1, 1, 3, 30, tzinfo=<UTC>)
    """
    if value.tzinfo is None:
        local = pytz.timezone(tz_name or settings.TZ)
        value = local.localize(value)
    return value.astimezone(UTC)


def to_naive_utc(value: datetime) -> datetime:
    """Drop tzinfo after converting to UTC, for columns without a zone."""
    return ensure_utc(value).replace(tzinfo=None)
