"""
UTC day keys.

Aggregates accumulate per UTC calendar day. The key is always derived from an
explicit clock so callers (and tests) control which day a sample lands in.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

DAY_KEY_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(tz=timezone.utc)


def current_day_key(clock: Optional[Clock] = None) -> str:
    """
    Get the UTC day key (YYYY-MM-DD) for the clock's current time.

    Naive datetimes are taken to already be UTC; aware ones are converted.
    """
    now = (clock or utc_now)()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(DAY_KEY_FORMAT)


def parse_day_key(value: str) -> str:
    """
    Validate a user-supplied day key and return it in canonical form.

    Raises:
        ValueError: If value is not a real calendar date in YYYY-MM-DD form
    """
    try:
        return date.fromisoformat(value.strip()).strftime(DAY_KEY_FORMAT)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid day key {value!r}, expected YYYY-MM-DD") from e


def storage_key(day: str, prefix: str = "stats:") -> str:
    """Backend key for one day's aggregate."""
    return f"{prefix}{day}"
