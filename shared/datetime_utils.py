"""
Date/time helpers shared by services and schemas.

MongoDB hands back naive datetimes unless the client is tz-aware, so every
timestamp read from a document goes through ensure_utc() before comparison.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as a timezone-aware UTC datetime.

    Naive datetimes (no ``tzinfo``) are assumed to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_duration(value: str) -> Optional[timedelta]:
    """Parse a compact duration such as ``"2h"``, ``"30m"`` or ``"5d"``.

    Returns:
        The matching ``timedelta``, or ``None`` if *value* is not in
        ``<int><s|m|h|d>`` form.
    """
    match = _DURATION_RE.match((value or "").strip())
    if not match:
        return None
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def minutes_until(moment: datetime, now: datetime) -> int:
    """Whole minutes from *now* until *moment*, floored at zero."""
    return max(0, int((moment - now).total_seconds() // 60))
