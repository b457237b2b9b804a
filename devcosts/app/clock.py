"""UTC helpers shared by the sync and alert code paths.

Timestamps are stored as naive UTC datetimes. Databases that hand back
timezone-aware values are normalized with ``as_utc_naive`` before comparison.
"""

from datetime import UTC, date, datetime
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def utc_today() -> date:
    return utcnow().date()


def as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def format_cents(amount_cents: int) -> str:
    """Render integer cents as a dollar string, e.g. 12345 -> '$123.45'."""
    sign = "-" if amount_cents < 0 else ""
    return f"{sign}${abs(amount_cents) / 100:,.2f}"
