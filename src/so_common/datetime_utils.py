"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def current_year(now: datetime | None = None) -> int:
    """Four-digit calendar year used in order references (UTC)."""
    return (now or utc_now()).year
