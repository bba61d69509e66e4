"""
UTC helpers.

Timestamps are stored as naive UTC everywhere (PostgreSQL and SQLite behave
the same way for naive values), so every datetime entering the service goes
through to_naive_utc().
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Текущее время в UTC без tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Приведение datetime к naive UTC.

    Args:
        value: aware или naive datetime (naive считается UTC)

    Returns:
        naive datetime в UTC или None
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
