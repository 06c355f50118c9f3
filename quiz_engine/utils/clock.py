"""
Time helpers

All timestamps are stored as naive UTC datetimes so that PostgreSQL and SQLite
compare them the same way.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
