"""Horloge UTC / UTC clock helpers.

Les dates sont stockees en UTC naif / Datetimes are stored as naive UTC.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Instant courant en UTC naif / Current instant as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normaliser une date (aware ou naive) en UTC naif / Normalize to naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)
