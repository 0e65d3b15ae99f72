"""Naive-UTC datetime helpers.

Timestamps are handled as naive UTC throughout; SQLite hands them back naive
while PostgreSQL returns aware values, so reads go through ``to_naive_utc``.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
