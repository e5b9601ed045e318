"""Timestamp conversion between store datetimes and epoch milliseconds."""

from __future__ import annotations

import calendar
from datetime import UTC, datetime, timedelta

import pendulum
from pendulum.parsing.exceptions import ParserError

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def parse_datetime(value: str | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a datetime or datetime string into a timezone-aware datetime.

    Drivers hand back naive datetimes (SQLite, MySQL ``DATETIME``) or, for
    SQLite columns without type affinity, plain strings. Missing timezone
    defaults to default_tz.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value

    try:
        parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    except ParserError as exc:
        raise ValueError(f"Unparseable timestamp: {value!r}") from exc
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def to_epoch_millis(value: str | datetime, default_tz: str = "UTC") -> int:
    """Convert a store timestamp to milliseconds since the epoch."""
    dt = parse_datetime(value, default_tz)
    return calendar.timegm(dt.utctimetuple()) * 1000 + dt.microsecond // 1000


def from_epoch_millis(millis: int, tz: str = "UTC") -> datetime:
    """Convert epoch milliseconds to a naive datetime in ``tz``, as stored in the database."""
    aware = (EPOCH + timedelta(milliseconds=millis)).astimezone(pendulum.timezone(tz))
    return aware.replace(tzinfo=None)


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def now_millis() -> int:
    """Return the current time in epoch milliseconds."""
    return to_epoch_millis(now_utc())
