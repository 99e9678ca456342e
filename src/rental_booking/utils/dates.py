"""Date and time helpers anchored to the reference timezone."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from dateutil import parser, tz

from rental_booking.config import REFERENCE_TIMEZONE
from rental_booking.services.errors import InvalidInputError

IST = tz.gettz(REFERENCE_TIMEZONE)


def now_ist() -> datetime:
    return datetime.now(tz=IST)


def today_ist() -> date:
    return now_ist().date()


def parse_date(value: str | date | datetime) -> date:
    """Return a calendar date from an ISO string or date-like value."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parser.isoparse(value).date()
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid date: {value!r}.") from exc


def parse_time(value: str | time) -> time:
    """Return a time of day from "HH:MM" / "HH:MM:SS" strings.

    Times are kept to whole seconds, the precision they are stored with.
    """
    if isinstance(value, time):
        parsed = value
    else:
        try:
            parsed = time.fromisoformat(value)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Invalid time: {value!r}.") from exc
    return parsed.replace(microsecond=0, tzinfo=None)


def parse_timestamp(value: str | datetime) -> datetime:
    """Return an aware timestamp; naive values are read as IST."""
    if isinstance(value, datetime):
        stamp = value
    else:
        try:
            stamp = parser.isoparse(value)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Invalid timestamp: {value!r}.") from exc
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=IST)
    return stamp


def combine_ist(day: date, time_of_day: time) -> datetime:
    return datetime.combine(day, time_of_day, tzinfo=IST)


def to_iso(value: Optional[date | time | datetime]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    return value.isoformat()


def format_date(value: Optional[date]) -> str:
    if value is None:
        return "—"
    return value.strftime("%d/%m/%Y")


def format_time(value: Optional[time]) -> str:
    if value is None:
        return "—"
    if value.second:
        return value.strftime("%H:%M:%S")
    return value.strftime("%H:%M")
