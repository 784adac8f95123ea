"""Calendar date keys and normalization of stored booking dates/times.

Bookings written by older clients carry dates as ``DD/MM/YYYY``, ``DD.MM.YYYY``
or with two-digit years, and times with seconds or without zero padding.
Everything is folded into the canonical ``YYYY-MM-DD`` / ``HH:MM`` keys before
any comparison.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from dateutil import parser as date_parser

from slotbook.timeparse import is_valid_time, parse_time_to_minutes

DATE_KEY_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")
_TIME_RE = re.compile(r"([0-9]{1,2}):([0-9]{2})")


def format_date_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def format_date_label(value: date) -> str:
    return f"{value.day:02d}.{value.month:02d}.{value.year:04d}"


def parse_date_key(value: Any) -> date | None:
    """``YYYY-MM-DD`` -> date, from its own components (no timezone involved)."""
    if not isinstance(value, str):
        return None
    match = DATE_KEY_RE.fullmatch(value.strip())
    if not match:
        return None
    year, month, day = (int(p) for p in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_day_first(text: str) -> str | None:
    # None means "not this shape", "" means "this shape but not a real date".
    parts = [p.strip() for p in text.replace(".", "/").split("/")]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None

    day, month, year = parts
    if len(year) == 2:
        year = f"20{year}"
    try:
        return format_date_key(date(int(year), int(month), int(day)))
    except ValueError:
        return ""


def normalize_request_date(value: Any) -> str:
    """Date entered for a new booking: ISO key or a day-first format only.

    Unlike stored data, request input never goes through the free-form parser,
    which fills missing parts from the current date.
    """
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return format_date_key(value.date())
    if isinstance(value, date):
        return format_date_key(value)
    if not isinstance(value, str):
        return ""

    text = value.strip()
    if DATE_KEY_RE.fullmatch(text):
        return text if parse_date_key(text) else ""
    return _parse_day_first(text) or ""


def normalize_request_time(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    text = value.strip()
    return text if is_valid_time(text) else ""


def normalize_booking_date(value: Any) -> str:
    """Any stored booking date -> ``YYYY-MM-DD``, or "" when it is not a date."""
    if value is None or value == "":
        return ""
    if isinstance(value, date):
        return normalize_request_date(value)

    text = str(value).strip()
    if DATE_KEY_RE.fullmatch(text) or _parse_day_first(text) is not None:
        return normalize_request_date(text)

    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        return ""
    return format_date_key(parsed.date())


def normalize_booking_time(value: Any) -> str:
    if value is None or value == "":
        return ""
    match = _TIME_RE.search(str(value))
    if not match:
        return ""
    candidate = f"{int(match.group(1)):02d}:{match.group(2)}"
    return candidate if parse_time_to_minutes(candidate) is not None else ""


def format_booking_date_for_display(value: Any) -> str:
    parsed = parse_date_key(normalize_booking_date(value))
    if parsed is None:
        return "" if value is None else str(value)
    return format_date_label(parsed)


def _field(booking: Any, name: str) -> Any:
    if isinstance(booking, dict):
        return booking.get(name)
    return getattr(booking, name, None)


def resolve_booking_datetime(booking: Any) -> datetime | None:
    """Naive local datetime at which the booking starts."""
    if booking is None:
        return None

    day = parse_date_key(normalize_booking_date(_field(booking, "date")))
    minutes = parse_time_to_minutes(normalize_booking_time(_field(booking, "time")))
    if day is None or minutes is None:
        return None
    return datetime(day.year, day.month, day.day, minutes // 60, minutes % 60)


def as_local_naive(value: datetime) -> datetime:
    """Offset-aware values are converted to naive local time; naive ones pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def is_booking_time_elapsed(booking: Any, reference: datetime) -> bool:
    starts_at = resolve_booking_datetime(booking)
    if starts_at is None:
        return False
    return starts_at <= as_local_naive(reference)


def hours_until_booking(booking: Any, reference: datetime) -> float | None:
    starts_at = resolve_booking_datetime(booking)
    if starts_at is None:
        return None
    return (starts_at - as_local_naive(reference)).total_seconds() / 3600
