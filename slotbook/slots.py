"""Slot generation, booking-window expansion and availability queries.

Everything here is pure: configuration and existing bookings come in as
arguments, plain values go out. An empty result is a normal outcome (closed
day, fully booked day, misconfigured hours), never an error.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Sequence

from slotbook.dates import (
    as_local_naive,
    format_date_key,
    format_date_label,
    normalize_booking_date,
    normalize_booking_time,
    parse_date_key,
)
from slotbook.domain import Booking, BusinessScheduleConfig, DateOption
from slotbook.schedule import clamp_booking_window, resolve_operating_window
from slotbook.timeparse import format_minutes_to_time, parse_time_to_minutes
from slotbook.weekdays import get_weekday_key_from_date, weekday_labels


def _positive_whole_minutes(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, float) and math.isfinite(value) and value.is_integer():
        minutes = int(value)
    else:
        return None
    return minutes if minutes > 0 else None


def generate_time_slots(open_time: Any, close_time: Any, interval_minutes: Any) -> list[str]:
    """Start times from ``open_time`` on the interval grid.

    The last slot must end by ``close_time``: a slot ``s`` is produced only when
    ``s + interval <= close``.
    """
    start = parse_time_to_minutes(open_time)
    end = parse_time_to_minutes(close_time)
    step = _positive_whole_minutes(interval_minutes)
    if start is None or end is None or step is None or start >= end:
        return []

    return [format_minutes_to_time(m) for m in range(start, end - step + 1, step)]


def _window_slots(config: BusinessScheduleConfig, day: Any) -> list[str]:
    window = resolve_operating_window(config, get_weekday_key_from_date(day))
    if window is None:
        return []
    return generate_time_slots(window.opening, window.closing, config.booking_interval_minutes)


def enumerate_bookable_dates(config: BusinessScheduleConfig, today: date) -> list[DateOption]:
    start = today.date() if isinstance(today, datetime) else today
    days = clamp_booking_window(config.booking_window_days)

    options: list[DateOption] = []
    for offset in range(days):
        current = start + timedelta(days=offset)
        weekday_key = get_weekday_key_from_date(current) or ""
        slot_count = len(_window_slots(config, current))
        options.append(
            DateOption(
                value=format_date_key(current),
                display=format_date_label(current),
                weekday=weekday_labels(weekday_key).short_label,
                weekday_key=weekday_key,
                disabled=slot_count == 0,
                slot_count=slot_count,
            )
        )
    return options


def select_default_date(options: Sequence[DateOption], current: str | None = None) -> str | None:
    """Keep ``current`` while it stays selectable, else the first enabled date."""
    enabled = [o.value for o in options if not o.disabled]
    if current and current in enabled:
        return current
    return enabled[0] if enabled else None


def get_available_slots(
    config: BusinessScheduleConfig,
    date_key: Any,
    booked_times: Iterable[str],
    *,
    now: datetime | None = None,
) -> list[str]:
    """Bookable start times on ``date_key`` minus ``booked_times``.

    ``booked_times`` must already be normalized to "HH:MM". When ``now`` is
    given, slots that do not start after it are dropped as well.
    """
    day = parse_date_key(normalize_booking_date(date_key))
    if day is None:
        return []

    taken = set(booked_times)
    slots = [s for s in _window_slots(config, day) if s not in taken]

    if now is not None:
        now = as_local_naive(now)
        slots = [s for s in slots if _slot_start(day, s) > now]
    return slots


def _slot_start(day: date, slot: str) -> datetime:
    minutes = parse_time_to_minutes(slot) or 0
    return datetime(day.year, day.month, day.day, minutes // 60, minutes % 60)


def booked_times_for_date(
    bookings: Iterable[Booking],
    date_key: Any,
    *,
    business_id: str | None = None,
    exclude_booking_id: str | None = None,
) -> set[str]:
    """Times held on ``date_key`` by active bookings, normalized to "HH:MM".

    Stored bookings may use legacy date/time formats; cancelled bookings and
    ``exclude_booking_id`` (the booking being rescheduled) hold nothing.
    """
    target = normalize_booking_date(date_key)
    if not target:
        return set()

    taken: set[str] = set()
    for booking in bookings:
        if not booking.is_active:
            continue
        if exclude_booking_id is not None and booking.booking_id == exclude_booking_id:
            continue
        if business_id is not None and booking.business_id != business_id:
            continue
        if normalize_booking_date(booking.date) != target:
            continue
        time_key = normalize_booking_time(booking.time)
        if time_key:
            taken.add(time_key)
    return taken
