from __future__ import annotations

import math
from typing import Any, Mapping

from slotbook.domain import BusinessScheduleConfig, OperatingWindow
from slotbook.timeparse import parse_time_to_minutes
from slotbook.weekdays import normalize_flag, sanitize_weekly_hours

DEFAULT_BOOKING_WINDOW_DAYS = 30
MIN_BOOKING_WINDOW_DAYS = 1
MAX_BOOKING_WINDOW_DAYS = 90

DEFAULT_INTERVAL_MINUTES = 30
MIN_INTERVAL_MINUTES = 5
MAX_INTERVAL_MINUTES = 180


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _clamp_rounded(value: Any, *, default: int, low: int, high: int) -> int:
    number = _to_number(value)
    if number is None:
        return default
    # Half-up rounding: 2.5 -> 3.
    rounded = math.floor(number + 0.5)
    return min(max(rounded, low), high)


def clamp_booking_window(value: Any) -> int:
    return _clamp_rounded(
        value,
        default=DEFAULT_BOOKING_WINDOW_DAYS,
        low=MIN_BOOKING_WINDOW_DAYS,
        high=MAX_BOOKING_WINDOW_DAYS,
    )


def clamp_slot_interval(value: Any) -> int:
    return _clamp_rounded(
        value,
        default=DEFAULT_INTERVAL_MINUTES,
        low=MIN_INTERVAL_MINUTES,
        high=MAX_INTERVAL_MINUTES,
    )


def _pick(raw: Mapping[str, Any], camel: str, snake: str) -> Any:
    # Business documents are stored with camelCase keys.
    if camel in raw:
        return raw[camel]
    return raw.get(snake)


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def sanitize_business_config(raw: Mapping[str, Any] | None) -> BusinessScheduleConfig:
    """Loosely-shaped business document -> fully populated config.

    Never raises: unknown or malformed values fall back to their defaults.
    """
    if not isinstance(raw, Mapping):
        raw = {}

    return BusinessScheduleConfig(
        weekly_hours=sanitize_weekly_hours(_pick(raw, "weeklyHours", "weekly_hours")),
        opening_hour=_clean_str(_pick(raw, "openingHour", "opening_hour")),
        closing_hour=_clean_str(_pick(raw, "closingHour", "closing_hour")),
        booking_window_days=clamp_booking_window(_pick(raw, "bookingWindowDays", "booking_window_days")),
        booking_interval_minutes=clamp_slot_interval(
            _pick(raw, "bookingIntervalMinutes", "booking_interval_minutes")
        ),
        auto_approve=normalize_flag(_pick(raw, "autoApprove", "auto_approve")),
    )


def resolve_operating_window(config: BusinessScheduleConfig, weekday_key: str | None) -> OperatingWindow | None:
    """Effective (opening, closing) for a weekday, or None when there is none.

    The closed flag wins over any hours. Per-day hours override the legacy
    single opening/closing hour, which is only a fallback for empty values.
    """
    if config is None or not weekday_key:
        return None

    schedule = (config.weekly_hours or {}).get(weekday_key)
    if schedule is not None and schedule.closed:
        return None

    opening = (schedule.open if schedule else "") or config.opening_hour
    closing = (schedule.close if schedule else "") or config.closing_hour
    if not opening or not closing:
        return None

    open_minutes = parse_time_to_minutes(opening)
    close_minutes = parse_time_to_minutes(closing)
    if open_minutes is None or close_minutes is None or open_minutes >= close_minutes:
        return None

    return OperatingWindow(opening=opening, closing=closing)
