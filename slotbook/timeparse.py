from __future__ import annotations

import re
from typing import Any

_TIME_RE = re.compile(r"([0-9]{2}):([0-9]{2})")

MINUTES_PER_DAY = 24 * 60


def parse_time_to_minutes(value: Any) -> int | None:
    """Strict "HH:MM" -> minutes since midnight (0..1439).

    Returns None for anything else, including "9:00", "09:00:00" and "24:00".
    """
    if not isinstance(value, str):
        return None

    match = _TIME_RE.fullmatch(value)
    if not match:
        return None

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_minutes_to_time(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes!r}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_valid_time(value: Any) -> bool:
    return parse_time_to_minutes(value) is not None
