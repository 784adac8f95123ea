from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping

from dateutil import parser as date_parser

from slotbook.dates import DATE_KEY_RE, parse_date_key
from slotbook.domain import DayHours


@dataclass(frozen=True)
class WeekDay:
    key: str
    label: str
    short_label: str


# Sunday first, matching date.isoweekday() % 7.
WEEK_DAYS: tuple[WeekDay, ...] = (
    WeekDay("sunday", "Sunday", "Sun"),
    WeekDay("monday", "Monday", "Mon"),
    WeekDay("tuesday", "Tuesday", "Tue"),
    WeekDay("wednesday", "Wednesday", "Wed"),
    WeekDay("thursday", "Thursday", "Thu"),
    WeekDay("friday", "Friday", "Fri"),
    WeekDay("saturday", "Saturday", "Sat"),
)

WEEKDAY_KEYS: tuple[str, ...] = tuple(d.key for d in WEEK_DAYS)

_BY_KEY = {d.key: d for d in WEEK_DAYS}

NOT_SET_TEXT = "Not set"
CLOSED_TEXT = "Closed"
INCOMPLETE_TEXT = "-"


def weekday_labels(key: str) -> WeekDay:
    return _BY_KEY.get(key, WeekDay(key, "", ""))


def get_weekday_key_from_date(value: Any) -> str | None:
    """Weekday key for a calendar date.

    ISO ``YYYY-MM-DD`` strings are read from their own components so the result
    always matches the same date passed as a ``date``; other strings go through
    dateutil.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    elif isinstance(value, str):
        text = value.strip()
        if DATE_KEY_RE.fullmatch(text):
            day = parse_date_key(text)
        else:
            try:
                day = date_parser.parse(text).date()
            except (ValueError, OverflowError):
                day = None
    else:
        return None

    if day is None:
        return None
    return WEEKDAY_KEYS[day.isoweekday() % 7]


def normalize_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"false", "0", "no", "off", ""}:
            return False
        if normalized in {"true", "1", "yes", "on"}:
            return True
    return bool(value)


def create_empty_weekly_hours() -> dict[str, DayHours]:
    return {key: DayHours() for key in WEEKDAY_KEYS}


def sanitize_weekly_hours(raw: Any) -> dict[str, DayHours]:
    result = create_empty_weekly_hours()
    if not isinstance(raw, Mapping):
        return result

    for key in WEEKDAY_KEYS:
        existing = raw.get(key)
        if isinstance(existing, DayHours):
            result[key] = existing
            continue
        if not isinstance(existing, Mapping):
            continue

        open_raw = existing.get("open")
        close_raw = existing.get("close")
        result[key] = DayHours(
            open=open_raw.strip() if isinstance(open_raw, str) else "",
            close=close_raw.strip() if isinstance(close_raw, str) else "",
            closed=normalize_flag(existing.get("closed")),
        )
    return result


@dataclass(frozen=True)
class HoursRow:
    key: str
    label: str
    text: str


def weekly_hours_rows(weekly_hours: Mapping[str, DayHours] | None) -> list[HoursRow]:
    rows: list[HoursRow] = []
    for day in WEEK_DAYS:
        schedule = (weekly_hours or {}).get(day.key)
        if schedule is None:
            text = NOT_SET_TEXT
        elif schedule.closed:
            text = CLOSED_TEXT
        elif not schedule.open or not schedule.close:
            text = INCOMPLETE_TEXT
        else:
            text = f"{schedule.open} – {schedule.close}"
        rows.append(HoursRow(key=day.key, label=day.label, text=text))
    return rows


def _is_defined(text: str) -> bool:
    return bool(text) and text not in {NOT_SET_TEXT, INCOMPLETE_TEXT}


def summarize_weekly_hours(weekly_hours: Mapping[str, DayHours] | None) -> list[HoursRow]:
    """Merge consecutive weekdays with identical hours into one row.

    Only defined schedules (hours or "Closed") are merged and reported.
    """
    groups: list[list[HoursRow]] = []
    for row in weekly_hours_rows(weekly_hours):
        if groups and groups[-1][0].text == row.text and _is_defined(row.text):
            groups[-1].append(row)
        else:
            groups.append([row])

    summary: list[HoursRow] = []
    for group in groups:
        first, last = group[0], group[-1]
        if not _is_defined(first.text):
            continue
        label = first.label if len(group) == 1 else f"{first.label} – {last.label}"
        summary.append(HoursRow(key="-".join(r.key for r in group), label=label, text=first.text))
    return summary
