from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from slotbook.dates import (
    as_local_naive,
    format_booking_date_for_display,
    format_date_key,
    format_date_label,
    hours_until_booking,
    is_booking_time_elapsed,
    normalize_booking_date,
    normalize_booking_time,
    normalize_request_date,
    normalize_request_time,
    parse_date_key,
    resolve_booking_datetime,
)
from slotbook.domain import Booking


def test_date_key_and_label_formats() -> None:
    d = date(2025, 3, 7)
    assert format_date_key(d) == "2025-03-07"
    assert format_date_label(d) == "07.03.2025"


def test_parse_date_key_uses_calendar_components() -> None:
    assert parse_date_key("2024-03-31") == date(2024, 3, 31)
    assert parse_date_key("2024-02-30") is None
    assert parse_date_key("31.03.2024") is None
    assert parse_date_key(None) is None


def test_normalize_booking_date_keeps_canonical_key() -> None:
    assert normalize_booking_date("2024-03-05") == "2024-03-05"
    assert normalize_booking_date(normalize_booking_date("2024-03-05")) == "2024-03-05"


@pytest.mark.parametrize("value", ["05.03.2024", "05/03/2024", "05/03/24", "5.3.24", " 05.03.2024 "])
def test_normalize_booking_date_legacy_formats_agree(value: str) -> None:
    assert normalize_booking_date(value) == "2024-03-05"


def test_normalize_booking_date_accepts_date_objects() -> None:
    assert normalize_booking_date(date(2024, 3, 5)) == "2024-03-05"
    assert normalize_booking_date(datetime(2024, 3, 5, 23, 30)) == "2024-03-05"


def test_normalize_booking_date_generic_fallback() -> None:
    assert normalize_booking_date("March 5, 2024") == "2024-03-05"


@pytest.mark.parametrize("value", [None, "", "nonsense", "31/02/2024", "2024-13-01"])
def test_normalize_booking_date_returns_empty_for_garbage(value: object) -> None:
    assert normalize_booking_date(value) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        ("09:30", "09:30"),
        ("9:30", "09:30"),
        ("09:30:00", "09:30"),
        ("at 14:05", "14:05"),
        ("25:00", ""),
        ("", ""),
        (None, ""),
        ("noon", ""),
    ],
)
def test_normalize_booking_time(value: object, expected: str) -> None:
    assert normalize_booking_time(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-05", "2024-03-05"),
        (" 05/03/2024 ", "2024-03-05"),
        ("05.03.24", "2024-03-05"),
        (date(2024, 3, 5), "2024-03-05"),
        ("March 5, 2024", ""),
        ("5 Mar", ""),
        ("2024-02-30", ""),
        (20240305, ""),
        (None, ""),
    ],
)
def test_normalize_request_date_only_takes_known_formats(value: object, expected: str) -> None:
    assert normalize_request_date(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("09:30", "09:30"),
        (" 09:30 ", "09:30"),
        ("9:30", ""),
        ("9:30 PM", ""),
        ("09:30:59", ""),
        ("x09:30y", ""),
        (None, ""),
    ],
)
def test_normalize_request_time_is_strict(value: object, expected: str) -> None:
    assert normalize_request_time(value) == expected


def test_format_booking_date_for_display() -> None:
    assert format_booking_date_for_display("2024-03-05") == "05.03.2024"
    assert format_booking_date_for_display("5/3/24") == "05.03.2024"
    assert format_booking_date_for_display("whenever") == "whenever"


def test_resolve_booking_datetime_from_booking_and_mapping() -> None:
    booking = Booking(booking_id="b1", business_id="biz", date="05/03/2024", time="9:15")
    assert resolve_booking_datetime(booking) == datetime(2024, 3, 5, 9, 15)
    assert resolve_booking_datetime({"date": "2024-03-05", "time": "09:15"}) == datetime(2024, 3, 5, 9, 15)
    assert resolve_booking_datetime({"date": "2024-03-05", "time": ""}) is None
    assert resolve_booking_datetime(None) is None


def test_elapsed_and_hours_until_use_the_given_reference() -> None:
    booking = {"date": "2024-03-05", "time": "10:00"}
    reference = datetime(2024, 3, 5, 8, 0)

    assert is_booking_time_elapsed(booking, reference) is False
    assert hours_until_booking(booking, reference) == pytest.approx(2.0)

    assert is_booking_time_elapsed(booking, datetime(2024, 3, 5, 10, 0)) is True
    assert hours_until_booking(booking, datetime(2024, 3, 5, 11, 30)) == pytest.approx(-1.5)


def test_as_local_naive() -> None:
    naive = datetime(2024, 3, 5, 10, 0)
    assert as_local_naive(naive) is naive
    assert as_local_naive(naive.astimezone()) == naive
    assert as_local_naive(naive.astimezone().astimezone(timezone(timedelta(hours=5)))) == naive


def test_elapsed_and_hours_until_accept_offset_aware_reference() -> None:
    booking = {"date": "2024-03-05", "time": "10:00"}
    reference = datetime(2024, 3, 5, 8, 0).astimezone().astimezone(timezone.utc)

    assert is_booking_time_elapsed(booking, reference) is False
    assert hours_until_booking(booking, reference) == pytest.approx(2.0)


def test_unresolvable_booking_is_never_elapsed() -> None:
    assert is_booking_time_elapsed({"date": "", "time": "10:00"}, datetime(2030, 1, 1)) is False
    assert hours_until_booking({"date": "", "time": "10:00"}, datetime(2030, 1, 1)) is None
