from __future__ import annotations

import json
from datetime import datetime
from unittest.mock import patch

import pytest

import main
from slotbook.config import Settings
from slotbook.domain import StoreUnavailableError

WEEKDAY_HOURS = {"open": "09:00", "close": "17:00"}


@pytest.fixture
def state(tmp_path):
    business = tmp_path / "business.json"
    business.write_text(
        json.dumps(
            {
                "weeklyHours": {
                    "sunday": {"closed": True},
                    "monday": WEEKDAY_HOURS,
                    "tuesday": WEEKDAY_HOURS,
                    "wednesday": WEEKDAY_HOURS,
                    "thursday": WEEKDAY_HOURS,
                    "friday": WEEKDAY_HOURS,
                    "saturday": {"closed": True},
                },
                "bookingWindowDays": 7,
                "bookingIntervalMinutes": 30,
            }
        ),
        encoding="utf-8",
    )
    path = str(tmp_path / "bookings.json")

    with patch("main.load_settings", return_value=Settings(state_file=path, store_retry_attempts=1)):
        assert main.main(["add-business", "--business", "biz", "--file", str(business)]) == 0
        yield path


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, list[str]]:
    capsys.readouterr()
    code = main.main(["--today", "2025-01-06", *argv])
    return code, capsys.readouterr().out.splitlines()


def test_dates_marks_weekend_closed_and_selects_first_open_day(state, capsys) -> None:
    code, lines = _run(capsys, "dates", "--business", "biz")

    assert code == 0
    assert len(lines) == 7
    assert lines[0] == "* 2025-01-06 Mon 06.01.2025 16 slots"
    assert lines[5] == "  2025-01-11 Sat 11.01.2025 closed"


def test_book_then_double_book_is_rejected(state, capsys) -> None:
    code, lines = _run(capsys, "book", "--business", "biz", "--date", "2025-01-07", "--time", "10:00", "--user", "u1")
    assert code == 0
    assert lines[0].endswith("2025-01-07 10:00 pending")

    code, lines = _run(capsys, "book", "--business", "biz", "--date", "2025-01-07", "--time", "10:00")
    assert code == 1
    assert lines == ["Rejected: That time was just taken, please pick another."]

    code, lines = _run(capsys, "slots", "--business", "biz", "--date", "2025-01-07")
    assert code == 0
    assert "10:00" not in lines
    assert len(lines) == 15

    code, lines = _run(capsys, "stats", "--business", "biz")
    assert lines == ["total=1 pending=1 approved=0 cancelled=0 rescheduled=0"]


def test_reschedule_approve_and_cancel(state, capsys) -> None:
    _, lines = _run(capsys, "book", "--business", "biz", "--date", "2025-01-07", "--time", "10:00")
    booking_id = lines[0].split()[0]

    code, lines = _run(capsys, "reschedule", "--booking", booking_id, "--date", "08.01.2025", "--time", "11:30")
    assert code == 0
    assert lines == [f"{booking_id} 2025-01-08 11:30 rescheduled"]

    code, lines = _run(capsys, "approve", "--booking", booking_id)
    assert lines == [f"{booking_id} 2025-01-08 11:30 approved"]

    code, lines = _run(capsys, "cancel", "--booking", booking_id)
    assert code == 0
    assert lines == [f"{booking_id} 2025-01-08 11:30 cancelled"]

    code, lines = _run(capsys, "cancel", "--booking", booking_id)
    assert code == 1


def test_list_shows_time_until_booking(state, capsys) -> None:
    _run(capsys, "book", "--business", "biz", "--date", "2025-01-07", "--time", "10:00")

    code, lines = _run(capsys, "--now", "2025-01-07T08:00", "list", "--business", "biz")
    assert code == 0
    assert lines[0].endswith("07.01.2025 10:00 pending (in 2.0h)")

    _, lines = _run(capsys, "--now", "2025-01-07T10:00", "list", "--business", "biz")
    assert lines[0].endswith("(past)")


def test_now_with_utc_offset_is_read_as_local_time(state, capsys) -> None:
    _run(capsys, "book", "--business", "biz", "--date", "2025-01-07", "--time", "10:00")
    local_eight = datetime(2025, 1, 7, 8, 0).astimezone().isoformat()

    code, lines = _run(capsys, "--now", local_eight, "list", "--business", "biz")
    assert code == 0
    assert lines[0].endswith("(in 2.0h)")

    code, lines = _run(capsys, "--now", local_eight, "slots", "--business", "biz", "--date", "2025-01-07")
    assert code == 0
    assert "09:00" in lines


def test_attend_records_arrival_after_booking_time(state, capsys) -> None:
    _, lines = _run(capsys, "book", "--business", "biz", "--date", "2025-01-07", "--time", "10:00")
    booking_id = lines[0].split()[0]

    code, lines = _run(capsys, "--now", "2025-01-07T09:00", "attend", "--booking", booking_id, "--arrived")
    assert code == 1
    assert lines == ["Rejected: Attendance can be recorded once the booking time has passed."]

    code, lines = _run(capsys, "--now", "2025-01-07T10:45", "attend", "--booking", booking_id, "--no-show")
    assert code == 0
    assert lines == [f"{booking_id} 2025-01-07 10:00 pending no_show"]

    _, lines = _run(capsys, "list", "--business", "biz")
    assert lines[0].endswith("10:00 pending [no_show]")


def test_add_business_with_unreadable_file(state, capsys, tmp_path) -> None:
    code, lines = _run(capsys, "add-business", "--business", "x", "--file", str(tmp_path / "missing.json"))
    assert code == 1
    assert lines[0].startswith("Cannot read business file")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    code, lines = _run(capsys, "add-business", "--business", "x", "--file", str(broken))
    assert code == 1
    assert lines[0].startswith("Cannot read business file")

    listed = tmp_path / "list.json"
    listed.write_text("[]", encoding="utf-8")
    code, lines = _run(capsys, "add-business", "--business", "x", "--file", str(listed))
    assert code == 1
    assert lines == [f"Business file {listed} must hold a JSON object."]


def test_hours_summary(state, capsys) -> None:
    code, lines = _run(capsys, "hours", "--business", "biz")

    assert code == 0
    assert lines == ["Sunday: Closed", "Monday – Friday: 09:00 – 17:00", "Saturday: Closed"]


def test_unknown_business(state, capsys) -> None:
    code, lines = _run(capsys, "slots", "--business", "nope", "--date", "2025-01-07")
    assert code == 1
    assert lines == ["Business not found: nope"]


def test_store_unavailable_exits_with_code_2(state, capsys) -> None:
    with patch("main.JsonFileBookingStore", side_effect=StoreUnavailableError("disk gone")):
        code, _ = _run(capsys, "dates", "--business", "biz")
    assert code == 2
