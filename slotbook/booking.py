"""Booking lifecycle, validation and the create/reschedule write path.

Validation is a pure function over a config and a bookings snapshot. The store
operations wrap it with the re-check-before-write step: right before writing,
the store is read again and the write is rejected if another active booking
already holds the same (business, date, time). This narrows the race window
between two clients booking the same slot but does not close it; duplicates
under heavy contention on one slot remain possible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable

from slotbook.dates import hours_until_booking, is_booking_time_elapsed, normalize_request_date, normalize_request_time
from slotbook.domain import AttendanceStatus, Booking, BookingStatus, BusinessScheduleConfig, InvalidTransitionError
from slotbook.schedule import sanitize_business_config
from slotbook.slots import booked_times_for_date, enumerate_bookable_dates, get_available_slots
from slotbook.store import BookingStore, call_with_retry

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    MISSING_FIELDS = "missing_fields"
    MALFORMED_INPUT = "malformed_input"
    DATE_OUTSIDE_WINDOW = "date_outside_window"
    DAY_CLOSED = "day_closed"
    TIME_OUTSIDE_HOURS = "time_outside_hours"
    SLOT_ELAPSED = "slot_elapsed"
    SLOT_TAKEN = "slot_taken"
    BUSINESS_NOT_FOUND = "business_not_found"
    BOOKING_NOT_FOUND = "booking_not_found"
    INVALID_TRANSITION = "invalid_transition"
    NOT_STARTED = "not_started"


_MESSAGES = {
    RejectReason.MISSING_FIELDS: "Please pick a date and a time.",
    RejectReason.MALFORMED_INPUT: "The selected date or time is not valid.",
    RejectReason.DATE_OUTSIDE_WINDOW: "This date is not open for booking yet.",
    RejectReason.DAY_CLOSED: "The business is closed on this date.",
    RejectReason.TIME_OUTSIDE_HOURS: "The selected time does not match the business hours.",
    RejectReason.SLOT_ELAPSED: "This time has already passed.",
    RejectReason.SLOT_TAKEN: "That time was just taken, please pick another.",
    RejectReason.BUSINESS_NOT_FOUND: "Business not found.",
    RejectReason.BOOKING_NOT_FOUND: "Booking not found.",
    RejectReason.INVALID_TRANSITION: "This booking can no longer be changed.",
    RejectReason.NOT_STARTED: "Attendance can be recorded once the booking time has passed.",
}


@dataclass(frozen=True)
class BookingResult:
    ok: bool
    reason: RejectReason | None = None
    booking: Booking | None = None

    @property
    def message(self) -> str:
        if self.reason is None:
            return "OK"
        return _MESSAGES[self.reason]

    @classmethod
    def accepted(cls, booking: Booking | None = None) -> "BookingResult":
        return cls(ok=True, booking=booking)

    @classmethod
    def rejected(cls, reason: RejectReason) -> "BookingResult":
        return cls(ok=False, reason=reason)


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.APPROVED, BookingStatus.CANCELLED, BookingStatus.RESCHEDULED}),
    BookingStatus.APPROVED: frozenset({BookingStatus.CANCELLED, BookingStatus.RESCHEDULED}),
    BookingStatus.RESCHEDULED: frozenset({BookingStatus.APPROVED, BookingStatus.CANCELLED, BookingStatus.RESCHEDULED}),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(booking: Booking, target: BookingStatus, **changes: Any) -> Booking:
    if not can_transition(booking.status, target):
        raise InvalidTransitionError(f"Cannot move booking {booking.booking_id} from {booking.status.value} to {target.value}")
    return replace(booking, status=target, **changes)


def _normalize_request(date_value: Any, time_value: Any) -> tuple[str, str]:
    return normalize_request_date(date_value), normalize_request_time(time_value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_booking_request(
    config: BusinessScheduleConfig,
    bookings: Iterable[Booking],
    date_value: Any,
    time_value: Any,
    today: date,
    *,
    booking_id: str | None = None,
    now: datetime | None = None,
) -> BookingResult:
    """Check a proposed (date, time) against the current availability.

    Checks run in order and the first failure is returned. ``booking_id`` is
    the booking being rescheduled; it never collides with itself.
    """
    if _is_blank(date_value) or _is_blank(time_value):
        return BookingResult.rejected(RejectReason.MISSING_FIELDS)

    date_key, time_key = _normalize_request(date_value, time_value)
    if not date_key or not time_key:
        return BookingResult.rejected(RejectReason.MALFORMED_INPUT)

    option = next((o for o in enumerate_bookable_dates(config, today) if o.value == date_key), None)
    if option is None:
        return BookingResult.rejected(RejectReason.DATE_OUTSIDE_WINDOW)
    if option.disabled:
        return BookingResult.rejected(RejectReason.DAY_CLOSED)

    if time_key not in get_available_slots(config, date_key, ()):
        return BookingResult.rejected(RejectReason.TIME_OUTSIDE_HOURS)

    if now is not None and is_booking_time_elapsed({"date": date_key, "time": time_key}, now):
        return BookingResult.rejected(RejectReason.SLOT_ELAPSED)

    if time_key in booked_times_for_date(bookings, date_key, exclude_booking_id=booking_id):
        return BookingResult.rejected(RejectReason.SLOT_TAKEN)

    return BookingResult.accepted()


def commit_booking(store: BookingStore, booking: Booking, *, retry_attempts: int = 1) -> BookingResult:
    """Re-check the slot against a fresh read, then write.

    A booking without an id is added, otherwise the stored booking is updated.
    """
    current = call_with_retry(store.list_bookings, booking.business_id, attempts=retry_attempts)
    taken = booked_times_for_date(
        current,
        booking.date,
        business_id=booking.business_id,
        exclude_booking_id=booking.booking_id or None,
    )
    if booking.time in taken:
        logger.info(
            "Slot taken before write: business=%s %s %s",
            booking.business_id,
            booking.date,
            booking.time,
        )
        return BookingResult.rejected(RejectReason.SLOT_TAKEN)

    if booking.booking_id:
        store.update_booking(booking)
    else:
        booking = store.add_booking(booking)

    logger.info(
        "Booking %s saved: business=%s %s %s status=%s",
        booking.booking_id,
        booking.business_id,
        booking.date,
        booking.time,
        booking.status.value,
    )
    return BookingResult.accepted(booking)


def _load_config(store: BookingStore, business_id: str, retry_attempts: int) -> BusinessScheduleConfig | None:
    doc = call_with_retry(store.get_business, business_id, attempts=retry_attempts)
    if doc is None:
        return None
    return sanitize_business_config(doc)


def _log_rejected(action: str, business_id: str, date_value: Any, time_value: Any, result: BookingResult) -> None:
    logger.info(
        "%s rejected: business=%s date=%r time=%r (%s)",
        action,
        business_id,
        date_value,
        time_value,
        result.reason.value if result.reason else "?",
    )


def request_booking(
    store: BookingStore,
    *,
    business_id: str,
    date_value: Any,
    time_value: Any,
    today: date,
    user_id: str = "",
    user_name: str = "",
    now: datetime | None = None,
    retry_attempts: int = 1,
) -> BookingResult:
    config = _load_config(store, business_id, retry_attempts)
    if config is None:
        return BookingResult.rejected(RejectReason.BUSINESS_NOT_FOUND)

    bookings = call_with_retry(store.list_bookings, business_id, attempts=retry_attempts)
    verdict = validate_booking_request(config, bookings, date_value, time_value, today, now=now)
    if not verdict.ok:
        _log_rejected("Booking", business_id, date_value, time_value, verdict)
        return verdict

    date_key, time_key = _normalize_request(date_value, time_value)
    draft = Booking(
        booking_id="",
        business_id=business_id,
        date=date_key,
        time=time_key,
        status=BookingStatus.APPROVED if config.auto_approve else BookingStatus.PENDING,
        user_id=user_id,
        user_name=user_name,
    )
    return commit_booking(store, draft, retry_attempts=retry_attempts)


def reschedule_booking(
    store: BookingStore,
    *,
    booking_id: str,
    date_value: Any,
    time_value: Any,
    today: date,
    now: datetime | None = None,
    retry_attempts: int = 1,
) -> BookingResult:
    """Move a booking to a new slot; its previous slot is released at once."""
    booking = call_with_retry(store.get_booking, booking_id, attempts=retry_attempts)
    if booking is None:
        return BookingResult.rejected(RejectReason.BOOKING_NOT_FOUND)
    if not can_transition(booking.status, BookingStatus.RESCHEDULED):
        return BookingResult.rejected(RejectReason.INVALID_TRANSITION)

    config = _load_config(store, booking.business_id, retry_attempts)
    if config is None:
        return BookingResult.rejected(RejectReason.BUSINESS_NOT_FOUND)

    bookings = call_with_retry(store.list_bookings, booking.business_id, attempts=retry_attempts)
    verdict = validate_booking_request(
        config, bookings, date_value, time_value, today, booking_id=booking.booking_id, now=now
    )
    if not verdict.ok:
        _log_rejected("Reschedule", booking.business_id, date_value, time_value, verdict)
        return verdict

    date_key, time_key = _normalize_request(date_value, time_value)
    moved = transition(booking, BookingStatus.RESCHEDULED, date=date_key, time=time_key)
    return commit_booking(store, moved, retry_attempts=retry_attempts)


def _change_status(store: BookingStore, booking_id: str, target: BookingStatus, retry_attempts: int) -> BookingResult:
    booking = call_with_retry(store.get_booking, booking_id, attempts=retry_attempts)
    if booking is None:
        return BookingResult.rejected(RejectReason.BOOKING_NOT_FOUND)

    try:
        updated = transition(booking, target)
    except InvalidTransitionError as e:
        logger.info("%s", e)
        return BookingResult.rejected(RejectReason.INVALID_TRANSITION)

    store.update_booking(updated)
    logger.info("Booking %s is now %s", booking_id, target.value)
    return BookingResult.accepted(updated)


def cancel_booking(store: BookingStore, booking_id: str, *, retry_attempts: int = 1) -> BookingResult:
    return _change_status(store, booking_id, BookingStatus.CANCELLED, retry_attempts)


def approve_booking(store: BookingStore, booking_id: str, *, retry_attempts: int = 1) -> BookingResult:
    return _change_status(store, booking_id, BookingStatus.APPROVED, retry_attempts)


def mark_attendance(
    store: BookingStore,
    booking_id: str,
    attended: bool,
    now: datetime,
    *,
    retry_attempts: int = 1,
) -> BookingResult:
    """Record whether the client showed up. Can be changed again later."""
    booking = call_with_retry(store.get_booking, booking_id, attempts=retry_attempts)
    if booking is None:
        return BookingResult.rejected(RejectReason.BOOKING_NOT_FOUND)
    if booking.status is BookingStatus.CANCELLED:
        return BookingResult.rejected(RejectReason.INVALID_TRANSITION)
    if not is_booking_time_elapsed(booking, now):
        return BookingResult.rejected(RejectReason.NOT_STARTED)

    status = AttendanceStatus.ARRIVED if attended else AttendanceStatus.NO_SHOW
    updated = replace(booking, attendance=status, attendance_updated_at=now.isoformat(timespec="seconds"))
    store.update_booking(updated)
    logger.info("Booking %s attendance: %s", booking_id, status.value)
    return BookingResult.accepted(updated)


# Cancelling closer than this to the start counts as a late cancellation.
CANCELLATION_FEE_WINDOW_HOURS = 7


class FeeReason(str, Enum):
    NO_SHOW = "no_show"
    LATE_CANCELLATION = "late_cancellation"


def cancellation_fee_reason(booking: Booking, cancelled_at: datetime | None = None) -> FeeReason | None:
    """Why a cancellation fee applies to ``booking``, or None.

    ``cancelled_at`` is when the booking was cancelled; without it only a
    recorded no-show counts.
    """
    if booking.attendance is AttendanceStatus.NO_SHOW:
        return FeeReason.NO_SHOW
    if booking.status is not BookingStatus.CANCELLED or cancelled_at is None:
        return None
    hours = hours_until_booking(booking, cancelled_at)
    if hours is not None and 0 <= hours < CANCELLATION_FEE_WINDOW_HOURS:
        return FeeReason.LATE_CANCELLATION
    return None


@dataclass(frozen=True)
class BookingStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    cancelled: int = 0
    rescheduled: int = 0


def summarize_bookings(bookings: Iterable[Booking]) -> BookingStats:
    counts = {status: 0 for status in BookingStatus}
    for booking in bookings:
        counts[booking.status] += 1
    return BookingStats(
        total=sum(counts.values()),
        pending=counts[BookingStatus.PENDING],
        approved=counts[BookingStatus.APPROVED],
        cancelled=counts[BookingStatus.CANCELLED],
        rescheduled=counts[BookingStatus.RESCHEDULED],
    )
