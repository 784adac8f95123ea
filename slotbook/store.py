from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Mapping, Protocol, TypeVar

from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from slotbook.domain import Booking, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookingStore(Protocol):
    """Document store holding business configs and bookings."""

    def get_business(self, business_id: str) -> Mapping[str, Any] | None: ...

    def list_bookings(self, business_id: str) -> list[Booking]: ...

    def get_booking(self, booking_id: str) -> Booking | None: ...

    def add_booking(self, booking: Booking) -> Booking: ...

    def update_booking(self, booking: Booking) -> None: ...


class InMemoryBookingStore:
    def __init__(
        self,
        businesses: Mapping[str, Mapping[str, Any]] | None = None,
        bookings: list[Booking] | None = None,
    ) -> None:
        self._businesses: dict[str, dict[str, Any]] = {k: dict(v) for k, v in (businesses or {}).items()}
        self._bookings: dict[str, Booking] = {b.booking_id: b for b in (bookings or [])}

    def put_business(self, business_id: str, doc: Mapping[str, Any]) -> None:
        self._businesses[business_id] = dict(doc)

    def get_business(self, business_id: str) -> Mapping[str, Any] | None:
        return self._businesses.get(business_id)

    def list_bookings(self, business_id: str) -> list[Booking]:
        return [b for b in self._bookings.values() if b.business_id == business_id]

    def all_bookings(self) -> list[Booking]:
        return list(self._bookings.values())

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def add_booking(self, booking: Booking) -> Booking:
        if not booking.booking_id:
            booking = replace(booking, booking_id=uuid.uuid4().hex)
        if booking.booking_id in self._bookings:
            raise KeyError(f"Booking already exists: {booking.booking_id}")
        self._bookings[booking.booking_id] = booking
        return booking

    def update_booking(self, booking: Booking) -> None:
        if booking.booking_id not in self._bookings:
            raise KeyError(f"Unknown booking: {booking.booking_id}")
        self._bookings[booking.booking_id] = booking


def _log_after_attempt(retry_state: RetryCallState) -> None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return
    exc = retry_state.outcome.exception()
    logger.warning(
        "Store read %s failed on attempt %s: %s",
        getattr(retry_state.fn, "__name__", "call"),
        retry_state.attempt_number,
        exc or "unknown error",
    )


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    if sleep_seconds is None:
        logger.info("Retrying store call (attempt %s)", retry_state.attempt_number + 1)
        return
    logger.info("Retrying store call in %.1f sec (attempt %s)", sleep_seconds, retry_state.attempt_number + 1)


def call_with_retry(fn: Callable[..., T], *args: Any, attempts: int = 1, **kwargs: Any) -> T:
    """Run a store call, retrying only on StoreUnavailableError."""
    decorated = retry(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type(StoreUnavailableError),
        after=_log_after_attempt,
        before_sleep=_log_before_sleep,
        reraise=True,
    )(fn)

    return decorated(*args, **kwargs)
