from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Statuses that hold their (date, time) slot.
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.RESCHEDULED})


@dataclass(frozen=True)
class DayHours:
    open: str = ""
    close: str = ""
    closed: bool = False


@dataclass(frozen=True)
class OperatingWindow:
    opening: str  # HH:MM
    closing: str  # HH:MM


@dataclass(frozen=True)
class BusinessScheduleConfig:
    """Bookability rules of a single business.

    Built by ``slotbook.schedule.sanitize_business_config``; the engine assumes
    every weekday key is present and the numeric limits are already clamped.
    """

    weekly_hours: Mapping[str, DayHours] = field(default_factory=dict)
    opening_hour: str = ""
    closing_hour: str = ""
    booking_window_days: int = 30
    booking_interval_minutes: int = 30
    auto_approve: bool = False


@dataclass(frozen=True)
class DateOption:
    value: str  # YYYY-MM-DD
    display: str  # DD.MM.YYYY
    weekday: str  # short label
    weekday_key: str
    disabled: bool
    slot_count: int = 0


class AttendanceStatus(str, Enum):
    ARRIVED = "arrived"
    NO_SHOW = "no_show"


# Document keys mapped onto Booking fields; anything else is carried in ``extra``.
_BOOKING_KEYS = frozenset(
    {"id", "businessId", "date", "time", "status", "userId", "userName", "attendanceStatus", "attendanceUpdatedAt"}
)


@dataclass(frozen=True)
class Booking:
    booking_id: str
    business_id: str
    date: str
    time: str
    status: BookingStatus = BookingStatus.PENDING
    user_id: str = ""
    user_name: str = ""
    attendance: AttendanceStatus | None = None
    attendance_updated_at: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @classmethod
    def from_document(cls, booking_id: str, doc: Mapping[str, Any]) -> "Booking":
        raw_status = str(doc.get("status") or "").strip().lower()
        try:
            status = BookingStatus(raw_status)
        except ValueError:
            status = BookingStatus.PENDING

        raw_attendance = str(doc.get("attendanceStatus") or "").strip().lower()
        try:
            attendance = AttendanceStatus(raw_attendance) if raw_attendance else None
        except ValueError:
            attendance = None

        return cls(
            booking_id=str(booking_id),
            business_id=str(doc.get("businessId") or ""),
            date=str(doc.get("date") or ""),
            time=str(doc.get("time") or ""),
            status=status,
            user_id=str(doc.get("userId") or ""),
            user_name=str(doc.get("userName") or ""),
            attendance=attendance,
            attendance_updated_at=str(doc.get("attendanceUpdatedAt") or ""),
            extra={k: v for k, v in doc.items() if k not in _BOOKING_KEYS},
        )

    def to_document(self) -> dict[str, Any]:
        doc = dict(self.extra)
        doc.update(
            {
                "id": self.booking_id,
                "businessId": self.business_id,
                "date": self.date,
                "time": self.time,
                "status": self.status.value,
                "userId": self.user_id,
                "userName": self.user_name,
            }
        )
        if self.attendance is not None:
            doc["attendanceStatus"] = self.attendance.value
            doc["attendanceUpdatedAt"] = self.attendance_updated_at
        return doc


class InvalidTransitionError(ValueError):
    """Requested status change is not allowed from the booking's current status."""


class StoreUnavailableError(RuntimeError):
    """The document store could not be reached.

    Store reads that raise it are retried; writes and every other exception
    propagate as is.
    """
