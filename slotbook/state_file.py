from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Iterable, Mapping

from slotbook.domain import Booking, StoreUnavailableError
from slotbook.store import InMemoryBookingStore


def load_state(path: str) -> tuple[dict[str, dict[str, Any]], list[Booking]]:
    if not os.path.exists(path):
        return {}, []

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError:
        # Corrupted state shouldn't brick the CLI; start fresh.
        return {}, []
    except OSError as e:
        raise StoreUnavailableError(f"Cannot read state file {path}: {e}") from e

    if not isinstance(raw, dict):
        return {}, []

    businesses: dict[str, dict[str, Any]] = {}
    for business_id, doc in (raw.get("businesses") or {}).items():
        if isinstance(doc, dict):
            businesses[str(business_id)] = doc

    bookings: list[Booking] = []
    for item in raw.get("bookings") or []:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        bookings.append(Booking.from_document(str(item["id"]), item))
    return businesses, bookings


def save_state(path: str, businesses: Mapping[str, Mapping[str, Any]], bookings: Iterable[Booking]) -> None:
    data = {
        "businesses": {k: dict(v) for k, v in businesses.items()},
        "bookings": [b.to_document() for b in sorted(bookings, key=lambda b: (b.date, b.time, b.booking_id))],
    }

    folder = os.path.dirname(os.path.abspath(path))
    try:
        if folder and not os.path.exists(folder):
            os.makedirs(folder, exist_ok=True)

        # Atomic write
        with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp") as tf:
            json.dump(data, tf, ensure_ascii=False, indent=2)
            tmp_name = tf.name

        os.replace(tmp_name, path)
    except OSError as e:
        raise StoreUnavailableError(f"Cannot write state file {path}: {e}") from e


class JsonFileBookingStore(InMemoryBookingStore):
    """Booking store kept in a single JSON document.

    The file is the source of truth: every read reloads it, and every write
    reloads it, applies the change and saves, so writes made by other
    processes are seen by the pre-write re-check and never overwritten.
    Two writers interleaving between one's reload and its save can still race.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__()
        self._reload()

    def _reload(self) -> None:
        businesses, bookings = load_state(self.path)
        self._businesses = {k: dict(v) for k, v in businesses.items()}
        self._bookings = {b.booking_id: b for b in bookings}

    def _flush(self) -> None:
        save_state(self.path, self._businesses, super().all_bookings())

    def get_business(self, business_id: str) -> Mapping[str, Any] | None:
        self._reload()
        return super().get_business(business_id)

    def list_bookings(self, business_id: str) -> list[Booking]:
        self._reload()
        return super().list_bookings(business_id)

    def all_bookings(self) -> list[Booking]:
        self._reload()
        return super().all_bookings()

    def get_booking(self, booking_id: str) -> Booking | None:
        self._reload()
        return super().get_booking(booking_id)

    def put_business(self, business_id: str, doc: Mapping[str, Any]) -> None:
        self._reload()
        super().put_business(business_id, doc)
        self._flush()

    def add_booking(self, booking: Booking) -> Booking:
        self._reload()
        booking = super().add_booking(booking)
        self._flush()
        return booking

    def update_booking(self, booking: Booking) -> None:
        self._reload()
        super().update_booking(booking)
        self._flush()
