import argparse
import json
import logging
from datetime import date, datetime

from slotbook.booking import (
    approve_booking,
    cancel_booking,
    mark_attendance,
    request_booking,
    reschedule_booking,
    summarize_bookings,
)
from slotbook.config import Settings, load_settings
from slotbook.dates import (
    as_local_naive,
    format_booking_date_for_display,
    hours_until_booking,
    is_booking_time_elapsed,
    parse_date_key,
)
from slotbook.domain import BusinessScheduleConfig, StoreUnavailableError
from slotbook.schedule import sanitize_business_config
from slotbook.slots import booked_times_for_date, enumerate_bookable_dates, get_available_slots, select_default_date
from slotbook.state_file import JsonFileBookingStore
from slotbook.weekdays import summarize_weekly_hours

logger = logging.getLogger(__name__)


def _setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _date_arg(raw: str) -> date:
    parsed = parse_date_key(raw)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {raw!r}")
    return parsed


def _datetime_arg(raw: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected ISO datetime, got {raw!r}") from e
    # Slot times are local wall-clock times.
    return as_local_naive(parsed)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="slotbook: appointment availability and booking")
    parser.add_argument("--state-file", help="JSON store (defaults to STATE_FILE)")
    parser.add_argument("--today", type=_date_arg, help="Override today's date (YYYY-MM-DD)")
    parser.add_argument("--now", type=_datetime_arg, help="Drop slots that start before this moment")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add-business", help="Store a business document from a JSON file")
    p.add_argument("--business", required=True)
    p.add_argument("--file", required=True)

    for name, help_text in (
        ("dates", "List dates in the booking window"),
        ("hours", "Show weekly hours"),
        ("stats", "Count bookings per status"),
        ("list", "List bookings"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--business", required=True)

    p = sub.add_parser("slots", help="List available times on a date")
    p.add_argument("--business", required=True)
    p.add_argument("--date", required=True)

    p = sub.add_parser("book", help="Book a slot")
    p.add_argument("--business", required=True)
    p.add_argument("--date", required=True)
    p.add_argument("--time", required=True)
    p.add_argument("--user", default="")
    p.add_argument("--name", default="")

    p = sub.add_parser("reschedule", help="Move a booking to another slot")
    p.add_argument("--booking", required=True)
    p.add_argument("--date", required=True)
    p.add_argument("--time", required=True)

    for name in ("cancel", "approve"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a booking")
        p.add_argument("--booking", required=True)

    p = sub.add_parser("attend", help="Record whether the client showed up")
    p.add_argument("--booking", required=True)
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--arrived", dest="attended", action="store_true")
    group.add_argument("--no-show", dest="attended", action="store_false")

    return parser


def _load_config(store: JsonFileBookingStore, business_id: str) -> BusinessScheduleConfig | None:
    doc = store.get_business(business_id)
    if doc is None:
        print(f"Business not found: {business_id}")
        return None
    return sanitize_business_config(doc)


def _run(store: JsonFileBookingStore, args: argparse.Namespace, settings: Settings) -> int:
    today = args.today or date.today()
    attempts = settings.store_retry_attempts

    if args.command == "add-business":
        try:
            with open(args.file, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Cannot read business file {args.file}: {e}")
            return 1
        if not isinstance(doc, dict):
            print(f"Business file {args.file} must hold a JSON object.")
            return 1
        store.put_business(args.business, doc)
        print(f"Business {args.business} saved.")
        return 0

    if args.command in {"book", "reschedule", "cancel", "approve", "attend"}:
        if args.command == "book":
            result = request_booking(
                store,
                business_id=args.business,
                date_value=args.date,
                time_value=args.time,
                today=today,
                user_id=args.user,
                user_name=args.name,
                now=args.now,
                retry_attempts=attempts,
            )
        elif args.command == "reschedule":
            result = reschedule_booking(
                store,
                booking_id=args.booking,
                date_value=args.date,
                time_value=args.time,
                today=today,
                now=args.now,
                retry_attempts=attempts,
            )
        elif args.command == "attend":
            result = mark_attendance(store, args.booking, args.attended, args.now or datetime.now(), retry_attempts=attempts)
        elif args.command == "cancel":
            result = cancel_booking(store, args.booking, retry_attempts=attempts)
        else:
            result = approve_booking(store, args.booking, retry_attempts=attempts)

        if not result.ok:
            print(f"Rejected: {result.message}")
            return 1
        b = result.booking
        line = f"{b.booking_id} {b.date} {b.time} {b.status.value}"
        if b.attendance is not None:
            line += f" {b.attendance.value}"
        print(line)
        return 0

    if args.command in {"stats", "list"}:
        bookings = store.list_bookings(args.business)
        if args.command == "stats":
            stats = summarize_bookings(bookings)
            print(
                f"total={stats.total} pending={stats.pending} approved={stats.approved} "
                f"cancelled={stats.cancelled} rescheduled={stats.rescheduled}"
            )
            return 0

        for b in sorted(bookings, key=lambda b: (b.date, b.time)):
            line = f"{b.booking_id} {format_booking_date_for_display(b.date)} {b.time} {b.status.value}"
            if b.attendance is not None:
                line += f" [{b.attendance.value}]"
            if args.now is not None:
                if is_booking_time_elapsed(b, args.now):
                    line += " (past)"
                else:
                    hours = hours_until_booking(b, args.now)
                    if hours is not None:
                        line += f" (in {hours:.1f}h)"
            print(line)
        return 0

    config = _load_config(store, args.business)
    if config is None:
        return 1

    if args.command == "hours":
        rows = summarize_weekly_hours(config.weekly_hours)
        for row in rows:
            print(f"{row.label}: {row.text}")
        if config.opening_hour and config.closing_hour:
            print(f"Default: {config.opening_hour} – {config.closing_hour}")
        return 0

    if args.command == "dates":
        options = enumerate_bookable_dates(config, today)
        selected = select_default_date(options)
        for o in options:
            marker = "*" if o.value == selected else " "
            state = "closed" if o.disabled else f"{o.slot_count} slots"
            print(f"{marker} {o.value} {o.weekday} {o.display} {state}")
        return 0

    # slots
    booked = booked_times_for_date(store.list_bookings(args.business), args.date)
    slots = get_available_slots(config, args.date, booked, now=args.now)
    if not slots:
        print("No available times.")
        return 0
    print("\n".join(slots))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    _setup_logging(settings.log_level_value)

    try:
        store = JsonFileBookingStore(args.state_file or settings.state_file)
        return _run(store, args, settings)
    except StoreUnavailableError as e:
        logger.error("Store unavailable (%s: %s)", type(e).__name__, e)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
