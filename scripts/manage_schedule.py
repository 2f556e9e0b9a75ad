#!/usr/bin/env python3
"""
Schedule and booking administration from the command line.

Usage:
    python scripts/manage_schedule.py windows
    python scripts/manage_schedule.py seed
    python scripts/manage_schedule.py close 2026-12-25 --reason "Christmas"
    python scripts/manage_schedule.py reopen 2026-12-25
    python scripts/manage_schedule.py closures
    python scripts/manage_schedule.py status ABC234 cancelled

Works directly on the SQLite file at DB_PATH (override with --db).
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.config import DB_PATH, RESTAURANT_TIMEZONE  # noqa: E402
from app.db import ReservationStore  # noqa: E402
from app.models import BOOKING_STATUSES  # noqa: E402
from app.services.booking_rules import local_date, utcnow  # noqa: E402

_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value!r}") from None


async def _windows(store: ReservationStore, args: argparse.Namespace) -> int:
    windows = await store.list_windows()
    if not windows:
        print("No service windows configured. Run 'seed' to load the default schedule.")
        return 0
    for w in windows:
        flag = "" if w.is_active else "  (inactive)"
        print(
            f"{_DAY_NAMES[w.day_of_week]}  {w.name:<8} {w.start_time:%H:%M}-{w.end_time:%H:%M}"
            f"  last {w.last_booking_time:%H:%M}  cap {w.capacity}"
            f"  every {w.slot_interval}m  meal {w.meal_duration}m{flag}"
        )
    return 0


async def _seed(store: ReservationStore, args: argparse.Namespace) -> int:
    added = await store.seed_default_schedule()
    if added:
        print(f"Seeded {added} service windows.")
    else:
        print("Schedule already has windows; nothing seeded.")
    return 0


async def _close(store: ReservationStore, args: argparse.Namespace) -> int:
    closure = await store.add_closure(args.date, args.reason)
    suffix = f" ({closure.reason})" if closure.reason else ""
    print(f"Closed on {closure.date.isoformat()}{suffix}.")
    return 0


async def _reopen(store: ReservationStore, args: argparse.Namespace) -> int:
    if not await store.remove_closure(args.date):
        print(f"No closure on {args.date.isoformat()}.")
        return 1
    print(f"Reopened {args.date.isoformat()}.")
    return 0


async def _closures(store: ReservationStore, args: argparse.Namespace) -> int:
    today = local_date(utcnow(), RESTAURANT_TIMEZONE)
    closures = await store.list_closures(date_from=None if args.all else today)
    if not closures:
        print("No closures.")
    for closure in closures:
        print(f"{closure.date.isoformat()}  {closure.reason or ''}".rstrip())
    return 0


async def _status(store: ReservationStore, args: argparse.Namespace) -> int:
    booking = await store.update_booking_status(args.code, args.status)
    if booking is None:
        print(f"No booking with code {args.code.upper()}.")
        return 1
    print(f"Booking {booking.confirmation_code} is now {booking.status}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the reservation schedule")
    parser.add_argument("--db", default=DB_PATH, help=f"SQLite file (default: {DB_PATH})")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("windows", help="List service windows").set_defaults(handler=_windows)
    sub.add_parser("seed", help="Load the default lunch/dinner schedule").set_defaults(handler=_seed)

    close = sub.add_parser("close", help="Close the restaurant on a date")
    close.add_argument("date", type=_iso_date)
    close.add_argument("--reason", default=None)
    close.set_defaults(handler=_close)

    reopen = sub.add_parser("reopen", help="Remove the closure on a date")
    reopen.add_argument("date", type=_iso_date)
    reopen.set_defaults(handler=_reopen)

    closures = sub.add_parser("closures", help="List upcoming closures")
    closures.add_argument("--all", action="store_true", help="Include past closures")
    closures.set_defaults(handler=_closures)

    status = sub.add_parser("status", help="Change a booking's status")
    status.add_argument("code")
    status.add_argument("status", choices=BOOKING_STATUSES)
    status.set_defaults(handler=_status)

    return parser


async def _run(args: argparse.Namespace) -> int:
    store = await ReservationStore.open(args.db)
    try:
        return await args.handler(store, args)
    finally:
        await store.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
