"""Application bootstrap and command-line entry point."""

from __future__ import annotations

import argparse
import logging
import sqlite3
from pathlib import Path
from typing import Optional, Sequence

from rental_booking.config import AppConfig
from rental_booking.db.connection import get_connection
from rental_booking.db.migrations import apply_migrations, current_schema_version
from rental_booking.logging_config import configure_logging, get_logger
from rental_booking.paths import get_config_path, get_db_path
from rental_booking.repositories.storage import SqliteBookingStorage
from rental_booking.services.booking_service import BookingOrchestrator
from rental_booking.services.errors import ServiceError
from rental_booking.services.fee_calculator import FeeCalculator
from rental_booking.services.notifications import LoggingNotifier
from rental_booking.utils.dates import format_date, format_time
from rental_booking.utils.fee_settings import load_fee_policy
from rental_booking.utils.money import format_currency


def build_orchestrator(
    connection: sqlite3.Connection,
    config_path: Optional[Path] = None,
    config: AppConfig = AppConfig(),
) -> BookingOrchestrator:
    """Wire storage, fee policy and notifications into an orchestrator."""
    policy = load_fee_policy(config_path or get_config_path())
    storage = SqliteBookingStorage(connection, code_prefix=config.booking_code_prefix)
    return BookingOrchestrator(
        storage,
        LoggingNotifier(),
        fee_calculator=FeeCalculator(policy),
        config=config,
    )


def _print_booking(orchestrator: BookingOrchestrator, booking_code: str) -> None:
    booking = orchestrator.get_booking_by_code(booking_code)
    ledger_total = orchestrator.paid_to_date(booking.id)
    lines = [
        f"Booking {booking.booking_code} ({booking.status.value})",
        f"  Vehicle:        {booking.vehicle_registration}",
        f"  Customer:       {booking.customer_id}",
        f"  Period:         {format_date(booking.start_date)} "
        f"{format_time(booking.pickup_time)} -> "
        f"{format_date(booking.end_date)} {format_time(booking.dropoff_time)}",
        f"  Booking amount: {format_currency(booking.booking_amount)}",
        f"  Deposit:        {format_currency(booking.security_deposit_amount)}",
        f"  Damage/fees:    {format_currency(booking.damage_charges)} / "
        f"{format_currency(booking.late_fee)} / {format_currency(booking.extension_fee)}",
        f"  Total:          {format_currency(booking.total_amount)}",
        f"  Paid:           {format_currency(booking.paid_amount)} "
        f"(ledger {format_currency(ledger_total)})",
        f"  Payment status: {booking.payment_status.value}",
    ]
    if booking.next_payment_date:
        lines.append(f"  Next payment:   {format_date(booking.next_payment_date)}")
    print("\n".join(lines))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rental_booking",
        description="Vehicle rental booking lifecycle and payment reconciliation.",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database file (defaults to the app data directory).",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug detail."
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Log to the file only."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("migrate", help="Create or upgrade the database schema.")
    show = subparsers.add_parser("show", help="Print a booking summary.")
    show.add_argument("booking_code")
    reconcile = subparsers.add_parser(
        "reconcile", help="Repair bookings whose paid amount disagrees with the ledger."
    )
    reconcile.add_argument("--actor", default="cli")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the booking engine command line."""
    args = _build_parser().parse_args(argv)
    configure_logging(
        level=logging.DEBUG if args.verbose else None, console=not args.quiet
    )
    logger = get_logger(__name__)
    config = AppConfig()
    logger.info("Starting %s (%s)", config.app_name, args.command)

    connection = get_connection(args.db or get_db_path())
    try:
        apply_migrations(connection)
        if args.command == "migrate":
            print(f"Schema version {current_schema_version(connection)}")
            return 0
        orchestrator = build_orchestrator(connection, config=config)
        if args.command == "show":
            _print_booking(orchestrator, args.booking_code)
        elif args.command == "reconcile":
            report = orchestrator.reconcile_ledger(actor=args.actor)
            for item in report:
                print(
                    f"{item.booking_code}: cached {format_currency(item.cached_paid)}, "
                    f"ledger {format_currency(item.ledger_paid)} -> {item.action}"
                )
            repaired = sum(1 for item in report if item.repaired)
            print(f"{repaired} booking(s) reconciled.")
            if repaired < len(report):
                print(f"{len(report) - repaired} booking(s) need manual review.")
        return 0
    except ServiceError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}")
        return 1
    finally:
        connection.close()


if __name__ == "__main__":
    raise SystemExit(main())
