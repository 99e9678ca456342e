"""Database migrations for SQLite schema versioning."""

from __future__ import annotations

from dataclasses import dataclass
import sqlite3

from rental_booking.db.connection import transaction
from rental_booking.logging_config import get_logger


@dataclass(frozen=True)
class Migration:
    version: int
    script: str


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        script="""
        CREATE TABLE IF NOT EXISTS bookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_code TEXT NOT NULL UNIQUE,
            customer_id TEXT NOT NULL,
            vehicle_registration TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            pickup_time TEXT NOT NULL,
            dropoff_time TEXT NOT NULL,
            booking_amount TEXT NOT NULL DEFAULT '0.00',
            security_deposit_amount TEXT NOT NULL DEFAULT '0.00',
            damage_charges TEXT NOT NULL DEFAULT '0.00',
            late_fee TEXT NOT NULL DEFAULT '0.00',
            extension_fee TEXT NOT NULL DEFAULT '0.00',
            total_amount TEXT NOT NULL DEFAULT '0.00',
            paid_amount TEXT NOT NULL DEFAULT '0.00',
            payment_mode TEXT NOT NULL DEFAULT 'cash',
            payment_status TEXT NOT NULL
                CHECK (payment_status IN ('pending', 'partial', 'full')),
            status TEXT NOT NULL CHECK (
                status IN ('pending', 'confirmed', 'in_use', 'completed', 'cancelled')
            ),
            rental_purpose TEXT NOT NULL DEFAULT 'local'
                CHECK (rental_purpose IN ('local', 'outstation')),
            created_at TEXT,
            created_by TEXT,
            updated_at TEXT,
            updated_by TEXT,
            version INTEGER NOT NULL DEFAULT 0,
            CHECK (end_date > start_date)
        );

        CREATE TABLE IF NOT EXISTS payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL,
            amount TEXT NOT NULL CHECK (CAST(amount AS REAL) > 0),
            payment_mode TEXT NOT NULL
                CHECK (payment_mode IN ('cash', 'upi', 'card', 'bank_transfer')),
            created_at TEXT NOT NULL,
            created_by TEXT,
            note TEXT,
            FOREIGN KEY (booking_id) REFERENCES bookings(id)
        );

        CREATE INDEX IF NOT EXISTS idx_bookings_start_date
            ON bookings(start_date);
        CREATE INDEX IF NOT EXISTS idx_bookings_end_date
            ON bookings(end_date);
        CREATE INDEX IF NOT EXISTS idx_bookings_status
            ON bookings(status);
        CREATE INDEX IF NOT EXISTS idx_payments_booking_id
            ON payments(booking_id);
        CREATE INDEX IF NOT EXISTS idx_payments_created_at
            ON payments(created_at);
        """,
    ),
    Migration(
        version=2,
        script="""
        ALTER TABLE bookings ADD COLUMN next_payment_date TEXT;

        CREATE TABLE IF NOT EXISTS booking_extensions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL,
            previous_end_date TEXT NOT NULL,
            previous_dropoff_time TEXT NOT NULL,
            new_end_date TEXT NOT NULL,
            new_dropoff_time TEXT NOT NULL,
            additional_amount TEXT NOT NULL DEFAULT '0.00',
            payment_amount TEXT NOT NULL DEFAULT '0.00',
            payment_method TEXT,
            next_payment_date TEXT,
            reason TEXT,
            created_by TEXT,
            created_at TEXT NOT NULL,
            FOREIGN KEY (booking_id) REFERENCES bookings(id)
        );

        CREATE INDEX IF NOT EXISTS idx_booking_extensions_booking_id
            ON booking_extensions(booking_id);
        """,
    ),
    Migration(
        version=3,
        script="""
        ALTER TABLE bookings ADD COLUMN destination TEXT;
        ALTER TABLE bookings ADD COLUMN estimated_kilometers INTEGER;
        ALTER TABLE bookings ADD COLUMN start_odometer INTEGER;
        ALTER TABLE bookings ADD COLUMN end_odometer INTEGER;
        ALTER TABLE bookings ADD COLUMN fuel_level TEXT;
        ALTER TABLE bookings ADD COLUMN vehicle_remarks TEXT;
        ALTER TABLE bookings ADD COLUMN completed_at TEXT;
        ALTER TABLE bookings ADD COLUMN completed_by TEXT;
        ALTER TABLE bookings ADD COLUMN cancellation_reason TEXT;

        CREATE TABLE IF NOT EXISTS vehicle_damages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL,
            vehicle_registration TEXT NOT NULL,
            description TEXT,
            charges TEXT NOT NULL DEFAULT '0.00',
            created_at TEXT NOT NULL,
            created_by TEXT,
            FOREIGN KEY (booking_id) REFERENCES bookings(id)
        );

        CREATE INDEX IF NOT EXISTS idx_vehicle_damages_booking_id
            ON vehicle_damages(booking_id);
        CREATE INDEX IF NOT EXISTS idx_vehicle_damages_vehicle
            ON vehicle_damages(vehicle_registration);
        """,
    ),
    Migration(
        version=4,
        script="""
        ALTER TABLE bookings ADD COLUMN security_deposit_refunded INTEGER NOT NULL DEFAULT 0;

        CREATE TABLE IF NOT EXISTS security_deposit_refunds (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL UNIQUE,
            deposit_amount TEXT NOT NULL,
            deductions TEXT NOT NULL DEFAULT '0.00',
            refund_amount TEXT NOT NULL,
            refund_mode TEXT NOT NULL,
            deduction_reason TEXT,
            created_at TEXT NOT NULL,
            created_by TEXT,
            FOREIGN KEY (booking_id) REFERENCES bookings(id)
        );
        """,
    ),
]


def _fetch_schema_version(connection: sqlite3.Connection) -> int:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS app_meta (
            schema_version INTEGER NOT NULL
        );
        """
    )
    row = connection.execute(
        "SELECT schema_version FROM app_meta LIMIT 1"
    ).fetchone()
    if row is None:
        connection.execute("INSERT INTO app_meta (schema_version) VALUES (0)")
        return 0
    return int(row[0])


def current_schema_version(connection: sqlite3.Connection) -> int:
    with transaction(connection):
        return _fetch_schema_version(connection)


def apply_migrations(connection: sqlite3.Connection) -> None:
    """Apply pending database migrations."""
    logger = get_logger("migrations")
    current_version = current_schema_version(connection)

    for migration in MIGRATIONS:
        if migration.version <= current_version:
            continue

        with transaction(connection):
            connection.executescript(migration.script)
            connection.execute(
                "UPDATE app_meta SET schema_version = ?",
                (migration.version,),
            )
        logger.info("Applied schema migration %s", migration.version)

        current_version = migration.version
