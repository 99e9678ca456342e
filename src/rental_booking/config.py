"""Application configuration."""

from __future__ import annotations

from dataclasses import dataclass

from rental_booking.version import __app_name__

APP_NAME = __app_name__
APP_DATA_DIRNAME = "RentalBooking"
DB_FILENAME = "rental_booking.db"
LOGS_DIRNAME = "logs"
LOG_FILENAME = "app.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3
LOG_LEVEL_ENV = "RENTAL_BOOKING_LOG_LEVEL"
CONFIG_FILENAME = "config.json"

REFERENCE_TIMEZONE = "Asia/Kolkata"
BOOKING_CODE_PREFIX = "BK"
BOOKING_CODE_DIGITS = 4
MAX_RENTAL_DAYS = 30
MAX_EXTENSION_DAYS = 30

DEFAULT_LATE_FEE_AMOUNT = "1000"
DEFAULT_LATE_FEE_GRACE_HOURS = 2
DEFAULT_EXTENSION_FEE_AMOUNT = "1000"


@dataclass(frozen=True)
class AppConfig:
    """Static configuration values for the booking engine."""

    app_name: str = APP_NAME
    booking_code_prefix: str = BOOKING_CODE_PREFIX
    max_rental_days: int = MAX_RENTAL_DAYS
    max_extension_days: int = MAX_EXTENSION_DAYS
