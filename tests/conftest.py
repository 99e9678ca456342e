"""Shared fixtures: in-memory database, storage, clock and orchestrator."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest

from rental_booking.db.connection import get_connection
from rental_booking.db.migrations import apply_migrations
from rental_booking.repositories.storage import SqliteBookingStorage
from rental_booking.services.booking_service import BookingOrchestrator
from rental_booking.services.errors import StorageFailureError
from rental_booking.services.notifications import NotificationEvent
from rental_booking.utils.dates import IST

NOW = datetime(2024, 5, 10, 9, 0, tzinfo=IST)


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[NotificationEvent, int, dict[str, Any]]] = []

    def notify(self, event_type, booking_id, payload) -> None:
        self.events.append((event_type, booking_id, payload))

    def of_type(self, event_type: NotificationEvent) -> list[dict[str, Any]]:
        return [payload for kind, _, payload in self.events if kind == event_type]


class BrokenNotifier:
    def notify(self, event_type, booking_id, payload) -> None:
        raise ConnectionError("notification gateway unreachable")


class FailingSaveStorage(SqliteBookingStorage):
    """Storage whose booking update always fails, after earlier writes ran."""

    def save_booking(self, booking):
        raise StorageFailureError("disk full")


@pytest.fixture
def connection():
    conn = get_connection(":memory:")
    apply_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def storage(connection):
    return SqliteBookingStorage(connection)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def orchestrator(storage, notifier, clock):
    return BookingOrchestrator(storage, notifier, clock=clock)


@pytest.fixture
def make_booking(orchestrator):
    """Create a booking: 10 to 12 May 2024, 2000 rent plus 1000 deposit."""

    def _make(**overrides: Any):
        values: dict[str, Any] = {
            "customer_id": "CUST-1",
            "vehicle_registration": "MH12AB1234",
            "start_date": "2024-05-10",
            "end_date": "2024-05-12",
            "pickup_time": "10:00",
            "dropoff_time": "10:00",
            "booking_amount": "2000",
            "security_deposit_amount": "1000",
            "paid_amount": "0",
            "payment_mode": "cash",
            "actor": "staff-1",
        }
        values.update(overrides)
        return orchestrator.create_booking(**values)

    return _make


@pytest.fixture
def in_use_booking(orchestrator, make_booking):
    """A fully paid booking that has been handed over to the customer."""

    def _make(**overrides: Any):
        overrides.setdefault("paid_amount", "3000")
        booking = make_booking(**overrides)
        orchestrator.confirm_booking(booking.id, actor="staff-1")
        return orchestrator.start_rental(booking.id, actor="staff-1")

    return _make


@pytest.fixture
def failing_orchestrator(connection, notifier, clock):
    """Orchestrator sharing the database but unable to save bookings."""
    return BookingOrchestrator(FailingSaveStorage(connection), notifier, clock=clock)


@pytest.fixture
def broken_orchestrator(storage, clock):
    """Orchestrator whose notifications always fail to send."""
    return BookingOrchestrator(storage, BrokenNotifier(), clock=clock)
