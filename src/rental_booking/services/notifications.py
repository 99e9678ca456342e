"""Notification collaborator for booking events."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from rental_booking.logging_config import get_logger


class NotificationEvent(str, Enum):
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_UPDATED = "BOOKING_UPDATED"
    BOOKING_EXTENDED = "BOOKING_EXTENDED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"


class Notifier(Protocol):
    def notify(
        self,
        event_type: NotificationEvent,
        booking_id: int,
        payload: dict[str, Any],
    ) -> None: ...


class LoggingNotifier:
    """Notifier that only records events in the application log."""

    def __init__(self) -> None:
        self._logger = get_logger(self.__class__.__name__)

    def notify(
        self,
        event_type: NotificationEvent,
        booking_id: int,
        payload: dict[str, Any],
    ) -> None:
        self._logger.info(
            "%s booking_id=%s payload=%s", event_type.value, booking_id, payload
        )


def dispatch(
    notifier: Notifier,
    event_type: NotificationEvent,
    booking_id: int,
    payload: dict[str, Any],
) -> bool:
    """Send a notification; failures are logged and never raised."""
    logger = get_logger("notifications")
    try:
        notifier.notify(event_type, booking_id, payload)
    except Exception:
        logger.exception(
            "Failed to send %s notification for booking_id=%s",
            event_type.value,
            booking_id,
        )
        return False
    return True
