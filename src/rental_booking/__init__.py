"""Booking lifecycle and payment reconciliation engine for vehicle rentals."""

from rental_booking.version import __version__

__all__ = ["__version__"]
