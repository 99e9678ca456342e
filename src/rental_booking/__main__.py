"""Module entry point for python -m rental_booking."""

from __future__ import annotations

from rental_booking.app import main


if __name__ == "__main__":
    raise SystemExit(main())
