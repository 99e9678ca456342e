"""Decimal helpers for currency amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from rental_booking.services.errors import InvalidInputError

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Decimal | int | float | str


def to_money(value: MoneyLike | None) -> Decimal:
    """Coerce a user or storage value to a two-place Decimal."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid amount: {value!r}.")
    try:
        if isinstance(value, float):
            amount = Decimal(str(value))
        else:
            amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid amount: {value!r}.") from exc
    if not amount.is_finite():
        raise InvalidInputError(f"Invalid amount: {value!r}.")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_currency(value: MoneyLike) -> str:
    formatted = f"{to_money(value):,.2f}"
    return f"₹{formatted}"
