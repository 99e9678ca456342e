"""Persisted fee policy settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rental_booking.logging_config import get_logger
from rental_booking.services.errors import InvalidInputError
from rental_booking.services.fee_calculator import FeePolicy, LateFeeBracket
from rental_booking.utils.config_store import load_config_data, save_config_data
from rental_booking.utils.money import to_money

LATE_FEE_KEY = "late_fee"
EXTENSION_FEE_KEY = "extension_fee"

logger = get_logger(__name__)


def _parse_brackets(section: dict[str, Any]) -> tuple[LateFeeBracket, ...]:
    raw_brackets = section.get("brackets")
    if isinstance(raw_brackets, list) and raw_brackets:
        return tuple(
            LateFeeBracket(
                hours_late=int(item["hours_late"]),
                amount=to_money(item["amount"]),
            )
            for item in raw_brackets
        )
    # Single flat fee after a grace period.
    return (
        LateFeeBracket(
            hours_late=int(section["grace_period_hours"]),
            amount=to_money(section["amount"]),
        ),
    )


def load_fee_policy(config_path: Path) -> FeePolicy:
    """Load the fee policy from disk, falling back to the defaults."""
    data = load_config_data(config_path)
    defaults = FeePolicy()
    late_section = data.get(LATE_FEE_KEY)
    extension_section = data.get(EXTENSION_FEE_KEY)
    brackets = defaults.late_fee_brackets
    extension_amount = defaults.extension_fee_amount
    try:
        if isinstance(late_section, dict):
            brackets = _parse_brackets(late_section)
        if isinstance(extension_section, dict) and "amount" in extension_section:
            extension_amount = to_money(extension_section["amount"])
        return FeePolicy(
            late_fee_brackets=brackets, extension_fee_amount=extension_amount
        )
    except (KeyError, TypeError, ValueError, InvalidInputError):
        logger.warning("Invalid fee settings in %s; using defaults.", config_path)
        return defaults


def save_fee_policy(config_path: Path, policy: FeePolicy) -> None:
    """Save the fee policy to disk."""
    payload = load_config_data(config_path)
    payload[LATE_FEE_KEY] = {
        "brackets": [
            {"hours_late": bracket.hours_late, "amount": str(bracket.amount)}
            for bracket in policy.late_fee_brackets
        ]
    }
    payload[EXTENSION_FEE_KEY] = {"amount": str(policy.extension_fee_amount)}
    save_config_data(config_path, payload)
