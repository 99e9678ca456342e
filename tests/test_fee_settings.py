"""
Tests for persisted fee policy settings.
"""

import json
from decimal import Decimal

from rental_booking.services.fee_calculator import FeePolicy, LateFeeBracket
from rental_booking.utils.config_store import load_config_data, save_config_data
from rental_booking.utils.fee_settings import load_fee_policy, save_fee_policy


def test_missing_file_uses_defaults(tmp_path):
    policy = load_fee_policy(tmp_path / "config.json")
    assert policy == FeePolicy()
    assert policy.grace_period_hours == 2
    assert policy.late_fee_for(3) == Decimal("1000.00")
    assert policy.extension_fee_amount == Decimal("1000.00")


def test_saved_policy_is_loaded_back(tmp_path):
    config_path = tmp_path / "nested" / "config.json"
    policy = FeePolicy(
        late_fee_brackets=(
            LateFeeBracket(2, Decimal("500.00")),
            LateFeeBracket(12, Decimal("1500.00")),
        ),
        extension_fee_amount=Decimal("800.00"),
    )
    save_fee_policy(config_path, policy)
    assert load_fee_policy(config_path) == policy


def test_saving_keeps_other_settings(tmp_path):
    config_path = tmp_path / "config.json"
    save_config_data(config_path, {"company": "Fleet Rentals"})
    save_fee_policy(config_path, FeePolicy())
    data = load_config_data(config_path)
    assert data["company"] == "Fleet Rentals"
    assert data["late_fee"]["brackets"] == [{"hours_late": 2, "amount": "1000.00"}]
    assert data["extension_fee"] == {"amount": "1000.00"}


def test_flat_fee_with_grace_period(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"late_fee": {"amount": 600, "grace_period_hours": 4}}),
        encoding="utf-8",
    )
    policy = load_fee_policy(config_path)
    assert policy.late_fee_for(4) == Decimal("0.00")
    assert policy.late_fee_for(5) == Decimal("600.00")
    assert policy.extension_fee_amount == Decimal("1000.00")


def test_malformed_settings_fall_back_to_defaults(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"late_fee": {"brackets": [{"hours_late": "two"}]}}),
        encoding="utf-8",
    )
    assert load_fee_policy(config_path) == FeePolicy()


def test_unreadable_file_is_ignored(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text("{not json", encoding="utf-8")
    assert load_config_data(config_path) == {}
    assert load_fee_policy(config_path) == FeePolicy()
