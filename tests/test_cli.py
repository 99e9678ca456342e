"""
Tests for the command-line entry point.
"""

import pytest

from rental_booking import app
from rental_booking.db.connection import get_connection
from rental_booking.db.migrations import MIGRATIONS


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    monkeypatch.setattr(app, "configure_logging", lambda **kwargs: None)
    return tmp_path / "cli.db"


def test_migrate(cli_env, capsys):
    assert app.main(["--db", str(cli_env), "migrate"]) == 0
    assert f"Schema version {MIGRATIONS[-1].version}" in capsys.readouterr().out


def test_show_booking(cli_env, capsys):
    app.main(["--db", str(cli_env), "migrate"])
    connection = get_connection(cli_env)
    try:
        orchestrator = app.build_orchestrator(connection)
        booking = orchestrator.create_booking(
            "CUST-1", "MH12AB1234", "2024-05-10", "2024-05-12", "10:00", "10:00",
            "2000", "1000", "1500",
        )
    finally:
        connection.close()
    capsys.readouterr()

    assert app.main(["--db", str(cli_env), "show", booking.booking_code]) == 0
    out = capsys.readouterr().out
    assert "Booking BK0001 (pending)" in out
    assert "₹3,000.00" in out
    assert "ledger ₹1,500.00" in out
    assert "partial" in out


def test_show_unknown_booking(cli_env, capsys):
    assert app.main(["--db", str(cli_env), "show", "BK0404"]) == 1
    assert "not found" in capsys.readouterr().out


def test_reconcile_reports_repairs(cli_env, capsys):
    app.main(["--db", str(cli_env), "migrate"])
    connection = get_connection(cli_env)
    try:
        booking = app.build_orchestrator(connection).create_booking(
            "CUST-1", "MH12AB1234", "2024-05-10", "2024-05-12", "10:00", "10:00", "2000"
        )
        with connection:
            connection.execute(
                "UPDATE bookings SET paid_amount = '300.00' WHERE id = ?", (booking.id,)
            )
    finally:
        connection.close()
    capsys.readouterr()

    assert app.main(["--db", str(cli_env), "reconcile"]) == 0
    out = capsys.readouterr().out
    assert "BK0001" in out
    assert "appended_missing_payment" in out
    assert "1 booking(s) reconciled." in out
