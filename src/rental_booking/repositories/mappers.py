"""SQLite row mappers for domain models."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Any, Dict, Optional

from rental_booking.domain.models import (
    Booking,
    BookingStatus,
    DamageRecord,
    DepositRefund,
    Extension,
    OutstationDetails,
    Payment,
    PaymentMode,
    RentalPurpose,
)
from rental_booking.utils.dates import parse_date, parse_time, parse_timestamp, to_iso
from rental_booking.utils.money import to_money


def _row_value(row: sqlite3.Row, key: str) -> Any:
    return row[key] if key in row.keys() else None


def _optional_date(value: Optional[str]) -> Optional[date]:
    return parse_date(value) if value else None


def _optional_timestamp(value: Optional[str]) -> Optional[datetime]:
    return parse_timestamp(value) if value else None


def _optional_mode(value: Optional[str]) -> Optional[PaymentMode]:
    return PaymentMode(value) if value else None


def booking_from_row(row: sqlite3.Row) -> Booking:
    purpose = RentalPurpose(_row_value(row, "rental_purpose") or RentalPurpose.LOCAL.value)
    outstation: Optional[OutstationDetails] = None
    if _row_value(row, "destination") is not None:
        outstation = OutstationDetails(
            destination=row["destination"],
            estimated_kilometers=int(_row_value(row, "estimated_kilometers") or 0),
            start_odometer=int(_row_value(row, "start_odometer") or 0),
            end_odometer=_row_value(row, "end_odometer"),
        )
    return Booking(
        id=_row_value(row, "id"),
        booking_code=row["booking_code"],
        customer_id=row["customer_id"],
        vehicle_registration=row["vehicle_registration"],
        start_date=parse_date(row["start_date"]),
        end_date=parse_date(row["end_date"]),
        pickup_time=parse_time(row["pickup_time"]),
        dropoff_time=parse_time(row["dropoff_time"]),
        booking_amount=to_money(row["booking_amount"]),
        security_deposit_amount=to_money(row["security_deposit_amount"]),
        damage_charges=to_money(row["damage_charges"]),
        late_fee=to_money(row["late_fee"]),
        extension_fee=to_money(row["extension_fee"]),
        paid_amount=to_money(row["paid_amount"]),
        payment_mode=PaymentMode(row["payment_mode"]),
        status=BookingStatus(row["status"]),
        rental_purpose=purpose,
        outstation_details=outstation,
        next_payment_date=_optional_date(_row_value(row, "next_payment_date")),
        fuel_level=_row_value(row, "fuel_level"),
        vehicle_remarks=_row_value(row, "vehicle_remarks"),
        cancellation_reason=_row_value(row, "cancellation_reason"),
        security_deposit_refunded=bool(_row_value(row, "security_deposit_refunded") or 0),
        completed_at=_optional_timestamp(_row_value(row, "completed_at")),
        completed_by=_row_value(row, "completed_by"),
        created_at=_optional_timestamp(_row_value(row, "created_at")),
        created_by=_row_value(row, "created_by"),
        updated_at=_optional_timestamp(_row_value(row, "updated_at")),
        updated_by=_row_value(row, "updated_by"),
        version=int(_row_value(row, "version") or 0),
    )


def booking_to_record(booking: Booking) -> Dict[str, Any]:
    outstation = booking.outstation_details
    return {
        "id": booking.id,
        "booking_code": booking.booking_code,
        "customer_id": booking.customer_id,
        "vehicle_registration": booking.vehicle_registration,
        "start_date": to_iso(booking.start_date),
        "end_date": to_iso(booking.end_date),
        "pickup_time": to_iso(booking.pickup_time),
        "dropoff_time": to_iso(booking.dropoff_time),
        "booking_amount": booking.booking_amount,
        "security_deposit_amount": booking.security_deposit_amount,
        "damage_charges": booking.damage_charges,
        "late_fee": booking.late_fee,
        "extension_fee": booking.extension_fee,
        "total_amount": booking.total_amount,
        "paid_amount": booking.paid_amount,
        "payment_mode": booking.payment_mode.value,
        "payment_status": booking.payment_status.value,
        "status": booking.status.value,
        "rental_purpose": booking.rental_purpose.value,
        "destination": outstation.destination if outstation else None,
        "estimated_kilometers": outstation.estimated_kilometers if outstation else None,
        "start_odometer": outstation.start_odometer if outstation else None,
        "end_odometer": outstation.end_odometer if outstation else None,
        "next_payment_date": to_iso(booking.next_payment_date),
        "fuel_level": booking.fuel_level,
        "vehicle_remarks": booking.vehicle_remarks,
        "cancellation_reason": booking.cancellation_reason,
        "security_deposit_refunded": int(booking.security_deposit_refunded),
        "completed_at": to_iso(booking.completed_at),
        "completed_by": booking.completed_by,
        "created_at": to_iso(booking.created_at),
        "created_by": booking.created_by,
        "updated_at": to_iso(booking.updated_at),
        "updated_by": booking.updated_by,
        "version": booking.version,
    }


def payment_from_row(row: sqlite3.Row) -> Payment:
    return Payment(
        id=_row_value(row, "id"),
        booking_id=row["booking_id"],
        amount=to_money(row["amount"]),
        mode=PaymentMode(row["payment_mode"]),
        created_at=parse_timestamp(row["created_at"]),
        created_by=_row_value(row, "created_by"),
        note=_row_value(row, "note"),
    )


def payment_to_record(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "booking_id": payment.booking_id,
        "amount": payment.amount,
        "payment_mode": payment.mode.value,
        "created_at": to_iso(payment.created_at),
        "created_by": payment.created_by,
        "note": payment.note,
    }


def extension_from_row(row: sqlite3.Row) -> Extension:
    return Extension(
        id=_row_value(row, "id"),
        booking_id=row["booking_id"],
        previous_end_date=parse_date(row["previous_end_date"]),
        previous_dropoff_time=parse_time(row["previous_dropoff_time"]),
        new_end_date=parse_date(row["new_end_date"]),
        new_dropoff_time=parse_time(row["new_dropoff_time"]),
        additional_amount=to_money(row["additional_amount"]),
        payment_amount=to_money(_row_value(row, "payment_amount")),
        payment_method=_optional_mode(_row_value(row, "payment_method")),
        next_payment_date=_optional_date(_row_value(row, "next_payment_date")),
        reason=_row_value(row, "reason"),
        created_by=_row_value(row, "created_by"),
        created_at=parse_timestamp(row["created_at"]),
    )


def extension_to_record(extension: Extension) -> Dict[str, Any]:
    return {
        "id": extension.id,
        "booking_id": extension.booking_id,
        "previous_end_date": to_iso(extension.previous_end_date),
        "previous_dropoff_time": to_iso(extension.previous_dropoff_time),
        "new_end_date": to_iso(extension.new_end_date),
        "new_dropoff_time": to_iso(extension.new_dropoff_time),
        "additional_amount": extension.additional_amount,
        "payment_amount": extension.payment_amount,
        "payment_method": extension.payment_method.value
        if extension.payment_method
        else None,
        "next_payment_date": to_iso(extension.next_payment_date),
        "reason": extension.reason,
        "created_by": extension.created_by,
        "created_at": to_iso(extension.created_at),
    }


def damage_record_from_row(row: sqlite3.Row) -> DamageRecord:
    return DamageRecord(
        id=_row_value(row, "id"),
        booking_id=row["booking_id"],
        vehicle_registration=row["vehicle_registration"],
        description=_row_value(row, "description"),
        charges=to_money(row["charges"]),
        created_at=parse_timestamp(row["created_at"]),
        created_by=_row_value(row, "created_by"),
    )


def damage_record_to_record(record: DamageRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "booking_id": record.booking_id,
        "vehicle_registration": record.vehicle_registration,
        "description": record.description,
        "charges": record.charges,
        "created_at": to_iso(record.created_at),
        "created_by": record.created_by,
    }


def deposit_refund_from_row(row: sqlite3.Row) -> DepositRefund:
    return DepositRefund(
        id=_row_value(row, "id"),
        booking_id=row["booking_id"],
        deposit_amount=to_money(row["deposit_amount"]),
        deductions=to_money(row["deductions"]),
        refund_amount=to_money(row["refund_amount"]),
        refund_mode=PaymentMode(row["refund_mode"]),
        deduction_reason=_row_value(row, "deduction_reason"),
        created_at=parse_timestamp(row["created_at"]),
        created_by=_row_value(row, "created_by"),
    )


def deposit_refund_to_record(refund: DepositRefund) -> Dict[str, Any]:
    return {
        "id": refund.id,
        "booking_id": refund.booking_id,
        "deposit_amount": refund.deposit_amount,
        "deductions": refund.deductions,
        "refund_amount": refund.refund_amount,
        "refund_mode": refund.refund_mode.value,
        "deduction_reason": refund.deduction_reason,
        "created_at": to_iso(refund.created_at),
        "created_by": refund.created_by,
    }
