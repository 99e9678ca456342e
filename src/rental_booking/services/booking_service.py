"""Booking orchestration: entry point for the booking lifecycle."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Optional

from rental_booking.config import AppConfig
from rental_booking.domain.models import (
    Booking,
    BookingStatus,
    DamageRecord,
    DepositRefund,
    Extension,
    OutstationDetails,
    Payment,
    PaymentMode,
    PaymentStatus,
    RentalPurpose,
    validate_rental_window,
)
from rental_booking.logging_config import get_logger
from rental_booking.repositories.storage import BookingStorage
from rental_booking.services.completion_service import (
    CompletionProcessor,
    CompletionResult,
)
from rental_booking.services.errors import (
    BookingValidationError,
    InvalidAmountError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from rental_booking.services.extension_service import (
    ExtensionProcessor,
    ExtensionResult,
)
from rental_booking.services.fee_calculator import FeeBreakdown, FeeCalculator
from rental_booking.services.locks import BookingLocks
from rental_booking.services.notifications import (
    LoggingNotifier,
    NotificationEvent,
    Notifier,
    dispatch,
)
from rental_booking.services.payment_ledger import (
    LedgerDiscrepancy,
    PaymentLedger,
    coerce_payment_mode,
)
from rental_booking.utils.dates import format_date, now_ist, parse_date, parse_time
from rental_booking.utils.money import ZERO, MoneyLike, format_currency, to_money

INITIAL_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_USE}
)
BOOKING_CODE_LOCK = "booking-code"


class BookingOrchestrator:
    """Coordinates booking operations against storage and notifications."""

    def __init__(
        self,
        storage: BookingStorage,
        notifier: Optional[Notifier] = None,
        *,
        fee_calculator: Optional[FeeCalculator] = None,
        clock: Callable[[], datetime] = now_ist,
        locks: Optional[BookingLocks] = None,
        config: AppConfig = AppConfig(),
    ) -> None:
        self._storage = storage
        self._notifier = notifier or LoggingNotifier()
        self._fee_calculator = fee_calculator or FeeCalculator()
        self._clock = clock
        self._locks = locks or BookingLocks()
        self._config = config
        self._ledger = PaymentLedger(storage, locks=self._locks, clock=clock)
        self._extensions = ExtensionProcessor(
            storage,
            self._ledger,
            self._notifier,
            locks=self._locks,
            clock=clock,
            max_extension_days=config.max_extension_days,
            max_rental_days=config.max_rental_days,
        )
        self._completions = CompletionProcessor(
            storage,
            self._ledger,
            self._notifier,
            locks=self._locks,
            clock=clock,
        )
        self._logger = get_logger(self.__class__.__name__)

    @property
    def ledger(self) -> PaymentLedger:
        return self._ledger

    @property
    def fee_calculator(self) -> FeeCalculator:
        return self._fee_calculator

    def _notify(
        self, event_type: NotificationEvent, booking: Booking, **extra: Any
    ) -> None:
        payload: dict[str, Any] = {
            "booking_code": booking.booking_code,
            "status": booking.status.value,
            "total_amount": format_currency(booking.total_amount),
            "paid_amount": format_currency(booking.paid_amount),
            "payment_status": booking.payment_status.value,
        }
        payload.update(extra)
        dispatch(self._notifier, event_type, booking.id, payload)

    def _build_outstation_details(
        self,
        rental_purpose: RentalPurpose,
        outstation_details: Optional[OutstationDetails | dict[str, Any]],
    ) -> Optional[OutstationDetails]:
        if rental_purpose != RentalPurpose.OUTSTATION:
            return None
        if outstation_details is None:
            raise BookingValidationError(
                "Outstation bookings require destination and odometer details."
            )
        if isinstance(outstation_details, dict):
            try:
                outstation_details = OutstationDetails(
                    destination=str(outstation_details["destination"]).strip(),
                    estimated_kilometers=int(
                        outstation_details["estimated_kilometers"]
                    ),
                    start_odometer=int(outstation_details["start_odometer"]),
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise BookingValidationError(
                    "Outstation details need a destination, estimated kilometers "
                    "and a start odometer reading."
                ) from exc
        if not outstation_details.destination:
            raise BookingValidationError("Destination is required for outstation.")
        if outstation_details.estimated_kilometers < 0:
            raise BookingValidationError("Estimated kilometers cannot be negative.")
        if outstation_details.start_odometer < 0:
            raise BookingValidationError("Odometer reading cannot be negative.")
        return outstation_details

    def create_booking(
        self,
        customer_id: str,
        vehicle_registration: str,
        start_date: str | date,
        end_date: str | date,
        pickup_time: str | time,
        dropoff_time: str | time,
        booking_amount: MoneyLike,
        security_deposit_amount: MoneyLike = ZERO,
        paid_amount: MoneyLike = ZERO,
        payment_mode: PaymentMode | str = PaymentMode.CASH,
        *,
        status: BookingStatus | str = BookingStatus.PENDING,
        rental_purpose: RentalPurpose | str = RentalPurpose.LOCAL,
        outstation_details: Optional[OutstationDetails | dict[str, Any]] = None,
        next_payment_date: Optional[str | date] = None,
        actor: Optional[str] = None,
    ) -> Booking:
        if not customer_id or not str(customer_id).strip():
            raise BookingValidationError("Customer is required.")
        if not vehicle_registration or not vehicle_registration.strip():
            raise BookingValidationError("Vehicle is required.")
        start = parse_date(start_date)
        end = parse_date(end_date)
        validate_rental_window(start, end, self._config.max_rental_days)
        pickup = parse_time(pickup_time)
        dropoff = parse_time(dropoff_time)
        amount = to_money(booking_amount)
        deposit = to_money(security_deposit_amount)
        paid = to_money(paid_amount)
        if amount < 0:
            raise InvalidAmountError("Booking amount cannot be negative.")
        if deposit < 0:
            raise InvalidAmountError("Security deposit amount cannot be negative.")
        if paid < 0:
            raise InvalidAmountError("Paid amount cannot be negative.")
        if paid > amount + deposit:
            raise OverpaymentError("Paid amount cannot exceed total amount.")
        mode = coerce_payment_mode(payment_mode)
        try:
            initial_status = BookingStatus(status)
            purpose = RentalPurpose(rental_purpose)
        except ValueError as exc:
            raise BookingValidationError(str(exc)) from exc
        if initial_status not in INITIAL_STATUSES:
            raise InvalidStateTransitionError(
                f"A new booking cannot start as {initial_status.value}."
            )
        details = self._build_outstation_details(purpose, outstation_details)
        follow_up = parse_date(next_payment_date) if next_payment_date else None
        if follow_up is not None and follow_up < self._clock().date():
            raise BookingValidationError("Next payment date cannot be in the past.")

        with self._locks.hold(BOOKING_CODE_LOCK):
            with self._storage.unit_of_work():
                now = self._clock()
                booking = Booking(
                    id=None,
                    booking_code=self._storage.next_booking_code(),
                    customer_id=str(customer_id).strip(),
                    vehicle_registration=vehicle_registration.strip().upper(),
                    start_date=start,
                    end_date=end,
                    pickup_time=pickup,
                    dropoff_time=dropoff,
                    booking_amount=amount,
                    security_deposit_amount=deposit,
                    payment_mode=mode,
                    status=initial_status,
                    rental_purpose=purpose,
                    outstation_details=details,
                    next_payment_date=follow_up if paid < amount + deposit else None,
                    created_at=now,
                    created_by=actor,
                    updated_at=now,
                    updated_by=actor,
                )
                booking.check_invariants()
                self._storage.insert_booking(booking)
                if paid > 0:
                    self._ledger.apply(
                        booking, paid, mode, actor, note="Initial payment"
                    )
                    self._storage.save_booking(booking)

        self._logger.info(
            "Created booking %s for %s (%s to %s, total %s)",
            booking.booking_code,
            booking.vehicle_registration,
            booking.start_date,
            booking.end_date,
            booking.total_amount,
        )
        self._notify(
            NotificationEvent.BOOKING_CREATED,
            booking,
            vehicle_registration=booking.vehicle_registration,
            start=format_date(booking.start_date),
            end=format_date(booking.end_date),
        )
        return booking

    def get_booking(self, booking_id: int) -> Booking:
        return self._storage.load_booking(booking_id)

    def get_booking_by_code(self, booking_code: str) -> Booking:
        booking = self._storage.find_booking_by_code(booking_code.strip().upper())
        if booking is None:
            raise NotFoundError(f"Booking {booking_code} not found.")
        return booking

    def list_bookings(
        self,
        *,
        status: Optional[BookingStatus | str] = None,
        payment_status: Optional[PaymentStatus | str] = None,
        start_date: Optional[str | date] = None,
        end_date: Optional[str | date] = None,
        vehicle_registration: Optional[str] = None,
    ) -> list[Booking]:
        try:
            status_filter = BookingStatus(status) if status else None
            payment_filter = PaymentStatus(payment_status) if payment_status else None
        except ValueError as exc:
            raise InvalidInputError(f"Unknown status filter: {exc}") from exc
        return self._storage.list_bookings(
            status=status_filter,
            payment_status=payment_filter,
            start_date=parse_date(start_date) if start_date else None,
            end_date=parse_date(end_date) if end_date else None,
            vehicle_registration=(
                vehicle_registration.strip().upper() if vehicle_registration else None
            ),
        )

    def record_payment(
        self,
        booking_id: int,
        amount: MoneyLike,
        mode: PaymentMode | str,
        actor: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Payment:
        payment = self._ledger.record_payment(booking_id, amount, mode, actor, note)
        booking = self._storage.load_booking(booking_id)
        self._notify(
            NotificationEvent.BOOKING_UPDATED,
            booking,
            payment_amount=format_currency(payment.amount),
            payment_mode=payment.mode.value,
        )
        return payment

    def paid_to_date(self, booking_id: int) -> Decimal:
        return self._ledger.paid_to_date(booking_id)

    def total_received(self, start_date: str | date, end_date: str | date) -> Decimal:
        return self._storage.total_received(parse_date(start_date), parse_date(end_date))

    def list_payments(self, booking_id: int) -> list[Payment]:
        return self._ledger.list_payments(booking_id)

    def list_extensions(self, booking_id: int) -> list[Extension]:
        return self._storage.list_extensions(booking_id)

    def list_damage_records(self, booking_id: int) -> list[DamageRecord]:
        return self._storage.list_damage_records(booking_id)

    def vehicle_damage_history(self, vehicle_registration: str) -> list[DamageRecord]:
        return self._storage.list_vehicle_damages(vehicle_registration.strip().upper())

    def change_status(
        self,
        booking_id: int,
        status: BookingStatus | str,
        actor: Optional[str] = None,
        *,
        reason: Optional[str] = None,
    ) -> Booking:
        try:
            target = BookingStatus(status)
        except ValueError as exc:
            raise InvalidStateTransitionError(f"Unknown status {status!r}.") from exc
        if target == BookingStatus.COMPLETED:
            raise InvalidStateTransitionError(
                "Bookings are completed through the completion process."
            )
        with self._locks.hold(booking_id):
            with self._storage.unit_of_work():
                booking = self._storage.load_booking(booking_id)
                previous = booking.status
                booking.transition_to(target)
                if target == BookingStatus.CANCELLED:
                    booking.cancellation_reason = reason
                    booking.next_payment_date = None
                booking.updated_at = self._clock()
                booking.updated_by = actor
                self._storage.save_booking(booking)
        self._logger.info(
            "Booking %s moved from %s to %s",
            booking.booking_code,
            previous.value,
            target.value,
        )
        self._notify(
            NotificationEvent.BOOKING_UPDATED,
            booking,
            previous_status=previous.value,
        )
        return booking

    def confirm_booking(self, booking_id: int, actor: Optional[str] = None) -> Booking:
        return self.change_status(booking_id, BookingStatus.CONFIRMED, actor)

    def start_rental(self, booking_id: int, actor: Optional[str] = None) -> Booking:
        return self.change_status(booking_id, BookingStatus.IN_USE, actor)

    def cancel_booking(
        self,
        booking_id: int,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Booking:
        return self.change_status(
            booking_id, BookingStatus.CANCELLED, actor, reason=reason
        )

    def extend_booking(
        self,
        booking_id: int,
        new_end_date: str | date,
        new_dropoff_time: str | time,
        additional_amount: MoneyLike,
        current_payment: MoneyLike = ZERO,
        payment_method: Optional[PaymentMode | str] = None,
        reason: Optional[str] = None,
        next_payment_date: Optional[str | date] = None,
        actor: Optional[str] = None,
    ) -> ExtensionResult:
        with self._locks.hold(booking_id):
            booking = self._storage.load_booking(booking_id)
            return self._extensions.extend(
                booking,
                new_end_date,
                new_dropoff_time,
                additional_amount,
                current_payment,
                payment_method,
                reason,
                next_payment_date,
                actor,
            )

    def calculate_return_fees(
        self,
        booking_id: int,
        returned_at: Optional[str | datetime] = None,
    ) -> FeeBreakdown:
        booking = self._storage.load_booking(booking_id)
        return self._fee_calculator.for_booking(booking, returned_at or self._clock())

    def complete_booking(
        self,
        booking_id: int,
        damage_charges: MoneyLike = ZERO,
        damage_description: Optional[str] = None,
        late_fee: Optional[MoneyLike] = None,
        extension_fee: Optional[MoneyLike] = None,
        final_payment_mode: PaymentMode | str = PaymentMode.CASH,
        odometer_reading: Optional[int | str] = None,
        fuel_level: Optional[str] = None,
        actor: Optional[str] = None,
        *,
        returned_at: Optional[str | datetime] = None,
        fee_payment: MoneyLike = ZERO,
        vehicle_remarks: Optional[str] = None,
    ) -> CompletionResult:
        """Complete a booking; fees left as ``None`` come from the fee policy."""
        with self._locks.hold(booking_id):
            booking = self._storage.load_booking(booking_id)
            if late_fee is None or extension_fee is None:
                fees = self._fee_calculator.for_booking(
                    booking, returned_at or self._clock()
                )
                if late_fee is None:
                    late_fee = fees.late_fee
                if extension_fee is None:
                    extension_fee = fees.extension_fee
            return self._completions.complete(
                booking,
                damage_charges,
                damage_description,
                late_fee,
                extension_fee,
                final_payment_mode,
                odometer_reading,
                fuel_level,
                actor,
                fee_payment=fee_payment,
                vehicle_remarks=vehicle_remarks,
            )

    def refund_security_deposit(
        self,
        booking_id: int,
        deductions: MoneyLike = ZERO,
        refund_mode: PaymentMode | str = PaymentMode.CASH,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> DepositRefund:
        deducted = to_money(deductions)
        mode = coerce_payment_mode(refund_mode)
        if deducted < 0:
            raise InvalidAmountError("Deductions cannot be negative.")
        reason = reason.strip() if reason and reason.strip() else None
        if deducted > 0 and not reason:
            raise ValidationError("A reason is required when deducting from the deposit.")
        with self._locks.hold(booking_id):
            with self._storage.unit_of_work():
                booking = self._storage.load_booking(booking_id)
                if booking.status != BookingStatus.COMPLETED:
                    raise InvalidStateTransitionError(
                        f"Booking {booking.booking_code} is {booking.status.value}; "
                        "the deposit can be refunded only after completion."
                    )
                if (
                    booking.security_deposit_refunded
                    or self._storage.find_deposit_refund(booking_id) is not None
                ):
                    raise ValidationError(
                        f"Security deposit for {booking.booking_code} was already refunded."
                    )
                if deducted > booking.security_deposit_amount:
                    raise InvalidAmountError(
                        "Deductions cannot exceed security deposit amount."
                    )
                now = self._clock()
                refund = self._storage.append_deposit_refund(
                    DepositRefund(
                        id=None,
                        booking_id=booking_id,
                        deposit_amount=booking.security_deposit_amount,
                        deductions=deducted,
                        refund_amount=booking.security_deposit_amount - deducted,
                        refund_mode=mode,
                        deduction_reason=reason,
                        created_at=now,
                        created_by=actor,
                    )
                )
                booking.security_deposit_refunded = True
                booking.updated_at = now
                booking.updated_by = actor
                self._storage.save_booking(booking)
        self._logger.info(
            "Refunded %s of the deposit for booking %s (deducted %s)",
            refund.refund_amount,
            booking.booking_code,
            refund.deductions,
        )
        self._notify(
            NotificationEvent.BOOKING_UPDATED,
            booking,
            refund_amount=format_currency(refund.refund_amount),
            deductions=format_currency(refund.deductions),
        )
        return refund

    def reconcile_booking(
        self, booking_id: int, actor: Optional[str] = None
    ) -> Optional[LedgerDiscrepancy]:
        with self._locks.hold(booking_id):
            with self._storage.unit_of_work():
                booking = self._storage.load_booking(booking_id)
                discrepancy = self._ledger.reconcile(booking, actor)
                if discrepancy is not None and discrepancy.repaired:
                    self._storage.save_booking(booking)
        return discrepancy

    def reconcile_ledger(self, actor: Optional[str] = None) -> list[LedgerDiscrepancy]:
        """Repair every booking whose cached paid amount disagrees with its ledger."""
        report: list[LedgerDiscrepancy] = []
        for booking in self._storage.list_bookings():
            discrepancy = self.reconcile_booking(booking.id, actor)
            if discrepancy is not None:
                report.append(discrepancy)
        self._logger.info(
            "Ledger reconciliation fixed %s booking(s)",
            sum(1 for item in report if item.repaired),
        )
        return report
