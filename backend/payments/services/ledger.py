"""
Payment ledger: the only code allowed to move money columns on a booking.

``Booking.amount_paid`` is always recomputed from the completed payments, never
incremented in place, and every write happens under the booking's row lock.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable
from uuid import uuid4

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from bookings.exceptions import (
    AlreadyFinalized,
    AmountExceedsBalance,
    BookingClosed,
    InsufficientAmount,
    InvalidTransition,
    LedgerInvariantError,
)
from bookings.models import Booking
from bookings.pricing import remaining_balance
from bookings.services.expiry import effective_status, is_expired
from bookings.services.lifecycle import apply_transition, check_transition, lock_booking
from payments.models import Payment

logger = logging.getLogger(__name__)


def next_installment(booking: Booking) -> tuple[str, int] | None:
    """Return ``(purpose, amount)`` the traveler owes next, or None when nothing is due."""

    if booking.payment_status == Booking.PAYMENT_PAID:
        return None
    if booking.amount_paid < booking.deposit_amount:
        return Payment.PURPOSE_DEPOSIT, booking.deposit_amount - booking.amount_paid
    owed = remaining_balance(booking.total_price, booking.amount_paid)
    if owed == 0:
        return None
    return Payment.PURPOSE_BALANCE, owed


def derive_payment_status(booking: Booking, payments: Iterable[Payment]) -> str:
    payments = list(payments)
    completed = [payment for payment in payments if payment.status == Payment.COMPLETED]
    amount_paid = sum(payment.amount for payment in completed)
    balance_completed = any(payment.purpose == Payment.PURPOSE_BALANCE for payment in completed)

    # a deposit on its own never settles a booking unless it is the whole price
    if amount_paid >= booking.total_price and (
        balance_completed or booking.deposit_amount >= booking.total_price
    ):
        return Booking.PAYMENT_PAID
    if amount_paid == 0 and any(payment.status == Payment.REFUNDED for payment in payments):
        return Booking.PAYMENT_REFUNDED
    if amount_paid == 0 and booking.payment_status == Booking.PAYMENT_FAILED:
        return Booking.PAYMENT_FAILED
    return Booking.PAYMENT_PENDING


def _reconcile(booking: Booking, now: datetime) -> None:
    payments = list(booking.payments.all())
    amount_paid = sum(payment.amount for payment in payments if payment.status == Payment.COMPLETED)

    ceiling = booking.total_price + settings.LEDGER_OVERPAYMENT_TOLERANCE
    if amount_paid > ceiling:
        logger.critical(
            "Ledger invariant violated on booking %s: amount_paid=%s exceeds total_price=%s",
            booking.pk,
            amount_paid,
            booking.total_price,
        )
        raise LedgerInvariantError(
            f"Booking {booking.pk} would hold {amount_paid} against a total of {booking.total_price}."
        )

    booking.amount_paid = amount_paid
    booking.payment_status = derive_payment_status(booking, payments)
    if booking.payment_status == Booking.PAYMENT_PAID:
        booking.expires_at = None
    if booking.deposit_paid_at is None and amount_paid > 0 and amount_paid >= booking.deposit_amount:
        booking.deposit_paid_at = now
    booking.save(update_fields=["amount_paid", "payment_status", "expires_at", "deposit_paid_at", "updated_at"])


def _new_reference(booking: Booking) -> str:
    return f"HBG-{booking.pk}-{uuid4().hex[:10].upper()}"


def record_attempt(
    booking_id,
    amount: int,
    purpose: str,
    method: str,
    *,
    reference: str = "",
    now: datetime | None = None,
) -> Payment:
    """Create a pending payment; ``amount_paid`` is untouched until it completes."""

    if amount <= 0:
        raise InsufficientAmount()
    if purpose not in {Payment.PURPOSE_DEPOSIT, Payment.PURPOSE_BALANCE}:
        raise ValueError(f"Unknown payment purpose: {purpose!r}")

    now = now or timezone.now()
    with transaction.atomic():
        booking = lock_booking(booking_id)
        if effective_status(booking, now) == Booking.CANCELLED:
            raise BookingClosed()
        if booking.payment_status == Booking.PAYMENT_PAID:
            raise BookingClosed("This booking is already fully paid.")

        # open attempts may still settle, so they count against what is owed
        committed = booking.amount_paid + sum(
            booking.payments.filter(status=Payment.PENDING).values_list("amount", flat=True)
        )
        if purpose == Payment.PURPOSE_DEPOSIT:
            outstanding_deposit = remaining_balance(booking.deposit_amount, committed)
            if outstanding_deposit == 0:
                raise AmountExceedsBalance("The deposit for this booking is already covered or awaiting payment.")
            if amount > outstanding_deposit:
                raise AmountExceedsBalance(f"The outstanding deposit is {outstanding_deposit}.")
        owed = remaining_balance(booking.total_price, committed)
        if amount > owed:
            raise AmountExceedsBalance(f"The remaining balance is {owed}.")

        payment = Payment.objects.create(
            booking=booking,
            amount=amount,
            currency=settings.BOOKING_CURRENCY,
            purpose=purpose,
            status=Payment.PENDING,
            payment_method=method,
            payment_reference=reference or _new_reference(booking),
        )

    logger.info("Payment %s recorded for booking %s: %s %s", payment.pk, booking.pk, purpose, amount)
    return payment


def _locked_payment(payment_id) -> tuple[Booking, Payment]:
    booking_id = Payment.objects.values_list("booking_id", flat=True).get(pk=payment_id)
    booking = lock_booking(booking_id)
    # every payment writer holds the booking lock first, so a plain read is consistent
    payment = Payment.objects.get(pk=payment_id)
    return booking, payment


def complete(payment_id, transaction_id: str, *, now: datetime | None = None) -> Payment:
    now = now or timezone.now()
    with transaction.atomic():
        booking, payment = _locked_payment(payment_id)
        if payment.status != Payment.PENDING:
            raise AlreadyFinalized()
        if booking.status == Booking.CANCELLED:
            raise BookingClosed("Payments cannot be completed on a cancelled booking.")

        payment.status = Payment.COMPLETED
        if is_expired(booking, now):
            # only a payment that settles the booking in full can lift a lapsed hold
            others = [other for other in booking.payments.all() if other.pk != payment.pk]
            if derive_payment_status(booking, [*others, payment]) != Booking.PAYMENT_PAID:
                raise BookingClosed("The payment window for this booking has lapsed.")
        payment.paid_at = now
        payment.transaction_id = transaction_id or ""
        payment.save(update_fields=["status", "paid_at", "transaction_id", "updated_at"])
        _reconcile(booking, now)

    logger.info(
        "Payment %s completed for booking %s: amount_paid=%s payment_status=%s",
        payment.pk,
        booking.pk,
        booking.amount_paid,
        booking.payment_status,
    )
    return payment


def fail(payment_id, reason: str, *, now: datetime | None = None) -> Payment:
    with transaction.atomic():
        booking, payment = _locked_payment(payment_id)
        if payment.status != Payment.PENDING:
            raise AlreadyFinalized()
        payment.status = Payment.FAILED
        payment.failure_reason = (reason or "")[:500]
        payment.save(update_fields=["status", "failure_reason", "updated_at"])

    logger.info("Payment %s failed for booking %s: %s", payment.pk, booking.pk, payment.failure_reason)
    return payment


def refund(payment_id, *, now: datetime | None = None) -> Payment:
    now = now or timezone.now()
    with transaction.atomic():
        booking, payment = _locked_payment(payment_id)
        if payment.status == Payment.REFUNDED:
            raise AlreadyFinalized("This payment was already refunded.")
        if payment.status != Payment.COMPLETED:
            raise InvalidTransition("Only completed payments can be refunded.")

        if booking.status != Booking.CANCELLED:
            if not is_expired(booking, now):
                raise InvalidTransition("Payments can only be refunded once the booking is cancelled.")
            check_transition(booking, Booking.CANCELLED, role=Booking.BY_SYSTEM, now=now)
            apply_transition(
                booking,
                Booking.CANCELLED,
                role=Booking.BY_SYSTEM,
                now=now,
                reason="Payment not received before the deadline.",
            )

        payment.status = Payment.REFUNDED
        payment.refunded_at = now
        payment.save(update_fields=["status", "refunded_at", "updated_at"])
        _reconcile(booking, now)

    logger.info(
        "Payment %s refunded for booking %s: amount_paid=%s payment_status=%s",
        payment.pk,
        booking.pk,
        booking.amount_paid,
        booking.payment_status,
    )
    return payment
