"""
Read-side facts about a booking.

Every surface (traveler detail, host detail, requests list, receipt) asks these
functions instead of re-deriving balances or permissions. They take the booking,
its payments and "now" as plain inputs and never touch the database, so they can
be evaluated concurrently without coordination.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from datetime import datetime
from typing import Iterable, Optional

from bookings.models import Booking
from bookings.pricing import format_price, remaining_balance
from bookings.services.expiry import effective_status, is_expired, stay_completed
from bookings.services.lifecycle import MANAGING_ROLES
from payments.models import Payment
from payments.services.ledger import next_installment


@dataclass(frozen=True)
class Badge:
    key: str
    label: str
    tone: str
    description: str = ""


@dataclass(frozen=True)
class Installment:
    purpose: str
    amount: int


@dataclass(frozen=True)
class BookingFacts:
    effective_status: str
    is_expired: bool
    stay_completed: bool
    total_price: int
    deposit_amount: int
    amount_paid: int
    remaining_balance: int
    deposit_satisfied: bool
    next_installment: Optional[Installment]
    can_cancel: bool
    can_confirm: bool
    can_reject: bool
    can_pay_now: bool
    can_review: bool
    can_view_receipt: bool
    badge: Badge
    completed_payments: tuple = field(default=(), repr=False)

    def as_dict(self) -> dict:
        data = {}
        for item in fields(self):
            if item.name == "completed_payments":
                continue
            value = getattr(self, item.name)
            data[item.name] = asdict(value) if is_dataclass(value) else value
        return data


_BADGES = {
    Booking.PENDING: ("Pending", "warning", "Awaiting the host's confirmation", "Awaiting your confirmation"),
    Booking.CONFIRMED: ("Confirmed", "success", "Your booking is confirmed", "Booking confirmed"),
    Booking.CANCELLED: ("Cancelled", "danger", "This booking was cancelled", "Booking cancelled"),
}


def _badge(status: str, expired: bool, viewer_role: str | None) -> Badge:
    if expired:
        return Badge("expired", "Expired", "danger", "Payment was not received before the deadline")
    label, tone, traveler_text, host_text = _BADGES[status]
    description = host_text if viewer_role in MANAGING_ROLES else traveler_text
    return Badge(status, label, tone, description)


def project(
    booking: Booking,
    payments: Iterable[Payment],
    now: datetime,
    viewer_role: str | None,
    *,
    has_prior_review: bool = False,
) -> BookingFacts:
    completed = tuple(payment for payment in payments if payment.status == Payment.COMPLETED)
    expired = is_expired(booking, now)
    status = effective_status(booking, now)
    past_stay = stay_completed(booking, now)
    managing = viewer_role in MANAGING_ROLES
    is_paid = booking.payment_status == Booking.PAYMENT_PAID

    can_cancel = (
        viewer_role is not None
        and status in (Booking.PENDING, Booking.CONFIRMED)
        and not past_stay
        and (managing or not is_paid)
    )
    can_decide = managing and status == Booking.PENDING and not expired
    can_pay_now = (
        status == Booking.PENDING
        and booking.payment_status in (Booking.PAYMENT_PENDING, Booking.PAYMENT_FAILED)
        and not expired
    )
    can_review = (
        viewer_role == Booking.BY_TRAVELER
        and status == Booking.CONFIRMED
        and past_stay
        and is_paid
        and not has_prior_review
    )

    installment = next_installment(booking)
    return BookingFacts(
        effective_status=status,
        is_expired=expired,
        stay_completed=past_stay,
        total_price=booking.total_price,
        deposit_amount=booking.deposit_amount,
        amount_paid=booking.amount_paid,
        remaining_balance=remaining_balance(booking.total_price, booking.amount_paid),
        deposit_satisfied=booking.amount_paid >= booking.deposit_amount,
        next_installment=Installment(*installment) if installment else None,
        can_cancel=can_cancel,
        can_confirm=can_decide,
        can_reject=can_decide,
        can_pay_now=can_pay_now,
        can_review=can_review,
        can_view_receipt=bool(completed),
        badge=_badge(status, expired, viewer_role),
        completed_payments=completed,
    )


@dataclass(frozen=True)
class ReceiptLine:
    number: int
    payment_id: int
    amount: int
    amount_display: str
    purpose: str
    purpose_label: str
    payment_method: str
    transaction_id: str
    payment_reference: str
    paid_at: Optional[datetime]


@dataclass(frozen=True)
class Receipt:
    booking_id: int
    lines: tuple
    total_price: int
    total_paid: int
    remaining_balance: int
    total_price_display: str
    total_paid_display: str
    remaining_balance_display: str
    generated_at: datetime


def build_receipt(booking: Booking, payments: Iterable[Payment], now: datetime) -> Receipt:
    completed = [payment for payment in payments if payment.status == Payment.COMPLETED]
    completed.sort(key=lambda payment: (payment.paid_at or now, payment.pk))
    lines = tuple(
        ReceiptLine(
            number=index,
            payment_id=payment.pk,
            amount=payment.amount,
            amount_display=format_price(payment.amount),
            purpose=payment.purpose,
            purpose_label=payment.get_purpose_display(),
            payment_method=payment.payment_method or "Unspecified",
            transaction_id=payment.transaction_id,
            payment_reference=payment.payment_reference,
            paid_at=payment.paid_at,
        )
        for index, payment in enumerate(completed, start=1)
    )
    total_paid = sum(line.amount for line in lines)
    remaining = remaining_balance(booking.total_price, total_paid)
    return Receipt(
        booking_id=booking.pk,
        lines=lines,
        total_price=booking.total_price,
        total_paid=total_paid,
        remaining_balance=remaining,
        total_price_display=format_price(booking.total_price),
        total_paid_display=format_price(total_paid),
        remaining_balance_display=format_price(remaining),
        generated_at=now,
    )
