from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import uuid4

from django.conf import settings
from django.utils import timezone

from bookings.exceptions import BookingClosed
from bookings.models import Booking
from bookings.services.expiry import effective_status
from payments.models import Payment
from payments.services.ledger import next_installment, record_attempt

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSessionStub:
    """
    Lightweight stand-in for stripe.checkout.Session when running in stub mode.

    Tests and local development do not hit Stripe; instead, we return predictable
    identifiers so the rest of the payment flow (payment records, links) behaves
    as if Stripe responded.
    """

    id: str
    payment_intent: str
    payment_status: str
    url: str


def build_checkout_preview_url(*, payment: Payment, session_id: str) -> str:
    return (
        f"{settings.FRONTEND_URL.rstrip('/')}/payments/preview?"
        f"booking={payment.booking_id}&payment={payment.id}&amount={payment.amount}&session={session_id}"
    )


def _stub_checkout_session(*, payment: Payment) -> CheckoutSessionStub:
    session_id = f"cs_test_{uuid4().hex}"
    return CheckoutSessionStub(
        id=session_id,
        payment_intent=f"pi_test_{uuid4().hex}",
        payment_status="unpaid",
        url=build_checkout_preview_url(payment=payment, session_id=session_id),
    )


def _get_stripe_api_key() -> Optional[str]:
    key = getattr(settings, "STRIPE_SECRET_KEY", "")
    return key or None


def _should_use_stub() -> bool:
    if getattr(settings, "STRIPE_USE_STUB", False):
        return True
    return _get_stripe_api_key() is None


def create_checkout_session(*, payment: Payment):
    """
    Create a Stripe Checkout session (or stub equivalent) for a pending payment.

    Returns an object with the subset of attributes (`id`, `payment_intent`,
    `payment_status`, `url`) consumed by the payment workflow. FCFA (xof) is a
    zero-decimal currency, so the ledger amount is sent as is.
    """

    if _should_use_stub():
        return _stub_checkout_session(payment=payment)

    import stripe

    api_key = _get_stripe_api_key()
    if not api_key:
        raise RuntimeError("Stripe secret key is not configured.")

    stripe.api_key = api_key
    booking = payment.booking
    frontend = settings.FRONTEND_URL.rstrip("/")
    return stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        client_reference_id=payment.payment_reference,
        line_items=[
            {
                "quantity": 1,
                "price_data": {
                    "currency": payment.currency,
                    "unit_amount": payment.amount,
                    "product_data": {
                        "name": f"{booking.accommodation.name} ({payment.get_purpose_display()})",
                    },
                },
            }
        ],
        success_url=f"{frontend}/bookings/{booking.id}/payment/success?payment={payment.id}",
        cancel_url=f"{frontend}/bookings/{booking.id}/payment?payment={payment.id}",
        metadata={
            "booking_id": booking.id,
            "payment_id": payment.id,
            "purpose": payment.purpose,
        },
    )


def initiate_payment(booking: Booking, *, payment_method: str, now: datetime | None = None) -> Payment:
    """
    Open a checkout for the next installment of ``booking``.

    A pending attempt for the same installment is reused so that reloading the
    payment page does not pile up attempts. The payment then tracks the newest
    session; the webhook ignores expiry of the older ones and flags any of them
    that still gets paid.
    """

    now = now or timezone.now()
    if effective_status(booking, now) == Booking.CANCELLED:
        raise BookingClosed()
    installment = next_installment(booking)
    if installment is None:
        raise BookingClosed("Nothing is left to pay on this booking.")
    purpose, amount = installment

    payment = (
        booking.payments.filter(status=Payment.PENDING, purpose=purpose, amount=amount)
        .order_by("-created_at")
        .first()
    )
    if payment is None:
        payment = record_attempt(booking.pk, amount, purpose, payment_method, now=now)

    session = create_checkout_session(payment=payment)
    payment.payment_method = payment_method or payment.payment_method
    payment.stripe_checkout_session = session.id
    payment.stripe_payment_intent = getattr(session, "payment_intent", None) or ""
    payment.save(
        update_fields=["payment_method", "stripe_checkout_session", "stripe_payment_intent", "updated_at"]
    )
    logger.info("Checkout session %s opened for payment %s", session.id, payment.pk)

    payment._checkout_url = getattr(session, "url", None)
    return payment


def get_checkout_preview_url(payment: Payment) -> str | None:
    """
    Recreate the stub preview link of a pending payment when Stripe is stubbed.
    """

    if not _should_use_stub():
        return None
    if payment.status != Payment.PENDING or not payment.stripe_checkout_session:
        return None
    return build_checkout_preview_url(payment=payment, session_id=payment.stripe_checkout_session)
