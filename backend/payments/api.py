import logging

import stripe
from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.exceptions import AlreadyFinalized, BookingClosed, LedgerInvariantError, NotOwner
from bookings.services.lifecycle import MANAGING_ROLES, resolve_viewer_role
from payments.models import Payment
from payments.serializers import PaymentSerializer
from payments.services.ledger import complete, fail, refund

logger = logging.getLogger(__name__)

COMPLETION_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAILURE_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


class PaymentRefundView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        payment = get_object_or_404(Payment.objects.select_related("booking__accommodation"), pk=pk)
        role = resolve_viewer_role(payment.booking, request.user)
        if role is None:
            raise NotFound()
        if role not in MANAGING_ROLES:
            raise NotOwner("Only the host can refund payments.")
        payment = refund(payment.pk)
        return Response(PaymentSerializer(payment).data)


def _payment_for_session(session) -> Payment | None:
    metadata = session.get("metadata") or {}
    payment_id = metadata.get("payment_id")
    if payment_id:
        payment = Payment.objects.filter(pk=payment_id).first()
        if payment is not None:
            return payment
    session_id = session.get("id")
    if not session_id:
        return None
    return Payment.objects.filter(stripe_checkout_session=session_id).first()


def _superseded(payment: Payment, session) -> bool:
    # a reopened checkout points the payment at a newer session; the old one may still expire
    return bool(payment.stripe_checkout_session) and session.get("id") != payment.stripe_checkout_session


class StripeWebhookView(APIView):
    """Receive Stripe Checkout events and settle the matching payment."""

    permission_classes: list = []
    authentication_classes: list = []

    def post(self, request, *args, **kwargs):
        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("Stripe webhook secret not configured.")
            return Response(status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        try:
            event = stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError:
            logger.warning("Invalid payload received on Stripe webhook.")
            return Response(status=status.HTTP_400_BAD_REQUEST)
        except stripe.SignatureVerificationError:
            logger.warning("Invalid Stripe signature.")
            return Response(status=status.HTTP_400_BAD_REQUEST)

        event_type = event["type"]
        if event_type not in COMPLETION_EVENTS | FAILURE_EVENTS:
            return Response({"received": True})

        session = event["data"]["object"]
        payment = _payment_for_session(session)
        if payment is None:
            logger.warning("Stripe event %s references an unknown checkout session %s", event_type, session.get("id"))
            return Response({"received": True})

        if event_type in COMPLETION_EVENTS:
            # async methods report completion before the money moves
            if session.get("payment_status") == "paid":
                self._settle(payment, session, event_type)
        elif _superseded(payment, session):
            logger.info(
                "Stripe event %s for superseded checkout session %s of payment %s ignored",
                event_type,
                session.get("id"),
                payment.pk,
            )
        else:
            try:
                fail(payment.pk, f"Stripe reported {event_type}.")
            except AlreadyFinalized:
                logger.info("Duplicate Stripe event %s for payment %s ignored", event_type, payment.pk)

        return Response({"received": True})

    def _settle(self, payment: Payment, session, event_type: str) -> None:
        transaction_id = session.get("payment_intent") or session.get("id") or ""
        try:
            complete(payment.pk, transaction_id)
            return
        except AlreadyFinalized:
            payment.refresh_from_db()
            if payment.status == Payment.COMPLETED and payment.transaction_id == transaction_id:
                logger.info("Duplicate Stripe event %s for payment %s ignored", event_type, payment.pk)
                return
            reason = f"payment is already {payment.status}"
        except BookingClosed as exc:
            reason = str(exc)
        except LedgerInvariantError as exc:
            reason = str(exc)

        logger.error(
            "Stripe charged %s (session %s) for payment %s on booking %s but it cannot be recorded (%s); "
            "it needs a manual refund",
            transaction_id,
            session.get("id"),
            payment.pk,
            payment.booking_id,
            reason,
        )
