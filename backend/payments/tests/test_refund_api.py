from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from bookings.models import Booking
from bookings.services.lifecycle import cancel_booking, create_booking
from payments.models import Payment
from payments.services.ledger import complete, record_attempt


@pytest.fixture
def paid_deposit(accommodation, traveler):
    today = timezone.localdate()
    booking = create_booking(
        accommodation=accommodation,
        traveler=traveler,
        check_in=today + timedelta(days=10),
        check_out=today + timedelta(days=12),
        guests=2,
    )
    payment = record_attempt(booking.pk, booking.deposit_amount, Payment.PURPOSE_DEPOSIT, "card")
    return complete(payment.pk, "txn_deposit")


@pytest.mark.django_db
def test_host_refunds_after_cancellation(client_for, paid_deposit, host):
    cancel_booking(paid_deposit.booking_id, actor=host, expected_status=Booking.PENDING, reason="Flooded")

    response = client_for(host).post(reverse("payment-refund", args=[paid_deposit.id]))

    assert response.status_code == 200
    assert response.json()["status"] == Payment.REFUNDED
    booking = Booking.objects.get(pk=paid_deposit.booking_id)
    assert booking.amount_paid == 0
    assert booking.payment_status == Booking.PAYMENT_REFUNDED


@pytest.mark.django_db
def test_refund_before_cancellation_conflicts(client_for, paid_deposit, admin_user):
    response = client_for(admin_user).post(reverse("payment-refund", args=[paid_deposit.id]))

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"


@pytest.mark.django_db
def test_traveler_and_strangers_cannot_refund(client_for, paid_deposit, traveler, outsider):
    by_traveler = client_for(traveler).post(reverse("payment-refund", args=[paid_deposit.id]))
    by_outsider = client_for(outsider).post(reverse("payment-refund", args=[paid_deposit.id]))
    missing = client_for(traveler).post(reverse("payment-refund", args=[999999]))

    assert by_traveler.status_code == 403
    assert by_outsider.status_code == 404
    assert missing.status_code == 404
