from datetime import timedelta

import pytest

from bookings.models import Booking
from bookings.services.lifecycle import cancel_booking, confirm_booking
from bookings.services.projection import build_receipt, project
from conftest import NOW, after
from payments.models import Payment
from payments.services.ledger import complete, record_attempt


def _pay(booking, amount, purpose, now):
    payment = record_attempt(booking.pk, amount, purpose, "card", now=now)
    return complete(payment.pk, f"txn_{payment.pk}", now=now)


def _facts(booking, now, role, **kwargs):
    booking.refresh_from_db()
    return project(booking, booking.payments.all(), now, role, **kwargs)


@pytest.mark.django_db
def test_fresh_booking_facts(booking):
    facts = _facts(booking, after(1), Booking.BY_TRAVELER)

    assert facts.effective_status == Booking.PENDING
    assert not facts.is_expired
    assert facts.remaining_balance == 100000
    assert not facts.deposit_satisfied
    assert facts.next_installment.purpose == Payment.PURPOSE_DEPOSIT
    assert facts.next_installment.amount == 30000
    assert facts.can_pay_now
    assert facts.can_cancel
    assert not facts.can_confirm
    assert not facts.can_review
    assert not facts.can_view_receipt
    assert facts.badge.key == "pending"
    assert facts.badge.tone == "warning"


@pytest.mark.django_db
def test_deposit_paid_facts(booking):
    _pay(booking, 30000, Payment.PURPOSE_DEPOSIT, after(1))

    facts = _facts(booking, after(2), Booking.BY_TRAVELER)

    assert facts.amount_paid == 30000
    assert facts.deposit_satisfied
    assert facts.remaining_balance == 70000
    assert facts.next_installment.purpose == Payment.PURPOSE_BALANCE
    assert facts.can_pay_now
    assert facts.can_view_receipt
    assert len(facts.completed_payments) == 1


@pytest.mark.django_db
def test_fully_paid_facts(booking):
    _pay(booking, 30000, Payment.PURPOSE_DEPOSIT, after(1))
    _pay(booking, 70000, Payment.PURPOSE_BALANCE, after(2))

    facts = _facts(booking, after(3), Booking.BY_TRAVELER)

    assert facts.remaining_balance == 0
    assert not facts.can_pay_now
    assert facts.next_installment is None


@pytest.mark.django_db
def test_lapsed_booking_is_cancelled_for_every_viewer(booking):
    for role in (Booking.BY_TRAVELER, Booking.BY_HOST, Booking.BY_ADMIN, None):
        facts = _facts(booking, after(49), role)
        assert facts.effective_status == Booking.CANCELLED
        assert facts.is_expired
        assert facts.badge.key == "expired"
        assert facts.badge.tone == "danger"
        assert not facts.can_pay_now
        assert not facts.can_cancel
        assert not facts.can_confirm
        assert not facts.can_reject

    booking.refresh_from_db()
    assert booking.status == Booking.PENDING


@pytest.mark.django_db
def test_traveler_cannot_cancel_once_paid(booking):
    _pay(booking, 30000, Payment.PURPOSE_DEPOSIT, after(1))
    _pay(booking, 70000, Payment.PURPOSE_BALANCE, after(2))

    traveler_facts = _facts(booking, after(3), Booking.BY_TRAVELER)
    host_facts = _facts(booking, after(3), Booking.BY_HOST)

    assert not traveler_facts.can_cancel
    assert host_facts.can_cancel


@pytest.mark.django_db
def test_host_decisions(booking, host):
    host_facts = _facts(booking, after(1), Booking.BY_HOST)
    traveler_facts = _facts(booking, after(1), Booking.BY_TRAVELER)
    admin_facts = _facts(booking, after(1), Booking.BY_ADMIN)

    assert host_facts.can_confirm and host_facts.can_reject
    assert admin_facts.can_confirm and admin_facts.can_reject
    assert not traveler_facts.can_confirm and not traveler_facts.can_reject
    assert host_facts.badge.description != traveler_facts.badge.description

    confirm_booking(booking.pk, actor=host, expected_status=Booking.PENDING, now=after(1))
    confirmed = _facts(booking, after(2), Booking.BY_HOST)
    assert not confirmed.can_confirm
    assert confirmed.badge.key == "confirmed"
    assert confirmed.badge.tone == "success"
    # confirmation clears the deadline, so the booking never lapses afterwards
    assert not _facts(booking, after(24 * 8), Booking.BY_TRAVELER).is_expired


@pytest.mark.django_db
def test_strangers_get_no_actions(booking):
    facts = _facts(booking, after(1), None)

    assert not facts.can_cancel
    assert not facts.can_confirm
    assert not facts.can_review


@pytest.mark.django_db
def test_review_allowed_after_paid_completed_stay(booking, host):
    _pay(booking, 30000, Payment.PURPOSE_DEPOSIT, after(1))
    _pay(booking, 70000, Payment.PURPOSE_BALANCE, after(2))
    confirm_booking(booking.pk, actor=host, expected_status=Booking.PENDING, now=after(3))
    after_stay = NOW + timedelta(days=12)

    assert _facts(booking, after_stay, Booking.BY_TRAVELER).can_review
    assert not _facts(booking, after_stay, Booking.BY_TRAVELER, has_prior_review=True).can_review
    assert not _facts(booking, after_stay, Booking.BY_HOST).can_review
    assert not _facts(booking, after(4), Booking.BY_TRAVELER).can_review
    assert not _facts(booking, after_stay, Booking.BY_HOST).can_cancel


@pytest.mark.django_db
def test_cancelled_booking_facts(booking, traveler):
    cancel_booking(booking.pk, actor=traveler, expected_status=Booking.PENDING, now=after(1))

    facts = _facts(booking, after(2), Booking.BY_TRAVELER)

    assert facts.effective_status == Booking.CANCELLED
    assert not facts.is_expired
    assert facts.badge.key == "cancelled"
    assert not facts.can_cancel
    assert not facts.can_pay_now


@pytest.mark.django_db
def test_facts_serialise_without_payments(booking):
    data = _facts(booking, after(1), Booking.BY_TRAVELER).as_dict()

    assert "completed_payments" not in data
    assert data["badge"] == {"key": "pending", "label": "Pending", "tone": "warning", "description": data["badge"]["description"]}
    assert data["next_installment"] == {"purpose": "deposit", "amount": 30000}


@pytest.mark.django_db
def test_receipt_lists_completed_payments(booking):
    _pay(booking, 30000, Payment.PURPOSE_DEPOSIT, after(1))
    failed = record_attempt(booking.pk, 70000, Payment.PURPOSE_BALANCE, "card", now=after(2))
    Payment.objects.filter(pk=failed.pk).update(status=Payment.FAILED)

    booking.refresh_from_db()
    receipt = build_receipt(booking, booking.payments.all(), after(3))

    assert len(receipt.lines) == 1
    line = receipt.lines[0]
    assert line.number == 1
    assert line.purpose_label == "Deposit"
    assert line.amount_display == "30 000 FCFA"
    assert line.paid_at == after(1)
    assert receipt.total_paid == 30000
    assert receipt.remaining_balance == 70000
    assert receipt.remaining_balance_display == "70 000 FCFA"
    assert receipt.generated_at == after(3)
