"""
Booking state machine.

pending -> confirmed, pending -> cancelled and confirmed -> cancelled are the only
edges; cancelled is terminal. Writes happen under a per-booking row lock and are
conditioned on the status the caller last read, so a host confirming a booking the
traveler just cancelled gets ``StaleState`` instead of silently overwriting it.
"""
from __future__ import annotations

import logging
from datetime import date, datetime

from django.db import OperationalError, transaction
from django.utils import timezone

from bookings.exceptions import BookingBusy, BookingClosed, InvalidTransition, NotOwner, StaleState
from bookings.models import Booking
from bookings.pricing import count_nights, percent_of, stay_price
from bookings.services.expiry import compute_expires_at, effective_status, is_expired, stay_completed

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    Booking.PENDING: frozenset({Booking.CONFIRMED, Booking.CANCELLED}),
    Booking.CONFIRMED: frozenset({Booking.CANCELLED}),
    Booking.CANCELLED: frozenset(),
}

MANAGING_ROLES = frozenset({Booking.BY_HOST, Booking.BY_ADMIN})


def resolve_viewer_role(booking: Booking, user) -> str | None:
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    if user.is_platform_admin:
        return Booking.BY_ADMIN
    if booking.accommodation.host_id == user.id:
        return Booking.BY_HOST
    if booking.traveler_id == user.id:
        return Booking.BY_TRAVELER
    return None


def create_booking(
    *,
    accommodation,
    traveler,
    check_in: date,
    check_out: date,
    guests: int,
    now: datetime | None = None,
) -> Booking:
    now = now or timezone.now()
    nights = count_nights(check_in, check_out)
    if nights < 1:
        raise ValueError("Check-out must be after check-in.")

    total_price = stay_price(accommodation.price_per_night, nights)
    deposit_amount = min(percent_of(total_price, accommodation.effective_deposit_percent), total_price)
    booking = Booking.objects.create(
        accommodation=accommodation,
        traveler=traveler,
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        total_price=total_price,
        deposit_amount=deposit_amount,
        amount_paid=0,
        status=Booking.PENDING,
        payment_status=Booking.PAYMENT_PENDING,
        expires_at=compute_expires_at(now),
        created_at=now,
    )
    logger.info(
        "Booking %s created for accommodation %s: total=%s deposit=%s expires_at=%s",
        booking.pk,
        accommodation.pk,
        total_price,
        deposit_amount,
        booking.expires_at.isoformat(),
    )
    return booking


def check_transition(booking: Booking, target: str, *, role: str | None, now: datetime, reason: str = "") -> None:
    """Raise if ``role`` may not move ``booking`` to ``target`` at ``now``; pure, no I/O."""

    if role is None:
        raise NotOwner()

    if role == Booking.BY_SYSTEM:
        if target != Booking.CANCELLED or booking.status != Booking.PENDING:
            raise InvalidTransition("Only pending bookings can be expired.")
        if not is_expired(booking, now):
            raise InvalidTransition("The payment window for this booking is still open.")
        return

    current = effective_status(booking, now)
    if current == Booking.CANCELLED:
        if booking.status == Booking.CANCELLED:
            raise InvalidTransition("Cancelled bookings cannot change status.")
        raise BookingClosed("The payment window for this booking has expired.")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"A {current} booking cannot become {target}.")

    if target == Booking.CONFIRMED:
        if role not in MANAGING_ROLES:
            raise NotOwner("Only the host can confirm this booking.")
        return

    if stay_completed(booking, now):
        raise InvalidTransition("Past stays cannot be cancelled.")
    if role == Booking.BY_TRAVELER and booking.payment_status == Booking.PAYMENT_PAID:
        raise InvalidTransition("Fully paid bookings can only be cancelled by the host.")
    if role in MANAGING_ROLES and current == Booking.PENDING and not reason.strip():
        raise InvalidTransition("A reason is required to reject a booking.")


def lock_booking(booking_id) -> Booking:
    """Fetch a booking under its row lock; must run inside ``transaction.atomic``."""

    try:
        return (
            Booking.objects.select_for_update(nowait=True, of=("self",))
            .select_related("accommodation")
            .get(pk=booking_id)
        )
    except OperationalError as exc:
        logger.warning("Booking %s is locked by another request", booking_id)
        raise BookingBusy() from exc


def apply_transition(booking: Booking, target: str, *, role: str, now: datetime, reason: str = "") -> Booking:
    """Write an already-checked transition; the caller holds the booking lock."""

    booking.status = target
    booking.expires_at = None
    update_fields = ["status", "expires_at", "updated_at"]
    if target == Booking.CONFIRMED:
        booking.confirmed_at = now
        update_fields.append("confirmed_at")
    else:
        booking.cancelled_at = now
        booking.cancelled_by = role
        booking.cancellation_reason = reason.strip()
        update_fields += ["cancelled_at", "cancelled_by", "cancellation_reason"]
    booking.save(update_fields=update_fields)
    return booking


def transition(
    booking_id,
    target: str,
    *,
    actor,
    expected_status: str,
    reason: str = "",
    now: datetime | None = None,
) -> Booking:
    now = now or timezone.now()
    with transaction.atomic():
        booking = lock_booking(booking_id)
        if booking.status != expected_status:
            logger.warning(
                "Stale transition on booking %s: expected %s, found %s (target %s)",
                booking.pk,
                expected_status,
                booking.status,
                target,
            )
            raise StaleState()

        role = resolve_viewer_role(booking, actor)
        check_transition(booking, target, role=role, now=now, reason=reason)
        previous = booking.status
        apply_transition(booking, target, role=role, now=now, reason=reason)

    logger.info("Booking %s moved %s -> %s by %s", booking.pk, previous, target, role)
    return booking


def confirm_booking(booking_id, *, actor, expected_status: str, now: datetime | None = None) -> Booking:
    return transition(booking_id, Booking.CONFIRMED, actor=actor, expected_status=expected_status, now=now)


def cancel_booking(
    booking_id,
    *,
    actor,
    expected_status: str,
    reason: str = "",
    now: datetime | None = None,
) -> Booking:
    return transition(
        booking_id,
        Booking.CANCELLED,
        actor=actor,
        expected_status=expected_status,
        reason=reason,
        now=now,
    )


def expire_booking(booking_id, *, now: datetime | None = None) -> Booking:
    """Physically cancel a booking whose payment window lapsed."""

    now = now or timezone.now()
    with transaction.atomic():
        booking = lock_booking(booking_id)
        check_transition(booking, Booking.CANCELLED, role=Booking.BY_SYSTEM, now=now)
        apply_transition(
            booking,
            Booking.CANCELLED,
            role=Booking.BY_SYSTEM,
            now=now,
            reason="Payment not received before the deadline.",
        )

    logger.info("Booking %s expired and was cancelled", booking.pk)
    return booking
