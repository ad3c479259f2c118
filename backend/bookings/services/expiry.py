"""
Lazy expiry of unpaid bookings.

Nothing here is cached or scheduled: every read recomputes the predicates from the
stored timestamps and the caller's notion of "now".
"""
from __future__ import annotations

from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

from bookings.models import Booking


def payment_window() -> timedelta:
    return timedelta(hours=settings.BOOKING_PAYMENT_WINDOW_HOURS)


def compute_expires_at(created_at: datetime) -> datetime:
    return created_at + payment_window()


def is_expired(booking: Booking, now: datetime) -> bool:
    return (
        booking.expires_at is not None
        and now > booking.expires_at
        and booking.payment_status != Booking.PAYMENT_PAID
    )


def effective_status(booking: Booking, now: datetime) -> str:
    if is_expired(booking, now):
        return Booking.CANCELLED
    return booking.status


def stay_completed(booking: Booking, now: datetime) -> bool:
    # the stay is history from the morning of the check-out day
    return booking.check_out <= timezone.localdate(now)
