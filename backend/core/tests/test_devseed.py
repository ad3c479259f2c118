import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from accommodations.models import Accommodation
from accounts.models import User
from bookings.models import Booking


@pytest.mark.django_db
def test_devseed_refuses_without_debug(settings):
    settings.DEBUG = False

    with pytest.raises(CommandError):
        call_command("devseed")


@pytest.mark.django_db
def test_devseed_populates_bookings_in_every_state(settings):
    settings.DEBUG = True

    call_command("devseed")
    call_command("devseed")

    traveler = User.objects.get(email="traveler@hebergo.test")
    bookings = Booking.objects.filter(traveler=traveler)
    assert Accommodation.objects.count() == 2
    assert bookings.count() == 5
    assert bookings.filter(status=Booking.CONFIRMED, payment_status=Booking.PAYMENT_PAID).count() == 1
    assert bookings.filter(status=Booking.CANCELLED, cancelled_by=Booking.BY_TRAVELER).count() == 1
    assert bookings.filter(status=Booking.PENDING, amount_paid__gt=0).count() == 1
    assert User.objects.filter(email="admin@hebergo.test", is_superuser=True).exists()
