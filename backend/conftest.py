from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytest
from rest_framework.test import APIClient

from accommodations.models import Accommodation
from accounts.models import User
from bookings.services.lifecycle import create_booking

# a fixed clock keeps expiry and stay-completion checks deterministic
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=dt_timezone.utc)
CHECK_IN = date(2026, 3, 10)
CHECK_OUT = date(2026, 3, 12)


def _user(username: str, role: str, **extra) -> User:
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="examplepass",
        role=role,
        **extra,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def host(db):
    return _user("host", User.HOST, display_name="Awa Host")


@pytest.fixture
def traveler(db):
    return _user("traveler", User.TRAVELER, display_name="Moussa Traveler")


@pytest.fixture
def admin_user(db):
    return _user("admin", User.ADMIN)


@pytest.fixture
def outsider(db):
    return _user("outsider", User.TRAVELER)


@pytest.fixture
def accommodation(host):
    return Accommodation.objects.create(
        host=host,
        name="Villa de la Lagune",
        city="Abidjan",
        price_per_night=50000,
        max_guests=4,
        deposit_percent=30,
    )


@pytest.fixture
def make_booking(accommodation, traveler):
    def factory(*, check_in=CHECK_IN, check_out=CHECK_OUT, guests=2, now=NOW, **overrides):
        return create_booking(
            accommodation=overrides.get("accommodation", accommodation),
            traveler=overrides.get("traveler", traveler),
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            now=now,
        )

    return factory


@pytest.fixture
def booking(make_booking):
    """Two nights at 50 000: total 100 000, deposit 30 000, expires 48h after NOW."""
    return make_booking()


@pytest.fixture
def client_for():
    def factory(user):
        client = APIClient()
        client.force_authenticate(user)
        return client

    return factory


def after(hours: int = 0, **kwargs) -> datetime:
    return NOW + timedelta(hours=hours, **kwargs)
