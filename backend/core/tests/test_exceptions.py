from rest_framework.exceptions import ValidationError

from accommodations.models import Accommodation
from bookings.exceptions import BookingBusy, StaleState
from core.exceptions import api_exception_handler


def test_booking_errors_carry_code_and_status():
    response = api_exception_handler(StaleState(), {})

    assert response.status_code == 409
    assert response.data == {"detail": StaleState.default_message, "code": "stale_state"}


def test_busy_booking_asks_client_to_retry():
    response = api_exception_handler(BookingBusy(), {})

    assert response.status_code == 503
    assert response["Retry-After"] == "1"


def test_missing_objects_are_not_found():
    response = api_exception_handler(Accommodation.DoesNotExist(), {})

    assert response.status_code == 404


def test_other_errors_fall_through_to_drf():
    response = api_exception_handler(ValidationError({"guests": ["Too many."]}), {})

    assert response.status_code == 400
    assert response.data == {"guests": ["Too many."]}
