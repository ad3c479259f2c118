import logging

from django.core.exceptions import ObjectDoesNotExist
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from bookings.exceptions import BookingBusy, BookingError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Turn booking and ledger errors into client responses.

    Domain errors carry their own HTTP status and a stable ``code`` so clients can
    tell a stale page (refresh and retry) from a forbidden action.
    """

    if isinstance(exc, BookingError):
        view = context.get("view")
        logger.info(
            "%s rejected in %s: %s",
            exc.code,
            view.__class__.__name__ if view else "unknown view",
            exc.message,
        )
        response = Response({"detail": exc.message, "code": exc.code}, status=exc.status_code)
        if isinstance(exc, BookingBusy):
            response["Retry-After"] = "1"
        return response

    if isinstance(exc, ObjectDoesNotExist):
        return Response({"detail": "Not found.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)

    return exception_handler(exc, context)
