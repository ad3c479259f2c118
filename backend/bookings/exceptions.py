"""
Errors raised by the reservation lifecycle and the payment ledger.

Every ``BookingError`` is recoverable by the caller: the API turns it into a client
response and the user can re-fetch and retry. ``LedgerInvariantError`` is the
exception: it signals a programming error and is never shown to clients.
"""


class BookingError(Exception):
    code = "booking_error"
    status_code = 400
    default_message = "The booking could not be updated."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidTransition(BookingError):
    code = "invalid_transition"
    status_code = 409
    default_message = "This status change is not allowed."


class BookingClosed(InvalidTransition):
    code = "booking_closed"
    default_message = "This booking no longer accepts changes."


class StaleState(BookingError):
    code = "stale_state"
    status_code = 409
    default_message = "The booking changed since it was loaded. Refresh and try again."


class AlreadyFinalized(BookingError):
    code = "already_finalized"
    status_code = 409
    default_message = "This payment has already been finalized."


class InvalidAmount(BookingError):
    code = "invalid_amount"
    status_code = 400
    default_message = "Invalid payment amount."


class InsufficientAmount(InvalidAmount):
    code = "insufficient_amount"
    default_message = "Payment amounts must be positive."


class AmountExceedsBalance(InvalidAmount):
    code = "amount_exceeds_balance"
    default_message = "Payment amount is larger than what is owed."


class NotOwner(BookingError):
    code = "not_owner"
    status_code = 403
    default_message = "You are not allowed to perform this action on this booking."


class BookingBusy(BookingError):
    code = "booking_busy"
    status_code = 503
    default_message = "The booking is being updated by another request. Please retry."


class LedgerInvariantError(RuntimeError):
    pass
