from __future__ import annotations

# Base errors are defined with the domain entities.
from booking_core.domain.errors import UNKNOWN_ERROR, VALIDATION_ERROR, BookingError, ValidationError  # noqa: F401

AVAILABILITY_CHECK_FAILED = "We're having trouble checking availability. Please try again."
BOOKING_FAILED = "We couldn't complete your booking. Your card has not been charged."
PAYMENT_DECLINED = "Your payment was declined. Please check your card details or try another card."
NETWORK_ERROR = "Connection lost. Please check your internet and try again."
HOTEL_UNAVAILABLE = "This room is no longer available for your dates."
PRICE_CHANGED = "The price for your stay was updated. Please review it before paying."
ALREADY_PROCESSING = "Your booking is already being processed."
CANCELLATION_FAILED = "We couldn't cancel your booking. Please contact support immediately."


class StaleQuoteError(BookingError):
    """Raised when a cached price or availability no longer matches the booking."""

    user_message = PRICE_CHANGED

    def __init__(self, expected_key: str, actual_key: str | None = None) -> None:
        self.expected_key = expected_key
        self.actual_key = actual_key
        super().__init__(f"Quote key {actual_key!r} does not match {expected_key!r}")


class TransientNetworkError(BookingError):
    """Raised for timeouts, dropped connections and 5xx/429 upstream responses."""

    user_message = NETWORK_ERROR
    retryable = True

    def __init__(self, detail: str | None = None, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class PaymentDeclinedError(BookingError):
    """Raised when the payment provider refuses the charge."""

    user_message = PAYMENT_DECLINED


class ConcurrentSubmissionError(BookingError):
    """Raised when submit is called while a submission is already in flight."""

    user_message = ALREADY_PROCESSING


class RoomUnavailableError(BookingError):
    """Raised when the requested room is missing or sold out for the dates."""

    user_message = HOTEL_UNAVAILABLE


class ProviderError(BookingError):
    """Raised when the provider fails in a way that is not safe to retry."""

    user_message = BOOKING_FAILED

    def __init__(self, detail: str | None = None, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class NoActiveBookingError(BookingError):
    """Raised when an operation needs a booking but none was started."""


class BookingInvariantError(AssertionError):
    """Raised when the caller drives the state machine out of order."""
