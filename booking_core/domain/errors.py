from __future__ import annotations

VALIDATION_ERROR = "Please check your information and try again."
UNKNOWN_ERROR = "Something went wrong. Please try again or contact support."


class BookingError(RuntimeError):
    """Base for every error the booking core surfaces to its caller."""

    user_message: str = UNKNOWN_ERROR
    retryable: bool = False

    def __init__(self, detail: str | None = None, *, user_message: str | None = None) -> None:
        if user_message is not None:
            self.user_message = user_message
        super().__init__(detail or self.user_message)


class ValidationError(BookingError):
    """Raised when a required booking field is missing or malformed."""

    user_message = VALIDATION_ERROR

    def __init__(self, field: str, detail: str | None = None) -> None:
        self.field = field
        super().__init__(detail or f"Missing or invalid booking field: {field}")
