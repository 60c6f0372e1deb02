from __future__ import annotations

import httpx

from booking_core.application.exceptions import (
    BookingError,
    PaymentDeclinedError,
    ProviderError,
    RoomUnavailableError,
    StaleQuoteError,
    TransientNetworkError,
    ValidationError,
)


def error_from_status(status_code: int, detail: str = "", field: str | None = None) -> BookingError:
    """Map an upstream HTTP status onto the booking error taxonomy."""
    if status_code in (400, 422):
        return ValidationError(field or "request", detail or None)
    if status_code in (402, 403):
        return PaymentDeclinedError(detail or None)
    if status_code in (404, 410):
        return RoomUnavailableError(detail or None)
    if status_code == 409:
        return StaleQuoteError(expected_key=field or "", actual_key=None)
    if status_code in (408, 429) or 500 <= status_code < 600:
        return TransientNetworkError(detail or f"Upstream returned {status_code}", status_code=status_code)
    return ProviderError(detail or f"Upstream returned {status_code}", status_code=status_code)


def classify_exception(error: Exception) -> BookingError:
    """Translate any collaborator failure into a BookingError.

    Errors that are already part of the taxonomy pass through unchanged.
    """
    if isinstance(error, BookingError):
        return error
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return error_from_status(response.status_code, _response_detail(response))
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return TransientNetworkError(f"{type(error).__name__}: {error}")
    if isinstance(error, (ConnectionError, TimeoutError)):
        return TransientNetworkError(f"{type(error).__name__}: {error}")
    return ProviderError(f"{type(error).__name__}: {error}")


def _response_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("detail") or data.get("message") or "")
    return ""
