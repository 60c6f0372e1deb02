"""Status transitions for recorded bookings."""

from booking_core.domain.errors import ValidationError
from booking_core.domain.entities.confirmation import BookingStatus

STATUS_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


def assert_status_transition(current: BookingStatus, target: BookingStatus) -> None:
    if current == target:
        return
    allowed = STATUS_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValidationError(
            "status", f"Invalid booking transition: {current.value} → {target.value}"
        )
