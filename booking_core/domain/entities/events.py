from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from booking_core.domain.entities.confirmation import BookingConfirmation


@dataclass(frozen=True)
class BookingConfirmedEvent:
    booking_id: str
    reference_number: str
    guest_email: str
    guest_name: str
    hotel_title: str
    check_in_date: date
    check_out_date: date
    total: float
    currency: str
    occurred_at: datetime

    @classmethod
    def from_confirmation(cls, confirmation: BookingConfirmation, occurred_at: datetime) -> BookingConfirmedEvent:
        guest = confirmation.guest_info
        return cls(
            booking_id=confirmation.booking_id,
            reference_number=confirmation.reference_number,
            guest_email=guest.email,
            guest_name=f"{guest.first_name} {guest.last_name}".strip(),
            hotel_title=confirmation.hotel.title,
            check_in_date=confirmation.check_in_date,
            check_out_date=confirmation.check_out_date,
            total=confirmation.pricing.total,
            currency=confirmation.pricing.currency,
            occurred_at=occurred_at,
        )
