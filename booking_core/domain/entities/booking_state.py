from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from booking_core.domain.entities.guest_info import DraftGuestInfo
from booking_core.domain.entities.hotel import AvailabilitySnapshot, Hotel, PricingDetails, RoomOption


class BookingStep(str, Enum):
    DATES = "dates"
    ROOMS = "rooms"
    GUEST_INFO = "guest-info"
    PAYMENT = "payment"
    PROCESSING = "processing"


@dataclass(frozen=True)
class CurrentBooking:
    session_id: str
    hotel: Hotel
    step: BookingStep = BookingStep.DATES
    check_in_date: date | None = None
    check_out_date: date | None = None
    selected_room: RoomOption | None = None
    guest_info: DraftGuestInfo = field(default_factory=DraftGuestInfo)
    availability: AvailabilitySnapshot | None = None
    availability_key: str | None = None  # cache key the snapshot was fetched under
    pricing: PricingDetails | None = None
    pricing_key: str | None = None  # cache key the quote was fetched under

    @property
    def has_dates(self) -> bool:
        return self.check_in_date is not None and self.check_out_date is not None
