from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from booking_core.domain.entities.guest_info import GuestInfo
from booking_core.domain.entities.hotel import Hotel, PricingDetails, RoomOption


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BookingDraft:
    """Everything the payment provider needs to create a reservation."""

    session_id: str
    hotel: Hotel
    room: RoomOption
    check_in_date: date
    check_out_date: date
    guest_info: GuestInfo
    pricing: PricingDetails | None
    payment_token: str
    idempotency_key: str = ""


@dataclass(frozen=True)
class BookingConfirmation:
    booking_id: str
    reference_number: str
    hotel: Hotel
    check_in_date: date
    check_out_date: date
    guest_info: GuestInfo
    room_details: RoomOption
    pricing: PricingDetails
    status: BookingStatus = BookingStatus.CONFIRMED
    confirmation_sent_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
