from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from booking_core.domain.entities.booking_state import BookingStep
from booking_core.domain.entities.confirmation import BookingStatus
from booking_core.domain.entities.hotel import Hotel


class HotelSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    location: str = ""
    price: float = 0.0
    rating: float | None = None
    instant_booking: bool = False
    check_in_time: str | None = None
    check_out_time: str | None = None
    provider_id: str | None = None
    provider_hotel_id: str | None = None

    def to_entity(self) -> Hotel:
        return Hotel(**self.model_dump())


class RoomSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    base_price: float
    description: str = ""
    capacity: int = 2
    bed_type: str = ""
    size: float | None = None
    available: int = 1
    instant_booking: bool = False
    amenities: list[str] = Field(default_factory=list)


class TaxSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    amount: float
    percentage: float | None = None


class FeeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    amount: float
    description: str = ""


class PricingSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    base_rate: float
    number_of_nights: int
    subtotal: float
    total: float
    currency: str
    taxes: list[TaxSchema] = Field(default_factory=list)
    fees: list[FeeSchema] = Field(default_factory=list)


class AvailabilitySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hotel_id: str
    check_in_date: str
    check_out_date: str
    available: bool
    rooms: list[RoomSchema] = Field(default_factory=list)


class GuestInfoSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_name: str | None = None
    email: str | None = None
    last_name: str | None = None
    phone: str | None = None
    country: str | None = None
    special_requests: str | None = None
    arrival_time: str | None = None


class StartBookingRequest(BaseModel):
    hotel: HotelSchema


class SetDatesRequest(BaseModel):
    check_in: date
    check_out: date


class SelectRoomRequest(BaseModel):
    room_id: str


class UpdateStepRequest(BaseModel):
    step: BookingStep


class SubmitRequest(BaseModel):
    payment_token: str


class BookingSessionSchema(BaseModel):
    session_id: str
    active: bool
    error: str | None = None
    step: BookingStep | None = None
    hotel: HotelSchema | None = None
    check_in_date: date | None = None
    check_out_date: date | None = None
    selected_room: RoomSchema | None = None
    guest_info: GuestInfoSchema | None = None
    availability: AvailabilitySchema | None = None
    pricing: PricingSchema | None = None


class BookingConfirmationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_id: str
    reference_number: str
    hotel: HotelSchema
    check_in_date: date
    check_out_date: date
    guest_info: GuestInfoSchema
    room_details: RoomSchema
    pricing: PricingSchema
    status: BookingStatus
    confirmation_sent_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CacheStatsSchema(BaseModel):
    hits: int
    misses: int
    size: int
    evictions: int
