from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CancellationRule:
    days_before_check_in: int
    refund_percentage: int
    fee: float | None = None


@dataclass(frozen=True)
class CancellationPolicy:
    type: str  # "flexible", "moderate", "strict", "non-refundable"
    description: str = ""
    rules: tuple[CancellationRule, ...] = ()


@dataclass(frozen=True)
class Hotel:
    id: str
    title: str
    location: str = ""
    price: float = 0.0  # advertised nightly rate
    rating: float | None = None
    instant_booking: bool = False
    cancellation_policy: CancellationPolicy | None = None
    check_in_time: str | None = None  # HH:MM
    check_out_time: str | None = None  # HH:MM
    provider_id: str | None = None
    provider_hotel_id: str | None = None


@dataclass(frozen=True)
class RoomOption:
    id: str
    name: str
    base_price: float
    description: str = ""
    capacity: int = 2
    bed_type: str = ""
    size: float | None = None  # square meters
    available: int = 1  # rooms left for the requested dates
    instant_booking: bool = False
    amenities: tuple[str, ...] = ()


@dataclass(frozen=True)
class DateRange:
    check_in: str  # YYYY-MM-DD
    check_out: str  # YYYY-MM-DD


@dataclass(frozen=True)
class AvailabilitySnapshot:
    hotel_id: str
    check_in_date: str  # YYYY-MM-DD
    check_out_date: str  # YYYY-MM-DD
    available: bool
    rooms: tuple[RoomOption, ...] = ()
    alternative_dates: tuple[DateRange, ...] = ()

    def find_room(self, room_id: str) -> RoomOption | None:
        for room in self.rooms:
            if room.id == room_id:
                return room
        return None


@dataclass(frozen=True)
class TaxItem:
    name: str
    amount: float
    percentage: float | None = None


@dataclass(frozen=True)
class FeeItem:
    name: str
    amount: float
    description: str = ""


@dataclass(frozen=True)
class PricingDetails:
    base_rate: float
    number_of_nights: int
    subtotal: float
    total: float
    currency: str
    taxes: tuple[TaxItem, ...] = field(default_factory=tuple)
    fees: tuple[FeeItem, ...] = field(default_factory=tuple)
