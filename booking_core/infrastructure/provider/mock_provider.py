from __future__ import annotations

import logging
import random
import string
import threading
from collections import defaultdict, deque
from dataclasses import replace
from datetime import UTC, date, datetime

from booking_core.application.exceptions import PaymentDeclinedError, ValidationError
from booking_core.application.ports.availability import AvailabilityPort
from booking_core.application.ports.payment import PaymentPort
from booking_core.application.ports.pricing import PricingPort
from booking_core.domain.entities.confirmation import BookingConfirmation, BookingDraft, BookingStatus
from booking_core.domain.entities.hotel import AvailabilitySnapshot, FeeItem, PricingDetails, RoomOption, TaxItem

DECLINED_TOKENS = {"tok_chargeDeclined", "tok_declined"}
HOTEL_TAX_RATE = 0.12
SERVICE_FEE = 25.0

DEFAULT_ROOMS = (
    RoomOption(
        id="standard",
        name="Standard Room",
        base_price=150.0,
        description="Comfortable room with essential amenities",
        capacity=2,
        bed_type="Queen",
        size=25,
        available=5,
        amenities=("WiFi", "TV", "Air Conditioning"),
    ),
    RoomOption(
        id="deluxe",
        name="Deluxe Room",
        base_price=220.0,
        description="Larger room with a city view",
        capacity=3,
        bed_type="King",
        size=35,
        available=2,
        amenities=("WiFi", "TV", "Air Conditioning", "Minibar"),
    ),
)


def compute_pricing(base_rate: float, nights: int, currency: str = "USD") -> PricingDetails:
    subtotal = round(base_rate * nights, 2)
    tax = round(subtotal * HOTEL_TAX_RATE, 2)
    total = round(subtotal + tax + SERVICE_FEE, 2)
    return PricingDetails(
        base_rate=base_rate,
        number_of_nights=nights,
        subtotal=subtotal,
        total=total,
        currency=currency,
        taxes=(TaxItem(name="Hotel Tax", amount=tax, percentage=HOTEL_TAX_RATE * 100),),
        fees=(FeeItem(name="Service Fee", amount=SERVICE_FEE, description="Booking service fee"),),
    )


def generate_reference_number(now: datetime) -> str:
    """Reference like 'REF-20241220-A3B7K9QZ'."""
    random_part = "".join(random.choices(string.ascii_uppercase + string.digits, k=8))
    return f"REF-{now.strftime('%Y%m%d')}-{random_part}"


class MockBookingProvider(AvailabilityPort, PricingPort, PaymentPort):
    """In-memory provider used in dev and tests.

    Failures can be scripted per operation with `fail_next`; declined test
    tokens raise PaymentDeclinedError. Reservations are deduplicated on the
    draft's idempotency key.
    """

    def __init__(
        self,
        rooms: tuple[RoomOption, ...] = DEFAULT_ROOMS,
        currency: str = "USD",
        price_overrides: dict[str, float] | None = None,
    ) -> None:
        self._rooms = {room.id: room for room in rooms}
        self._currency = currency
        self._price_overrides = dict(price_overrides or {})
        self._failures: dict[str, deque[Exception]] = defaultdict(deque)
        self._reservations: dict[str, BookingConfirmation] = {}
        self._by_idempotency_key: dict[str, str] = {}
        self._counter = 0
        self._lock = threading.Lock()
        self.calls: dict[str, int] = defaultdict(int)
        self._logger = logging.getLogger(__name__)

    def fail_next(self, operation: str, error: Exception, times: int = 1) -> None:
        for _ in range(times):
            self._failures[operation].append(error)

    def set_price(self, room_id: str, base_rate: float) -> None:
        self._price_overrides[room_id] = base_rate

    def check_availability(self, hotel_id: str, check_in: date, check_out: date) -> AvailabilitySnapshot:
        self._record_call("check_availability")
        rooms = tuple(self._rooms.values())
        return AvailabilitySnapshot(
            hotel_id=hotel_id,
            check_in_date=check_in.isoformat(),
            check_out_date=check_out.isoformat(),
            available=any(room.available > 0 for room in rooms),
            rooms=rooms,
        )

    def quote(self, hotel_id: str, room_id: str, check_in: date, check_out: date) -> PricingDetails:
        self._record_call("quote")
        room = self._rooms.get(room_id)
        if room is None:
            raise ValidationError("room_id", f"Unknown room {room_id}")
        base_rate = self._price_overrides.get(room_id, room.base_price)
        return compute_pricing(base_rate, (check_out - check_in).days, self._currency)

    def create_reservation(self, draft: BookingDraft) -> BookingConfirmation:
        self._record_call("create_reservation")
        if draft.payment_token in DECLINED_TOKENS:
            raise PaymentDeclinedError(f"Card declined for token {draft.payment_token}")

        with self._lock:
            existing_id = self._by_idempotency_key.get(draft.idempotency_key) if draft.idempotency_key else None
            if existing_id is not None:
                self._logger.info("Duplicate reservation request", extra={"booking_id": existing_id})
                return self._reservations[existing_id]

            self._counter += 1
            booking_id = f"BK{self._counter:06d}"
            now = datetime.now(UTC)
            pricing = draft.pricing or compute_pricing(
                draft.room.base_price, (draft.check_out_date - draft.check_in_date).days, self._currency
            )
            confirmation = BookingConfirmation(
                booking_id=booking_id,
                reference_number=generate_reference_number(now),
                hotel=draft.hotel,
                check_in_date=draft.check_in_date,
                check_out_date=draft.check_out_date,
                guest_info=draft.guest_info,
                room_details=draft.room,
                pricing=pricing,
                status=BookingStatus.CONFIRMED if draft.hotel.instant_booking else BookingStatus.PENDING,
                confirmation_sent_at=now,
                created_at=now,
                updated_at=now,
            )
            self._reservations[booking_id] = confirmation
            if draft.idempotency_key:
                self._by_idempotency_key[draft.idempotency_key] = booking_id

        self._logger.info("Mock reservation created", extra={"booking_id": booking_id})
        return confirmation

    def cancel_reservation(self, booking_id: str) -> None:
        self._record_call("cancel_reservation")
        with self._lock:
            if booking_id not in self._reservations:
                raise ValidationError("booking_id", f"Unknown booking {booking_id}")
            self._reservations[booking_id] = replace(
                self._reservations[booking_id], status=BookingStatus.CANCELLED, updated_at=datetime.now(UTC)
            )
        self._logger.info("Mock reservation cancelled", extra={"booking_id": booking_id})

    def _record_call(self, operation: str) -> None:
        self.calls[operation] += 1
        queued = self._failures.get(operation)
        if queued:
            raise queued.popleft()
