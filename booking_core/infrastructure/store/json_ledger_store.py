from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any

from booking_core.domain.entities.confirmation import BookingConfirmation, BookingStatus
from booking_core.domain.entities.guest_info import GuestInfo
from booking_core.domain.entities.hotel import (
    CancellationPolicy,
    CancellationRule,
    FeeItem,
    Hotel,
    PricingDetails,
    RoomOption,
    TaxItem,
)
from booking_core.infrastructure.store.ledger_store import BookingLedger


class JsonLedgerStore:
    """Keeps the booking ledger in a JSON file.

    `attach` hydrates the ledger from disk and then rewrites the file after
    every ledger change.
    """

    def __init__(self, data_dir: str = "./data/ledger", filename: str = "bookings.json") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._data_dir / filename
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def file_path(self) -> Path:
        return self._file_path

    def attach(self, ledger: BookingLedger) -> None:
        ledger.replace_all(self.load())
        ledger.subscribe(self.save)

    def load(self) -> list[BookingConfirmation]:
        with self._lock:
            if not self._file_path.exists():
                return []
            try:
                with open(self._file_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                self._logger.error("Ledger file unreadable, starting empty", extra={"error": str(e)})
                return []

        bookings: list[BookingConfirmation] = []
        for item in data.get("bookings", []):
            try:
                bookings.append(self._deserialize_confirmation(item))
            except (KeyError, TypeError, ValueError) as e:
                self._logger.warning(
                    "Skipping malformed ledger entry",
                    extra={"booking_id": item.get("booking_id"), "error": str(e)},
                )
        return bookings

    def save(self, confirmations: tuple[BookingConfirmation, ...]) -> None:
        """Write the whole ledger atomically."""
        data = {
            "version": 1,
            "bookings": [self._serialize_confirmation(c) for c in confirmations],
        }
        temp_path = self._file_path.with_suffix(".json.tmp")
        with self._lock:
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                temp_path.replace(self._file_path)
            except Exception:
                if temp_path.exists():
                    temp_path.unlink()
                raise

    def _serialize_confirmation(self, c: BookingConfirmation) -> dict[str, Any]:
        return {
            "booking_id": c.booking_id,
            "reference_number": c.reference_number,
            "hotel": self._serialize_hotel(c.hotel),
            "check_in_date": c.check_in_date.isoformat(),
            "check_out_date": c.check_out_date.isoformat(),
            "guest_info": {
                "first_name": c.guest_info.first_name,
                "email": c.guest_info.email,
                "last_name": c.guest_info.last_name,
                "phone": c.guest_info.phone,
                "country": c.guest_info.country,
                "special_requests": c.guest_info.special_requests,
                "arrival_time": c.guest_info.arrival_time,
            },
            "room_details": self._serialize_room(c.room_details),
            "pricing": self._serialize_pricing(c.pricing),
            "status": c.status.value,
            "confirmation_sent_at": _iso_or_none(c.confirmation_sent_at),
            "created_at": _iso_or_none(c.created_at),
            "updated_at": _iso_or_none(c.updated_at),
        }

    def _deserialize_confirmation(self, data: dict[str, Any]) -> BookingConfirmation:
        return BookingConfirmation(
            booking_id=data["booking_id"],
            reference_number=data["reference_number"],
            hotel=self._deserialize_hotel(data["hotel"]),
            check_in_date=date.fromisoformat(data["check_in_date"]),
            check_out_date=date.fromisoformat(data["check_out_date"]),
            guest_info=GuestInfo(**data["guest_info"]),
            room_details=self._deserialize_room(data["room_details"]),
            pricing=self._deserialize_pricing(data["pricing"]),
            status=BookingStatus(data.get("status", BookingStatus.CONFIRMED.value)),
            confirmation_sent_at=_datetime_or_none(data.get("confirmation_sent_at")),
            created_at=_datetime_or_none(data.get("created_at")),
            updated_at=_datetime_or_none(data.get("updated_at")),
        )

    def _serialize_hotel(self, hotel: Hotel) -> dict[str, Any]:
        policy = hotel.cancellation_policy
        return {
            "id": hotel.id,
            "title": hotel.title,
            "location": hotel.location,
            "price": hotel.price,
            "rating": hotel.rating,
            "instant_booking": hotel.instant_booking,
            "cancellation_policy": (
                {
                    "type": policy.type,
                    "description": policy.description,
                    "rules": [
                        {
                            "days_before_check_in": r.days_before_check_in,
                            "refund_percentage": r.refund_percentage,
                            "fee": r.fee,
                        }
                        for r in policy.rules
                    ],
                }
                if policy
                else None
            ),
            "check_in_time": hotel.check_in_time,
            "check_out_time": hotel.check_out_time,
            "provider_id": hotel.provider_id,
            "provider_hotel_id": hotel.provider_hotel_id,
        }

    def _deserialize_hotel(self, data: dict[str, Any]) -> Hotel:
        policy_data = data.get("cancellation_policy")
        policy = None
        if policy_data:
            policy = CancellationPolicy(
                type=policy_data["type"],
                description=policy_data.get("description", ""),
                rules=tuple(CancellationRule(**r) for r in policy_data.get("rules", [])),
            )
        return Hotel(
            id=data["id"],
            title=data["title"],
            location=data.get("location", ""),
            price=data.get("price", 0.0),
            rating=data.get("rating"),
            instant_booking=data.get("instant_booking", False),
            cancellation_policy=policy,
            check_in_time=data.get("check_in_time"),
            check_out_time=data.get("check_out_time"),
            provider_id=data.get("provider_id"),
            provider_hotel_id=data.get("provider_hotel_id"),
        )

    def _serialize_room(self, room: RoomOption) -> dict[str, Any]:
        return {
            "id": room.id,
            "name": room.name,
            "base_price": room.base_price,
            "description": room.description,
            "capacity": room.capacity,
            "bed_type": room.bed_type,
            "size": room.size,
            "available": room.available,
            "instant_booking": room.instant_booking,
            "amenities": list(room.amenities),
        }

    def _deserialize_room(self, data: dict[str, Any]) -> RoomOption:
        return RoomOption(
            id=data["id"],
            name=data["name"],
            base_price=data["base_price"],
            description=data.get("description", ""),
            capacity=data.get("capacity", 2),
            bed_type=data.get("bed_type", ""),
            size=data.get("size"),
            available=data.get("available", 1),
            instant_booking=data.get("instant_booking", False),
            amenities=tuple(data.get("amenities", [])),
        )

    def _serialize_pricing(self, pricing: PricingDetails) -> dict[str, Any]:
        return {
            "base_rate": pricing.base_rate,
            "number_of_nights": pricing.number_of_nights,
            "subtotal": pricing.subtotal,
            "total": pricing.total,
            "currency": pricing.currency,
            "taxes": [{"name": t.name, "amount": t.amount, "percentage": t.percentage} for t in pricing.taxes],
            "fees": [{"name": f.name, "amount": f.amount, "description": f.description} for f in pricing.fees],
        }

    def _deserialize_pricing(self, data: dict[str, Any]) -> PricingDetails:
        return PricingDetails(
            base_rate=data["base_rate"],
            number_of_nights=data["number_of_nights"],
            subtotal=data["subtotal"],
            total=data["total"],
            currency=data["currency"],
            taxes=tuple(TaxItem(**t) for t in data.get("taxes", [])),
            fees=tuple(FeeItem(**f) for f in data.get("fees", [])),
        )


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _datetime_or_none(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None
