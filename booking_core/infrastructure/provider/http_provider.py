from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import httpx

from booking_core.application.ports.availability import AvailabilityPort
from booking_core.application.ports.payment import PaymentPort
from booking_core.application.ports.pricing import PricingPort
from booking_core.application.utils.error_classifier import classify_exception
from booking_core.core.config import settings
from booking_core.domain.entities.confirmation import BookingConfirmation, BookingDraft, BookingStatus
from booking_core.domain.entities.hotel import (
    AvailabilitySnapshot,
    DateRange,
    FeeItem,
    PricingDetails,
    RoomOption,
    TaxItem,
)


class HttpBookingProvider(AvailabilityPort, PricingPort, PaymentPort):
    """Booking provider reached over its REST API.

    HTTP and transport failures are translated into the booking error
    taxonomy before they leave this adapter.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key or settings.PROVIDER_API_KEY
        self._base_url = (base_url or settings.PROVIDER_BASE_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=timeout or settings.PROVIDER_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

        if not self._api_key:
            raise ValueError("PROVIDER_API_KEY is required for the HTTP booking provider")

    def check_availability(self, hotel_id: str, check_in: date, check_out: date) -> AvailabilitySnapshot:
        data = self._request(
            "GET",
            f"/hotels/{hotel_id}/availability",
            params={"checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()},
        )
        return AvailabilitySnapshot(
            hotel_id=str(data.get("hotelId", hotel_id)),
            check_in_date=data.get("checkInDate", check_in.isoformat()),
            check_out_date=data.get("checkOutDate", check_out.isoformat()),
            available=bool(data.get("available", False)),
            rooms=tuple(_parse_room(r) for r in data.get("rooms", [])),
            alternative_dates=tuple(
                DateRange(check_in=d["checkIn"], check_out=d["checkOut"]) for d in data.get("alternativeDates", [])
            ),
        )

    def quote(self, hotel_id: str, room_id: str, check_in: date, check_out: date) -> PricingDetails:
        data = self._request(
            "GET",
            f"/hotels/{hotel_id}/rooms/{room_id}/pricing",
            params={"checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()},
        )
        return _parse_pricing(data)

    def create_reservation(self, draft: BookingDraft) -> BookingConfirmation:
        guest = draft.guest_info
        payload = {
            "hotelId": draft.hotel.provider_hotel_id or draft.hotel.id,
            "roomId": draft.room.id,
            "checkInDate": draft.check_in_date.isoformat(),
            "checkOutDate": draft.check_out_date.isoformat(),
            "guestInfo": {
                "firstName": guest.first_name,
                "lastName": guest.last_name,
                "email": guest.email,
                "phone": guest.phone,
                "country": guest.country,
                "specialRequests": guest.special_requests,
                "arrivalTime": guest.arrival_time,
            },
            "paymentMethodId": draft.payment_token,
            "expectedTotal": draft.pricing.total if draft.pricing else None,
        }
        data = self._request(
            "POST",
            "/reservations",
            json=payload,
            headers={"Idempotency-Key": draft.idempotency_key},
        )
        booking_id = data.get("bookingId")
        if not booking_id:
            raise ValueError("No booking ID returned from provider")

        self._logger.info("Reservation created", extra={"booking_id": booking_id})
        return BookingConfirmation(
            booking_id=str(booking_id),
            reference_number=data.get("referenceNumber", ""),
            hotel=draft.hotel,
            check_in_date=draft.check_in_date,
            check_out_date=draft.check_out_date,
            guest_info=guest,
            room_details=_parse_room(data["roomDetails"]) if data.get("roomDetails") else draft.room,
            pricing=_parse_pricing(data["pricing"]) if data.get("pricing") else draft.pricing,
            status=BookingStatus(data.get("status", BookingStatus.CONFIRMED.value)),
            confirmation_sent_at=_parse_datetime(data.get("confirmationSentAt")),
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )

    def cancel_reservation(self, booking_id: str) -> None:
        self._request("DELETE", f"/reservations/{booking_id}")
        self._logger.info("Reservation cancelled", extra={"booking_id": booking_id})

    def _request(self, method: str, path: str, headers: dict[str, str] | None = None, **kwargs: Any) -> dict[str, Any]:
        all_headers = {"Authorization": f"Bearer {self._api_key}"}
        all_headers.update(headers or {})
        try:
            response = self._client.request(method, f"{self._base_url}{path}", headers=all_headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._logger.error("Provider request failed", extra={"path": path, "error": str(e)})
            raise classify_exception(e) from e
        if not response.content:
            return {}
        return response.json()


def _parse_room(data: dict[str, Any]) -> RoomOption:
    return RoomOption(
        id=str(data["id"]),
        name=data.get("name", ""),
        base_price=float(data.get("basePrice", 0)),
        description=data.get("description", ""),
        capacity=int(data.get("capacity", 2)),
        bed_type=data.get("bedType", ""),
        size=data.get("size"),
        available=int(data.get("available", 0)),
        instant_booking=bool(data.get("instantBooking", False)),
        amenities=tuple(data.get("amenities", [])),
    )


def _parse_pricing(data: dict[str, Any]) -> PricingDetails:
    return PricingDetails(
        base_rate=float(data["baseRate"]),
        number_of_nights=int(data["numberOfNights"]),
        subtotal=float(data["subtotal"]),
        total=float(data["total"]),
        currency=data.get("currency", settings.DEFAULT_CURRENCY),
        taxes=tuple(
            TaxItem(name=t["name"], amount=float(t["amount"]), percentage=t.get("percentage"))
            for t in data.get("taxes", [])
        ),
        fees=tuple(
            FeeItem(name=f["name"], amount=float(f["amount"]), description=f.get("description", ""))
            for f in data.get("fees", [])
        ),
    )


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
