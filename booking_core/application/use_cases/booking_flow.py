from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from datetime import date

from booking_core.application.exceptions import (
    BookingInvariantError,
    ConcurrentSubmissionError,
    NoActiveBookingError,
    ValidationError,
)
from booking_core.application.utils.cache_keys import availability_key
from booking_core.application.utils.idempotency import generate_idempotency_key
from booking_core.domain.entities.booking_state import BookingStep, CurrentBooking
from booking_core.domain.entities.confirmation import BookingDraft
from booking_core.domain.entities.guest_info import DraftGuestInfo
from booking_core.domain.entities.hotel import AvailabilitySnapshot, Hotel, PricingDetails, RoomOption


class BookingStateMachine:
    """Owns the single in-progress reservation for one booking session.

    Every mutation swaps in a new immutable CurrentBooking. Changing dates
    always drops the selected room and the price quote, so nothing quoted for
    one stay can leak into another.
    """

    def __init__(self) -> None:
        self._current: CurrentBooking | None = None
        self._error: str | None = None
        self._lock = threading.RLock()
        self._logger = logging.getLogger(__name__)

    @property
    def current(self) -> CurrentBooking | None:
        return self._current

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_processing(self) -> bool:
        current = self._current
        return current is not None and current.step == BookingStep.PROCESSING

    def start_booking(self, hotel: Hotel) -> CurrentBooking:
        with self._lock:
            booking = CurrentBooking(session_id=uuid.uuid4().hex, hotel=hotel)
            if self._current is not None:
                self._logger.info(
                    "Discarding booking in progress",
                    extra={"session_id": self._current.session_id, "step": self._current.step.value},
                )
            self._current = booking
            self._error = None
            self._logger.info("Booking started", extra={"session_id": booking.session_id, "hotel_id": hotel.id})
            return booking

    def update_step(self, step: BookingStep | str) -> None:
        # No ordering checks: the caller decides when a step is complete.
        with self._lock:
            if self._current is None:
                return
            self._current = replace(self._current, step=BookingStep(step))

    def set_dates(self, check_in: date, check_out: date) -> CurrentBooking:
        with self._lock:
            booking = self._require_booking()
            if check_out <= check_in:
                raise ValidationError("check_out_date", "Check-out must be after check-in")
            new_key = availability_key(booking.hotel.id, check_in, check_out)
            keep_availability = booking.availability_key == new_key
            self._current = replace(
                booking,
                check_in_date=check_in,
                check_out_date=check_out,
                selected_room=None,
                pricing=None,
                pricing_key=None,
                availability=booking.availability if keep_availability else None,
                availability_key=booking.availability_key if keep_availability else None,
            )
            return self._current

    def select_room(self, room: RoomOption) -> CurrentBooking:
        with self._lock:
            booking = self._require_booking()
            if not booking.has_dates:
                raise BookingInvariantError("select_room called before set_dates")
            self._current = replace(booking, selected_room=room)
            return self._current

    def set_guest_info(self, info: DraftGuestInfo) -> CurrentBooking:
        with self._lock:
            booking = self._require_booking()
            self._current = replace(booking, guest_info=booking.guest_info.merge(info))
            return self._current

    def set_availability(self, snapshot: AvailabilitySnapshot, key: str | None = None) -> None:
        with self._lock:
            booking = self._require_booking()
            self._current = replace(booking, availability=snapshot, availability_key=key)

    def set_pricing(self, details: PricingDetails | None, key: str | None = None) -> None:
        with self._lock:
            booking = self._require_booking()
            self._current = replace(booking, pricing=details, pricing_key=key)

    def submit(self, payment_token: str) -> BookingDraft:
        """Validate the booking and move it to processing.

        Returns the draft the payment collaborator should charge. Only one
        submission may be in flight per booking.
        """
        with self._lock:
            booking = self._require_booking()
            if booking.step == BookingStep.PROCESSING:
                self._logger.warning("Submission already in flight", extra={"session_id": booking.session_id})
                raise ConcurrentSubmissionError()
            try:
                if not booking.has_dates:
                    raise ValidationError("check_in_date")
                if booking.selected_room is None:
                    raise ValidationError("selected_room")
                guest = booking.guest_info.complete()
                if not payment_token:
                    raise ValidationError("payment_token")
            except ValidationError as e:
                self._error = e.user_message
                raise

            self._current = replace(booking, step=BookingStep.PROCESSING)
            self._error = None
            self._logger.info("Booking submitted", extra={"session_id": booking.session_id})
            return BookingDraft(
                session_id=booking.session_id,
                hotel=booking.hotel,
                room=booking.selected_room,
                check_in_date=booking.check_in_date,
                check_out_date=booking.check_out_date,
                guest_info=guest,
                pricing=booking.pricing,
                payment_token=payment_token,
                idempotency_key=generate_idempotency_key(
                    "create_reservation",
                    booking.session_id,
                    {
                        "room_id": booking.selected_room.id,
                        "check_in": booking.check_in_date,
                        "check_out": booking.check_out_date,
                        "payment_token": payment_token,
                        # A re-quoted price is a different charge and needs its own key.
                        "pricing_key": booking.pricing_key,
                        "total": booking.pricing.total if booking.pricing else None,
                    },
                ),
            )

    def complete(self, session_id: str) -> bool:
        """Clear the booking after a confirmed submission.

        Returns False when the booking was cancelled or replaced meanwhile, in
        which case the newer state is left alone.
        """
        with self._lock:
            if self._current is None or self._current.session_id != session_id:
                return False
            self._current = None
            self._error = None
            return True

    def fail(self, session_id: str, message: str, step: BookingStep = BookingStep.PAYMENT) -> bool:
        """Roll a processing booking back to a stable step and record the error."""
        with self._lock:
            if self._current is None or self._current.session_id != session_id:
                return False
            if self._current.step == BookingStep.PROCESSING:
                self._current = replace(self._current, step=step)
            self._error = message
            return True

    def cancel(self) -> None:
        with self._lock:
            if self._current is not None:
                self._logger.info(
                    "Booking cancelled",
                    extra={"session_id": self._current.session_id, "step": self._current.step.value},
                )
            self._current = None
            self._error = None

    def set_error(self, message: str | None) -> None:
        with self._lock:
            self._error = message

    def clear_error(self) -> None:
        self.set_error(None)

    def _require_booking(self) -> CurrentBooking:
        if self._current is None:
            raise NoActiveBookingError("No active booking")
        return self._current
