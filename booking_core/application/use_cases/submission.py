from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Callable, TypeVar

from booking_core.application.exceptions import (
    AVAILABILITY_CHECK_FAILED,
    CANCELLATION_FAILED,
    BookingError,
    NoActiveBookingError,
    PaymentDeclinedError,
    RoomUnavailableError,
    StaleQuoteError,
    ValidationError,
)
from booking_core.application.ports.availability import AvailabilityPort
from booking_core.application.ports.events import EventPublisherPort
from booking_core.application.ports.payment import PaymentPort
from booking_core.application.ports.pricing import PricingPort
from booking_core.application.use_cases.booking_flow import BookingStateMachine
from booking_core.application.utils.cache_keys import availability_key, hotel_prefix, pricing_key
from booking_core.application.utils.error_classifier import classify_exception
from booking_core.application.utils.retry import RetryPolicy, retry_with_backoff
from booking_core.domain.entities.booking_state import BookingStep, CurrentBooking
from booking_core.domain.entities.confirmation import BookingConfirmation, BookingDraft, BookingStatus
from booking_core.domain.entities.events import BookingConfirmedEvent
from booking_core.domain.entities.hotel import AvailabilitySnapshot, PricingDetails
from booking_core.domain.status_transitions import assert_status_transition
from booking_core.infrastructure.store.cache_store import CacheStore
from booking_core.infrastructure.store.ledger_store import BookingLedger

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SubmissionCoordinator:
    """Sequences availability, pricing and payment for one booking session.

    Lookups go through the caches first; misses hit the provider with bounded
    retries and populate the cache. Only a confirmation returned by the
    payment provider is ever written to the ledger.
    """

    def __init__(
        self,
        state_machine: BookingStateMachine,
        availability: AvailabilityPort,
        pricing: PricingPort,
        payment: PaymentPort,
        availability_cache: CacheStore[AvailabilitySnapshot],
        pricing_cache: CacheStore[PricingDetails],
        ledger: BookingLedger,
        publisher: EventPublisherPort | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._machine = state_machine
        self._availability = availability
        self._pricing = pricing
        self._payment = payment
        self._availability_cache = availability_cache
        self._pricing_cache = pricing_cache
        self._ledger = ledger
        self._publisher = publisher
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._now = now
        self._logger = logging.getLogger(__name__)

    @property
    def state_machine(self) -> BookingStateMachine:
        return self._machine

    def check_availability(self) -> AvailabilitySnapshot:
        """Return availability for the booking's current dates, never a stale snapshot."""
        booking = self._require_booking()
        if not booking.has_dates:
            raise ValidationError("check_in_date")
        key = availability_key(booking.hotel.id, booking.check_in_date, booking.check_out_date)
        if booking.availability is not None and booking.availability_key == key:
            return booking.availability

        snapshot = self._availability_cache.get(key)
        if snapshot is None:
            self._logger.info("Availability cache miss", extra={"cache_key": key})
            snapshot = self._guarded(
                "check_availability",
                lambda: self._availability.check_availability(
                    booking.hotel.id, booking.check_in_date, booking.check_out_date
                ),
                failure_message=AVAILABILITY_CHECK_FAILED,
            )
            self._availability_cache.put(key, snapshot)

        if self._current_availability_key() == key:
            self._machine.set_availability(snapshot, key)
            if booking.step == BookingStep.DATES:
                self._machine.update_step(BookingStep.ROOMS)
        else:
            self._logger.info("Dates changed during availability lookup", extra={"cache_key": key})
        return snapshot

    def choose_room(self, room_id: str) -> PricingDetails:
        snapshot = self.check_availability()
        room = snapshot.find_room(room_id)
        if not snapshot.available or room is None or room.available <= 0:
            error = RoomUnavailableError(f"Room {room_id} is not available for these dates")
            self._machine.set_error(error.user_message)
            raise error
        self._machine.select_room(room)
        details = self.quote_price()
        self._machine.update_step(BookingStep.GUEST_INFO)
        return details

    def quote_price(self) -> PricingDetails:
        booking = self._require_booking()
        if not booking.has_dates:
            raise ValidationError("check_in_date")
        if booking.selected_room is None:
            raise ValidationError("selected_room")
        key = self._pricing_key_for(booking)
        if booking.pricing is not None and booking.pricing_key == key:
            return booking.pricing

        details = self._pricing_cache.get(key)
        if details is None:
            self._logger.info("Pricing cache miss", extra={"cache_key": key})
            room_id = booking.selected_room.id
            details = self._guarded(
                "quote_price",
                lambda: self._pricing.quote(booking.hotel.id, room_id, booking.check_in_date, booking.check_out_date),
            )
            self._pricing_cache.put(key, details)

        current = self._machine.current
        if current is not None and current.selected_room is not None and self._pricing_key_for(current) == key:
            self._machine.set_pricing(details, key)
        return details

    def submit(self, payment_token: str) -> BookingConfirmation:
        booking = self._require_booking()
        if booking.step != BookingStep.PROCESSING and booking.has_dates and booking.selected_room is not None:
            self._ensure_fresh_quote(booking)

        draft = self._machine.submit(payment_token)
        try:
            confirmation = retry_with_backoff(
                lambda: self._call(lambda: self._payment.create_reservation(draft)),
                self._retry_policy,
                "create_reservation",
                sleep=self._sleep,
            )
        except BookingError as e:
            self._handle_submission_failure(draft, e)
            raise
        return self._record(draft, confirmation)

    def cancel_reservation(self, booking_id: str) -> BookingConfirmation:
        """Cancel a recorded booking upstream and mark it cancelled in the ledger."""
        entry = self._ledger.get(booking_id)
        if entry is None:
            raise ValidationError("booking_id", f"Unknown booking {booking_id}")
        if entry.status == BookingStatus.CANCELLED:
            return entry
        assert_status_transition(entry.status, BookingStatus.CANCELLED)
        self._guarded(
            "cancel_reservation",
            lambda: self._payment.cancel_reservation(booking_id),
            failure_message=CANCELLATION_FAILED,
        )
        updated = self._ledger.update_by_id(booking_id, status=BookingStatus.CANCELLED)
        self._invalidate_hotel(entry.hotel.id)
        self._logger.info("Reservation cancelled", extra={"booking_id": booking_id})
        return updated

    def _ensure_fresh_quote(self, booking: CurrentBooking) -> None:
        expected = self._pricing_key_for(booking)
        if booking.pricing is not None and booking.pricing_key == expected:
            return
        stale = StaleQuoteError(expected_key=expected, actual_key=booking.pricing_key)
        self._logger.info("Re-quoting before submit", extra={"cache_key": expected, "error": str(stale)})
        self.quote_price()

    def _record(self, draft: BookingDraft, confirmation: BookingConfirmation) -> BookingConfirmation:
        self._ledger.append(confirmation)
        self._invalidate_hotel(confirmation.hotel.id)
        if not self._machine.complete(draft.session_id):
            # Cancelled or replaced while in flight; the reservation still exists upstream.
            self._logger.warning(
                "Booking confirmed after local cancel",
                extra={"session_id": draft.session_id, "booking_id": confirmation.booking_id},
            )
        if self._publisher is not None:
            try:
                event = BookingConfirmedEvent.from_confirmation(confirmation, occurred_at=self._now())
                self._publisher.publish(event)
            except Exception as e:
                self._logger.exception(
                    "Failed to queue confirmation event",
                    extra={"booking_id": confirmation.booking_id, "error": str(e)},
                )
        self._logger.info(
            "Booking confirmed",
            extra={"session_id": draft.session_id, "booking_id": confirmation.booking_id},
        )
        return confirmation

    def _handle_submission_failure(self, draft: BookingDraft, error: BookingError) -> None:
        self._logger.warning(
            "Booking submission failed",
            extra={"session_id": draft.session_id, "error": str(error), "kind": type(error).__name__},
        )
        self._machine.fail(draft.session_id, error.user_message, step=BookingStep.PAYMENT)
        if isinstance(error, StaleQuoteError):
            key = pricing_key(draft.hotel.id, draft.check_in_date, draft.check_out_date, draft.room.id)
            self._pricing_cache.invalidate(key)
            current = self._machine.current
            if current is not None and current.session_id == draft.session_id:
                self._machine.set_pricing(None, None)
                try:
                    self.quote_price()
                except BookingError as e:
                    self._logger.warning("Re-quote after price change failed", extra={"error": str(e)})
        elif isinstance(error, PaymentDeclinedError):
            self._logger.info("Payment declined", extra={"session_id": draft.session_id})

    def _invalidate_hotel(self, hotel_id: str) -> None:
        """Drop cached availability and prices for a hotel whose inventory just changed."""
        prefix = hotel_prefix(hotel_id)
        evicted = self._availability_cache.invalidate_prefix(prefix) + self._pricing_cache.invalidate_prefix(prefix)
        self._logger.info("Hotel caches invalidated", extra={"hotel_id": hotel_id, "evicted": evicted})

    def _guarded(self, operation: str, fn: Callable[[], T], failure_message: str | None = None) -> T:
        try:
            return retry_with_backoff(lambda: self._call(fn), self._retry_policy, operation, sleep=self._sleep)
        except BookingError as e:
            # Caller mistakes keep their own message; upstream failures get the operation's copy.
            if failure_message is not None and not isinstance(e, ValidationError):
                self._machine.set_error(failure_message)
            else:
                self._machine.set_error(e.user_message)
            raise

    def _call(self, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except BookingError:
            raise
        except Exception as e:
            raise classify_exception(e) from e

    def _current_availability_key(self) -> str | None:
        current = self._machine.current
        if current is None or not current.has_dates:
            return None
        return availability_key(current.hotel.id, current.check_in_date, current.check_out_date)

    def _pricing_key_for(self, booking: CurrentBooking) -> str:
        return pricing_key(booking.hotel.id, booking.check_in_date, booking.check_out_date, booking.selected_room.id)

    def _require_booking(self) -> CurrentBooking:
        booking = self._machine.current
        if booking is None:
            raise NoActiveBookingError("No active booking")
        return booking
