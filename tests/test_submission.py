"""
Tests for the submission coordinator: lookups, quoting and payment.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from booking_core.application.exceptions import (
    AVAILABILITY_CHECK_FAILED,
    ConcurrentSubmissionError,
    PaymentDeclinedError,
    ProviderError,
    RoomUnavailableError,
    StaleQuoteError,
    TransientNetworkError,
    ValidationError,
)
from booking_core.application.utils.cache_keys import availability_key, pricing_key
from booking_core.domain.entities.booking_state import BookingStep
from booking_core.domain.entities.confirmation import BookingStatus
from booking_core.domain.entities.hotel import Hotel

from conftest import CHECK_IN, CHECK_OUT


def _ready_to_pay(machine, coordinator, hotel, guest, room_id="standard"):
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.choose_room(room_id)
    machine.set_guest_info(guest)
    machine.update_step(BookingStep.PAYMENT)


def test_check_availability_populates_cache_and_advances_step(machine, coordinator, provider, hotel, availability_cache):
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)

    snapshot = coordinator.check_availability()

    key = availability_key("h1", CHECK_IN, CHECK_OUT)
    assert machine.current.availability == snapshot
    assert machine.current.availability_key == key
    assert machine.current.step == BookingStep.ROOMS
    assert availability_cache.contains(key)
    assert provider.calls["check_availability"] == 1


def test_check_availability_uses_cache_across_sessions(machine, coordinator, provider, hotel):
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.check_availability()

    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.check_availability()

    assert provider.calls["check_availability"] == 1


def test_check_availability_refetches_after_date_change(machine, coordinator, provider, hotel):
    """A snapshot for old dates is never reused for new ones."""
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.check_availability()

    machine.set_dates(date(2025, 1, 10), date(2025, 1, 15))
    snapshot = coordinator.check_availability()

    assert snapshot.check_in_date == "2025-01-10"
    assert machine.current.availability_key == availability_key("h1", date(2025, 1, 10), date(2025, 1, 15))
    assert provider.calls["check_availability"] == 2


def test_check_availability_refetches_after_ttl(machine, coordinator, provider, hotel, clock):
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.check_availability()

    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    clock.advance(301)
    coordinator.check_availability()

    assert provider.calls["check_availability"] == 2


def test_check_availability_requires_dates(machine, coordinator, hotel):
    machine.start_booking(hotel)
    with pytest.raises(ValidationError):
        coordinator.check_availability()


def test_transient_lookup_errors_are_retried(machine, coordinator, provider, hotel, sleeps):
    provider.fail_next("check_availability", TransientNetworkError("timeout"), times=2)
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)

    coordinator.check_availability()

    assert provider.calls["check_availability"] == 3
    assert len(sleeps) == 2


def test_exhausted_retries_surface_error(machine, coordinator, provider, hotel):
    provider.fail_next("check_availability", ConnectionError("reset"), times=3)
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)

    with pytest.raises(TransientNetworkError):
        coordinator.check_availability()

    assert machine.error == AVAILABILITY_CHECK_FAILED
    assert machine.current.step == BookingStep.DATES


def test_choose_room_selects_quotes_and_advances(machine, coordinator, hotel, pricing_cache):
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)

    details = coordinator.choose_room("standard")

    booking = machine.current
    assert booking.selected_room.id == "standard"
    assert booking.pricing == details
    assert booking.pricing_key == pricing_key("h1", CHECK_IN, CHECK_OUT, "standard")
    assert booking.step == BookingStep.GUEST_INFO
    assert details.number_of_nights == 5
    assert details.subtotal == 750.0
    assert details.total == 865.0
    assert pricing_cache.contains(booking.pricing_key)


def test_choose_unknown_room_is_rejected(machine, coordinator, hotel):
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)

    with pytest.raises(RoomUnavailableError):
        coordinator.choose_room("penthouse")

    assert machine.current.selected_room is None
    assert machine.error == RoomUnavailableError.user_message


def test_submit_success_records_history_and_clears_booking(machine, coordinator, ledger, hotel, guest, outbox, notifier):
    """Successful submit clears the draft and adds one history entry."""
    _ready_to_pay(machine, coordinator, hotel, guest)

    confirmation = coordinator.submit("tok_visa")

    assert machine.current is None
    assert machine.error is None
    assert len(ledger) == 1
    assert ledger[0].booking_id == confirmation.booking_id
    assert confirmation.status == BookingStatus.CONFIRMED
    assert confirmation.pricing.total == 865.0

    assert outbox.pending() == 1
    outbox.drain()
    assert [e.booking_id for e in notifier.sent] == [confirmation.booking_id]


def test_submit_requotes_when_dates_changed_after_quote(machine, coordinator, provider, ledger, hotel, guest):
    """A price fetched for old dates is never submitted."""
    _ready_to_pay(machine, coordinator, hotel, guest)
    new_in, new_out = date(2025, 1, 10), date(2025, 1, 12)
    machine.set_dates(new_in, new_out)
    room = coordinator.check_availability().find_room("standard")
    machine.select_room(room)
    assert machine.current.pricing is None

    confirmation = coordinator.submit("tok_visa")

    assert provider.calls["quote"] == 2
    assert confirmation.pricing.number_of_nights == 2
    assert confirmation.check_in_date == new_in
    assert ledger[0].pricing.subtotal == 300.0


def test_submit_requotes_when_pricing_key_mismatches(machine, coordinator, provider, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    stale = machine.current.pricing
    machine.set_pricing(stale, "h1|2024-01-01|2024-01-02|standard")

    coordinator.submit("tok_visa")

    assert provider.calls["quote"] == 1  # served from the pricing cache
    assert provider.calls["create_reservation"] == 1


def test_submit_validation_error_does_not_call_payment(machine, coordinator, provider, hotel):
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.choose_room("standard")

    with pytest.raises(ValidationError) as exc:
        coordinator.submit("tok_visa")

    assert exc.value.field == "first_name"
    assert provider.calls["create_reservation"] == 0


def test_double_submit_makes_one_payment_call(machine, coordinator, provider, ledger, hotel, guest):
    """A submit issued while the first is in flight fails without re-dispatching."""
    _ready_to_pay(machine, coordinator, hotel, guest)
    second_attempt = []
    real_create = provider.create_reservation

    def create_and_double_click(draft):
        with pytest.raises(ConcurrentSubmissionError):
            coordinator.submit("tok_visa")
        second_attempt.append(True)
        return real_create(draft)

    provider.create_reservation = create_and_double_click

    coordinator.submit("tok_visa")

    assert second_attempt == [True]
    assert provider.calls["create_reservation"] == 1
    assert len(ledger) == 1


def test_declined_payment_rolls_back_without_retry(machine, coordinator, provider, ledger, hotel, guest, sleeps):
    _ready_to_pay(machine, coordinator, hotel, guest)

    with pytest.raises(PaymentDeclinedError):
        coordinator.submit("tok_chargeDeclined")

    assert provider.calls["create_reservation"] == 1
    assert sleeps == []
    assert machine.current.step == BookingStep.PAYMENT
    assert machine.error == PaymentDeclinedError.user_message
    assert len(ledger) == 0

    coordinator.submit("tok_visa")
    assert len(ledger) == 1


def test_transient_payment_error_is_retried(machine, coordinator, provider, ledger, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    provider.fail_next("create_reservation", TransientNetworkError("502", status_code=502))

    coordinator.submit("tok_visa")

    assert provider.calls["create_reservation"] == 2
    assert len(ledger) == 1


def test_exhausted_payment_retries_roll_back_to_payment(machine, coordinator, provider, ledger, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    provider.fail_next("create_reservation", TimeoutError("read timeout"), times=3)

    with pytest.raises(TransientNetworkError):
        coordinator.submit("tok_visa")

    assert machine.current.step == BookingStep.PAYMENT
    assert machine.error == TransientNetworkError.user_message
    assert len(ledger) == 0


def test_unknown_payment_failure_never_reaches_ledger(machine, coordinator, provider, ledger, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    provider.fail_next("create_reservation", KeyError("malformed response"))

    with pytest.raises(ProviderError):
        coordinator.submit("tok_visa")

    assert len(ledger) == 0
    assert machine.current.step == BookingStep.PAYMENT


def test_upstream_price_change_requotes(machine, coordinator, provider, pricing_cache, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    key = machine.current.pricing_key
    provider.set_price("standard", 200.0)
    provider.fail_next("create_reservation", StaleQuoteError(expected_key=key))

    with pytest.raises(StaleQuoteError):
        coordinator.submit("tok_visa")

    assert machine.current.step == BookingStep.PAYMENT
    assert machine.current.pricing.base_rate == 200.0
    assert pricing_cache.get(key).base_rate == 200.0


def test_cancel_during_submission_still_records_confirmation(machine, coordinator, provider, ledger, hotel, guest):
    """Cancelling locally does not abort the charge; the result is still recorded."""
    _ready_to_pay(machine, coordinator, hotel, guest)
    real_create = provider.create_reservation

    def cancel_mid_flight(draft):
        machine.cancel()
        return real_create(draft)

    provider.create_reservation = cancel_mid_flight

    confirmation = coordinator.submit("tok_visa")

    assert machine.current is None
    assert ledger[0].booking_id == confirmation.booking_id


def test_late_confirmation_does_not_clobber_new_booking(machine, coordinator, provider, ledger, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    real_create = provider.create_reservation
    other = Hotel(id="h2", title="Mountain Lodge")

    def restart_mid_flight(draft):
        machine.start_booking(other)
        return real_create(draft)

    provider.create_reservation = restart_mid_flight

    coordinator.submit("tok_visa")

    assert len(ledger) == 1
    assert machine.current is not None
    assert machine.current.hotel.id == "h2"
    assert machine.current.step == BookingStep.DATES


def test_non_instant_hotel_records_pending_booking(machine, coordinator, ledger, guest):
    _ready_to_pay(machine, coordinator, Hotel(id="h9", title="Farm Stay", instant_booking=False), guest)

    confirmation = coordinator.submit("tok_visa")

    assert confirmation.status == BookingStatus.PENDING
    assert ledger[0].status == BookingStatus.PENDING


def test_cancel_reservation_updates_ledger_status(machine, coordinator, provider, ledger, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    confirmation = coordinator.submit("tok_visa")

    cancelled = coordinator.cancel_reservation(confirmation.booking_id)
    again = coordinator.cancel_reservation(confirmation.booking_id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert again == cancelled
    assert provider.calls["cancel_reservation"] == 1
    assert ledger[0].status == BookingStatus.CANCELLED


def test_cancel_reservation_unknown_booking(coordinator):
    with pytest.raises(ValidationError):
        coordinator.cancel_reservation("nope")


def test_booking_invalidates_hotel_caches(machine, coordinator, provider, hotel, guest, availability_cache, pricing_cache):
    """The room just sold is not served from cache to the next guest."""
    _ready_to_pay(machine, coordinator, hotel, guest)
    stay_key = availability_key("h1", CHECK_IN, CHECK_OUT)
    other_hotel_key = availability_key("h2", CHECK_IN, CHECK_OUT)
    availability_cache.put(other_hotel_key, "untouched")
    assert availability_cache.contains(stay_key)

    coordinator.submit("tok_visa")

    assert not availability_cache.contains(stay_key)
    assert not pricing_cache.contains(pricing_key("h1", CHECK_IN, CHECK_OUT, "standard"))
    assert availability_cache.contains(other_hotel_key)

    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.check_availability()
    assert provider.calls["check_availability"] == 2


def test_cancel_reservation_invalidates_hotel_caches(machine, coordinator, hotel, guest, availability_cache):
    _ready_to_pay(machine, coordinator, hotel, guest)
    confirmation = coordinator.submit("tok_visa")
    machine.start_booking(hotel)
    machine.set_dates(CHECK_IN, CHECK_OUT)
    coordinator.check_availability()
    stay_key = availability_key("h1", CHECK_IN, CHECK_OUT)
    assert availability_cache.contains(stay_key)

    coordinator.cancel_reservation(confirmation.booking_id)

    assert not availability_cache.contains(stay_key)


def test_requoted_price_is_submitted_under_new_idempotency_key(machine, coordinator, provider, ledger, hotel, guest):
    _ready_to_pay(machine, coordinator, hotel, guest)
    drafts = []
    real_create = provider.create_reservation

    def recording_create(draft):
        drafts.append(draft)
        return real_create(draft)

    provider.create_reservation = recording_create
    provider.set_price("standard", 200.0)
    provider.fail_next("create_reservation", StaleQuoteError(expected_key=machine.current.pricing_key))

    with pytest.raises(StaleQuoteError):
        coordinator.submit("tok_visa")
    confirmation = coordinator.submit("tok_visa")

    assert len(drafts) == 2
    assert drafts[0].idempotency_key != drafts[1].idempotency_key
    assert confirmation.pricing.total == 1145.0
    assert len(ledger) == 1


def test_retried_submission_reuses_idempotency_key(machine, coordinator, provider, ledger, hotel, guest):
    """Same booking, same price and same card always map to one reservation."""
    _ready_to_pay(machine, coordinator, hotel, guest)
    drafts = []
    real_create = provider.create_reservation

    def recording_create(draft):
        drafts.append(draft)
        return real_create(draft)

    provider.create_reservation = recording_create
    provider.fail_next("create_reservation", TimeoutError("read timeout"), times=3)

    with pytest.raises(TransientNetworkError):
        coordinator.submit("tok_visa")
    coordinator.submit("tok_visa")

    assert len(drafts) == 4
    assert len({d.idempotency_key for d in drafts}) == 1
    assert len(ledger) == 1


def test_event_failure_does_not_fail_confirmed_booking(machine, coordinator, provider, ledger, hotel, guest, outbox, caplog):
    _ready_to_pay(machine, coordinator, hotel, guest)
    real_create = provider.create_reservation
    provider.create_reservation = lambda draft: replace(real_create(draft), pricing=None)

    confirmation = coordinator.submit("tok_visa")

    assert confirmation.pricing is None
    assert ledger[0].booking_id == confirmation.booking_id
    assert machine.current is None
    assert outbox.pending() == 0
    assert "Failed to queue confirmation event" in caplog.text
