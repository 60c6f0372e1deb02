from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from booking_core.application.use_cases.booking_flow import BookingStateMachine
from booking_core.application.use_cases.submission import SubmissionCoordinator
from booking_core.application.utils.retry import RetryPolicy
from booking_core.domain.entities.confirmation import BookingConfirmation, BookingStatus
from booking_core.domain.entities.events import BookingConfirmedEvent
from booking_core.domain.entities.guest_info import DraftGuestInfo, GuestInfo
from booking_core.domain.entities.hotel import Hotel
from booking_core.infrastructure.notifications.logging_notifier import LoggingNotifier
from booking_core.infrastructure.notifications.outbox import NotificationOutbox
from booking_core.infrastructure.provider.mock_provider import DEFAULT_ROOMS, MockBookingProvider, compute_pricing
from booking_core.infrastructure.store.cache_store import CacheStore
from booking_core.infrastructure.store.ledger_store import BookingLedger

CHECK_IN = date(2024, 12, 20)
CHECK_OUT = date(2024, 12, 25)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier(LoggingNotifier):
    """LoggingNotifier that also keeps what it sent."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[BookingConfirmedEvent] = []

    def send_booking_confirmation(self, event: BookingConfirmedEvent) -> None:
        super().send_booking_confirmation(event)
        self.sent.append(event)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hotel() -> Hotel:
    return Hotel(id="h1", title="Seaside Inn", location="Lisbon", price=150.0, instant_booking=True)


@pytest.fixture
def guest() -> DraftGuestInfo:
    return DraftGuestInfo(first_name="John", last_name="Doe", email="john@example.com", country="PT")


@pytest.fixture
def provider() -> MockBookingProvider:
    return MockBookingProvider()


@pytest.fixture
def machine() -> BookingStateMachine:
    return BookingStateMachine()


@pytest.fixture
def ledger() -> BookingLedger:
    return BookingLedger(now=lambda: datetime(2024, 12, 1, tzinfo=UTC))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def outbox(notifier: RecordingNotifier) -> NotificationOutbox:
    return NotificationOutbox(notifier=notifier)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def availability_cache(clock) -> CacheStore:
    return CacheStore(default_ttl=300, clock=clock, name="availability")


@pytest.fixture
def pricing_cache(clock) -> CacheStore:
    return CacheStore(default_ttl=120, clock=clock, name="pricing")


@pytest.fixture
def coordinator(machine, provider, ledger, outbox, availability_cache, pricing_cache, sleeps) -> SubmissionCoordinator:
    return SubmissionCoordinator(
        state_machine=machine,
        availability=provider,
        pricing=provider,
        payment=provider,
        availability_cache=availability_cache,
        pricing_cache=pricing_cache,
        ledger=ledger,
        publisher=outbox,
        retry_policy=RetryPolicy(max_retries=2, initial_delay=0.01, max_delay=0.05),
        sleep=sleeps.append,
    )


def make_confirmation(booking_id: str, status: BookingStatus = BookingStatus.CONFIRMED) -> BookingConfirmation:
    created = datetime(2024, 11, 1, 12, 0, tzinfo=UTC)
    return BookingConfirmation(
        booking_id=booking_id,
        reference_number=f"REF-20241101-{booking_id}",
        hotel=Hotel(id="h1", title="Seaside Inn"),
        check_in_date=CHECK_IN,
        check_out_date=CHECK_OUT,
        guest_info=GuestInfo(first_name="John", email="john@example.com"),
        room_details=DEFAULT_ROOMS[0],
        pricing=compute_pricing(150.0, 5),
        status=status,
        confirmation_sent_at=created,
        created_at=created,
        updated_at=created,
    )
