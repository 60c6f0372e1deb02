from functools import lru_cache
import logging

from booking_core.application.use_cases.booking_flow import BookingStateMachine
from booking_core.application.use_cases.submission import SubmissionCoordinator
from booking_core.application.utils.retry import RetryPolicy
from booking_core.core.config import settings
from booking_core.domain.entities.hotel import AvailabilitySnapshot, PricingDetails
from booking_core.infrastructure.notifications.logging_notifier import LoggingNotifier
from booking_core.infrastructure.notifications.outbox import NotificationOutbox
from booking_core.infrastructure.provider.http_provider import HttpBookingProvider
from booking_core.infrastructure.provider.mock_provider import MockBookingProvider
from booking_core.infrastructure.store.cache_store import CacheStore
from booking_core.infrastructure.store.json_ledger_store import JsonLedgerStore
from booking_core.infrastructure.store.ledger_store import BookingLedger
from booking_core.infrastructure.store.session_store import MemorySessionStore


@lru_cache
def get_availability_cache() -> CacheStore[AvailabilitySnapshot]:
    return CacheStore(default_ttl=settings.AVAILABILITY_CACHE_TTL_SECONDS, name="availability")


@lru_cache
def get_pricing_cache() -> CacheStore[PricingDetails]:
    return CacheStore(default_ttl=settings.PRICING_CACHE_TTL_SECONDS, name="pricing")


@lru_cache
def get_ledger() -> BookingLedger:
    ledger = BookingLedger()
    if settings.LEDGER_STORE.lower() == "json":
        JsonLedgerStore(data_dir=settings.LEDGER_DATA_DIR).attach(ledger)
    return ledger


@lru_cache
def get_provider() -> MockBookingProvider | HttpBookingProvider:
    logger = logging.getLogger(__name__)
    if settings.PROVIDER.lower() == "http":
        logger.info("Using HttpBookingProvider", extra={"base_url": settings.PROVIDER_BASE_URL})
        return HttpBookingProvider()
    if settings.ENV.lower() not in {"dev", "local", "test"}:
        logger.warning("Using MockBookingProvider outside dev", extra={"env": settings.ENV})
    return MockBookingProvider(currency=settings.DEFAULT_CURRENCY)


@lru_cache
def get_outbox() -> NotificationOutbox:
    return NotificationOutbox(notifier=LoggingNotifier())


def get_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.RETRY_MAX_RETRIES,
        initial_delay=settings.RETRY_INITIAL_DELAY_SECONDS,
        max_delay=settings.RETRY_MAX_DELAY_SECONDS,
        backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
    )


def build_coordinator(state_machine: BookingStateMachine) -> SubmissionCoordinator:
    provider = get_provider()
    return SubmissionCoordinator(
        state_machine=state_machine,
        availability=provider,
        pricing=provider,
        payment=provider,
        availability_cache=get_availability_cache(),
        pricing_cache=get_pricing_cache(),
        ledger=get_ledger(),
        publisher=get_outbox() if settings.NOTIFICATIONS_ENABLED else None,
        retry_policy=get_retry_policy(),
    )


@lru_cache
def get_session_store() -> MemorySessionStore:
    return MemorySessionStore(coordinator_factory=build_coordinator)


def reset_dependencies() -> None:
    """Drop every cached singleton so the next call rebuilds from settings."""
    for factory in (
        get_availability_cache,
        get_pricing_cache,
        get_ledger,
        get_provider,
        get_outbox,
        get_session_store,
    ):
        factory.cache_clear()
