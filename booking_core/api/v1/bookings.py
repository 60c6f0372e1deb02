import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Response

from booking_core.api.v1.schemas import (
    AvailabilitySchema,
    BookingConfirmationSchema,
    BookingSessionSchema,
    CacheStatsSchema,
    GuestInfoSchema,
    HotelSchema,
    PricingSchema,
    RoomSchema,
    SelectRoomRequest,
    SetDatesRequest,
    StartBookingRequest,
    SubmitRequest,
    UpdateStepRequest,
)
from booking_core.application.exceptions import (
    BookingError,
    BookingInvariantError,
    ConcurrentSubmissionError,
    NoActiveBookingError,
    PaymentDeclinedError,
    ProviderError,
    RoomUnavailableError,
    StaleQuoteError,
    TransientNetworkError,
    ValidationError,
)
from booking_core.application.use_cases.booking_flow import BookingStateMachine
from booking_core.domain.entities.guest_info import DraftGuestInfo
from booking_core.infrastructure.store.ledger_store import BookingLedger
from booking_core.infrastructure.store.session_store import BookingSession, MemorySessionStore
from booking_core.wiring.dependencies import (
    build_coordinator,
    get_availability_cache,
    get_ledger,
    get_pricing_cache,
    get_session_store,
)

router = APIRouter()
logger = logging.getLogger(__name__)

_STATUS_CODES = {
    ValidationError: 422,
    PaymentDeclinedError: 402,
    ConcurrentSubmissionError: 409,
    StaleQuoteError: 409,
    RoomUnavailableError: 409,
    NoActiveBookingError: 409,
    TransientNetworkError: 503,
    ProviderError: 502,
}


def _http_error(error: Exception) -> HTTPException:
    if isinstance(error, BookingInvariantError):
        return HTTPException(status_code=409, detail=str(error))
    status_code = next((code for cls, code in _STATUS_CODES.items() if isinstance(error, cls)), 500)
    detail: dict[str, object] = {"message": getattr(error, "user_message", str(error))}
    if isinstance(error, ValidationError):
        detail["field"] = error.field
    if isinstance(error, BookingError):
        detail["retryable"] = error.retryable
    return HTTPException(status_code=status_code, detail=detail)


def _session_or_404(session_id: str, store: MemorySessionStore) -> BookingSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Booking session not found")
    return session


def _session_view(session: BookingSession) -> BookingSessionSchema:
    machine = session.state_machine
    booking = machine.current
    if booking is None:
        return BookingSessionSchema(session_id=session.session_id, active=False, error=machine.error)
    return BookingSessionSchema(
        session_id=session.session_id,
        active=True,
        error=machine.error,
        step=booking.step,
        hotel=HotelSchema.model_validate(booking.hotel),
        check_in_date=booking.check_in_date,
        check_out_date=booking.check_out_date,
        selected_room=RoomSchema.model_validate(booking.selected_room) if booking.selected_room else None,
        guest_info=GuestInfoSchema.model_validate(booking.guest_info),
        availability=AvailabilitySchema.model_validate(booking.availability) if booking.availability else None,
        pricing=PricingSchema.model_validate(booking.pricing) if booking.pricing else None,
    )


@router.post("/sessions", response_model=BookingSessionSchema, status_code=201)
def start_booking(req: StartBookingRequest, store: MemorySessionStore = Depends(get_session_store)):
    session = store.create()
    session.state_machine.start_booking(req.hotel.to_entity())
    logger.info("Booking session created", extra={"session_id": session.session_id, "hotel_id": req.hotel.id})
    return _session_view(session)


@router.get("/sessions/{session_id}", response_model=BookingSessionSchema)
def get_session(session_id: str, store: MemorySessionStore = Depends(get_session_store)):
    return _session_view(_session_or_404(session_id, store))


@router.put("/sessions/{session_id}/hotel", response_model=BookingSessionSchema)
def restart_booking(session_id: str, req: StartBookingRequest, store: MemorySessionStore = Depends(get_session_store)):
    session = _session_or_404(session_id, store)
    session.state_machine.start_booking(req.hotel.to_entity())
    return _session_view(session)


@router.put("/sessions/{session_id}/dates", response_model=BookingSessionSchema)
def set_dates(session_id: str, req: SetDatesRequest, store: MemorySessionStore = Depends(get_session_store)):
    session = _session_or_404(session_id, store)
    try:
        session.state_machine.set_dates(req.check_in, req.check_out)
        session.coordinator.check_availability()
    except (BookingError, BookingInvariantError) as e:
        raise _http_error(e)
    return _session_view(session)


@router.put("/sessions/{session_id}/room", response_model=BookingSessionSchema)
def select_room(session_id: str, req: SelectRoomRequest, store: MemorySessionStore = Depends(get_session_store)):
    session = _session_or_404(session_id, store)
    try:
        session.coordinator.choose_room(req.room_id)
    except (BookingError, BookingInvariantError) as e:
        raise _http_error(e)
    return _session_view(session)


@router.patch("/sessions/{session_id}/guest", response_model=BookingSessionSchema)
def set_guest_info(session_id: str, req: GuestInfoSchema, store: MemorySessionStore = Depends(get_session_store)):
    session = _session_or_404(session_id, store)
    try:
        session.state_machine.set_guest_info(DraftGuestInfo.from_mapping(req.model_dump(exclude_none=True)))
    except BookingError as e:
        raise _http_error(e)
    session.state_machine.clear_error()
    return _session_view(session)


@router.put("/sessions/{session_id}/step", response_model=BookingSessionSchema)
def update_step(session_id: str, req: UpdateStepRequest, store: MemorySessionStore = Depends(get_session_store)):
    session = _session_or_404(session_id, store)
    session.state_machine.update_step(req.step)
    return _session_view(session)


@router.post("/sessions/{session_id}/submit", response_model=BookingConfirmationSchema)
def submit_booking(session_id: str, req: SubmitRequest, store: MemorySessionStore = Depends(get_session_store)):
    session = _session_or_404(session_id, store)
    try:
        confirmation = session.coordinator.submit(req.payment_token)
    except (BookingError, BookingInvariantError) as e:
        raise _http_error(e)
    return BookingConfirmationSchema.model_validate(confirmation)


@router.delete("/sessions/{session_id}", status_code=204)
def cancel_booking(session_id: str, store: MemorySessionStore = Depends(get_session_store)) -> Response:
    session = _session_or_404(session_id, store)
    session.state_machine.cancel()
    store.delete(session_id)
    return Response(status_code=204)


@router.get("/history", response_model=list[BookingConfirmationSchema])
def list_history(ledger: BookingLedger = Depends(get_ledger)):
    return [BookingConfirmationSchema.model_validate(c) for c in ledger.entries()]


@router.get("/history/{booking_id}", response_model=BookingConfirmationSchema)
def get_history_entry(booking_id: str, ledger: BookingLedger = Depends(get_ledger)):
    confirmation = ledger.get(booking_id)
    if confirmation is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return BookingConfirmationSchema.model_validate(confirmation)


@router.post("/history/{booking_id}/cancel", response_model=BookingConfirmationSchema)
def cancel_reservation(booking_id: str, ledger: BookingLedger = Depends(get_ledger)):
    if ledger.get(booking_id) is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    coordinator = build_coordinator(BookingStateMachine())
    try:
        confirmation = coordinator.cancel_reservation(booking_id)
    except BookingError as e:
        raise _http_error(e)
    return BookingConfirmationSchema.model_validate(confirmation)


@router.get("/cache/stats")
def cache_stats() -> dict[str, CacheStatsSchema]:
    stats = {}
    for name, cache in (("availability", get_availability_cache()), ("pricing", get_pricing_cache())):
        cache.clean_expired()
        stats[name] = CacheStatsSchema(**asdict(cache.stats()))
    return stats
