from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Callable

from booking_core.application.use_cases.booking_flow import BookingStateMachine
from booking_core.application.use_cases.submission import SubmissionCoordinator


@dataclass
class BookingSession:
    session_id: str
    state_machine: BookingStateMachine
    coordinator: SubmissionCoordinator


class MemorySessionStore:
    """Booking sessions keyed by an opaque id, one state machine each."""

    def __init__(self, coordinator_factory: Callable[[BookingStateMachine], SubmissionCoordinator]) -> None:
        self._coordinator_factory = coordinator_factory
        self._sessions: dict[str, BookingSession] = {}
        self._lock = threading.Lock()

    def create(self) -> BookingSession:
        machine = BookingStateMachine()
        session = BookingSession(
            session_id=uuid.uuid4().hex,
            state_machine=machine,
            coordinator=self._coordinator_factory(machine),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> BookingSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
