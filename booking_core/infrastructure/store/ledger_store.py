from __future__ import annotations

import logging
import threading
from dataclasses import fields, replace
from datetime import UTC, datetime
from typing import Any, Callable, Iterable, Iterator

from booking_core.domain.entities.confirmation import BookingConfirmation, BookingStatus
from booking_core.domain.status_transitions import assert_status_transition

LedgerListener = Callable[[tuple[BookingConfirmation, ...]], None]

_UPDATABLE_FIELDS = {f.name for f in fields(BookingConfirmation)} - {"booking_id"}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BookingLedger:
    """Ordered history of finalized bookings, most recent first.

    Entries are immutable; updates swap in a modified copy at the same
    position. The ledger does no I/O itself; persistence adapters hydrate it
    with `replace_all` and follow changes through `subscribe`.
    """

    def __init__(self, now: Callable[[], datetime] = _utcnow) -> None:
        self._entries: list[BookingConfirmation] = []
        self._listeners: list[LedgerListener] = []
        self._now = now
        self._lock = threading.RLock()
        self._logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __getitem__(self, index: int) -> BookingConfirmation:
        with self._lock:
            return self._entries[index]

    def __iter__(self) -> Iterator[BookingConfirmation]:
        return iter(self.entries())

    def entries(self) -> tuple[BookingConfirmation, ...]:
        with self._lock:
            return tuple(self._entries)

    def get(self, booking_id: str) -> BookingConfirmation | None:
        with self._lock:
            for entry in self._entries:
                if entry.booking_id == booking_id:
                    return entry
            return None

    def append(self, confirmation: BookingConfirmation) -> None:
        # Duplicate ids are the caller's problem; nothing is merged here.
        with self._lock:
            self._entries.insert(0, confirmation)
            self._logger.info(
                "Booking recorded",
                extra={"booking_id": confirmation.booking_id, "status": confirmation.status.value},
            )
            self._notify()

    def replace_all(self, confirmations: Iterable[BookingConfirmation]) -> None:
        with self._lock:
            self._entries = list(confirmations)
            self._notify()

    def update_by_id(self, booking_id: str, /, **changes: Any) -> BookingConfirmation | None:
        """Apply `changes` to every entry with `booking_id`; returns the last updated entry.

        Unmatched entries keep their position. `updated_at` is stamped only
        when the entry actually changed, so repeating a call is a no-op. If any
        matching entry rejects the change, no entry is modified.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update booking fields: {', '.join(sorted(unknown))}")
        if "status" in changes:
            changes["status"] = BookingStatus(changes["status"])

        with self._lock:
            matches = [i for i, entry in enumerate(self._entries) if entry.booking_id == booking_id]
            if "status" in changes:
                for index in matches:
                    assert_status_transition(self._entries[index].status, changes["status"])

            entries = list(self._entries)
            changed = False
            for index in matches:
                candidate = replace(entries[index], **changes)
                if candidate != entries[index]:
                    if "updated_at" not in changes:
                        candidate = replace(candidate, updated_at=self._now())
                    entries[index] = candidate
                    changed = True
            if changed:
                self._entries = entries
                self._notify()
            return entries[matches[-1]] if matches else None

    def subscribe(self, listener: LedgerListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def _notify(self) -> None:
        snapshot = tuple(self._entries)
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception as e:
                self._logger.exception("Ledger listener failed", extra={"error": str(e)})
