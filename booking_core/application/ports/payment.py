from __future__ import annotations

from abc import ABC, abstractmethod

from booking_core.domain.entities.confirmation import BookingConfirmation, BookingDraft


class PaymentPort(ABC):
    @abstractmethod
    def create_reservation(self, draft: BookingDraft) -> BookingConfirmation:
        """Charge the payment token and create the reservation upstream.

        Implementations must treat `draft.idempotency_key` as the dedup key so a
        retried call never charges twice.
        """
        raise NotImplementedError

    @abstractmethod
    def cancel_reservation(self, booking_id: str) -> None:
        """Cancel a reservation upstream."""
        raise NotImplementedError
