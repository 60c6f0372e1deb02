from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from booking_core.domain.entities.hotel import AvailabilitySnapshot


class AvailabilityPort(ABC):
    @abstractmethod
    def check_availability(self, hotel_id: str, check_in: date, check_out: date) -> AvailabilitySnapshot:
        """Return room availability for the stay. May raise TransientNetworkError."""
        raise NotImplementedError
