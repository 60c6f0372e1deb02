from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from booking_core.domain.entities.hotel import PricingDetails


class PricingPort(ABC):
    @abstractmethod
    def quote(self, hotel_id: str, room_id: str, check_in: date, check_out: date) -> PricingDetails:
        """Return the price breakdown for one room over the stay."""
        raise NotImplementedError
