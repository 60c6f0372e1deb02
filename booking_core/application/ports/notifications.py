from abc import ABC, abstractmethod

from booking_core.domain.entities.events import BookingConfirmedEvent


class NotificationPort(ABC):
    @abstractmethod
    def send_booking_confirmation(self, event: BookingConfirmedEvent) -> None:
        raise NotImplementedError
