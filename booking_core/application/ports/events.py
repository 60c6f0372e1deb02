from abc import ABC, abstractmethod

from booking_core.domain.entities.events import BookingConfirmedEvent


class EventPublisherPort(ABC):
    @abstractmethod
    def publish(self, event: BookingConfirmedEvent) -> None:
        """Queue an event for delivery. Must not block on the delivery itself."""
        raise NotImplementedError
