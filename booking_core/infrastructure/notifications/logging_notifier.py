from __future__ import annotations

import logging

from booking_core.application.ports.notifications import NotificationPort
from booking_core.domain.entities.events import BookingConfirmedEvent


class LoggingNotifier(NotificationPort):
    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def send_booking_confirmation(self, event: BookingConfirmedEvent) -> None:
        self._logger.info(
            "Mock booking confirmation sent",
            extra={"booking_id": event.booking_id, "recipient": event.guest_email},
        )
