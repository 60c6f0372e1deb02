from __future__ import annotations

import logging
import queue
import threading

from booking_core.application.ports.events import EventPublisherPort
from booking_core.application.ports.notifications import NotificationPort
from booking_core.domain.entities.events import BookingConfirmedEvent

_STOP = object()


class NotificationOutbox(EventPublisherPort):
    """Queues confirmation events and hands them to a NotificationPort.

    `publish` never blocks on delivery. Events are delivered either by the
    background worker (`start`/`stop`) or synchronously with `drain`.
    Delivery failures are logged and the event is dropped.
    """

    def __init__(self, notifier: NotificationPort) -> None:
        self._notifier = notifier
        self._queue: queue.Queue[object] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._logger = logging.getLogger(__name__)

    def publish(self, event: BookingConfirmedEvent) -> None:
        self._queue.put(event)

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> int:
        """Deliver every queued event on the calling thread."""
        delivered = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            if item is not _STOP and self._deliver(item):
                delivered += 1

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name="notification-outbox", daemon=True)
        self._worker.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        self._queue.put(_STOP)
        self._worker.join(timeout)
        self._worker = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._deliver(item)

    def _deliver(self, event: BookingConfirmedEvent) -> bool:
        try:
            self._notifier.send_booking_confirmation(event)
            return True
        except Exception as e:
            self._logger.exception(
                "Notification delivery failed",
                extra={"booking_id": event.booking_id, "error": str(e)},
            )
            return False
