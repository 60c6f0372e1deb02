import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from booking_core.api.v1.bookings import router as bookings_router
from booking_core.core.config import settings
from booking_core.wiring.dependencies import get_outbox


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("session_id", "booking_id", "hotel_id", "step", "cache_key", "attempt", "kind", "error"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    outbox = get_outbox()
    outbox.start()
    yield
    outbox.stop()


app = FastAPI(title="Booking Orchestrator", version="1.0.0", lifespan=lifespan)

app.include_router(bookings_router, prefix="/api/v1/bookings", tags=["bookings"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
