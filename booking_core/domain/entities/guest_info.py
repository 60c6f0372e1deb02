from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping

from booking_core.domain.errors import ValidationError

REQUIRED_GUEST_FIELDS = ("first_name", "email")


@dataclass(frozen=True)
class GuestInfo:
    first_name: str
    email: str
    last_name: str = ""
    phone: str = ""
    country: str = ""
    special_requests: str | None = None
    arrival_time: str | None = None  # HH:MM


@dataclass(frozen=True)
class DraftGuestInfo:
    """Guest details as the user fills them in; every field is optional."""

    first_name: str | None = None
    email: str | None = None
    last_name: str | None = None
    phone: str | None = None
    country: str | None = None
    special_requests: str | None = None
    arrival_time: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DraftGuestInfo:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def merge(self, other: DraftGuestInfo) -> DraftGuestInfo:
        """Shallow merge: keys set on `other` win, unset keys are kept."""
        updates = {k: v for k, v in asdict(other).items() if v is not None}
        return replace(self, **updates)

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_GUEST_FIELDS if not (getattr(self, name) or "").strip()]

    def complete(self) -> GuestInfo:
        missing = self.missing_fields()
        if missing:
            raise ValidationError(missing[0])
        return GuestInfo(
            first_name=self.first_name.strip(),
            email=self.email.strip(),
            last_name=self.last_name or "",
            phone=self.phone or "",
            country=self.country or "",
            special_requests=self.special_requests,
            arrival_time=self.arrival_time,
        )
