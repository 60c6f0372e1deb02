from __future__ import annotations

from datetime import date

KEY_SEPARATOR = "|"


def availability_key(hotel_id: str, check_in: date, check_out: date) -> str:
    """Key for an availability lookup: hotel_id|YYYY-MM-DD|YYYY-MM-DD."""
    return KEY_SEPARATOR.join((str(hotel_id), check_in.isoformat(), check_out.isoformat()))


def pricing_key(hotel_id: str, check_in: date, check_out: date, room_id: str) -> str:
    """Key for a pricing lookup: the availability key plus |room_id."""
    return KEY_SEPARATOR.join((availability_key(hotel_id, check_in, check_out), str(room_id)))


def hotel_prefix(hotel_id: str) -> str:
    return f"{hotel_id}{KEY_SEPARATOR}"
