"""
Open time slots for a date.

Business hours form a fixed hourly grid. A slot is open unless a
non-cancelled booking on that date sits at the same time. Every service
occupies exactly one grid slot regardless of its advertised duration.
"""

import logging
from typing import Optional

from booking_core.config import settings
from booking_core.schemas.booking_schema import AvailabilityResponse, BookingStatus
from booking_core.storage.filters import Eq
from booking_core.storage.store import BOOKINGS, DocumentStore
from booking_core.utils import format_hour, time_sort_key

logger = logging.getLogger(__name__)


def build_time_grid(start_hour: Optional[int] = None, end_hour: Optional[int] = None) -> list[str]:
    """Hourly slot labels for ``[start_hour, end_hour)``, e.g. 7 -> "7:00 AM"."""
    start = settings.business.hours_start if start_hour is None else start_hour
    end = settings.business.hours_end if end_hour is None else end_hour
    if not 0 <= start < end <= 24:
        raise ValueError(f"Invalid business hours: {start}-{end}")
    return [format_hour(hour) for hour in range(start, end)]


async def booked_times(store: DocumentStore, date: str) -> set[str]:
    """Times on ``date`` held by any booking that is not cancelled."""
    bookings = await store.query(BOOKINGS, where=Eq("preferredDate", date))
    return {
        b["preferredTime"]
        for b in bookings
        if b.get("status") != BookingStatus.CANCELLED.value
    }


async def available_slots(
    store: DocumentStore,
    date: str,
    service_id: Optional[str] = None,
    start_hour: Optional[int] = None,
    end_hour: Optional[int] = None,
) -> list[str]:
    """Grid times for ``date`` not taken by a non-cancelled booking, in order.

    ``service_id`` is accepted so callers can pass it through; it does not
    change the result.
    """
    response = await get_available_time_slots(store, date, service_id, start_hour, end_hour)
    return response.available_slots


async def get_available_time_slots(
    store: DocumentStore,
    date: str,
    service_id: Optional[str] = None,
    start_hour: Optional[int] = None,
    end_hour: Optional[int] = None,
) -> AvailabilityResponse:
    grid = build_time_grid(start_hour, end_hour)
    taken = await booked_times(store, date)
    open_slots = sorted((t for t in grid if t not in taken), key=time_sort_key)
    logger.debug("%d of %d slots open on %s", len(open_slots), len(grid), date)
    return AvailabilityResponse(
        date=date,
        service_id=service_id,
        available_slots=open_slots,
        total_slots=len(grid),
        booked_slots=len(grid) - len(open_slots),
    )
