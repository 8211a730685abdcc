"""
Double-booking detection.

A slot is taken when any booking at the exact (date, time) pair is still
active, i.e. not cancelled and not completed. Pending bookings hold their
slot too. The check runs at commit time, inside the caller's store
transaction, rather than continuously.
"""

import logging
from typing import Optional

from booking_core.errors import ConflictError
from booking_core.schemas.booking_schema import INACTIVE_STATUSES, BookingStatus
from booking_core.storage.filters import And, Eq
from booking_core.storage.store import BOOKINGS, DocumentStore
from booking_core.utils import normalize_time

logger = logging.getLogger(__name__)

INACTIVE_STATUS_VALUES = frozenset(s.value for s in INACTIVE_STATUSES)


async def find_conflicts(
    store: DocumentStore,
    date: str,
    time: str,
    exclude_booking_id: Optional[str] = None,
) -> list[dict]:
    """Return active bookings occupying (date, time), minus the excluded one."""
    where = And((Eq("preferredDate", date), Eq("preferredTime", normalize_time(time))))
    candidates = await store.query(BOOKINGS, where=where)
    return [
        b for b in candidates
        if b["id"] != exclude_booking_id
        and b.get("status", BookingStatus.PENDING.value) not in INACTIVE_STATUS_VALUES
    ]


async def has_conflict(
    store: DocumentStore,
    date: str,
    time: str,
    exclude_booking_id: Optional[str] = None,
) -> bool:
    return bool(await find_conflicts(store, date, time, exclude_booking_id))


async def ensure_no_conflict(
    store: DocumentStore,
    date: str,
    time: str,
    exclude_booking_id: Optional[str] = None,
) -> None:
    """Raise ``ConflictError`` if (date, time) is held by another active booking."""
    conflicts = await find_conflicts(store, date, time, exclude_booking_id)
    if conflicts:
        logger.info(
            "Slot %s %s already held by booking %s", date, time, conflicts[0]["id"]
        )
        raise ConflictError()
