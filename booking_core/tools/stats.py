"""Dashboard statistics derived from the booking collection on every call."""

import logging
from collections import Counter
from datetime import date, timedelta
from typing import Optional

from booking_core.config import settings
from booking_core.schemas.booking_schema import Booking, BookingStats, BookingStatus
from booking_core.storage.store import BOOKINGS, DocumentStore
from booking_core.utils import local_today

logger = logging.getLogger(__name__)

WEEK_DAYS = 7
MONTH_DAYS = 30


async def get_booking_stats(
    store: DocumentStore, today: Optional[date] = None, fetch_cap: int = 0
) -> BookingStats:
    """
    Count bookings by status and by preferred date.

    ``today`` defaults to the business-local date and is an exact
    preferredDate match; ``thisWeek``/``thisMonth`` count bookings whose
    preferredDate is on or after 7/30 days ago. At most ``fetch_cap``
    bookings are read.
    """
    today = today or local_today(tz_name=settings.business.timezone)
    cap = fetch_cap or settings.stats.fetch_cap
    bookings = await store.query(BOOKINGS, limit=cap)
    if len(bookings) == cap:
        logger.warning("Booking stats truncated at fetch cap %d", cap)

    today_str = today.isoformat()
    week_start = (today - timedelta(days=WEEK_DAYS)).isoformat()
    month_start = (today - timedelta(days=MONTH_DAYS)).isoformat()

    by_status = Counter(b.get("status") for b in bookings)
    return BookingStats(
        total=len(bookings),
        pending=by_status[BookingStatus.PENDING.value],
        confirmed=by_status[BookingStatus.CONFIRMED.value],
        in_progress=by_status[BookingStatus.IN_PROGRESS.value],
        completed=by_status[BookingStatus.COMPLETED.value],
        cancelled=by_status[BookingStatus.CANCELLED.value],
        today=sum(1 for b in bookings if b.get("preferredDate") == today_str),
        this_week=sum(1 for b in bookings if b.get("preferredDate", "") >= week_start),
        this_month=sum(1 for b in bookings if b.get("preferredDate", "") >= month_start),
    )


async def get_recent_bookings(store: DocumentStore, limit: int = 0) -> list[Booking]:
    """Most recently created bookings, newest first."""
    docs = await store.query(
        BOOKINGS,
        order_by="createdAt",
        descending=True,
        limit=limit or settings.stats.recent_limit,
    )
    return [Booking.model_validate(d) for d in docs]
