"""
Append-only activity log.

Audit writes are best-effort: a failed write is logged locally and
discarded so it never aborts the booking operation that triggered it.
"""

import logging
from typing import Any, Optional

from booking_core.schemas.activity_schema import ActivityLogEntry
from booking_core.storage.store import ACTIVITY_LOG, DocumentStore
from booking_core.utils import Clock, to_epoch_ms, utc_now

logger = logging.getLogger(__name__)


class ActivityLog:
    """Writes ``ActivityLogEntry`` records into the store's activity collection."""

    def __init__(self, store: DocumentStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def record(
        self,
        action: str,
        *,
        user_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        """Append one entry. Returns the entry id, or None if the write failed."""
        entry = ActivityLogEntry(
            action=action,
            user_id=user_id,
            booking_id=booking_id,
            customer_email=customer_email,
            timestamp=to_epoch_ms(self._clock()),
            metadata=metadata or {},
        )
        try:
            return await self._store.insert(
                ACTIVITY_LOG, entry.model_dump(by_alias=True, exclude_none=True)
            )
        except Exception:
            logger.warning("Failed to log activity '%s'", action, exc_info=True)
            return None
