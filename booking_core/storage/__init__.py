from booking_core.storage.activity_log import ActivityLog
from booking_core.storage.filters import And, Eq, Filter, Range, all_of
from booking_core.storage.rate_limit import (
    InMemoryRateLimitBackend,
    RateLimitBackend,
    RateLimiter,
)
from booking_core.storage.store import (
    ACTIVITY_LOG,
    BOOKINGS,
    REVIEWS,
    SERVICES,
    DocumentStore,
    InMemoryStore,
)

__all__ = [
    "ActivityLog",
    "And",
    "Eq",
    "Filter",
    "Range",
    "all_of",
    "InMemoryRateLimitBackend",
    "RateLimitBackend",
    "RateLimiter",
    "ACTIVITY_LOG",
    "BOOKINGS",
    "REVIEWS",
    "SERVICES",
    "DocumentStore",
    "InMemoryStore",
]
