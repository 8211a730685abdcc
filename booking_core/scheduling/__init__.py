from booking_core.scheduling.conflicts import ensure_no_conflict, find_conflicts, has_conflict
from booking_core.scheduling.slots import (
    available_slots,
    build_time_grid,
    get_available_time_slots,
)
from booking_core.scheduling.state_machine import (
    BookingStateMachine,
    Transition,
    entry_timestamp_field,
)

__all__ = [
    "BookingStateMachine",
    "Transition",
    "entry_timestamp_field",
    "ensure_no_conflict",
    "find_conflicts",
    "has_conflict",
    "available_slots",
    "build_time_grid",
    "get_available_time_slots",
]
