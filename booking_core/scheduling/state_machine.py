"""
Finite state machine for booking status.

Bookings move forward along pending -> confirmed -> in_progress ->
completed, and may be cancelled from any non-terminal status. Completed
and cancelled are terminal. Every allowed move is listed explicitly in
``TRANSITIONS``; anything else is rejected with the valid targets named.

Usage:
    sm = BookingStateMachine(BookingStatus.PENDING)
    sm.transition(BookingStatus.CONFIRMED)
    assert sm.current_state == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from booking_core.errors import InvalidTransitionError
from booking_core.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

# Status -> booking field stamped the first time the status is entered
ENTRY_TIMESTAMP_FIELDS: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


@dataclass(frozen=True)
class Transition:
    """A single valid status change."""
    from_state: BookingStatus
    to_state: BookingStatus


@dataclass
class StateEntry:
    """Recorded history entry for a status visit."""
    state: BookingStatus
    entered_at: datetime


class BookingStateMachine:
    """
    Validates status changes for one booking.

    Re-entering the current status is accepted as a no-op so repeated
    admin clicks are harmless; the caller keeps the original entry
    timestamp in that case.
    """

    TRANSITIONS: list[Transition] = [
        # --- Forward progress ---
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED),
        Transition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED),

        # --- Cancellation ---
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED),
    ]

    def __init__(self, initial: BookingStatus = BookingStatus.PENDING) -> None:
        self._current_state = BookingStatus(initial)
        self._history: list[StateEntry] = [
            StateEntry(state=self._current_state, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> BookingStatus:
        return self._current_state

    def can_transition(self, target: BookingStatus) -> bool:
        target = BookingStatus(target)
        if target == self._current_state:
            return True
        return any(
            t.from_state == self._current_state and t.to_state == target
            for t in self.TRANSITIONS
        )

    def transition(self, target: BookingStatus) -> BookingStatus:
        """
        Move to ``target``.

        Returns:
            The new status.

        Raises:
            InvalidTransitionError: If the move is not in the transition table.
        """
        target = BookingStatus(target)
        if not self.can_transition(target):
            valid = [s.value for s in self.get_valid_targets()]
            raise InvalidTransitionError(
                f"Cannot change booking status from '{self._current_state.value}' "
                f"to '{target.value}'. Valid targets: {valid}",
                field="status",
            )

        old_state = self._current_state
        if target != old_state:
            self._current_state = target
            self._history.append(
                StateEntry(state=target, entered_at=datetime.now(timezone.utc))
            )
            logger.debug("Booking status: %s -> %s", old_state.value, target.value)
        return self._current_state

    def get_valid_targets(self) -> list[BookingStatus]:
        """Return all statuses reachable in one step from the current one."""
        return [t.to_state for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_state_trace(self) -> list[str]:
        """Return ordered list of statuses visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES


def entry_timestamp_field(status: BookingStatus) -> Optional[str]:
    """Name of the booking field stamped on first entry into ``status``."""
    return ENTRY_TIMESTAMP_FIELDS.get(BookingStatus(status))
