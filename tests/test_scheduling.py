"""Tests for conflict detection and the slot calculator."""

import pytest

from booking_core.errors import ConflictError
from booking_core.scheduling import (
    available_slots,
    build_time_grid,
    ensure_no_conflict,
    find_conflicts,
    get_available_time_slots,
    has_conflict,
)
from booking_core.storage.store import BOOKINGS, InMemoryStore

DATE = "2025-03-10"


async def _add(store, time, status="pending", date=DATE):
    return await store.insert(
        BOOKINGS, {"preferredDate": date, "preferredTime": time, "status": status}
    )


class TestTimeGrid:
    def test_default_business_hours(self):
        grid = build_time_grid(7, 22)
        assert len(grid) == 15
        assert grid[0] == "7:00 AM"
        assert grid[5] == "12:00 PM"
        assert grid[-1] == "9:00 PM"

    def test_invalid_hours(self):
        with pytest.raises(ValueError):
            build_time_grid(22, 7)


class TestConflicts:
    @pytest.mark.asyncio
    async def test_pending_booking_conflicts(self):
        store = InMemoryStore()
        await _add(store, "2:00 PM")
        assert await has_conflict(store, DATE, "2:00 PM")

    @pytest.mark.asyncio
    async def test_time_is_normalized_before_lookup(self):
        store = InMemoryStore()
        await _add(store, "2:00 PM")
        assert await has_conflict(store, DATE, "02:00 pm")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["cancelled", "completed"])
    async def test_inactive_bookings_do_not_conflict(self, status):
        store = InMemoryStore()
        await _add(store, "2:00 PM", status=status)
        assert not await has_conflict(store, DATE, "2:00 PM")

    @pytest.mark.asyncio
    async def test_excluded_booking_ignored(self):
        store = InMemoryStore()
        booking_id = await _add(store, "2:00 PM", status="confirmed")
        assert not await has_conflict(store, DATE, "2:00 PM", exclude_booking_id=booking_id)

    @pytest.mark.asyncio
    async def test_other_date_or_time_does_not_conflict(self):
        store = InMemoryStore()
        await _add(store, "2:00 PM")
        assert await find_conflicts(store, DATE, "3:00 PM") == []
        assert await find_conflicts(store, "2025-03-11", "2:00 PM") == []

    @pytest.mark.asyncio
    async def test_ensure_raises(self):
        store = InMemoryStore()
        await _add(store, "2:00 PM", status="in_progress")
        with pytest.raises(ConflictError):
            await ensure_no_conflict(store, DATE, "2:00 PM")


class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_booked_slot_removed_from_grid(self):
        store = InMemoryStore()
        await _add(store, "2:00 PM")
        slots = await available_slots(store, DATE, start_hour=7, end_hour=22)
        expected = [s for s in build_time_grid(7, 22) if s != "2:00 PM"]
        assert slots == expected

    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_slot(self):
        store = InMemoryStore()
        await _add(store, "2:00 PM", status="cancelled")
        slots = await available_slots(store, DATE, start_hour=7, end_hour=22)
        assert "2:00 PM" in slots

    @pytest.mark.asyncio
    async def test_response_counts(self):
        store = InMemoryStore()
        await _add(store, "9:00 AM")
        await _add(store, "10:00 AM", status="completed")
        await _add(store, "11:00 AM", date="2025-03-11")
        response = await get_available_time_slots(store, DATE, "svc-1", 7, 22)
        assert response.total_slots == 15
        assert response.booked_slots == 2
        assert len(response.available_slots) == 13
        assert response.to_record()["serviceId"] == "svc-1"

    @pytest.mark.asyncio
    async def test_slots_are_chronological(self):
        store = InMemoryStore()
        slots = await available_slots(store, DATE, start_hour=7, end_hour=22)
        assert slots.index("11:00 AM") < slots.index("12:00 PM") < slots.index("1:00 PM")
