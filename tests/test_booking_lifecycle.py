"""Integration tests: booking creation, status changes, cancellation and history."""

import asyncio

import pytest

from booking_core.auth import AuthContext
from booking_core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from booking_core.schemas.booking_schema import BookingFilters, BookingStatus
from booking_core.storage.store import ACTIVITY_LOG
from booking_core.tools.booking import BookingManager
from booking_core.tools.services import DEFAULT_SERVICES
from tests.conftest import make_booking_data, make_config


async def _actions(store):
    return [e["action"] for e in await store.query(ACTIVITY_LOG)]


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_creates_pending_booking(self, manager, service_id, admin, clock):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        booking = await manager.get_booking(booking_id, admin)
        assert booking.status == BookingStatus.PENDING
        assert booking.preferred_time == "2:00 PM"
        assert booking.created_at == booking.updated_at
        assert booking.confirmed_at is None

    @pytest.mark.asyncio
    async def test_round_trip_wire_shape(self, manager, service_id, store):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        record = await store.get("bookings", booking_id)
        assert record["customerEmail"] == "jane@example.com"
        assert record["customerPhone"] == "7262071007"
        assert record["createdAt"] == record["updatedAt"]
        assert "confirmedAt" not in record

    @pytest.mark.asyncio
    async def test_second_booking_same_slot_conflicts(self, manager, service_id):
        await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(ConflictError):
            await manager.create_booking(
                make_booking_data(service_id, customerEmail="other@example.com")
            )

    @pytest.mark.asyncio
    async def test_conflict_detected_across_time_spellings(self, manager, service_id):
        await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(ConflictError):
            await manager.create_booking(
                make_booking_data(service_id, customerEmail="b@example.com", preferredTime="02:00 pm")
            )

    @pytest.mark.asyncio
    async def test_validation_reports_all_errors(self, manager, service_id):
        with pytest.raises(ValidationError) as exc_info:
            await manager.create_booking(
                make_booking_data(service_id, customerPhone="123", preferredDate="2024-02-30")
            )
        assert "Invalid phone number format" in exc_info.value.errors
        assert "Invalid date format (YYYY-MM-DD)" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_wrong_field_type_is_validation_error(self, manager, service_id):
        with pytest.raises(ValidationError):
            await manager.create_booking(make_booking_data(service_id, customerName=None))

    @pytest.mark.asyncio
    async def test_unknown_service(self, manager, service_id):
        with pytest.raises(NotFoundError):
            await manager.create_booking(make_booking_data("missing-service"))

    @pytest.mark.asyncio
    async def test_inactive_service_rejected(self, manager, catalog, service_id, admin):
        await catalog.toggle_service_status(service_id, admin)
        with pytest.raises(ValidationError, match="not currently available"):
            await manager.create_booking(make_booking_data(service_id))

    @pytest.mark.asyncio
    async def test_concurrent_requests_for_one_slot(self, manager, service_id, admin):
        results = await asyncio.gather(
            manager.create_booking(make_booking_data(service_id)),
            manager.create_booking(make_booking_data(service_id, customerEmail="b@example.com")),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        created = [r for r in results if isinstance(r, str)]
        assert len(conflicts) == 1
        assert len(created) == 1
        bookings = await manager.list_bookings(admin)
        assert [b.id for b in bookings] == created

    @pytest.mark.asyncio
    async def test_message_is_sanitized(self, manager, service_id, admin):
        booking_id = await manager.create_booking(
            make_booking_data(service_id, message="<script>hi</script>")
        )
        booking = await manager.get_booking(booking_id, admin)
        assert "<" not in booking.message

    @pytest.mark.asyncio
    async def test_logs_activity(self, manager, service_id, store):
        await manager.create_booking(make_booking_data(service_id))
        assert "booking_created" in await _actions(store)


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_sixth_attempt_within_hour_fails(self, manager, service_id):
        times = ["7:00 AM", "8:00 AM", "9:00 AM", "10:00 AM", "11:00 AM"]
        for time in times:
            await manager.create_booking(make_booking_data(service_id, preferredTime=time))
        with pytest.raises(RateLimitError):
            await manager.create_booking(make_booking_data(service_id, preferredTime="12:00 PM"))

    @pytest.mark.asyncio
    async def test_limit_counts_email_case_insensitively(self, manager, service_id):
        for i, time in enumerate(["7:00 AM", "8:00 AM", "9:00 AM", "10:00 AM", "11:00 AM"]):
            email = "JANE@example.com" if i % 2 else "jane@example.com"
            await manager.create_booking(
                make_booking_data(service_id, preferredTime=time, customerEmail=email)
            )
        with pytest.raises(RateLimitError):
            await manager.create_booking(make_booking_data(service_id, preferredTime="1:00 PM"))

    @pytest.mark.asyncio
    async def test_window_expires(self, manager, service_id, clock):
        for time in ["7:00 AM", "8:00 AM", "9:00 AM", "10:00 AM", "11:00 AM"]:
            await manager.create_booking(make_booking_data(service_id, preferredTime=time))
        clock.advance(hours=1, seconds=1)
        await manager.create_booking(make_booking_data(service_id, preferredTime="12:00 PM"))

    @pytest.mark.asyncio
    async def test_per_origin_limit(self, manager, service_id):
        for i, time in enumerate(["7:00 AM", "8:00 AM", "9:00 AM", "10:00 AM", "11:00 AM"]):
            await manager.create_booking(
                make_booking_data(service_id, preferredTime=time, customerEmail=f"c{i}@example.com"),
                client_ip="203.0.113.9",
            )
        with pytest.raises(RateLimitError):
            await manager.create_booking(
                make_booking_data(service_id, preferredTime="1:00 PM", customerEmail="c9@example.com"),
                client_ip="203.0.113.9",
            )


class TestAdvanceWindow:
    @pytest.mark.asyncio
    async def test_past_date_rejected_when_window_configured(self, store, clock, service_id):
        manager = BookingManager(store, config=make_config(booking_advance_days=30), clock=clock)
        with pytest.raises(ValidationError, match="in advance"):
            await manager.create_booking(make_booking_data(service_id, preferredDate="2025-03-09"))

    @pytest.mark.asyncio
    async def test_too_far_ahead_rejected(self, store, clock, service_id):
        manager = BookingManager(store, config=make_config(booking_advance_days=30), clock=clock)
        with pytest.raises(ValidationError):
            await manager.create_booking(make_booking_data(service_id, preferredDate="2025-04-10"))

    @pytest.mark.asyncio
    async def test_inside_window_accepted(self, store, clock, service_id):
        manager = BookingManager(store, config=make_config(booking_advance_days=30), clock=clock)
        assert await manager.create_booking(
            make_booking_data(service_id, preferredDate="2025-04-09")
        )


class TestStatusUpdates:
    @pytest.mark.asyncio
    async def test_full_lifecycle_stamps_timestamps(self, manager, service_id, admin, clock):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        clock.advance(minutes=5)
        confirmed = await manager.confirm_booking(booking_id, admin)
        assert confirmed.status == BookingStatus.CONFIRMED
        assert confirmed.confirmed_at == confirmed.updated_at
        clock.advance(minutes=5)
        started = await manager.start_booking(booking_id, admin)
        assert started.status == BookingStatus.IN_PROGRESS
        clock.advance(hours=3)
        done = await manager.complete_booking(booking_id, admin, notes="Ceramic coat applied")
        assert done.status == BookingStatus.COMPLETED
        assert done.completed_at > done.confirmed_at
        assert done.notes == "Ceramic coat applied"

    @pytest.mark.asyncio
    async def test_confirmed_at_set_only_once(self, manager, service_id, admin, clock):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        first = await manager.confirm_booking(booking_id, admin)
        clock.advance(minutes=10)
        again = await manager.update_booking_status(booking_id, BookingStatus.CONFIRMED, admin)
        assert again.confirmed_at == first.confirmed_at
        assert again.updated_at > first.updated_at

    @pytest.mark.asyncio
    async def test_invalid_transition(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(InvalidTransitionError):
            await manager.complete_booking(booking_id, admin)

    @pytest.mark.asyncio
    async def test_requires_admin(self, manager, service_id, guest, staff):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        for auth in (guest, staff, None):
            with pytest.raises(AuthorizationError):
                await manager.confirm_booking(booking_id, auth)

    @pytest.mark.asyncio
    async def test_unknown_booking(self, manager, admin):
        with pytest.raises(NotFoundError):
            await manager.confirm_booking("missing", admin)

    @pytest.mark.asyncio
    async def test_logs_status_update(self, manager, service_id, admin, store):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        await manager.confirm_booking(booking_id, admin)
        assert "booking_status_updated" in await _actions(store)


class TestUpdateBooking:
    @pytest.mark.asyncio
    async def test_move_to_taken_slot_conflicts(self, manager, service_id, admin):
        await manager.create_booking(make_booking_data(service_id))
        other = await manager.create_booking(
            make_booking_data(service_id, customerEmail="b@example.com", preferredTime="3:00 PM")
        )
        with pytest.raises(ConflictError):
            await manager.update_booking(other, {"preferredTime": "2:00 PM"}, admin)

    @pytest.mark.asyncio
    async def test_update_in_place_does_not_conflict_with_itself(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        updated = await manager.update_booking(
            booking_id, {"preferredTime": "2:00 PM", "vehicleType": "suv"}, admin
        )
        assert updated.vehicle_type.value == "suv"

    @pytest.mark.asyncio
    async def test_confirm_rechecks_slot(self, manager, service_id, admin, store):
        first = await manager.create_booking(make_booking_data(service_id))
        second = await manager.create_booking(
            make_booking_data(service_id, customerEmail="b@example.com", preferredTime="3:00 PM")
        )
        # Simulate a slot collision written outside the manager
        await store.patch("bookings", second, {"preferredTime": "2:00 PM"})
        with pytest.raises(ConflictError):
            await manager.confirm_booking(second, admin)
        await manager.cancel_booking(second, auth=admin)
        assert (await manager.confirm_booking(first, admin)).status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_rejects_invalid_fields(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(ValidationError):
            await manager.update_booking(booking_id, {"preferredDate": "2025-13-01"}, admin)

    @pytest.mark.asyncio
    async def test_move_to_inactive_service_rejected(self, manager, catalog, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        other = await catalog.create_service(DEFAULT_SERVICES[1], admin)
        await catalog.toggle_service_status(other, admin)
        with pytest.raises(ValidationError, match="not currently available"):
            await manager.update_booking(booking_id, {"serviceId": other}, admin)
        assert (await manager.get_booking(booking_id, admin)).service_id == service_id

    @pytest.mark.asyncio
    async def test_notes_update(self, manager, service_id, admin, store):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        updated = await manager.update_booking_notes(booking_id, "Gate code 1234", admin)
        assert updated.notes == "Gate code 1234"
        assert "booking_notes_updated" in await _actions(store)


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_admin_cancel_frees_slot(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        cancelled = await manager.cancel_booking(booking_id, "customer request", admin)
        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert "customer request" in cancelled.notes
        assert await manager.create_booking(
            make_booking_data(service_id, customerEmail="next@example.com")
        )

    @pytest.mark.asyncio
    async def test_reason_appended_to_existing_notes(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        await manager.update_booking_notes(booking_id, "Prefers morning", admin)
        cancelled = await manager.cancel_booking(booking_id, "weather", admin)
        assert cancelled.notes == "Prefers morning\nCancellation reason: weather"

    @pytest.mark.asyncio
    async def test_owner_can_cancel(self, manager, service_id, guest):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        cancelled = await manager.cancel_booking(booking_id, auth=guest)
        assert cancelled.status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_stranger_cannot_cancel(self, manager, service_id):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(AuthorizationError):
            await manager.cancel_booking(booking_id, auth=AuthContext.guest("x@example.com"))

    @pytest.mark.asyncio
    async def test_cannot_cancel_twice(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        await manager.cancel_booking(booking_id, auth=admin)
        with pytest.raises(InvalidTransitionError, match="already cancelled"):
            await manager.cancel_booking(booking_id, auth=admin)

    @pytest.mark.asyncio
    async def test_cannot_cancel_completed(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        await manager.confirm_booking(booking_id, admin)
        await manager.start_booking(booking_id, admin)
        await manager.complete_booking(booking_id, admin)
        with pytest.raises(InvalidTransitionError):
            await manager.cancel_booking(booking_id, auth=admin)

    @pytest.mark.asyncio
    async def test_logs_cancellation(self, manager, service_id, admin, store):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        await manager.cancel_booking(booking_id, auth=admin)
        assert "booking_cancelled" in await _actions(store)


class TestReschedule:
    @pytest.mark.asyncio
    async def test_owner_reschedules(self, manager, service_id):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        moved = await manager.reschedule_booking(
            booking_id, "2025-03-12", "10:00 am", auth=AuthContext.guest(email="Jane@Example.com")
        )
        assert moved.preferred_date == "2025-03-12"
        assert moved.preferred_time == "10:00 AM"

    @pytest.mark.asyncio
    async def test_admin_reschedules_any_booking(self, manager, service_id, admin):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        moved = await manager.reschedule_booking(booking_id, "2025-03-12", "9:00 AM", auth=admin)
        assert moved.preferred_time == "9:00 AM"

    @pytest.mark.asyncio
    async def test_other_customer_rejected(self, manager, service_id):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(AuthorizationError):
            await manager.reschedule_booking(
                booking_id, "2025-03-12", "10:00 AM", auth=AuthContext.guest(email="x@example.com")
            )

    @pytest.mark.asyncio
    async def test_anonymous_and_staff_rejected(self, manager, service_id, staff):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        for auth in (None, staff):
            with pytest.raises(AuthorizationError):
                await manager.reschedule_booking(booking_id, "2025-03-12", "10:00 AM", auth=auth)

    @pytest.mark.asyncio
    async def test_cancelled_cannot_be_rescheduled(self, manager, service_id, admin, guest):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        await manager.cancel_booking(booking_id, auth=admin)
        with pytest.raises(InvalidTransitionError):
            await manager.reschedule_booking(booking_id, "2025-03-12", "10:00 AM", auth=guest)

    @pytest.mark.asyncio
    async def test_reschedule_into_taken_slot(self, manager, service_id, guest):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        await manager.create_booking(
            make_booking_data(service_id, customerEmail="b@example.com", preferredTime="4:00 PM")
        )
        with pytest.raises(ConflictError):
            await manager.reschedule_booking(booking_id, "2025-03-10", "4:00 PM", auth=guest)


class TestQueries:
    @pytest.mark.asyncio
    async def test_customer_history_newest_first(self, manager, service_id, guest, clock):
        first = await manager.create_booking(make_booking_data(service_id))
        clock.advance(minutes=1)
        second = await manager.create_booking(make_booking_data(service_id, preferredTime="3:00 PM"))
        history = await manager.get_customer_booking_history("jane@example.com", guest)
        assert [b.id for b in history] == [second, first]

    @pytest.mark.asyncio
    async def test_history_of_someone_else_denied(self, manager, guest):
        with pytest.raises(AuthorizationError):
            await manager.get_customer_booking_history("other@example.com", guest)

    @pytest.mark.asyncio
    async def test_guest_cannot_read_other_booking(self, manager, service_id):
        booking_id = await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(AuthorizationError):
            await manager.get_booking(booking_id, AuthContext.guest("x@example.com"))

    @pytest.mark.asyncio
    async def test_list_filters(self, manager, service_id, admin, staff):
        a = await manager.create_booking(make_booking_data(service_id))
        await manager.create_booking(
            make_booking_data(service_id, preferredDate="2025-03-20", customerEmail="b@example.com")
        )
        await manager.confirm_booking(a, admin)
        confirmed = await manager.list_bookings(staff, BookingFilters(status="confirmed"))
        assert [b.id for b in confirmed] == [a]
        ranged = await manager.list_bookings(
            admin, BookingFilters(start_date="2025-03-15", end_date="2025-03-31")
        )
        assert [b.preferred_date for b in ranged] == ["2025-03-20"]

    @pytest.mark.asyncio
    async def test_list_requires_permission(self, manager, guest):
        with pytest.raises(AuthorizationError):
            await manager.list_bookings(guest)

    @pytest.mark.asyncio
    async def test_todays_bookings_ordered_by_time(self, manager, service_id, staff):
        await manager.create_booking(make_booking_data(service_id, preferredTime="3:00 PM"))
        await manager.create_booking(make_booking_data(service_id, preferredTime="9:00 AM"))
        await manager.create_booking(
            make_booking_data(service_id, preferredTime="9:00 AM", preferredDate="2025-03-11")
        )
        today = await manager.get_todays_bookings(staff)
        assert [b.preferred_time for b in today] == ["9:00 AM", "3:00 PM"]

    @pytest.mark.asyncio
    async def test_date_range_view(self, manager, service_id, admin):
        await manager.create_booking(make_booking_data(service_id, preferredDate="2025-03-12"))
        await manager.create_booking(make_booking_data(service_id, preferredDate="2025-03-11"))
        bookings = await manager.get_bookings_by_date_range("2025-03-11", "2025-03-12", admin)
        assert [b.preferred_date for b in bookings] == ["2025-03-11", "2025-03-12"]
        with pytest.raises(ValidationError):
            await manager.get_bookings_by_date_range("2025-03-12", "2025-03-11", admin)

    @pytest.mark.asyncio
    async def test_available_time_slots(self, manager, service_id):
        await manager.create_booking(make_booking_data(service_id))
        response = await manager.get_available_time_slots("2025-03-10", service_id)
        assert "2:00 PM" not in response.available_slots
        assert response.total_slots == 15
        assert response.booked_slots == 1

    @pytest.mark.asyncio
    async def test_available_time_slots_bad_date(self, manager):
        with pytest.raises(ValidationError):
            await manager.get_available_time_slots("March 10")
