"""
Booking lifecycle manager.

Guests create bookings; admins confirm, start, complete and annotate
them; the owning customer or an admin can reschedule or cancel. Every
store-touching check-then-write runs inside one store transaction so two
requests cannot both claim the same slot.

In production the store is a remote transactional document database and
the rate limiter uses a shared counter backend; tests and the console
driver use the in-memory implementations.
"""

from datetime import date, timedelta
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from booking_core.auth import (
    AuthContext,
    Permission,
    require_admin,
    require_owner_or_permission,
    require_permission,
)
from booking_core.config import AppConfig, settings
from booking_core.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from booking_core.logging_context import get_request_logger, traced_request
from booking_core.scheduling.conflicts import ensure_no_conflict
from booking_core.scheduling.slots import get_available_time_slots as _available_time_slots
from booking_core.scheduling.state_machine import BookingStateMachine, entry_timestamp_field
from booking_core.schemas.booking_schema import (
    INACTIVE_STATUSES,
    AvailabilityResponse,
    Booking,
    BookingFilters,
    BookingRequest,
    BookingStats,
    BookingStatus,
    BookingUpdate,
)
from booking_core.storage.activity_log import ActivityLog
from booking_core.storage.filters import Eq, Range, all_of
from booking_core.storage.rate_limit import InMemoryRateLimitBackend, RateLimiter
from booking_core.storage.store import BOOKINGS, SERVICES, DocumentStore
from booking_core.tools import stats
from booking_core.utils import (
    Clock,
    local_today,
    normalize_phone,
    normalize_time,
    time_sort_key,
    to_epoch_ms,
    utc_now,
)
from booking_core.validation.validators import (
    MAX_MESSAGE_LENGTH,
    sanitize_input,
    validate_booking_data,
    validate_date,
    validate_time,
    validate_vehicle_type,
)

logger = get_request_logger(__name__)

BOOKING_RATE_LIMIT_MESSAGE = "Too many booking requests. Please try again later."
CANCELLATION_PREFIX = "Cancellation reason: "


def _pydantic_errors(exc: PydanticValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]


def _camel(field_name: str) -> str:
    """Storage key for a ``Booking`` attribute, e.g. confirmed_at -> confirmedAt."""
    return Booking.model_fields[field_name].alias or field_name


def _append_note(existing: Optional[str], addition: str) -> str:
    return f"{existing}\n{addition}" if existing else addition


def _by_slot(bookings: list[Booking]) -> list[Booking]:
    return sorted(bookings, key=lambda b: (b.preferred_date, time_sort_key(b.preferred_time)))


class BookingManager:
    """
    Entry point for every booking operation.

    Args:
        store: Backing document store.
        config: Application configuration; defaults to the loaded settings.
        clock: Source of "now"; injectable for tests.
        rate_limiter: Admission control for guest submissions.
        activity_log: Best-effort audit trail.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: AppConfig = settings,
        clock: Clock = utc_now,
        rate_limiter: Optional[RateLimiter] = None,
        activity_log: Optional[ActivityLog] = None,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock
        self._rate_limiter = rate_limiter or RateLimiter(InMemoryRateLimitBackend(clock))
        self._activity = activity_log or ActivityLog(store, clock)

    def _now_ms(self) -> int:
        return to_epoch_ms(self._clock())

    def _today(self) -> date:
        return local_today(self._clock, self._config.business.timezone)

    async def _require_booking(self, booking_id: str) -> Booking:
        doc = await self._store.get(BOOKINGS, booking_id)
        if doc is None:
            raise NotFoundError("Booking not found")
        return Booking.model_validate(doc)

    async def _require_bookable_service(self, service_id: str) -> dict[str, Any]:
        service = await self._store.get(SERVICES, service_id)
        if service is None:
            raise NotFoundError("Selected service not found")
        if not service.get("isActive", True):
            raise ValidationError(
                "Selected service is not currently available", field="serviceId"
            )
        return service

    async def _query(
        self, where=None, order_by: Optional[str] = "createdAt", limit: Optional[int] = None
    ) -> list[Booking]:
        docs = await self._store.query(
            BOOKINGS, where=where, order_by=order_by, descending=True, limit=limit
        )
        return [Booking.model_validate(d) for d in docs]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _check_rate_limits(self, email: str, client_ip: Optional[str]) -> None:
        limits = self._config.rate_limits
        await self._rate_limiter.check(
            f"booking:{email.strip().lower()}",
            limits.booking_limit,
            limits.booking_window_sec,
            BOOKING_RATE_LIMIT_MESSAGE,
        )
        if client_ip:
            await self._rate_limiter.check(
                f"origin:{client_ip}",
                limits.origin_limit,
                limits.origin_window_sec,
                BOOKING_RATE_LIMIT_MESSAGE,
            )

    def _check_advance_window(self, preferred_date: str) -> None:
        days = self._config.business.booking_advance_days
        if days <= 0:
            return
        today = self._today()
        requested = date.fromisoformat(preferred_date)
        if not today <= requested <= today + timedelta(days=days):
            raise ValidationError(
                f"Bookings can be made from today up to {days} days in advance",
                field="preferredDate",
            )

    @traced_request
    async def create_booking(
        self,
        data: Union[BookingRequest, dict[str, Any]],
        auth: Optional[AuthContext] = None,
        client_ip: Optional[str] = None,
    ) -> str:
        """
        Validate a guest request and persist it as a pending booking.

        Returns:
            The new booking id.

        Raises:
            RateLimitError: Too many attempts for this email or client IP.
            ValidationError: Any field failed validation (all errors listed).
            NotFoundError: The service does not exist.
            ConflictError: An active booking already holds the slot.
        """
        try:
            request = data if isinstance(data, BookingRequest) else BookingRequest.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(errors=_pydantic_errors(exc)) from None

        await self._check_rate_limits(sanitize_input(request.customer_email), client_ip)

        request = BookingRequest(
            customer_name=sanitize_input(request.customer_name),
            customer_email=sanitize_input(request.customer_email).lower(),
            customer_phone=sanitize_input(request.customer_phone),
            service_id=sanitize_input(request.service_id),
            preferred_date=sanitize_input(request.preferred_date),
            preferred_time=sanitize_input(request.preferred_time),
            vehicle_type=sanitize_input(request.vehicle_type).lower(),
            message=sanitize_input(request.message) or None,
        )
        result = validate_booking_data(request)
        if not result.is_valid:
            logger.info("Booking request rejected: %s", "; ".join(result.errors))
            raise ValidationError(errors=result.errors)
        self._check_advance_window(request.preferred_date)

        preferred_time = normalize_time(request.preferred_time)
        async with self._store.transaction():
            service = await self._require_bookable_service(request.service_id)
            await ensure_no_conflict(self._store, request.preferred_date, preferred_time)

            now = self._now_ms()
            record = request.to_record()
            record.update(
                customerPhone=normalize_phone(request.customer_phone),
                preferredTime=preferred_time,
                status=BookingStatus.PENDING.value,
                createdAt=now,
                updatedAt=now,
            )
            booking_id = await self._store.insert(BOOKINGS, record)

        logger.info(
            "Booking created: %s for %s on %s at %s",
            booking_id, request.customer_email, request.preferred_date, preferred_time,
        )
        await self._activity.record(
            "booking_created",
            user_id=auth.user_id if auth else None,
            booking_id=booking_id,
            customer_email=request.customer_email,
            metadata={"serviceId": request.service_id, "serviceName": service.get("name")},
        )
        return booking_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: str, auth: Optional[AuthContext]) -> Booking:
        booking = await self._require_booking(booking_id)
        require_owner_or_permission(
            auth, booking.customer_email, Permission.BOOKINGS_READ, "view this booking"
        )
        return booking

    async def list_bookings(
        self, auth: Optional[AuthContext], filters: Optional[BookingFilters] = None
    ) -> list[Booking]:
        """Admin listing, newest first."""
        require_permission(auth, Permission.BOOKINGS_READ, "list bookings")
        filters = filters or BookingFilters()
        date_range = None
        if filters.start_date or filters.end_date:
            date_range = Range("preferredDate", gte=filters.start_date, lte=filters.end_date)
        where = all_of(
            Eq("status", BookingStatus(filters.status).value) if filters.status else None,
            Eq("preferredDate", filters.date) if filters.date else None,
            date_range,
            Eq("serviceId", filters.service_id) if filters.service_id else None,
            Eq("customerEmail", filters.customer_email.strip().lower())
            if filters.customer_email else None,
        )
        return await self._query(where, limit=filters.limit)

    async def get_bookings_by_date_range(
        self, start_date: str, end_date: str, auth: Optional[AuthContext]
    ) -> list[Booking]:
        """Calendar view ordered by date then time."""
        require_permission(auth, Permission.BOOKINGS_READ, "view the booking calendar")
        if not validate_date(start_date) or not validate_date(end_date):
            raise ValidationError("Invalid date format (YYYY-MM-DD)")
        if start_date > end_date:
            raise ValidationError("Start date must not be after end date")
        bookings = await self._query(
            Range("preferredDate", gte=start_date, lte=end_date), order_by=None
        )
        return _by_slot(bookings)

    async def get_todays_bookings(self, auth: Optional[AuthContext]) -> list[Booking]:
        require_permission(auth, Permission.BOOKINGS_READ, "view today's bookings")
        bookings = await self._query(Eq("preferredDate", self._today().isoformat()), order_by=None)
        return _by_slot(bookings)

    async def get_customer_booking_history(
        self, email: str, auth: Optional[AuthContext]
    ) -> list[Booking]:
        """All bookings for one customer email, newest first."""
        require_owner_or_permission(
            auth, email, Permission.BOOKINGS_READ, "view this booking history"
        )
        return await self._query(Eq("customerEmail", email.strip().lower()))

    async def get_available_time_slots(
        self, preferred_date: str, service_id: Optional[str] = None
    ) -> AvailabilityResponse:
        if not validate_date(preferred_date):
            raise ValidationError("Invalid date format (YYYY-MM-DD)", field="date")
        business = self._config.business
        return await _available_time_slots(
            self._store, preferred_date, service_id, business.hours_start, business.hours_end
        )

    async def get_booking_stats(self, auth: Optional[AuthContext]) -> BookingStats:
        require_admin(auth, "view booking statistics")
        return await stats.get_booking_stats(
            self._store, self._today(), self._config.stats.fetch_cap
        )

    async def get_recent_bookings(
        self, auth: Optional[AuthContext], limit: Optional[int] = None
    ) -> list[Booking]:
        require_permission(auth, Permission.BOOKINGS_READ, "view recent bookings")
        return await stats.get_recent_bookings(
            self._store, limit or self._config.stats.recent_limit
        )

    # ------------------------------------------------------------------
    # Admin updates
    # ------------------------------------------------------------------

    def _validate_update(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Sanitize and check the fields present in a partial update."""
        errors = []
        cleaned = dict(fields)
        if "preferred_date" in cleaned:
            cleaned["preferred_date"] = sanitize_input(cleaned["preferred_date"])
            if not validate_date(cleaned["preferred_date"]):
                errors.append("Invalid date format (YYYY-MM-DD)")
        if "preferred_time" in cleaned:
            if not validate_time(sanitize_input(cleaned["preferred_time"])):
                errors.append("Invalid time format (e.g., 2:30 PM)")
            cleaned["preferred_time"] = normalize_time(sanitize_input(cleaned["preferred_time"]))
        if "vehicle_type" in cleaned:
            cleaned["vehicle_type"] = sanitize_input(cleaned["vehicle_type"]).lower()
            if not validate_vehicle_type(cleaned["vehicle_type"]):
                errors.append("Invalid vehicle type")
        if "message" in cleaned:
            cleaned["message"] = sanitize_input(cleaned["message"])
            if len(cleaned["message"]) > MAX_MESSAGE_LENGTH:
                errors.append("Message cannot exceed 1000 characters")
        if "notes" in cleaned:
            cleaned["notes"] = sanitize_input(cleaned["notes"])
        if errors:
            raise ValidationError(errors=errors)
        return cleaned

    async def _apply_update(
        self, booking: Booking, fields: dict[str, Any]
    ) -> list[str]:
        """
        Write ``fields`` (snake_case) onto ``booking``. Must run inside a
        store transaction. Returns the storage keys that changed.
        """
        now = self._now_ms()
        changes: dict[str, Any] = {}

        target = fields.get("status")
        if target is not None:
            target = BookingStatus(target)
            BookingStateMachine(booking.status).transition(target)
            if target != booking.status:
                changes["status"] = target.value
                stamp_field = entry_timestamp_field(target)
                if stamp_field and getattr(booking, stamp_field) is None:
                    changes[_camel(stamp_field)] = now
        final_status = target or booking.status

        if "service_id" in fields and fields["service_id"] != booking.service_id:
            await self._require_bookable_service(fields["service_id"])

        for name in ("preferred_date", "preferred_time", "service_id", "vehicle_type",
                     "message", "notes"):
            if name in fields and fields[name] != getattr(booking, name):
                changes[_camel(name)] = fields[name]

        new_date = fields.get("preferred_date", booking.preferred_date)
        new_time = fields.get("preferred_time", booking.preferred_time)
        slot_moved = new_date != booking.preferred_date or new_time != booking.preferred_time
        confirming = final_status == BookingStatus.CONFIRMED and booking.status != BookingStatus.CONFIRMED
        if (slot_moved or confirming) and final_status not in INACTIVE_STATUSES:
            await ensure_no_conflict(self._store, new_date, new_time, exclude_booking_id=booking.id)

        changed = sorted(changes)
        changes["updatedAt"] = now
        await self._store.patch(BOOKINGS, booking.id, changes)
        return changed

    @traced_request
    async def update_booking(
        self,
        booking_id: str,
        patch: Union[BookingUpdate, dict[str, Any]],
        auth: Optional[AuthContext],
        action: str = "booking_updated",
    ) -> Booking:
        """
        Apply a partial admin update.

        Date/time changes and moves into ``confirmed`` re-check the slot,
        excluding this booking itself. Entry timestamps are set only the
        first time a status is entered.
        """
        require_admin(auth, "update bookings")
        try:
            update = patch if isinstance(patch, BookingUpdate) else BookingUpdate.model_validate(patch)
        except PydanticValidationError as exc:
            raise ValidationError(errors=_pydantic_errors(exc)) from None
        fields = self._validate_update(update.model_dump(exclude_unset=True, exclude_none=True))

        async with self._store.transaction():
            booking = await self._require_booking(booking_id)
            changed = await self._apply_update(booking, fields)
            updated = await self._require_booking(booking_id)

        logger.info("Booking %s updated: %s", booking_id, ", ".join(changed) or "no changes")
        await self._activity.record(
            action,
            user_id=auth.user_id,
            booking_id=booking_id,
            customer_email=booking.customer_email,
            metadata={
                "changes": ", ".join(changed),
                "oldStatus": booking.status.value,
                "newStatus": updated.status.value,
            },
        )
        return updated

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        auth: Optional[AuthContext],
        notes: Optional[str] = None,
    ) -> Booking:
        patch = BookingUpdate(status=BookingStatus(status), notes=notes)
        return await self.update_booking(booking_id, patch, auth, action="booking_status_updated")

    async def confirm_booking(self, booking_id: str, auth: Optional[AuthContext]) -> Booking:
        return await self.update_booking_status(booking_id, BookingStatus.CONFIRMED, auth)

    async def start_booking(self, booking_id: str, auth: Optional[AuthContext]) -> Booking:
        return await self.update_booking_status(booking_id, BookingStatus.IN_PROGRESS, auth)

    async def complete_booking(
        self, booking_id: str, auth: Optional[AuthContext], notes: Optional[str] = None
    ) -> Booking:
        return await self.update_booking_status(
            booking_id, BookingStatus.COMPLETED, auth, notes=notes
        )

    async def update_booking_notes(
        self, booking_id: str, notes: str, auth: Optional[AuthContext]
    ) -> Booking:
        return await self.update_booking(
            booking_id, BookingUpdate(notes=notes), auth, action="booking_notes_updated"
        )

    # ------------------------------------------------------------------
    # Customer or admin
    # ------------------------------------------------------------------

    @traced_request
    async def reschedule_booking(
        self,
        booking_id: str,
        preferred_date: str,
        preferred_time: str,
        message: Optional[str] = None,
        auth: Optional[AuthContext] = None,
    ) -> Booking:
        """
        Move an active booking to a new slot on behalf of the owning
        customer or an admin. Only date, time and message change.
        """
        fields: dict[str, Any] = {"preferred_date": preferred_date, "preferred_time": preferred_time}
        if message is not None:
            fields["message"] = message
        fields = self._validate_update(fields)
        self._check_advance_window(fields["preferred_date"])

        async with self._store.transaction():
            booking = await self._require_booking(booking_id)
            require_owner_or_permission(
                auth, booking.customer_email, Permission.BOOKINGS_WRITE, "reschedule this booking"
            )
            if not booking.is_active:
                raise InvalidTransitionError(
                    f"Cannot reschedule a {booking.status.value} booking", field="status"
                )
            changed = await self._apply_update(booking, fields)
            updated = await self._require_booking(booking_id)

        logger.info(
            "Booking %s rescheduled to %s at %s",
            booking_id, updated.preferred_date, updated.preferred_time,
        )
        await self._activity.record(
            "booking_rescheduled",
            user_id=auth.user_id if auth else None,
            booking_id=booking_id,
            customer_email=booking.customer_email,
            metadata={
                "changes": ", ".join(changed),
                "oldDate": booking.preferred_date,
                "oldTime": booking.preferred_time,
            },
        )
        return updated

    @traced_request
    async def cancel_booking(
        self,
        booking_id: str,
        reason: Optional[str] = None,
        auth: Optional[AuthContext] = None,
    ) -> Booking:
        """
        Cancel a booking on behalf of an admin or the owning customer.

        The reason is appended to the booking notes, never replacing them.

        Raises:
            InvalidTransitionError: The booking is already cancelled or completed.
        """
        async with self._store.transaction():
            booking = await self._require_booking(booking_id)
            require_owner_or_permission(
                auth, booking.customer_email, Permission.BOOKINGS_WRITE, "cancel this booking"
            )
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidTransitionError("Booking is already cancelled", field="status")
            if booking.status == BookingStatus.COMPLETED:
                raise InvalidTransitionError("Cannot cancel a completed booking", field="status")

            fields: dict[str, Any] = {"status": BookingStatus.CANCELLED}
            if reason:
                fields["notes"] = _append_note(
                    booking.notes, CANCELLATION_PREFIX + sanitize_input(reason)
                )
            await self._apply_update(booking, fields)
            updated = await self._require_booking(booking_id)

        logger.info("Booking cancelled: %s", booking_id)
        await self._activity.record(
            "booking_cancelled",
            user_id=auth.user_id if auth else None,
            booking_id=booking_id,
            customer_email=booking.customer_email,
            metadata={"reason": sanitize_input(reason) if reason else None},
        )
        return updated
