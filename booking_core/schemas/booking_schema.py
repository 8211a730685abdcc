"""Booking and availability data models.

Python attributes are snake_case; the stored/wire shape is camelCase
(``model_dump(by_alias=True)``) with epoch-millisecond timestamps.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Bookings in these states no longer hold their slot for conflict purposes
INACTIVE_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


class VehicleType(str, Enum):
    SEDAN = "sedan"
    SUV = "suv"
    TRUCK = "truck"
    VAN = "van"
    COUPE = "coupe"
    SPORTS = "sports"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the camelCase storage shape, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BookingRequest(_CamelModel):
    """Raw guest booking request, validated by the validation utilities."""

    customer_name: str = Field(default="", alias="customerName")
    customer_email: str = Field(default="", alias="customerEmail")
    customer_phone: str = Field(default="", alias="customerPhone")
    service_id: str = Field(default="", alias="serviceId")
    preferred_date: str = Field(default="", alias="preferredDate")
    preferred_time: str = Field(default="", alias="preferredTime")
    vehicle_type: str = Field(default="", alias="vehicleType")
    message: Optional[str] = None


class Booking(_CamelModel):
    """Persisted booking record."""

    id: str
    customer_name: str = Field(alias="customerName")
    customer_email: str = Field(alias="customerEmail")
    customer_phone: str = Field(alias="customerPhone")
    service_id: str = Field(alias="serviceId")
    preferred_date: str = Field(alias="preferredDate")
    preferred_time: str = Field(alias="preferredTime")
    vehicle_type: VehicleType = Field(alias="vehicleType")
    message: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    notes: Optional[str] = None
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")
    confirmed_at: Optional[int] = Field(default=None, alias="confirmedAt")
    completed_at: Optional[int] = Field(default=None, alias="completedAt")
    cancelled_at: Optional[int] = Field(default=None, alias="cancelledAt")

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES


class BookingUpdate(_CamelModel):
    """Partial admin update. Only fields explicitly set are applied."""

    preferred_date: Optional[str] = Field(default=None, alias="preferredDate")
    preferred_time: Optional[str] = Field(default=None, alias="preferredTime")
    service_id: Optional[str] = Field(default=None, alias="serviceId")
    vehicle_type: Optional[str] = Field(default=None, alias="vehicleType")
    message: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[BookingStatus] = None


class BookingFilters(BaseModel):
    """Admin listing filters."""

    status: Optional[BookingStatus] = None
    date: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    service_id: Optional[str] = None
    customer_email: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=1000)


class AvailabilityResponse(_CamelModel):
    """Open slots for one date."""

    date: str
    service_id: Optional[str] = Field(default=None, alias="serviceId")
    available_slots: list[str] = Field(default_factory=list, alias="availableSlots")
    total_slots: int = Field(alias="totalSlots")
    booked_slots: int = Field(alias="bookedSlots")


class BookingStats(_CamelModel):
    """Dashboard counts derived from the booking collection."""

    total: int = 0
    pending: int = 0
    confirmed: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    today: int = 0
    this_week: int = Field(default=0, alias="thisWeek")
    this_month: int = Field(default=0, alias="thisMonth")
