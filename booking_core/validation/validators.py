"""
Input validators and sanitizers for bookings, services and reviews.

Every predicate is total: it never raises and returns False for anything
that is not a well-formed string. The composite ``validate_*_data``
functions collect every failing rule instead of stopping at the first,
so a form can show all problems at once.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from booking_core.schemas.booking_schema import BookingRequest, VehicleType
from booking_core.schemas.review_schema import ReviewData
from booking_core.schemas.service_schema import ServiceCategory, ServiceData

# Validation thresholds
MAX_EMAIL_LENGTH = 255
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15
MAX_SLUG_LENGTH = 100
MAX_PRICE_LENGTH = 20
MAX_INPUT_LENGTH = 2000
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MAX_MESSAGE_LENGTH = 1000
MIN_SERVICE_DESCRIPTION_LENGTH = 20
MIN_REVIEW_COMMENT_LENGTH = 10

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[\d\s().\-]+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s?(AM|PM)$", re.IGNORECASE)
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_PRICE_RE = re.compile(r"^\$?\d+(\.\d{2})?\+?$")

_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)

VEHICLE_TYPES = frozenset(v.value for v in VehicleType)
SERVICE_CATEGORIES = frozenset(c.value for c in ServiceCategory)


@dataclass
class ValidationResult:
    """Outcome of a composite validation."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def validate_email(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return bool(_EMAIL_RE.fullmatch(value)) and len(value) <= MAX_EMAIL_LENGTH


def validate_phone(value: Any) -> bool:
    """Accept ``+1 (726) 207-1007`` style numbers with 10 to 15 digits."""
    if not isinstance(value, str) or not _PHONE_RE.fullmatch(value.strip()):
        return False
    digits = re.sub(r"\D", "", value)
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


def validate_date(value: Any) -> bool:
    """Strict YYYY-MM-DD that names a real calendar day."""
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
        return True
    except ValueError:
        return False


def validate_time(value: Any) -> bool:
    """12-hour clock time such as ``2:00 PM`` or ``11:30am``."""
    if not isinstance(value, str):
        return False
    match = _TIME_RE.fullmatch(value)
    if not match:
        return False
    hour, minute = int(match.group(1)), int(match.group(2))
    return 1 <= hour <= 12 and 0 <= minute <= 59


def validate_slug(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return 0 < len(value) <= MAX_SLUG_LENGTH and bool(_SLUG_RE.fullmatch(value))


def validate_price(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return bool(_PRICE_RE.fullmatch(value)) and len(value) <= MAX_PRICE_LENGTH


def validate_vehicle_type(value: Any) -> bool:
    return isinstance(value, str) and value in VEHICLE_TYPES


def sanitize_input(value: Any) -> str:
    """Strip markup and script vectors from free text and cap its length."""
    if not isinstance(value, str):
        return ""
    cleaned = value.strip()
    cleaned = cleaned.replace("<", "").replace(">", "")
    cleaned = _JS_PROTOCOL_RE.sub("", cleaned)
    cleaned = _EVENT_HANDLER_RE.sub("", cleaned)
    return cleaned[:MAX_INPUT_LENGTH]


def validate_booking_data(data: BookingRequest) -> ValidationResult:
    errors: list[str] = []
    name = data.customer_name or ""

    if len(name.strip()) < MIN_NAME_LENGTH:
        errors.append("Name must be at least 2 characters")
    if len(name) > MAX_NAME_LENGTH:
        errors.append("Name cannot exceed 100 characters")
    if not validate_email(data.customer_email):
        errors.append("Invalid email address")
    if not validate_phone(data.customer_phone):
        errors.append("Invalid phone number format")
    if not data.service_id:
        errors.append("Service is required")
    if not validate_date(data.preferred_date):
        errors.append("Invalid date format (YYYY-MM-DD)")
    if not validate_time(data.preferred_time):
        errors.append("Invalid time format (e.g., 2:30 PM)")
    if not validate_vehicle_type(data.vehicle_type):
        errors.append(
            f"Vehicle type must be one of: {', '.join(v.value for v in VehicleType)}"
        )
    if data.message and len(data.message) > MAX_MESSAGE_LENGTH:
        errors.append("Message cannot exceed 1000 characters")

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_service_data(data: ServiceData) -> ValidationResult:
    errors: list[str] = []

    if not data.name or len(data.name.strip()) < MIN_NAME_LENGTH:
        errors.append("Service name must be at least 2 characters")
    if not validate_slug(data.slug):
        errors.append("Invalid slug format")
    if not validate_price(data.price):
        errors.append("Invalid price format")
    if not data.description or len(data.description) < MIN_SERVICE_DESCRIPTION_LENGTH:
        errors.append("Description must be at least 20 characters")
    category = getattr(data.category, "value", data.category)
    if category not in SERVICE_CATEGORIES:
        errors.append("Category must be 'primary' or 'additional'")

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_review_data(data: ReviewData) -> ValidationResult:
    errors: list[str] = []

    if not data.customer_name or len(data.customer_name.strip()) < MIN_NAME_LENGTH:
        errors.append("Name must be at least 2 characters")
    rating = data.rating
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        errors.append("Rating must be between 1 and 5")
    if not data.comment or len(data.comment) < MIN_REVIEW_COMMENT_LENGTH:
        errors.append("Review comment must be at least 10 characters")
    if not data.service_id:
        errors.append("Service is required")
    if data.date is not None and not validate_date(data.date):
        errors.append("Invalid date format (YYYY-MM-DD)")

    return ValidationResult(is_valid=not errors, errors=errors)
