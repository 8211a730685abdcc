from booking_core.validation.validators import (
    ValidationResult,
    sanitize_input,
    validate_booking_data,
    validate_date,
    validate_email,
    validate_phone,
    validate_price,
    validate_review_data,
    validate_service_data,
    validate_slug,
    validate_time,
    validate_vehicle_type,
)

__all__ = [
    "ValidationResult",
    "sanitize_input",
    "validate_booking_data",
    "validate_date",
    "validate_email",
    "validate_phone",
    "validate_price",
    "validate_review_data",
    "validate_service_data",
    "validate_slug",
    "validate_time",
    "validate_vehicle_type",
]
