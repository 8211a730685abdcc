"""
Centralized configuration with environment variable overrides.

Business hours, rate limits and statistics caps are configurable here.
Nothing scheduling-related is hardcoded in the booking logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_core.logging_context import request_id_handler

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(request_id)s] [%(name)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business-specific settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "One Detail At A Time")
    # Hourly grid covers [hours_start, hours_end)
    hours_start: int = _safe_int("BUSINESS_HOURS_START", "7")
    hours_end: int = _safe_int("BUSINESS_HOURS_END", "22")
    valet_fee: float = _safe_float("VALET_FEE", "50.0")
    # 0 disables the advance-window check
    booking_advance_days: int = _safe_int("BOOKING_ADVANCE_DAYS", "0")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "UTC")


@dataclass(frozen=True)
class RateLimitConfig:
    """Admission-control thresholds for guest submissions."""

    booking_limit: int = _safe_int("BOOKING_RATE_LIMIT", "5")
    booking_window_sec: int = _safe_int("BOOKING_RATE_WINDOW_SEC", "3600")
    origin_limit: int = _safe_int("ORIGIN_RATE_LIMIT", "5")
    origin_window_sec: int = _safe_int("ORIGIN_RATE_WINDOW_SEC", "3600")
    review_window_sec: int = _safe_int("REVIEW_RATE_WINDOW_SEC", "86400")


@dataclass(frozen=True)
class StatsConfig:
    """Bounds for dashboard aggregation queries."""

    fetch_cap: int = _safe_int("STATS_FETCH_CAP", "5000")
    recent_limit: int = _safe_int("STATS_RECENT_LIMIT", "10")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    business = config.business
    if not 0 <= business.hours_start < business.hours_end <= 24:
        raise ValueError(
            "BUSINESS_HOURS_START/BUSINESS_HOURS_END must satisfy 0 <= start < end <= 24, "
            f"got {business.hours_start}-{business.hours_end}"
        )
    if business.valet_fee < 0:
        raise ValueError(f"VALET_FEE must be >= 0, got {business.valet_fee}")
    if business.booking_advance_days < 0:
        raise ValueError(
            f"BOOKING_ADVANCE_DAYS must be >= 0, got {business.booking_advance_days}"
        )

    for limit_name, limit_value in [
        ("BOOKING_RATE_LIMIT", config.rate_limits.booking_limit),
        ("ORIGIN_RATE_LIMIT", config.rate_limits.origin_limit),
    ]:
        if limit_value < 1:
            raise ValueError(f"{limit_name} must be >= 1, got {limit_value}")

    for window_name, window_value in [
        ("BOOKING_RATE_WINDOW_SEC", config.rate_limits.booking_window_sec),
        ("ORIGIN_RATE_WINDOW_SEC", config.rate_limits.origin_window_sec),
        ("REVIEW_RATE_WINDOW_SEC", config.rate_limits.review_window_sec),
    ]:
        if window_value <= 0:
            raise ValueError(f"{window_name} must be > 0, got {window_value}")

    if config.stats.fetch_cap < 1:
        raise ValueError(f"STATS_FETCH_CAP must be >= 1, got {config.stats.fetch_cap}")
    if config.stats.recent_limit < 1:
        raise ValueError(
            f"STATS_RECENT_LIMIT must be >= 1, got {config.stats.recent_limit}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[request_id_handler()],
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
