"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio

from booking_core.auth import AuthContext
from booking_core.config import AppConfig, BusinessConfig, RateLimitConfig, StatsConfig
from booking_core.storage.store import InMemoryStore
from booking_core.tools.booking import BookingManager
from booking_core.tools.reviews import ReviewManager
from booking_core.tools.services import DEFAULT_SERVICES, ServiceCatalog

FIXED_NOW = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock frozen at a fixed instant until advanced."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_config(**business_overrides) -> AppConfig:
    """Config with documented defaults, independent of the environment."""
    business = dict(
        name="Test Detailing",
        hours_start=7,
        hours_end=22,
        valet_fee=50.0,
        booking_advance_days=0,
        timezone="UTC",
    )
    business.update(business_overrides)
    return AppConfig(
        business=BusinessConfig(**business),
        rate_limits=RateLimitConfig(
            booking_limit=5,
            booking_window_sec=3600,
            origin_limit=5,
            origin_window_sec=3600,
            review_window_sec=86400,
        ),
        stats=StatsConfig(fetch_cap=5000, recent_limit=10),
        log_level="INFO",
    )


def make_booking_data(service_id: str, **overrides: Any) -> dict[str, Any]:
    """Guest booking request in the camelCase wire shape."""
    data = {
        "customerName": "Jane Doe",
        "customerEmail": "jane@example.com",
        "customerPhone": "(726) 207-1007",
        "serviceId": service_id,
        "preferredDate": "2025-03-10",
        "preferredTime": "2:00 PM",
        "vehicleType": "sedan",
        "message": "Please focus on the interior.",
    }
    data.update(overrides)
    return data


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def admin():
    return AuthContext.admin(user_id="admin-1", email="owner@detailing.test")


@pytest.fixture
def staff():
    return AuthContext.staff(user_id="staff-1")


@pytest.fixture
def guest():
    return AuthContext.guest(email="jane@example.com")


@pytest.fixture
def manager(store, config, clock):
    return BookingManager(store, config=config, clock=clock)


@pytest.fixture
def catalog(store, clock):
    return ServiceCatalog(store, clock=clock)


@pytest.fixture
def review_manager(store, config, clock):
    return ReviewManager(store, config=config, clock=clock)


@pytest_asyncio.fixture
async def service_id(catalog, admin):
    return await catalog.create_service(DEFAULT_SERVICES[0], admin)
