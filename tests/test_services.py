"""Tests for the service catalog."""

import pytest

from booking_core.errors import AuthorizationError, ConflictError, ValidationError
from booking_core.schemas.service_schema import ServiceCategory
from booking_core.tools.services import DEFAULT_SERVICES
from tests.conftest import make_booking_data


class TestDefaultCatalog:
    def test_seed_entries_are_unique(self):
        slugs = [s["slug"] for s in DEFAULT_SERVICES]
        assert len(slugs) == len(set(slugs)) == 6

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, catalog, admin):
        created = await catalog.seed_default_services(admin)
        assert len(created) == 6
        assert await catalog.seed_default_services(admin) == []

    @pytest.mark.asyncio
    async def test_listing_ordered_by_sort_order(self, catalog, admin):
        await catalog.seed_default_services(admin)
        services = await catalog.list_services()
        assert [s.sort_order for s in services] == [1, 2, 3, 4, 5, 6]
        extras = await catalog.list_services(category=ServiceCategory.ADDITIONAL)
        assert {s.slug for s in extras} == {
            "clay-bar-treatment", "engine-detailing", "full-body-wash",
        }


class TestServiceCrud:
    @pytest.mark.asyncio
    async def test_create_and_lookup(self, catalog, service_id):
        service = await catalog.get_service(service_id)
        assert service.slug == "auto-detailing"
        assert service.category == ServiceCategory.PRIMARY
        assert (await catalog.get_service_by_slug("auto-detailing")).id == service_id

    @pytest.mark.asyncio
    async def test_duplicate_slug(self, catalog, service_id, admin):
        with pytest.raises(ConflictError):
            await catalog.create_service(DEFAULT_SERVICES[0], admin)

    @pytest.mark.asyncio
    async def test_invalid_data(self, catalog, admin):
        with pytest.raises(ValidationError) as exc_info:
            await catalog.create_service({"name": "X", "slug": "Bad Slug"}, admin)
        assert "Invalid slug format" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_mutations_require_admin(self, catalog, staff):
        with pytest.raises(AuthorizationError):
            await catalog.create_service(DEFAULT_SERVICES[1], staff)

    @pytest.mark.asyncio
    async def test_update_rechecks_slug(self, catalog, service_id, admin):
        other = await catalog.create_service(DEFAULT_SERVICES[1], admin)
        with pytest.raises(ConflictError):
            await catalog.update_service(other, {"slug": "auto-detailing"}, admin)
        await catalog.update_service(other, {"price": "$59+", "name": "Interior Vacuum"}, admin)
        updated = await catalog.get_service(other)
        assert updated.price == "$59+"
        assert updated.name == "Interior Vacuum"

    @pytest.mark.asyncio
    async def test_malformed_update_raises_validation_error(self, catalog, service_id, admin):
        with pytest.raises(ValidationError) as exc_info:
            await catalog.update_service(service_id, {"sortOrder": "not-a-number"}, admin)
        assert exc_info.value.errors
        assert (await catalog.get_service(service_id)).sort_order == 1

    @pytest.mark.asyncio
    async def test_slug_with_trailing_newline_rejected(self, catalog, service_id, admin):
        with pytest.raises(ValidationError):
            await catalog.create_service({**DEFAULT_SERVICES[1], "slug": "vacuuming\n"}, admin)
        with pytest.raises(ValidationError):
            await catalog.update_service(service_id, {"slug": "detailing\n", "price": "$5\n"}, admin)
        assert (await catalog.get_service(service_id)).slug == "auto-detailing"

    @pytest.mark.asyncio
    async def test_toggle_status(self, catalog, service_id, admin):
        assert await catalog.toggle_service_status(service_id, admin) is False
        assert await catalog.get_active_services() == []
        assert await catalog.toggle_service_status(service_id, admin) is True

    @pytest.mark.asyncio
    async def test_delete_blocked_by_bookings(self, catalog, manager, service_id, admin):
        await manager.create_booking(make_booking_data(service_id))
        with pytest.raises(ConflictError):
            await catalog.delete_service(service_id, admin)

    @pytest.mark.asyncio
    async def test_delete_unused(self, catalog, service_id, admin):
        await catalog.delete_service(service_id, admin)
        assert await catalog.get_service(service_id) is None
