"""Service catalog: detailing offerings with pricing, durations and process steps."""

import logging
from typing import Any, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from booking_core.auth import AuthContext, require_admin
from booking_core.errors import ConflictError, NotFoundError, ValidationError
from booking_core.schemas.service_schema import (
    Service,
    ServiceCategory,
    ServiceData,
    ServiceUpdate,
)
from booking_core.storage.activity_log import ActivityLog
from booking_core.storage.filters import Eq, all_of
from booking_core.storage.store import BOOKINGS, SERVICES, DocumentStore
from booking_core.utils import Clock, to_epoch_ms, utc_now
from booking_core.validation.validators import (
    validate_price,
    validate_service_data,
    validate_slug,
)

logger = logging.getLogger(__name__)

ServiceModel = TypeVar("ServiceModel", ServiceData, ServiceUpdate)

DEFAULT_SERVICES: list[dict[str, Any]] = [
    {
        "name": "Auto Detailing",
        "slug": "auto-detailing",
        "category": "primary",
        "title": "IDA Certified Auto Detailing",
        "description": "Complete interior and exterior detailing with paint correction and protection.",
        "features": ["Exterior hand wash and dry", "Interior shampooing", "Paint correction"],
        "benefits": ["IDA certified detailers", "Eco-friendly products"],
        "price": "$199+",
        "duration": "3-4 hours",
        "process": [
            {"step": 1, "title": "Inspection", "description": "Identify problem areas"},
            {"step": 2, "title": "Deep Cleaning", "description": "Interior and exterior clean"},
            {"step": 3, "title": "Protection", "description": "Apply protective coatings"},
        ],
        "sortOrder": 1,
    },
    {
        "name": "Auto Interior Vacuuming",
        "slug": "auto-interior-vacuuming",
        "category": "primary",
        "title": "Auto Interior Vacuuming",
        "description": "Deep vacuuming of carpets, upholstery, mats and trunk with crevice detailing.",
        "features": ["High-powered vacuum", "Under-seat debris removal", "Trunk vacuuming"],
        "benefits": ["Removes embedded dirt and allergens"],
        "price": "$49+",
        "duration": "30-45 minutes",
        "process": [
            {"step": 1, "title": "Deep Vacuuming", "description": "Extract debris from carpets and seats"},
            {"step": 2, "title": "Final Inspection", "description": "Check every surface"},
        ],
        "sortOrder": 2,
    },
    {
        "name": "Car Waxing",
        "slug": "car-waxing",
        "category": "primary",
        "title": "Car Waxing",
        "description": "Hand-applied carnauba wax after paint decontamination for a deep, protective shine.",
        "features": ["Carnauba wax", "Paint decontamination", "UV protection"],
        "benefits": ["Deep, wet-look shine"],
        "price": "$89+",
        "duration": "1-2 hours",
        "process": [
            {"step": 1, "title": "Decontamination", "description": "Clay and wash the paint"},
            {"step": 2, "title": "Wax Application", "description": "Apply and buff by hand"},
        ],
        "sortOrder": 3,
    },
    {
        "name": "Clay Bar Treatment",
        "slug": "clay-bar-treatment",
        "category": "additional",
        "title": "Clay Bar Treatment",
        "description": "Removes bonded contaminants from paint to leave a glass-smooth surface.",
        "features": ["Bonded contaminant removal", "Smooth paint finish"],
        "benefits": ["Prepares paint for wax or sealant"],
        "price": "$79+",
        "duration": "1-1.5 hours",
        "process": [
            {"step": 1, "title": "Wash", "description": "Remove loose dirt"},
            {"step": 2, "title": "Clay", "description": "Lift embedded contaminants"},
        ],
        "sortOrder": 4,
    },
    {
        "name": "Engine Detailing",
        "slug": "engine-detailing",
        "category": "additional",
        "title": "Engine Detailing",
        "description": "Safe degreasing and dressing of the engine bay, hoses and plastic covers.",
        "features": ["Degreasing", "Hose and plastic dressing"],
        "benefits": ["Easier leak spotting", "Better resale presentation"],
        "price": "$99+",
        "duration": "1-2 hours",
        "process": [
            {"step": 1, "title": "Protect", "description": "Cover sensitive electrical parts"},
            {"step": 2, "title": "Degrease", "description": "Clean and rinse the bay"},
        ],
        "sortOrder": 5,
    },
    {
        "name": "Full Body Wash",
        "slug": "full-body-wash",
        "category": "additional",
        "title": "Full Body Wash",
        "description": "Two-bucket hand wash with wheel cleaning, tire dressing and streak-free dry.",
        "features": ["Two-bucket hand wash", "Wheel cleaning", "Tire dressing"],
        "benefits": ["Swirl-safe washing"],
        "price": "$59+",
        "duration": "45-60 minutes",
        "process": [
            {"step": 1, "title": "Wash", "description": "Foam and hand wash"},
            {"step": 2, "title": "Dry", "description": "Microfiber dry and dress tires"},
        ],
        "sortOrder": 6,
    },
]


def _parse_model(model: type[ServiceModel], data: Any) -> ServiceModel:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(errors=[e["msg"] for e in exc.errors()]) from None


class ServiceCatalog:
    """
    Admin-managed catalog of bookable services.

    Slugs are unique. A service referenced by any booking cannot be
    deleted; deactivate it with ``toggle_service_status`` instead.
    """

    def __init__(
        self,
        store: DocumentStore,
        activity_log: Optional[ActivityLog] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock
        self._activity = activity_log or ActivityLog(store, clock)

    async def _slug_taken(self, slug: str) -> bool:
        return bool(await self._store.query(SERVICES, where=Eq("slug", slug), limit=1))

    async def create_service(self, data: Any, auth: Optional[AuthContext]) -> str:
        require_admin(auth, "create services")
        service_data = _parse_model(ServiceData, data)
        result = validate_service_data(service_data)
        if not result.is_valid:
            raise ValidationError(errors=result.errors)

        async with self._store.transaction():
            if await self._slug_taken(service_data.slug):
                raise ConflictError("A service with this slug already exists")
            now = to_epoch_ms(self._clock())
            record = service_data.model_dump(by_alias=True, mode="json")
            record.update(createdAt=now, updatedAt=now)
            service_id = await self._store.insert(SERVICES, record)

        logger.info("Service created: %s (%s)", service_data.name, service_id)
        await self._activity.record(
            "service_created", user_id=auth.user_id, metadata={"serviceId": service_id}
        )
        return service_id

    async def get_service(self, service_id: str) -> Optional[Service]:
        doc = await self._store.get(SERVICES, service_id)
        return Service.model_validate(doc) if doc else None

    async def require_service(self, service_id: str) -> Service:
        service = await self.get_service(service_id)
        if service is None:
            raise NotFoundError("Service not found")
        return service

    async def get_service_by_slug(self, slug: str) -> Optional[Service]:
        docs = await self._store.query(SERVICES, where=Eq("slug", slug), limit=1)
        return Service.model_validate(docs[0]) if docs else None

    async def list_services(
        self,
        category: Optional[ServiceCategory] = None,
        is_active: Optional[bool] = None,
        limit: int = 50,
    ) -> list[Service]:
        """Services ordered by sortOrder, optionally filtered."""
        where = all_of(
            Eq("category", ServiceCategory(category).value) if category else None,
            Eq("isActive", is_active) if is_active is not None else None,
        )
        docs = await self._store.query(SERVICES, where=where, order_by="sortOrder", limit=limit)
        return [Service.model_validate(d) for d in docs]

    async def get_active_services(self) -> list[Service]:
        return await self.list_services(is_active=True, limit=100)

    async def update_service(
        self, service_id: str, updates: Any, auth: Optional[AuthContext]
    ) -> None:
        require_admin(auth, "update services")
        patch = _parse_model(ServiceUpdate, updates)
        changes = patch.model_dump(by_alias=True, exclude_unset=True, exclude_none=True, mode="json")

        errors = []
        if "slug" in changes and not validate_slug(changes["slug"]):
            errors.append("Invalid slug format")
        if "price" in changes and not validate_price(changes["price"]):
            errors.append("Invalid price format")
        if "name" in changes and len((changes["name"] or "").strip()) < 2:
            errors.append("Service name must be at least 2 characters")
        if errors:
            raise ValidationError(errors=errors)

        async with self._store.transaction():
            existing = await self.require_service(service_id)
            new_slug = changes.get("slug")
            if new_slug and new_slug != existing.slug and await self._slug_taken(new_slug):
                raise ConflictError("A service with this slug already exists")
            changes["updatedAt"] = to_epoch_ms(self._clock())
            await self._store.patch(SERVICES, service_id, changes)

        await self._activity.record(
            "service_updated",
            user_id=auth.user_id,
            metadata={"serviceId": service_id, "changes": ", ".join(sorted(changes))},
        )

    async def delete_service(self, service_id: str, auth: Optional[AuthContext]) -> None:
        """Hard delete, allowed only while no booking references the service."""
        require_admin(auth, "delete services")
        async with self._store.transaction():
            await self.require_service(service_id)
            referencing = await self._store.query(
                BOOKINGS, where=Eq("serviceId", service_id), limit=1
            )
            if referencing:
                raise ConflictError(
                    "Cannot delete service with existing bookings. Set isActive to false instead."
                )
            await self._store.delete(SERVICES, service_id)

        logger.info("Service deleted: %s", service_id)
        await self._activity.record(
            "service_deleted", user_id=auth.user_id, metadata={"serviceId": service_id}
        )

    async def toggle_service_status(
        self, service_id: str, auth: Optional[AuthContext]
    ) -> bool:
        """Flip ``isActive`` and return the new value."""
        require_admin(auth, "change service status")
        service = await self.require_service(service_id)
        new_status = not service.is_active
        await self._store.patch(
            SERVICES,
            service_id,
            {"isActive": new_status, "updatedAt": to_epoch_ms(self._clock())},
        )
        await self._activity.record(
            "service_status_toggled",
            user_id=auth.user_id,
            metadata={"serviceId": service_id, "isActive": new_status},
        )
        return new_status

    async def seed_default_services(self, auth: Optional[AuthContext]) -> list[str]:
        """Insert the default catalog, skipping slugs that already exist."""
        require_admin(auth, "seed services")
        created = []
        for entry in DEFAULT_SERVICES:
            if await self._slug_taken(entry["slug"]):
                continue
            created.append(await self.create_service(entry, auth))
        logger.info("Seeded %d services", len(created))
        return created
