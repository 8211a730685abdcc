"""Service catalog data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceCategory(str, Enum):
    PRIMARY = "primary"
    ADDITIONAL = "additional"


class ProcessStep(BaseModel):
    """One numbered step of how a service is performed."""
    step: int
    title: str
    description: str


class ServiceData(BaseModel):
    """Input for creating a service."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    slug: str = ""
    category: str = ServiceCategory.PRIMARY.value
    title: str = ""
    description: str = ""
    meta_description: str = Field(default="", alias="metaDescription")
    features: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)
    price: str = ""
    duration: str = ""
    process: list[ProcessStep] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")
    sort_order: int = Field(default=0, alias="sortOrder")


class Service(ServiceData):
    """Persisted service record."""

    id: str
    category: ServiceCategory = ServiceCategory.PRIMARY
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ServiceUpdate(BaseModel):
    """Partial service update."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    slug: Optional[str] = None
    category: Optional[ServiceCategory] = None
    title: Optional[str] = None
    description: Optional[str] = None
    meta_description: Optional[str] = Field(default=None, alias="metaDescription")
    features: Optional[list[str]] = None
    benefits: Optional[list[str]] = None
    price: Optional[str] = None
    duration: Optional[str] = None
    process: Optional[list[ProcessStep]] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
