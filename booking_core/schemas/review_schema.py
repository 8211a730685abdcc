"""Customer review data models."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewData(BaseModel):
    """Public review submission."""

    model_config = ConfigDict(populate_by_name=True)

    customer_name: str = Field(default="", alias="customerName")
    rating: Any = None
    comment: str = ""
    service_id: str = Field(default="", alias="serviceId")
    date: Optional[str] = None


class Review(BaseModel):
    """Persisted review. Created unapproved; admins approve, feature or reject."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    customer_name: str = Field(alias="customerName")
    rating: int = Field(ge=1, le=5)
    comment: str
    service_id: str = Field(alias="serviceId")
    is_approved: bool = Field(default=False, alias="isApproved")
    is_featured: bool = Field(default=False, alias="isFeatured")
    date: str
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ReviewStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    approved: int = 0
    featured: int = 0
    pending: int = 0
    average_rating: float = Field(default=0.0, alias="averageRating")
    rating_distribution: dict[int, int] = Field(
        default_factory=lambda: {5: 0, 4: 0, 3: 0, 2: 0, 1: 0},
        alias="ratingDistribution",
    )
