"""Audit trail entry written by the core and read only by external tooling."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivityLogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    booking_id: Optional[str] = Field(default=None, alias="bookingId")
    customer_email: Optional[str] = Field(default=None, alias="customerEmail")
    timestamp: int
    metadata: dict[str, Any] = Field(default_factory=dict)
