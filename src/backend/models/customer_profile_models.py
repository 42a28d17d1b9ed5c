"""
Ideal customer profile models used by the prospect finder.

List-like attributes (industries, products, regions, channels) are stored
as semicolon-separated strings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CustomerProfileFields(BaseModel):
    """Fields a user provides when creating a profile."""

    customer_profile_name: str = Field(..., min_length=1, max_length=255)
    common_industries: str = Field(..., min_length=1, max_length=512, description="Semicolon-separated industries")
    frequently_purchased_products: str = Field(
        ..., min_length=1, max_length=512, description="Semicolon-separated products or services"
    )
    geographic_regions: str = Field(..., min_length=1, max_length=512, description="Semicolon-separated regions")
    average_days_to_close: int = Field(..., ge=0)
    active: bool = True
    social_media_presence: str | None = Field(default=None, max_length=256)
    channel_recommendation: str | None = Field(default=None, max_length=256)
    account_strategy: str | None = None
    account_employee_size: str | None = Field(default=None, max_length=32, description="e.g. 50-200")
    account_lifecycle: str | None = Field(default=None, max_length=32, description="e.g. Enterprise")


class CustomerProfileUpdate(BaseModel):
    """Partial update; only fields that are set are written."""

    customer_profile_name: str | None = Field(default=None, min_length=1, max_length=255)
    common_industries: str | None = Field(default=None, min_length=1, max_length=512)
    frequently_purchased_products: str | None = Field(default=None, min_length=1, max_length=512)
    geographic_regions: str | None = Field(default=None, min_length=1, max_length=512)
    average_days_to_close: int | None = Field(default=None, ge=0)
    active: bool | None = None
    social_media_presence: str | None = Field(default=None, max_length=256)
    channel_recommendation: str | None = Field(default=None, max_length=256)
    account_strategy: str | None = None
    account_employee_size: str | None = Field(default=None, max_length=32)
    account_lifecycle: str | None = Field(default=None, max_length=32)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CustomerProfile(CustomerProfileFields):
    id: str
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> CustomerProfile:
        data = dict(row)
        data["id"] = str(data["id"])
        return cls.model_validate(data)


#: Columns a partial update may touch.
UPDATABLE_COLUMNS: tuple[str, ...] = tuple(CustomerProfileUpdate.model_fields)

__all__ = ["UPDATABLE_COLUMNS", "CustomerProfile", "CustomerProfileFields", "CustomerProfileUpdate"]
