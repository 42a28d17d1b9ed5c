"""
Base API schemas shared by list and delete endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PaginationMeta(BaseModel):
    """Pagination metadata for list responses using offset/limit."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_count": 42,
                "offset": 0,
                "limit": 50,
                "has_more": False,
            }
        }
    )

    total_count: int = Field(..., ge=0, description="Total number of items")
    offset: int = Field(default=0, ge=0, description="Number of items skipped")
    limit: int = Field(default=50, ge=1, le=100, description="Maximum items returned")
    has_more: bool = Field(..., description="Whether more items are available")

    @classmethod
    def build(cls, total_count: int, offset: int, limit: int) -> PaginationMeta:
        return cls(total_count=total_count, offset=offset, limit=limit, has_more=offset + limit < total_count)


class SuccessResponse(BaseModel):
    """Simple success response for operations without meaningful return data."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Thread deleted",
            }
        }
    )

    success: bool = Field(default=True, description="Whether the operation succeeded")
    message: str | None = Field(default=None, description="Optional success message")
