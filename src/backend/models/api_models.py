"""
Models shared across API layers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UserInfo(BaseModel):
    """The authenticated caller, taken from the session token's claims."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "auth0|64f1c2a9e4b0a1b2c3d4e5f6",
                "email": "user@example.com",
                "name": "Jane Doe",
            }
        },
    )

    id: str = Field(..., min_length=1, description="Identity provider subject (sub claim)")
    email: str | None = Field(default=None, description="User email address")
    name: str | None = Field(default=None, description="Display name")
