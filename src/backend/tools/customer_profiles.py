"""
Customer profile tools for the prospect finder.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from api.middleware.exception_handlers import ToolExecutionError
from api.services.customer_profile_service import CustomerProfileService
from models.customer_profile_models import CustomerProfileFields, CustomerProfileUpdate
from tools.base import Tool


class GetCustomerProfileArgs(BaseModel):
    id: str | None = Field(default=None, description="Profile id. Lists all profiles when omitted.")
    active_only: bool = Field(default=False, description="Only list active profiles")


class UpdateCustomerProfileArgs(BaseModel):
    id: str = Field(..., min_length=1)
    updates: CustomerProfileUpdate


def customer_profile_tools(profiles: CustomerProfileService, user_id: str) -> list[Tool]:
    async def get_customer_profile(args: GetCustomerProfileArgs) -> dict[str, Any]:
        if args.id:
            profile = await profiles.get(user_id, args.id)
            if profile is None:
                raise ToolExecutionError("get_customer_profile", f"Customer profile {args.id} not found")
            return {"profiles": [profile.model_dump(mode="json")]}
        found = await profiles.list(user_id, active_only=args.active_only)
        return {"profiles": [p.model_dump(mode="json") for p in found]}

    async def create_customer_profile(args: CustomerProfileFields) -> dict[str, Any]:
        profile = await profiles.create(user_id, args)
        return {"success": True, "id": profile.id}

    async def update_customer_profile(args: UpdateCustomerProfileArgs) -> dict[str, Any]:
        try:
            profile = await profiles.update(user_id, args.id, args.updates)
        except ValueError as e:
            raise ToolExecutionError("update_customer_profile", str(e)) from e
        if profile is None:
            raise ToolExecutionError("update_customer_profile", f"Customer profile {args.id} not found")
        return {"success": True, "id": profile.id}

    return [
        Tool(
            name="get_customer_profile",
            description="Fetch one ideal customer profile by id, or list the user's profiles.",
            parameters=GetCustomerProfileArgs,
            handler=get_customer_profile,
        ),
        Tool(
            name="create_customer_profile",
            description=(
                "Create an ideal customer profile. Requires a name, industries, frequently purchased products, "
                "geographic regions and average days to close."
            ),
            parameters=CustomerProfileFields,
            handler=create_customer_profile,
        ),
        Tool(
            name="update_customer_profile",
            description="Update fields on an existing customer profile. Only the fields given are changed.",
            parameters=UpdateCustomerProfileArgs,
            handler=update_customer_profile,
        ),
    ]


__all__ = ["GetCustomerProfileArgs", "UpdateCustomerProfileArgs", "customer_profile_tools"]
