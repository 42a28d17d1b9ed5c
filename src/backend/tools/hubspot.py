"""
HubSpot tools: search and batch update CRM objects.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from core.constants import MAX_RECORDS_PER_UPDATE, PROVIDER_HUBSPOT
from integrations.hubspot_client import HubSpotClient
from models.usage_models import UsageDelta, UsageStatus
from tools.base import Tool

HubSpotObject = Literal["contacts", "companies", "deals", "tickets"]


class HubSpotFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    property_name: str = Field(..., alias="propertyName", description="Property to filter on, e.g. email")
    operator: Literal[
        "EQ", "NEQ", "LT", "LTE", "GT", "GTE", "HAS_PROPERTY", "NOT_HAS_PROPERTY", "CONTAINS_TOKEN"
    ] = "EQ"
    value: str | None = None


class GetHubSpotDataArgs(BaseModel):
    object_type: HubSpotObject = Field(..., description="CRM object to search")
    filters: list[HubSpotFilter] = Field(default_factory=list, description="Filters, all of which must match")
    properties: list[str] | None = Field(default=None, description="Properties to return")
    limit: int = Field(default=20, ge=1, le=100)


class HubSpotRecordUpdate(BaseModel):
    id: str = Field(..., min_length=1)
    properties: dict[str, str] = Field(..., min_length=1, description="Properties to change")


class UpdateHubSpotDataArgs(BaseModel):
    object_type: HubSpotObject
    records: list[HubSpotRecordUpdate] = Field(..., min_length=1, max_length=MAX_RECORDS_PER_UPDATE)


def hubspot_tools(client: HubSpotClient) -> list[Tool]:
    async def get_hubspot_data(args: GetHubSpotDataArgs) -> dict[str, Any]:
        filters = [f.model_dump(by_alias=True, exclude_none=True) for f in args.filters]
        result = await client.search(args.object_type, filters, args.properties, args.limit)
        return {"objectType": args.object_type, **result}

    async def update_hubspot_data(args: UpdateHubSpotDataArgs) -> dict[str, Any]:
        result = await client.update(args.object_type, [r.model_dump() for r in args.records])
        return {"objectType": args.object_type, "updated": len(result["results"]), **result}

    return [
        Tool(
            name="get_hubspot_data",
            description="Search HubSpot contacts, companies, deals or tickets by property filters.",
            parameters=GetHubSpotDataArgs,
            handler=get_hubspot_data,
            provider=PROVIDER_HUBSPOT,
            usage=lambda _: UsageDelta(queries_executed=1),
        ),
        Tool(
            name="update_hubspot_data",
            description="Update properties on existing HubSpot records. Confirm the changes with the user first.",
            parameters=UpdateHubSpotDataArgs,
            handler=update_hubspot_data,
            provider=PROVIDER_HUBSPOT,
            usage=_update_usage,
        ),
    ]


def _update_usage(result: dict[str, Any]) -> UsageDelta:
    errors = [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in result.get("errors", [])]
    updated = result.get("results", [])
    if not updated and errors:
        return UsageDelta(status=UsageStatus.FAILED, errors=errors)
    return UsageDelta(
        records_updated=len(updated),
        errors=errors,
        record_ids=[str(r["id"]) for r in updated if r.get("id")],
    )


__all__ = ["GetHubSpotDataArgs", "HubSpotFilter", "UpdateHubSpotDataArgs", "hubspot_tools"]
