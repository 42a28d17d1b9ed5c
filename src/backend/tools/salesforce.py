"""
Salesforce tools: read with SOQL, update and create records.
"""

from __future__ import annotations

import re

from typing import Any

from pydantic import BaseModel, Field, field_validator

from api.middleware.exception_handlers import ToolExecutionError
from core.constants import MAX_RECORDS_PER_UPDATE, PROVIDER_SALESFORCE
from core.prompts import SOQL_GENERATION_PROMPT, build_soql_request
from integrations.openai_model import ChatModel
from integrations.salesforce_client import SalesforceClient
from models.usage_models import UsageDelta, UsageStatus
from tools.base import Tool
from utils.logger import logger

_FENCE = re.compile(r"^```(?:sql|soql)?\s*|\s*```$", re.IGNORECASE)


class GetDataArgs(BaseModel):
    request: str = Field(
        ...,
        min_length=1,
        description="What data to fetch, in plain language, or a complete SOQL SELECT statement",
    )
    sobject: str | None = Field(default=None, description="Primary Salesforce object, e.g. Account or Contact")


class UpdateDataArgs(BaseModel):
    sobject: str = Field(..., min_length=1, description="Salesforce object type of every record, e.g. Account")
    records: list[dict[str, Any]] = Field(
        ...,
        min_length=1,
        max_length=MAX_RECORDS_PER_UPDATE,
        description="Records to update. Each must include its Id plus only the fields to change.",
    )

    @field_validator("records")
    @classmethod
    def require_ids(cls, v: list[dict[str, Any]]) -> list[dict[str, Any]]:
        missing = [i for i, record in enumerate(v) if not record.get("Id")]
        if missing:
            raise ValueError(f"Records at positions {missing} have no Id")
        return v


class CreateDataArgs(BaseModel):
    sobject: str = Field(..., min_length=1, description="Salesforce object type to create, e.g. Lead")
    fields: dict[str, Any] = Field(..., min_length=1, description="Field values for the new record")


def clean_soql(text: str) -> str:
    """Strip Markdown fences and a trailing semicolon from generated SOQL."""
    return _FENCE.sub("", text.strip()).strip().rstrip(";").strip()


def is_select_only(soql: str) -> bool:
    statement = soql.strip()
    return statement.upper().startswith("SELECT") and ";" not in statement


def salesforce_tools(client: SalesforceClient, model: ChatModel) -> list[Tool]:
    """get_data, update_data and create_data bound to one user's org."""

    async def get_data(args: GetDataArgs) -> dict[str, Any]:
        if args.request.strip().upper().startswith("SELECT"):
            soql = clean_soql(args.request)
        else:
            generated = await model.complete(SOQL_GENERATION_PROMPT, build_soql_request(args.request, args.sobject))
            soql = clean_soql(generated)
            logger.debug(f"Generated SOQL: {soql}", tool="get_data")

        if not is_select_only(soql):
            raise ToolExecutionError("get_data", f"Only single SELECT statements are allowed: {soql}")

        result = await client.query(soql)
        return {"soql": soql, **result}

    async def update_data(args: UpdateDataArgs) -> dict[str, Any]:
        results = await client.update(args.sobject, args.records)
        updated = [r for r in results if r.get("success")]
        failed = [r for r in results if not r.get("success")]
        return {"sobject": args.sobject, "updated": len(updated), "failed": len(failed), "results": results}

    async def create_data(args: CreateDataArgs) -> dict[str, Any]:
        result = await client.create(args.sobject, args.fields)
        return {"sobject": args.sobject, **result}

    return [
        Tool(
            name="get_data",
            description=(
                "Query Salesforce. Describe the data you need in plain language (a SOQL query is generated) "
                "or pass a complete SOQL SELECT statement. Results always include record Ids."
            ),
            parameters=GetDataArgs,
            handler=get_data,
            provider=PROVIDER_SALESFORCE,
            usage=lambda _: UsageDelta(queries_executed=1),
        ),
        Tool(
            name="update_data",
            description=(
                "Update existing Salesforce records of one object type. Confirm the changes with the user first. "
                f"At most {MAX_RECORDS_PER_UPDATE} records per call."
            ),
            parameters=UpdateDataArgs,
            handler=update_data,
            provider=PROVIDER_SALESFORCE,
            usage=_update_usage,
        ),
        Tool(
            name="create_data",
            description="Create one Salesforce record. Confirm the field values with the user first.",
            parameters=CreateDataArgs,
            handler=create_data,
            provider=PROVIDER_SALESFORCE,
            usage=_create_usage,
        ),
    ]


def _error_text(result: dict[str, Any]) -> str:
    errors = result.get("errors") or []
    messages = [e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors]
    return f"{result.get('id') or 'record'}: {'; '.join(messages) or 'update failed'}"


def _update_usage(result: dict[str, Any]) -> UsageDelta:
    results = result["results"]
    succeeded = [r for r in results if r.get("success")]
    errors = [_error_text(r) for r in results if not r.get("success")]
    if not succeeded and errors:
        return UsageDelta(status=UsageStatus.FAILED, errors=errors)
    return UsageDelta(
        records_updated=len(succeeded),
        errors=errors,
        record_ids=[r["id"] for r in succeeded if r.get("id")],
    )


def _create_usage(result: dict[str, Any]) -> UsageDelta:
    if not result.get("success", True):
        return UsageDelta(status=UsageStatus.FAILED, errors=[_error_text(result)])
    return UsageDelta(records_created=1, record_ids=[result["id"]] if result.get("id") else [])


__all__ = ["CreateDataArgs", "GetDataArgs", "UpdateDataArgs", "clean_soql", "is_select_only", "salesforce_tools"]
