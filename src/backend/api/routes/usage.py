"""
Usage ledger endpoints for the dashboard.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Path, Query

from api.dependencies import Usage
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import UsageLogNotFoundError
from models.schemas.base import PaginationMeta, SuccessResponse
from models.schemas.usage import UsageListResponse, UsageSummaryResponse
from models.usage_models import UsageLogEntry

router = APIRouter()

LogIdPath = Annotated[str, Path(..., description="Usage log identifier", min_length=1, max_length=100)]


@router.get("", response_model=UsageListResponse, summary="List usage entries")
async def list_usage(
    user: CurrentUser,
    usage: Usage,
    agent: Annotated[str | None, Query(description="Only entries for this agent")] = None,
    include_archived: Annotated[bool, Query(alias="includeArchived")] = False,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> UsageListResponse:
    entries, total = await usage.list_for_user(
        user.id,
        limit=limit,
        offset=offset,
        agent=agent,
        include_archived=include_archived,
    )
    return UsageListResponse(entries=entries, pagination=PaginationMeta.build(total, offset, limit))


# Declared before /{log_id} so "summary" is not taken for an id
@router.get("/summary", response_model=UsageSummaryResponse, summary="Usage totals")
async def usage_summary(
    user: CurrentUser,
    usage: Usage,
    start: Annotated[datetime | None, Query(description="Range start, defaults to the first of the month")] = None,
    end: Annotated[datetime | None, Query(description="Range end, defaults to now")] = None,
) -> UsageSummaryResponse:
    totals, by_agent = await usage.summary(user.id, start, end)
    return UsageSummaryResponse(totals=totals, by_agent=by_agent)


@router.get("/{log_id}", response_model=UsageLogEntry, summary="Get a usage entry")
async def get_usage(user: CurrentUser, usage: Usage, log_id: LogIdPath) -> UsageLogEntry:
    entry = await usage.get(user.id, log_id)
    if entry is None:
        raise UsageLogNotFoundError(log_id)
    return entry


@router.delete("/{log_id}", response_model=SuccessResponse, summary="Archive a usage entry")
async def archive_usage(user: CurrentUser, usage: Usage, log_id: LogIdPath) -> SuccessResponse:
    if not await usage.archive(user.id, log_id):
        raise UsageLogNotFoundError(log_id)
    return SuccessResponse(message="Usage entry archived")
