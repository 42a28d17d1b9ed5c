"""
Usage ledger API schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from models.schemas.base import PaginationMeta
from models.usage_models import UsageLogEntry, UsageTotals


class UsageListResponse(BaseModel):
    """Paginated usage log entries for the caller."""

    entries: list[UsageLogEntry]
    pagination: PaginationMeta


class UsageSummaryResponse(BaseModel):
    """Totals over a date range, for quota display."""

    totals: UsageTotals
    by_agent: dict[str, UsageTotals] = Field(default_factory=dict, description="Totals split by agent")
