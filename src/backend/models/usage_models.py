"""
Usage ledger models.

A usage log entry accumulates the billable CRM actions of one chat run.
Tool calls report partial counts as UsageDelta values; the ledger sums
them into the entry keyed by log id.
"""

from __future__ import annotations

import uuid

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from core.constants import USAGE_FAILED_MESSAGE, USAGE_IN_PROGRESS_MESSAGE, USAGE_SUCCESS_TEMPLATE


class UsageStatus(str, Enum):
    """Lifecycle of a usage log entry.

    NOT_STARTED is never stored; it is the state of a run with no row yet.
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UsageStatus.SUCCESS, UsageStatus.FAILED)


def generate_log_id() -> str:
    """Usage log ids are UUID4 strings; workflow webhooks receive them as usageId."""
    return str(uuid.uuid4())


class UsageDelta(BaseModel):
    """Partial counts reported by one tool call."""

    records_created: int = Field(default=0, ge=0)
    records_updated: int = Field(default=0, ge=0)
    meetings_booked: int = Field(default=0, ge=0)
    queries_executed: int = Field(default=0, ge=0)
    status: UsageStatus = UsageStatus.IN_PROGRESS
    errors: list[str] = Field(default_factory=list)
    record_ids: list[str] = Field(default_factory=list)

    @property
    def usage(self) -> int:
        return self.records_created + self.records_updated + self.meetings_booked + self.queries_executed

    @classmethod
    def failure(cls, message: str) -> UsageDelta:
        return cls(status=UsageStatus.FAILED, errors=[message])


class UsageLogEntry(BaseModel):
    """Accumulated usage for one run of one agent."""

    log_id: str
    user_id: str
    agent: str
    records_created: int = 0
    records_updated: int = 0
    meetings_booked: int = 0
    queries_executed: int = 0
    status: UsageStatus = UsageStatus.IN_PROGRESS
    error_count: int = 0
    error_messages: list[str] = Field(default_factory=list)
    record_ids: list[str] = Field(default_factory=list)
    execution_summary: str = USAGE_IN_PROGRESS_MESSAGE
    archived: bool = False
    timestamp: int = 0  # epoch milliseconds of the first write
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def usage(self) -> int:
        return self.records_created + self.records_updated + self.meetings_booked + self.queries_executed

    @property
    def has_progress(self) -> bool:
        return self.records_created + self.records_updated > 0

    @classmethod
    def from_row(cls, row: Any) -> UsageLogEntry:
        data = dict(row)
        response_data = data.pop("response_data", None) or {}
        return cls(
            log_id=data["id"],
            user_id=data["user_sub"],
            agent=data["agent"],
            records_created=data["records_created"],
            records_updated=data["records_updated"],
            meetings_booked=data["meetings_booked"],
            queries_executed=data["queries_executed"],
            status=UsageStatus(data["status"]),
            error_count=response_data.get("errors", 0),
            error_messages=response_data.get("error_messages", []),
            record_ids=response_data.get("records", []),
            execution_summary=response_data.get("execution_summary", USAGE_IN_PROGRESS_MESSAGE),
            archived=data.get("archived", False),
            timestamp=data["timestamp"],
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def response_data(self) -> dict[str, Any]:
        """JSONB payload stored alongside the counters."""
        return {
            "execution_summary": self.execution_summary,
            "records": self.record_ids,
            "errors": self.error_count,
            "error_messages": self.error_messages,
        }


def summary_message(status: UsageStatus, records_created: int, records_updated: int) -> str:
    """Human-readable progress line shown on the usage dashboard."""
    if status == UsageStatus.FAILED:
        return USAGE_FAILED_MESSAGE
    if status == UsageStatus.SUCCESS:
        return USAGE_SUCCESS_TEMPLATE.format(created=records_created, updated=records_updated)
    return USAGE_IN_PROGRESS_MESSAGE


def resolve_status(existing: UsageLogEntry | None, incoming: UsageStatus) -> UsageStatus:
    """Status a usage entry moves to when a delta with `incoming` status arrives.

    - first write: the incoming status, with NOT_STARTED promoted to IN_PROGRESS
    - FAILED after partial success keeps the existing status
    - a finished (SUCCESS or FAILED) entry is never reopened as IN_PROGRESS
    - otherwise the incoming status wins
    """
    if incoming == UsageStatus.NOT_STARTED:
        incoming = UsageStatus.IN_PROGRESS
    if existing is None:
        return incoming
    if incoming == UsageStatus.FAILED and existing.has_progress:
        return existing.status
    if existing.status.is_terminal and incoming == UsageStatus.IN_PROGRESS:
        return existing.status
    return incoming


def apply_delta(existing: UsageLogEntry, delta: UsageDelta) -> UsageLogEntry:
    """Accumulate a delta into an entry. Counters are summed, never replaced."""
    status = resolve_status(existing, delta.status)
    records_created = existing.records_created + delta.records_created
    records_updated = existing.records_updated + delta.records_updated

    if delta.status == UsageStatus.FAILED and existing.has_progress:
        summary = existing.execution_summary
    elif status == UsageStatus.FAILED and (records_created or records_updated):
        # Late result on a failed run; same summary complete_entry gives
        summary = USAGE_SUCCESS_TEMPLATE.format(created=records_created, updated=records_updated)
    else:
        summary = summary_message(status, records_created, records_updated)

    return existing.model_copy(
        update={
            "records_created": records_created,
            "records_updated": records_updated,
            "meetings_booked": existing.meetings_booked + delta.meetings_booked,
            "queries_executed": existing.queries_executed + delta.queries_executed,
            "status": status,
            "error_count": existing.error_count + len(delta.errors),
            "error_messages": existing.error_messages + delta.errors,
            "record_ids": existing.record_ids + [r for r in delta.record_ids if r not in existing.record_ids],
            "execution_summary": summary,
        }
    )


def complete_entry(existing: UsageLogEntry, outcome: UsageStatus, error: str | None = None) -> UsageLogEntry:
    """Move an entry to its terminal status once the model stream has finished.

    Counters are left untouched. A failed run that already changed records
    keeps a summary of what it did get done.
    """
    if not outcome.is_terminal:
        raise ValueError(f"Terminal status required, got {outcome.value}")

    if outcome == UsageStatus.FAILED and existing.has_progress:
        summary = USAGE_SUCCESS_TEMPLATE.format(created=existing.records_created, updated=existing.records_updated)
    else:
        summary = summary_message(outcome, existing.records_created, existing.records_updated)

    errors = [error] if error else []
    return existing.model_copy(
        update={
            "status": outcome,
            "execution_summary": summary,
            "error_count": existing.error_count + len(errors),
            "error_messages": existing.error_messages + errors,
        }
    )


class UsageTotals(BaseModel):
    """Aggregate counters over a date range, for quota display."""

    records_created: int = 0
    records_updated: int = 0
    meetings_booked: int = 0
    queries_executed: int = 0
    usage: int = 0
    runs: int = 0
    start: datetime
    end: datetime


__all__ = [
    "UsageDelta",
    "UsageLogEntry",
    "UsageStatus",
    "UsageTotals",
    "apply_delta",
    "complete_entry",
    "generate_log_id",
    "resolve_status",
    "summary_message",
]
