"""
Thread API schemas.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from models.schemas.base import PaginationMeta
from models.thread_models import Message, Thread


class ThreadSummary(BaseModel):
    """Thread metadata without messages, for history lists."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "thr_1a2b3c4d5e6f7a8b",
                "agent": "data-steward",
                "name": "Duplicate account cleanup",
                "message_count": 12,
                "last_updated": "2025-01-15T10:30:00Z",
            }
        }
    )

    id: str = Field(..., description="Thread id")
    agent: str = Field(..., description="Agent the thread belongs to")
    name: str | None = Field(default=None, description="Thread title")
    message_count: int = Field(default=0, ge=0, description="Messages stored in the thread")
    last_updated: datetime | None = Field(default=None, description="Last append time")

    @classmethod
    def from_thread(cls, thread: Thread) -> ThreadSummary:
        return cls(
            id=thread.thread_id,
            agent=thread.agent,
            name=thread.name,
            message_count=len(thread.messages),
            last_updated=thread.last_updated,
        )


class ThreadDetail(ThreadSummary):
    """Thread with its full message sequence."""

    messages: list[Message] = Field(default_factory=list, description="Messages in append order")

    @classmethod
    def from_thread(cls, thread: Thread) -> ThreadDetail:
        return cls(
            id=thread.thread_id,
            agent=thread.agent,
            name=thread.name,
            message_count=len(thread.messages),
            last_updated=thread.last_updated,
            messages=thread.messages,
        )


class ThreadListResponse(BaseModel):
    """Paginated list of the caller's threads."""

    threads: list[ThreadSummary]
    pagination: PaginationMeta


class RenameThreadRequest(BaseModel):
    """Request body for PATCH /api/threads/{id}."""

    name: str = Field(..., min_length=1, max_length=200, description="New thread title")
