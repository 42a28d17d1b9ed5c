"""
Meeting booking tool on the user's connected calendar.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from integrations.calendar_clients import CalendarClient
from models.usage_models import UsageDelta
from tools.base import Tool


class BookMeetingArgs(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    start: datetime = Field(..., description="Start time, ISO 8601")
    end: datetime = Field(..., description="End time, ISO 8601")
    attendees: list[str] = Field(
        ...,
        min_length=1,
        description="Attendee email addresses",
        json_schema_extra={"items": {"type": "string", "format": "email"}},
    )
    time_zone: str = Field(default="UTC", description="IANA time zone, e.g. America/New_York")
    description: str | None = None

    @model_validator(mode="after")
    def check_window(self) -> BookMeetingArgs:
        if self.end <= self.start:
            raise ValueError("end must be after start")
        bad = [a for a in self.attendees if "@" not in a]
        if bad:
            raise ValueError(f"Not email addresses: {', '.join(bad)}")
        return self


def book_meeting_tool(client: CalendarClient) -> Tool:
    async def book_meeting(args: BookMeetingArgs) -> dict[str, Any]:
        # Naive times are interpreted in time_zone by both providers
        start = args.start.replace(tzinfo=None).isoformat()
        end = args.end.replace(tzinfo=None).isoformat()
        return await client.create_event(
            subject=args.subject,
            start=start,
            end=end,
            attendees=args.attendees,
            time_zone=args.time_zone,
            description=args.description,
        )

    return Tool(
        name="book_meeting",
        description="Book a meeting on the user's calendar and invite the attendees. Confirm the details first.",
        parameters=BookMeetingArgs,
        handler=book_meeting,
        provider=client.provider,
        usage=lambda _: UsageDelta(meetings_booked=1),
    )


__all__ = ["BookMeetingArgs", "book_meeting_tool"]
