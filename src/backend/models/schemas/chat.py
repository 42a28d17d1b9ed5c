"""
Chat endpoint schemas.

Incoming messages follow the UI client's shape: an id, a role, and either
plain `content` or a list of `parts` of which only text parts are kept.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from models.thread_models import Message, generate_message_id


class MessagePart(BaseModel):
    """One part of a UI message. Non-text parts are carried but ignored."""

    model_config = ConfigDict(extra="allow")

    type: str
    text: str | None = None


class ChatMessageIn(BaseModel):
    """A message as sent by the chat client."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    role: Literal["user", "assistant"]
    content: str | None = None
    parts: list[MessagePart] | None = None

    @property
    def text(self) -> str:
        if self.content is not None:
            return self.content
        return "".join(p.text or "" for p in self.parts or [] if p.type == "text")

    def to_message(self) -> Message:
        return Message(id=self.id or generate_message_id(), role=self.role, content=self.text)


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "id": "thr_1a2b3c4d5e6f7a8b",
                "messages": [
                    {"id": "m1", "role": "user", "parts": [{"type": "text", "text": "update 3 accounts"}]}
                ],
                "webSearch": False,
            }
        },
    )

    id: str | None = Field(default=None, description="Thread to continue; a new thread is created when omitted")
    messages: list[ChatMessageIn] | None = Field(default=None, description="Conversation as seen by the client")
    web_search: bool = Field(default=False, alias="webSearch", description="Expose the web search tool")

    def to_messages(self) -> list[Message]:
        return [m.to_message() for m in self.messages or []]


class NewThreadResponse(BaseModel):
    """Response for GET /api/chat."""

    model_config = ConfigDict(json_schema_extra={"example": {"id": "thr_1a2b3c4d5e6f7a8b", "agent": "data-steward"}})

    id: str = Field(..., description="New thread id")
    agent: str = Field(..., description="Agent the thread belongs to")
