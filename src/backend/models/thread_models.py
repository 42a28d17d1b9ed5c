"""
Conversation thread and message models.

Messages are stored inside the thread document as a JSON array in the
same shape the model API consumes (role/content/tool_calls), so a stored
thread can be replayed to the model without translation.
"""

from __future__ import annotations

import secrets

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["user", "assistant", "tool", "system"]


def generate_message_id() -> str:
    """Generate a message id: msg_ + 16 hex chars."""
    return f"msg_{secrets.token_hex(8)}"


def generate_thread_id() -> str:
    """Generate a thread id: thr_ + 16 hex chars."""
    return f"thr_{secrets.token_hex(8)}"


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: str = "{}"  # raw JSON string as produced by the model


class Message(BaseModel):
    """A single message in a thread. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_message_id)
    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_model_input(self) -> dict[str, Any]:
        """Render in the chat completions message format."""
        if self.role == "tool":
            return {"role": "tool", "tool_call_id": self.tool_call_id, "content": self.content or ""}

        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        elif data["content"] is None:
            data["content"] = ""
        return data

    def to_document(self) -> dict[str, Any]:
        """Serialize for storage in the thread's JSONB messages array."""
        return self.model_dump(mode="json", exclude_none=True)


class Thread(BaseModel):
    """A persisted conversation between one user and one agent."""

    thread_id: str
    user_id: str
    agent: str
    name: str | None = None
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime | None = None
    last_updated: datetime | None = None

    @property
    def message_ids(self) -> set[str]:
        return {m.id for m in self.messages}


def new_messages(stored: list[Message], incoming: list[Message]) -> list[Message]:
    """Incoming messages not already part of the stored sequence.

    Clients resend their whole visible history with every turn; only the
    messages the thread has not seen yet are appended.
    """
    seen = {m.id for m in stored}
    fresh: list[Message] = []
    for message in incoming:
        if message.id in seen:
            continue
        seen.add(message.id)
        fresh.append(message)
    return fresh


__all__ = [
    "Message",
    "MessageRole",
    "Thread",
    "ToolCall",
    "generate_message_id",
    "generate_thread_id",
    "new_messages",
]
