"""
Stream event models for chat turns.

Each event is one chunk of the UI message stream protocol, serialized as
a server-sent event: `data: {json}\\n\\n`. Field names are camelCase on the
wire to match the protocol.
"""

from __future__ import annotations

import json

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.constants import (
    EVENT_ERROR,
    EVENT_FINISH,
    EVENT_FINISH_STEP,
    EVENT_START,
    EVENT_START_STEP,
    EVENT_TEXT_DELTA,
    EVENT_TEXT_END,
    EVENT_TEXT_START,
    EVENT_TOOL_INPUT_AVAILABLE,
    EVENT_TOOL_OUTPUT_AVAILABLE,
    EVENT_TOOL_OUTPUT_ERROR,
    STREAM_DONE_SENTINEL,
)


class StreamEvent(BaseModel):
    """Base class for all stream chunks."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def to_sse(self) -> str:
        """Encode as one server-sent event line."""
        return f"data: {json.dumps(self.to_payload(), separators=(',', ':'))}\n\n"


class StartEvent(StreamEvent):
    type: Literal["start"] = EVENT_START
    message_id: str
    message_metadata: dict[str, Any] | None = None


class StartStepEvent(StreamEvent):
    type: Literal["start-step"] = EVENT_START_STEP


class TextStartEvent(StreamEvent):
    type: Literal["text-start"] = EVENT_TEXT_START
    id: str


class TextDeltaEvent(StreamEvent):
    type: Literal["text-delta"] = EVENT_TEXT_DELTA
    id: str
    delta: str


class TextEndEvent(StreamEvent):
    type: Literal["text-end"] = EVENT_TEXT_END
    id: str


class ToolInputAvailableEvent(StreamEvent):
    """The model asked for a tool call; emitted before the tool runs."""

    type: Literal["tool-input-available"] = EVENT_TOOL_INPUT_AVAILABLE
    tool_call_id: str
    tool_name: str
    input: Any = None


class ToolOutputAvailableEvent(StreamEvent):
    type: Literal["tool-output-available"] = EVENT_TOOL_OUTPUT_AVAILABLE
    tool_call_id: str
    output: Any = None


class ToolOutputErrorEvent(StreamEvent):
    type: Literal["tool-output-error"] = EVENT_TOOL_OUTPUT_ERROR
    tool_call_id: str
    error_text: str


class FinishStepEvent(StreamEvent):
    type: Literal["finish-step"] = EVENT_FINISH_STEP


class FinishEvent(StreamEvent):
    type: Literal["finish"] = EVENT_FINISH
    message_metadata: dict[str, Any] = Field(default_factory=dict)


class ErrorEvent(StreamEvent):
    type: Literal["error"] = EVENT_ERROR
    error_text: str


def done_sse() -> str:
    """Terminal line of every stream."""
    return f"data: {STREAM_DONE_SENTINEL}\n\n"


__all__ = [
    "ErrorEvent",
    "FinishEvent",
    "FinishStepEvent",
    "StartEvent",
    "StartStepEvent",
    "StreamEvent",
    "TextDeltaEvent",
    "TextEndEvent",
    "TextStartEvent",
    "ToolInputAvailableEvent",
    "ToolOutputAvailableEvent",
    "ToolOutputErrorEvent",
    "done_sse",
]
