"""
Chat model client for agent turns.

Wraps the AsyncOpenAI chat completions API (OpenAI or any OpenAI-compatible
endpoint such as OpenRouter) behind the small `ChatModel` protocol the turn
executor depends on. One `stream()` call is one model step: text deltas as
they arrive, then the completed tool calls, then the finish reason.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from models.thread_models import ToolCall
from utils.logger import logger

if TYPE_CHECKING:
    from openai import AsyncOpenAI


@dataclass(frozen=True)
class TextChunk:
    """A piece of assistant text."""

    delta: str


@dataclass(frozen=True)
class ToolCallChunk:
    """A tool call whose arguments have been fully received."""

    call: ToolCall


@dataclass(frozen=True)
class FinishChunk:
    """End of one model step."""

    finish_reason: str


ModelChunk = TextChunk | ToolCallChunk | FinishChunk


class ChatModel(Protocol):
    """What the turn executor and utility callers need from a model."""

    model: str

    def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[ModelChunk]: ...

    async def complete(self, system: str, prompt: str, max_tokens: int | None = None) -> str: ...


class OpenAIChatModel:
    """ChatModel backed by chat.completions on an AsyncOpenAI client.

    Tool calls are requested one at a time (parallel_tool_calls=False) so the
    executor can run them in the order the model asked for them.
    """

    def __init__(self, client: AsyncOpenAI, model: str, utility_model: str | None = None) -> None:
        self.client = client
        self.model = model
        self.utility_model = utility_model or model

    async def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[ModelChunk]:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "stream": True,
        }
        if tools:
            request["tools"] = tools
            request["parallel_tool_calls"] = False

        stream = await self.client.chat.completions.create(**request)

        # Tool call fragments arrive keyed by index; arguments are streamed in pieces
        pending: dict[int, dict[str, str]] = {}
        finish_reason: str | None = None

        async for chunk in stream:
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = choice.delta

            if delta is not None and delta.content:
                yield TextChunk(delta=delta.content)

            if delta is not None and delta.tool_calls:
                for fragment in delta.tool_calls:
                    slot = pending.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
                    if fragment.id:
                        slot["id"] = fragment.id
                    if fragment.function is not None:
                        if fragment.function.name:
                            slot["name"] += fragment.function.name
                        if fragment.function.arguments:
                            slot["arguments"] += fragment.function.arguments

            if choice.finish_reason:
                finish_reason = choice.finish_reason

        for index in sorted(pending):
            slot = pending[index]
            yield ToolCallChunk(
                call=ToolCall(id=slot["id"], name=slot["name"], arguments=slot["arguments"] or "{}")
            )

        yield FinishChunk(finish_reason=finish_reason or "stop")

    async def complete(self, system: str, prompt: str, max_tokens: int | None = None) -> str:
        """One-shot completion on the utility model."""
        request: dict[str, Any] = {
            "model": self.utility_model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2,
        }
        if max_tokens is not None:
            request["max_tokens"] = max_tokens

        response = await self.client.chat.completions.create(**request)
        content = response.choices[0].message.content or ""
        logger.debug(f"Utility completion returned {len(content)} chars", model=self.utility_model)
        return content.strip()


__all__ = [
    "ChatModel",
    "FinishChunk",
    "ModelChunk",
    "OpenAIChatModel",
    "TextChunk",
    "ToolCallChunk",
]
