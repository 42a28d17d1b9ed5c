"""
Chat turn executor.

A chat turn is an explicit state machine:

    awaiting_model --(tool calls)--> executing_tool --> awaiting_model
    awaiting_model --(final text or step cap)--> done
    any state --(exception outside a tool call)--> failed

Every model call is one step; the turn stops after `max_steps` steps even
when the model keeps asking for tools. Events are yielded as they happen
and encoded for the client by `stream_ui_messages`.
"""

from __future__ import annotations

import asyncio
import json
import time

from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from api.middleware.exception_handlers import AppException
from api.services.thread_service import ThreadService
from api.services.usage_service import UsageLedger
from core.constants import FINISH_REASON_STEP_LIMIT, FINISH_REASON_STOP, MAX_CHAT_STEPS, MAX_TOOL_RESULT_CHARS
from integrations.openai_model import ChatModel, FinishChunk, TextChunk, ToolCallChunk
from models.event_models import (
    ErrorEvent,
    FinishEvent,
    FinishStepEvent,
    StartEvent,
    StartStepEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ToolInputAvailableEvent,
    ToolOutputAvailableEvent,
    ToolOutputErrorEvent,
    done_sse,
)
from models.thread_models import Message, ToolCall, generate_message_id
from models.usage_models import UsageDelta, UsageStatus, generate_log_id
from tools.base import Tool, decode_arguments, tool_schemas
from utils.logger import logger
from utils.metrics import (
    chat_turn_duration_seconds,
    chat_turn_steps,
    chat_turns_active,
    chat_turns_total,
    track_tool_call,
)

INTERRUPTED_TOOL_ERROR = "Tool call was interrupted before it returned"


class TurnState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOL = "executing_tool"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ChatTurn:
    """Everything one turn needs, resolved before the first model call."""

    user_id: str
    agent: str
    thread_id: str
    system_prompt: str
    tools: dict[str, Tool]
    history: list[Message]
    new_messages: list[Message]
    usage_log_id: str = field(default_factory=generate_log_id)
    # Sent in the start event; the client keys its assistant message by it
    message_id: str = field(default_factory=generate_message_id)


@dataclass
class TurnRun:
    """Mutable state of a turn in progress."""

    state: TurnState = TurnState.AWAITING_MODEL
    steps: int = 0
    generated: list[Message] = field(default_factory=list)
    pending: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    tool_names: list[str] = field(default_factory=list)
    last_text: str = ""


def tool_error_text(exc: BaseException) -> str:
    """Message shown to the model when a tool call fails."""
    if isinstance(exc, ValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in exc.errors()
        )
        return f"Invalid arguments: {problems}"
    if isinstance(exc, AppException):
        return exc.message
    return str(exc) or type(exc).__name__


def serialize_tool_result(result: Any) -> str:
    text = json.dumps(result, default=str)
    if len(text) > MAX_TOOL_RESULT_CHARS:
        return text[:MAX_TOOL_RESULT_CHARS] + "...[truncated]"
    return text


def close_dangling_calls(messages: list[Message]) -> list[Message]:
    """Answer tool calls left without a result so the thread stays replayable."""
    answered = {m.tool_call_id for m in messages if m.role == "tool"}
    closed: list[Message] = []
    unanswered: list[ToolCall] = []
    for message in messages:
        # Synthetic answers go after the real results of the same assistant message
        if message.role != "tool":
            closed.extend(_interrupted(unanswered))
            unanswered = [call for call in message.tool_calls or [] if call.id not in answered]
        closed.append(message)
    closed.extend(_interrupted(unanswered))
    return closed


def _interrupted(calls: list[ToolCall]) -> list[Message]:
    return [
        Message(
            role="tool",
            tool_call_id=call.id,
            name=call.name,
            content=json.dumps({"error": INTERRUPTED_TOOL_ERROR}),
        )
        for call in calls
    ]


class ChatTurnExecutor:
    """Runs chat turns against a model, a thread store and the usage ledger."""

    def __init__(
        self,
        model: ChatModel,
        usage_ledger: UsageLedger,
        threads: ThreadService,
        max_steps: int = MAX_CHAT_STEPS,
    ):
        self.model = model
        self.usage_ledger = usage_ledger
        self.threads = threads
        self.max_steps = max_steps

    async def run(self, turn: ChatTurn) -> AsyncGenerator[StreamEvent, None]:
        """Execute one turn, yielding stream events as they are produced.

        Persists the incoming and generated messages on success and on
        failure. Exceptions other than per-tool failures are re-raised after
        the failed state has been recorded.
        """
        run = TurnRun()
        started = time.perf_counter()
        conversation = [m.to_model_input() for m in [*turn.history, *turn.new_messages]]
        schemas = tool_schemas(turn.tools)

        chat_turns_active.inc()
        try:
            yield StartEvent(
                message_id=turn.message_id,
                message_metadata={"threadId": turn.thread_id, "agent": turn.agent},
            )

            while run.state not in (TurnState.DONE, TurnState.FAILED):
                if run.state == TurnState.AWAITING_MODEL:
                    if run.steps >= self.max_steps:
                        logger.warning(
                            f"Turn reached the step cap of {self.max_steps}",
                            thread_id=turn.thread_id,
                            agent=turn.agent,
                        )
                        run.finish_reason = FINISH_REASON_STEP_LIMIT
                        run.state = TurnState.DONE
                        continue
                    async for event in self._model_step(turn, run, conversation, schemas):
                        yield event
                elif run.state == TurnState.EXECUTING_TOOL:
                    async for event in self._execute_tools(turn, run, conversation):
                        yield event

            await asyncio.shield(self._persist(turn, run, UsageStatus.SUCCESS))
        except BaseException as exc:
            run.state = TurnState.FAILED
            outcome = "cancelled" if isinstance(exc, (asyncio.CancelledError, GeneratorExit)) else "failed"
            chat_turns_total.labels(agent=turn.agent, outcome=outcome).inc()
            logger.error(
                f"Chat turn {outcome} after {run.steps} steps: {type(exc).__name__}: {exc}",
                exc_info=outcome == "failed",
                thread_id=turn.thread_id,
                agent=turn.agent,
            )
            await self._persist_failure(turn, run, exc)
            raise
        finally:
            chat_turns_active.dec()
            chat_turn_steps.labels(agent=turn.agent).observe(run.steps)
            chat_turn_duration_seconds.labels(agent=turn.agent).observe(time.perf_counter() - started)

        chat_turns_total.labels(agent=turn.agent, outcome=TurnState.DONE.value).inc()
        logger.log_conversation_turn(
            user_input=" ".join(m.content or "" for m in turn.new_messages if m.role == "user"),
            response=run.last_text,
            agent=turn.agent,
            thread_id=turn.thread_id,
            tool_calls=run.tool_names,
            steps=run.steps,
            duration_ms=(time.perf_counter() - started) * 1000,
            finish_reason=run.finish_reason,
        )
        yield FinishEvent(
            message_metadata={
                "finishReason": run.finish_reason or FINISH_REASON_STOP,
                "steps": run.steps,
                "threadId": turn.thread_id,
                "usageLogId": turn.usage_log_id,
            }
        )

    async def _model_step(
        self,
        turn: ChatTurn,
        run: TurnRun,
        conversation: list[dict[str, Any]],
        schemas: list[dict[str, Any]],
    ) -> AsyncIterator[StreamEvent]:
        run.steps += 1
        yield StartStepEvent()

        text_id: str | None = None
        text_open = False
        parts: list[str] = []
        calls: list[ToolCall] = []
        finish_reason = FINISH_REASON_STOP

        async for chunk in self.model.stream(turn.system_prompt, conversation, schemas or None):
            if isinstance(chunk, TextChunk):
                if text_id is None:
                    text_id = f"txt_{generate_message_id()[4:]}"
                    text_open = True
                    yield TextStartEvent(id=text_id)
                parts.append(chunk.delta)
                yield TextDeltaEvent(id=text_id, delta=chunk.delta)
                continue

            if text_open and text_id is not None:
                text_open = False
                yield TextEndEvent(id=text_id)

            if isinstance(chunk, ToolCallChunk):
                calls.append(chunk.call)
                yield ToolInputAvailableEvent(
                    tool_call_id=chunk.call.id,
                    tool_name=chunk.call.name,
                    input=decode_arguments(chunk.call.arguments),
                )
            elif isinstance(chunk, FinishChunk):
                finish_reason = chunk.finish_reason

        if text_open and text_id is not None:
            yield TextEndEvent(id=text_id)

        text = "".join(parts)
        first_reply = not any(m.role == "assistant" for m in run.generated)
        message = Message(
            id=turn.message_id if first_reply else generate_message_id(),
            role="assistant",
            content=text or None,
            tool_calls=calls or None,
        )
        run.generated.append(message)
        conversation.append(message.to_model_input())
        if text:
            run.last_text = text

        yield FinishStepEvent()

        if calls:
            run.pending = calls
            run.state = TurnState.EXECUTING_TOOL
        else:
            run.finish_reason = finish_reason
            run.state = TurnState.DONE

    async def _execute_tools(
        self,
        turn: ChatTurn,
        run: TurnRun,
        conversation: list[dict[str, Any]],
    ) -> AsyncIterator[StreamEvent]:
        pending, run.pending = run.pending, []
        for call in pending:
            run.tool_names.append(call.name)
            # An issued call finishes server-side even if the client goes away
            message, event = await asyncio.shield(self._invoke(turn, call))
            run.generated.append(message)
            conversation.append(message.to_model_input())
            yield event
        run.state = TurnState.AWAITING_MODEL

    async def _invoke(self, turn: ChatTurn, call: ToolCall) -> tuple[Message, StreamEvent]:
        """Run one tool call. Tool failures are returned, never raised."""
        tool = turn.tools.get(call.name)
        try:
            with track_tool_call(call.name):
                if tool is None:
                    raise LookupError(f"Unknown tool: {call.name}")
                arguments = tool.parse_arguments(call.arguments)
                result = await tool.invoke(arguments)
        except Exception as exc:
            error_text = tool_error_text(exc)
            logger.log_tool_call(call.name, _loggable(call.arguments), error_text, success=False)
            if tool is not None and tool.billable:
                await self.usage_ledger.record(turn.usage_log_id, turn.user_id, turn.agent, UsageDelta.failure(error_text))
            message = Message(
                role="tool",
                tool_call_id=call.id,
                name=call.name,
                content=json.dumps({"error": error_text}),
            )
            return message, ToolOutputErrorEvent(tool_call_id=call.id, error_text=error_text)

        logger.log_tool_call(call.name, _loggable(call.arguments), result, success=True)
        delta = tool.usage_for(result)
        if delta is not None:
            await self.usage_ledger.record(turn.usage_log_id, turn.user_id, turn.agent, delta)

        message = Message(role="tool", tool_call_id=call.id, name=call.name, content=serialize_tool_result(result))
        return message, ToolOutputAvailableEvent(tool_call_id=call.id, output=result)

    async def _persist(self, turn: ChatTurn, run: TurnRun, outcome: UsageStatus, error: str | None = None) -> None:
        await self.usage_ledger.complete(turn.usage_log_id, outcome, error)
        messages = close_dangling_calls([*turn.new_messages, *run.generated])
        await self.threads.append_messages(turn.user_id, turn.thread_id, messages)

    async def _persist_failure(self, turn: ChatTurn, run: TurnRun, exc: BaseException) -> None:
        """Record a failed turn without masking the exception that caused it."""
        try:
            await asyncio.shield(self._persist(turn, run, UsageStatus.FAILED, tool_error_text(exc)))
        except (Exception, asyncio.CancelledError) as persist_exc:
            logger.error(
                f"Could not persist failed turn: {persist_exc}",
                exc_info=True,
                thread_id=turn.thread_id,
            )


def _loggable(raw: str) -> dict[str, Any]:
    decoded = decode_arguments(raw)
    return decoded if isinstance(decoded, dict) else {"arguments": decoded}


async def prime(events: AsyncGenerator[StreamEvent, None]) -> AsyncGenerator[StreamEvent, None]:
    """Pull events until the model has produced output, then resume lazily.

    Exceptions raised before the first model output propagate from this
    call, so the caller can still answer with a plain HTTP error.
    """
    buffered: list[StreamEvent] = []
    async for event in events:
        buffered.append(event)
        if not isinstance(event, StartEvent | StartStepEvent):
            break

    async def resumed() -> AsyncGenerator[StreamEvent, None]:
        try:
            for event in buffered:
                yield event
            async for event in events:
                yield event
        finally:
            await events.aclose()

    return resumed()


async def stream_ui_messages(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    """Encode events as UI message stream SSE lines, ending with [DONE].

    A failure after streaming has begun is sent as an `error` event.
    """
    try:
        async for event in events:
            yield event.to_sse()
    except Exception as exc:
        logger.error(f"Chat stream failed: {exc}")
        yield ErrorEvent(error_text=tool_error_text(exc)).to_sse()
    yield done_sse()


__all__ = [
    "ChatTurn",
    "ChatTurnExecutor",
    "TurnRun",
    "TurnState",
    "close_dangling_calls",
    "prime",
    "serialize_tool_result",
    "stream_ui_messages",
    "tool_error_text",
]
