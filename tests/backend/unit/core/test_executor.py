from __future__ import annotations

import json

from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pydantic import BaseModel

from api.services.usage_service import UsageLedger
from core.executor import (
    INTERRUPTED_TOOL_ERROR,
    ChatTurn,
    ChatTurnExecutor,
    close_dangling_calls,
    prime,
    serialize_tool_result,
    stream_ui_messages,
)
from integrations.openai_model import FinishChunk, ModelChunk, TextChunk, ToolCallChunk
from models.event_models import StartEvent, StreamEvent
from models.thread_models import Message, ToolCall, new_messages
from models.usage_models import UsageDelta, UsageStatus
from tools.base import Tool


class FakeModel:
    """Replays one scripted list of chunks per model step."""

    model = "fake-model"

    def __init__(self, steps: list[list[ModelChunk]], error: Exception | None = None) -> None:
        self.steps = list(steps)
        self.error = error
        self.calls: list[list[dict[str, Any]]] = []

    async def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[ModelChunk]:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        for chunk in self.steps.pop(0):
            yield chunk

    async def complete(self, system: str, prompt: str, max_tokens: int | None = None) -> str:
        return ""


class UpdateArgs(BaseModel):
    ids: list[str]


def _update_tool(handler: Any = None) -> Tool:
    async def update(args: UpdateArgs) -> dict[str, Any]:
        return {"updated": len(args.ids)}

    return Tool(
        name="update_data",
        description="Update records",
        parameters=UpdateArgs,
        handler=handler or update,
        usage=lambda result: UsageDelta(records_updated=result["updated"]),
    )


def _call(call_id: str, name: str, arguments: dict[str, Any] | str) -> ToolCallChunk:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return ToolCallChunk(call=ToolCall(id=call_id, name=name, arguments=raw))


def _turn(tools: dict[str, Tool] | None = None, history: list[Message] | None = None) -> ChatTurn:
    return ChatTurn(
        user_id="auth0|u1",
        agent="data-steward",
        thread_id="thr_1",
        system_prompt="You are a data steward.",
        tools=tools or {},
        history=history or [],
        new_messages=[Message(id="m1", role="user", content="update 3 accounts")],
    )


@pytest.fixture
def ledger() -> MagicMock:
    ledger = MagicMock()
    ledger.record = AsyncMock()
    ledger.complete = AsyncMock()
    return ledger


@pytest.fixture
def threads() -> MagicMock:
    threads = MagicMock()
    threads.append_messages = AsyncMock()
    return threads


async def _collect(executor: ChatTurnExecutor, turn: ChatTurn) -> list[StreamEvent]:
    return [event async for event in executor.run(turn)]


def _types(events: list[StreamEvent]) -> list[str]:
    return [e.type for e in events]


def _persisted(threads: MagicMock) -> list[Message]:
    messages: list[Message] = threads.append_messages.call_args.args[2]
    return messages


@pytest.mark.asyncio
async def test_text_only_turn(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel([[TextChunk("Hel"), TextChunk("lo"), FinishChunk("stop")]])
    executor = ChatTurnExecutor(model, ledger, threads)

    events = await _collect(executor, _turn())

    assert _types(events) == [
        "start",
        "start-step",
        "text-start",
        "text-delta",
        "text-delta",
        "text-end",
        "finish-step",
        "finish",
    ]
    assert events[-1].message_metadata["finishReason"] == "stop"
    persisted = _persisted(threads)
    assert [(m.role, m.content) for m in persisted] == [("user", "update 3 accounts"), ("assistant", "Hello")]
    ledger.complete.assert_awaited_once()
    assert ledger.complete.call_args.args[1] == UsageStatus.SUCCESS
    ledger.record.assert_not_called()


@pytest.mark.asyncio
async def test_tool_call_records_usage_and_feeds_result_back(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel(
        [
            [_call("call_1", "update_data", {"ids": ["001A", "001B", "001C"]}), FinishChunk("tool_calls")],
            [TextChunk("Updated 3 accounts."), FinishChunk("stop")],
        ]
    )
    executor = ChatTurnExecutor(model, ledger, threads)
    turn = _turn({"update_data": _update_tool()})

    events = await _collect(executor, turn)

    assert "tool-input-available" in _types(events)
    output = next(e for e in events if e.type == "tool-output-available")
    assert output.output == {"updated": 3}

    ledger.record.assert_awaited_once()
    log_id, user_id, agent, delta = ledger.record.call_args.args
    assert (log_id, user_id, agent) == (turn.usage_log_id, "auth0|u1", "data-steward")
    assert delta.records_updated == 3

    # second model call sees the tool result
    assert model.calls[1][-1] == {"role": "tool", "tool_call_id": "call_1", "content": '{"updated": 3}'}
    roles = [m.role for m in _persisted(threads)]
    assert roles == ["user", "assistant", "tool", "assistant"]
    assert events[-1].message_metadata["steps"] == 2


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_to_model(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel(
        [
            [_call("call_1", "delete_everything", {}), FinishChunk("tool_calls")],
            [TextChunk("I can't do that."), FinishChunk("stop")],
        ]
    )
    executor = ChatTurnExecutor(model, ledger, threads)

    events = await _collect(executor, _turn())

    error = next(e for e in events if e.type == "tool-output-error")
    assert error.error_text == "Unknown tool: delete_everything"
    assert events[-1].type == "finish"
    ledger.record.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_arguments_are_reported_and_billed_as_failure(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel(
        [
            [_call("call_1", "update_data", {"ids": "not-a-list"}), FinishChunk("tool_calls")],
            [TextChunk("Let me retry."), FinishChunk("stop")],
        ]
    )
    executor = ChatTurnExecutor(model, ledger, threads)

    events = await _collect(executor, _turn({"update_data": _update_tool()}))

    error = next(e for e in events if e.type == "tool-output-error")
    assert error.error_text.startswith("Invalid arguments: ids")
    delta = ledger.record.call_args.args[3]
    assert delta.status == UsageStatus.FAILED


@pytest.mark.asyncio
async def test_handler_exception_does_not_end_turn(ledger: MagicMock, threads: MagicMock) -> None:
    async def broken(args: UpdateArgs) -> dict[str, Any]:
        raise RuntimeError("INVALID_FIELD: No such column 'Foo__c'")

    model = FakeModel(
        [
            [_call("call_1", "update_data", {"ids": ["001A"]}), FinishChunk("tool_calls")],
            [TextChunk("That field does not exist."), FinishChunk("stop")],
        ]
    )
    executor = ChatTurnExecutor(model, ledger, threads)

    events = await _collect(executor, _turn({"update_data": _update_tool(broken)}))

    tool_message = _persisted(threads)[2]
    assert json.loads(tool_message.content or "") == {"error": "INVALID_FIELD: No such column 'Foo__c'"}
    assert events[-1].message_metadata["finishReason"] == "stop"


@pytest.mark.asyncio
async def test_step_cap_stops_tool_loop(ledger: MagicMock, threads: MagicMock) -> None:
    steps = [[_call(f"call_{i}", "update_data", {"ids": ["001A"]}), FinishChunk("tool_calls")] for i in range(5)]
    model = FakeModel(steps)
    executor = ChatTurnExecutor(model, ledger, threads, max_steps=3)

    events = await _collect(executor, _turn({"update_data": _update_tool()}))

    assert len(model.calls) == 3
    assert _types(events).count("start-step") == 3
    assert events[-1].message_metadata["finishReason"] == "step-limit"
    assert events[-1].message_metadata["steps"] == 3
    assert ledger.record.await_count == 3


@pytest.mark.asyncio
async def test_model_failure_persists_and_reraises(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel([], error=RuntimeError("Incorrect API key provided"))
    executor = ChatTurnExecutor(model, ledger, threads)

    with pytest.raises(RuntimeError, match="Incorrect API key"):
        await _collect(executor, _turn())

    assert ledger.complete.call_args.args[1:] == (UsageStatus.FAILED, "Incorrect API key provided")
    assert [m.id for m in _persisted(threads)] == ["m1"]


@pytest.mark.asyncio
async def test_history_is_sent_before_new_messages(ledger: MagicMock, threads: MagicMock) -> None:
    history = [Message(role="user", content="hi"), Message(role="assistant", content="Hello")]
    model = FakeModel([[TextChunk("ok"), FinishChunk("stop")]])
    executor = ChatTurnExecutor(model, ledger, threads)

    await _collect(executor, _turn(history=history))

    assert [m["content"] for m in model.calls[0]] == ["hi", "Hello", "update 3 accounts"]
    # only the new messages are appended
    assert [m.content for m in _persisted(threads)] == ["update 3 accounts", "ok"]


@pytest.mark.asyncio
async def test_resent_history_does_not_duplicate_reply(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel([[TextChunk("Hello"), FinishChunk("stop")]])
    executor = ChatTurnExecutor(model, ledger, threads)

    events = await _collect(executor, _turn())

    start = events[0]
    assert isinstance(start, StartEvent)
    stored = _persisted(threads)
    assert stored[-1].id == start.message_id

    # Next request carries the whole visible conversation again
    resent = [
        Message(id="m1", role="user", content="update 3 accounts"),
        Message(id=start.message_id, role="assistant", content="Hello"),
        Message(id="m2", role="user", content="again"),
    ]
    assert [(m.role, m.content) for m in new_messages(stored, resent)] == [("user", "again")]


@pytest.mark.asyncio
async def test_only_first_reply_of_turn_takes_start_id(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel(
        [
            [_call("call_1", "update_data", {"ids": ["001A"]}), FinishChunk("tool_calls")],
            [TextChunk("Done."), FinishChunk("stop")],
        ]
    )
    executor = ChatTurnExecutor(model, ledger, threads)
    turn = _turn({"update_data": _update_tool()})

    await _collect(executor, turn)

    replies = [m for m in _persisted(threads) if m.role == "assistant"]
    assert len(replies) == 2
    assert replies[0].id == turn.message_id
    assert replies[1].id != turn.message_id


class InMemoryUsageTable:
    """Answers the ledger's usage_log queries from a dict of rows."""

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}

    async def fetchrow(self, query: str, *args: Any) -> dict[str, Any] | None:
        if "INSERT INTO usage_log" in query:
            log_id, user_sub, agent, created, updated, meetings, queries, usage, status, response_data, ts = args
            if log_id in self.rows:
                return None
            self.rows[log_id] = {
                "id": log_id,
                "user_sub": user_sub,
                "agent": agent,
                "records_created": created,
                "records_updated": updated,
                "meetings_booked": meetings,
                "queries_executed": queries,
                "usage": usage,
                "status": status,
                "response_data": response_data,
                "archived": False,
                "timestamp": ts,
            }
            return dict(self.rows[log_id])
        if "UPDATE usage_log" in query:
            log_id, created, updated, meetings, queries, usage, status, response_data = args
            self.rows[log_id].update(
                records_created=created,
                records_updated=updated,
                meetings_booked=meetings,
                queries_executed=queries,
                usage=usage,
                status=status,
                response_data=response_data,
            )
            return dict(self.rows[log_id])
        row = self.rows.get(args[0])
        return dict(row) if row is not None else None


@pytest.mark.asyncio
async def test_update_three_accounts_lands_in_ledger(
    mock_db_pool: MagicMock, mock_conn: AsyncMock, threads: MagicMock
) -> None:
    table = InMemoryUsageTable()
    mock_conn.fetchrow.side_effect = table.fetchrow
    model = FakeModel(
        [
            [_call("call_1", "update_data", {"ids": ["001A", "001B", "001C"]}), FinishChunk("tool_calls")],
            [TextChunk("Updated 3 accounts."), FinishChunk("stop")],
        ]
    )
    executor = ChatTurnExecutor(model, UsageLedger(mock_db_pool), threads)
    turn = _turn({"update_data": _update_tool()})

    await _collect(executor, turn)

    row = table.rows[turn.usage_log_id]
    assert row["records_updated"] == 3
    assert row["usage"] == 3
    assert row["status"] == "success"
    assert row["response_data"]["execution_summary"] == "Created 0 records and updated 3 records"


def test_close_dangling_calls_answers_unanswered() -> None:
    messages = [
        Message(role="user", content="go"),
        Message(
            role="assistant",
            tool_calls=[ToolCall(id="a", name="get_data"), ToolCall(id="b", name="update_data")],
        ),
        Message(role="tool", tool_call_id="a", content="{}"),
    ]

    closed = close_dangling_calls(messages)

    assert len(closed) == 4
    assert [m.tool_call_id for m in closed[2:]] == ["a", "b"]
    assert closed[-1].tool_call_id == "b"
    assert json.loads(closed[-1].content or "") == {"error": INTERRUPTED_TOOL_ERROR}


def test_serialize_tool_result_truncates() -> None:
    text = serialize_tool_result({"blob": "x" * 50_000})
    assert text.endswith("...[truncated]")
    assert len(text) < 50_000


@pytest.mark.asyncio
async def test_prime_raises_before_output(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel([], error=RuntimeError("model unavailable"))
    executor = ChatTurnExecutor(model, ledger, threads)

    with pytest.raises(RuntimeError, match="model unavailable"):
        await prime(executor.run(_turn()))


@pytest.mark.asyncio
async def test_prime_replays_buffered_events(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel([[TextChunk("Hi"), FinishChunk("stop")]])
    executor = ChatTurnExecutor(model, ledger, threads)

    events = await prime(executor.run(_turn()))
    collected = [e async for e in events]

    assert _types(collected)[:3] == ["start", "start-step", "text-start"]
    assert collected[-1].type == "finish"


@pytest.mark.asyncio
async def test_stream_ui_messages_ends_with_done(ledger: MagicMock, threads: MagicMock) -> None:
    model = FakeModel([[TextChunk("Hi"), FinishChunk("stop")]])
    executor = ChatTurnExecutor(model, ledger, threads)

    lines = [line async for line in stream_ui_messages(executor.run(_turn()))]

    assert all(line.startswith("data: ") and line.endswith("\n\n") for line in lines)
    assert lines[-1] == "data: [DONE]\n\n"
    assert json.loads(lines[-2][6:])["type"] == "finish"


@pytest.mark.asyncio
async def test_stream_ui_messages_reports_late_failure() -> None:
    async def failing() -> AsyncIterator[StreamEvent]:
        yield StartEvent(message_id="msg_1")
        raise RuntimeError("connection reset")

    lines = [line async for line in stream_ui_messages(failing())]

    assert json.loads(lines[1][6:]) == {"type": "error", "errorText": "connection reset"}
    assert lines[-1] == "data: [DONE]\n\n"
