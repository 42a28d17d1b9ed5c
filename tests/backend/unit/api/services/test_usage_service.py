from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.services.usage_service import UsageLedger, month_start
from models.usage_models import UsageDelta, UsageStatus


def _row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": "log-1",
        "user_sub": "auth0|u1",
        "agent": "data-steward",
        "records_created": 0,
        "records_updated": 0,
        "meetings_booked": 0,
        "queries_executed": 0,
        "usage": 0,
        "status": "in_progress",
        "response_data": {},
        "archived": False,
        "timestamp": 1700000000000,
    }
    row.update(overrides)
    return row


@pytest.fixture
def ledger(mock_db_pool: MagicMock) -> UsageLedger:
    return UsageLedger(mock_db_pool)


@pytest.mark.asyncio
async def test_first_record_inserts_in_progress(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [None, _row(records_updated=3, usage=3)]

    entry = await ledger.record("log-1", "auth0|u1", "data-steward", UsageDelta(records_updated=3))

    assert entry.records_updated == 3
    select_sql = mock_conn.fetchrow.call_args_list[0].args[0]
    insert_call = mock_conn.fetchrow.call_args_list[1].args
    assert "FOR UPDATE" in select_sql
    assert "INSERT INTO usage_log" in insert_call[0]
    assert insert_call[1:4] == ("log-1", "auth0|u1", "data-steward")
    assert insert_call[5] == 3  # records_updated
    assert insert_call[9] == "in_progress"
    assert insert_call[10]["execution_summary"] == "Operation is in progress"


@pytest.mark.asyncio
async def test_existing_row_is_locked_and_summed(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [
        _row(records_updated=2, queries_executed=1),
        _row(records_updated=5, queries_executed=1),
    ]

    await ledger.record("log-1", "auth0|u1", "data-steward", UsageDelta(records_updated=3))

    update_call = mock_conn.fetchrow.call_args_list[1].args
    assert "UPDATE usage_log" in update_call[0]
    assert update_call[1] == "log-1"
    assert update_call[3] == 5  # records_updated summed
    assert update_call[5] == 1  # queries_executed kept
    assert update_call[6] == 6  # usage
    mock_conn.transaction.assert_called_once()


@pytest.mark.asyncio
async def test_lost_insert_race_accumulates_onto_winner(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [
        None,  # nothing to lock
        None,  # insert lost to a concurrent writer
        _row(records_updated=1),  # winner's row, now locked
        _row(records_updated=2),
    ]

    entry = await ledger.record("log-1", "auth0|u1", "data-steward", UsageDelta(records_updated=1))

    assert entry.records_updated == 2
    assert "UPDATE usage_log" in mock_conn.fetchrow.call_args_list[3].args[0]
    assert mock_conn.fetchrow.call_args_list[3].args[3] == 2


@pytest.mark.asyncio
async def test_failed_delta_after_progress_keeps_status(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [
        _row(records_updated=3, status="success", response_data={"execution_summary": "Created 0 records and updated 3 records"}),
        _row(records_updated=3, status="success", response_data={"errors": 1}),
    ]

    await ledger.record("log-1", "auth0|u1", "data-steward", UsageDelta.failure("INVALID_FIELD"))

    update_call = mock_conn.fetchrow.call_args_list[1].args
    assert update_call[7] == "success"
    assert update_call[8]["errors"] == 1
    assert update_call[8]["execution_summary"] == "Created 0 records and updated 3 records"


@pytest.mark.asyncio
async def test_complete_without_row_is_noop(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = None

    assert await ledger.complete("log-1", UsageStatus.SUCCESS) is None
    mock_conn.fetchrow.assert_called_once()


@pytest.mark.asyncio
async def test_complete_sets_terminal_status(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.side_effect = [_row(records_updated=3), _row(records_updated=3, status="success")]

    entry = await ledger.complete("log-1", UsageStatus.SUCCESS)

    assert entry is not None
    assert entry.status == UsageStatus.SUCCESS
    update_call = mock_conn.fetchrow.call_args_list[1].args
    assert update_call[3] == 3
    assert update_call[7] == "success"
    assert update_call[8]["execution_summary"] == "Created 0 records and updated 3 records"


@pytest.mark.asyncio
async def test_get_is_scoped_by_user(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = None

    assert await ledger.get("auth0|other", "log-1") is None
    args = mock_conn.fetchrow.call_args.args
    assert "user_sub = $2" in args[0]
    assert args[1:] == ("log-1", "auth0|other")


@pytest.mark.asyncio
async def test_list_for_user_returns_total(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetch.return_value = [_row(), _row(id="log-2")]
    mock_conn.fetchval.return_value = 7

    entries, total = await ledger.list_for_user("auth0|u1", limit=2, offset=0)

    assert [e.log_id for e in entries] == ["log-1", "log-2"]
    assert total == 7


@pytest.mark.asyncio
async def test_archive_reports_match(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.execute.return_value = "UPDATE 0"
    assert await ledger.archive("auth0|u1", "missing") is False

    mock_conn.execute.return_value = "UPDATE 1"
    assert await ledger.archive("auth0|u1", "log-1") is True


def test_month_start() -> None:
    assert month_start(datetime(2025, 3, 17, 12, 30, tzinfo=UTC)) == datetime(2025, 3, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_summary_sums_agents(ledger: UsageLedger, mock_conn: AsyncMock) -> None:
    mock_conn.fetch.return_value = [
        {"agent": "data-steward", "records_created": 1, "records_updated": 4, "meetings_booked": 0, "queries_executed": 2, "runs": 3},
        {"agent": "prospect-finder", "records_created": 0, "records_updated": 0, "meetings_booked": 2, "queries_executed": 1, "runs": 1},
    ]
    start = datetime(2025, 3, 1, tzinfo=UTC)
    end = datetime(2025, 4, 1, tzinfo=UTC)

    overall, by_agent = await ledger.summary("auth0|u1", start, end)

    assert overall.usage == 10
    assert overall.runs == 4
    assert by_agent["prospect-finder"].meetings_booked == 2
    args = mock_conn.fetch.call_args.args
    assert args[2] == int(start.timestamp() * 1000)
    assert args[3] == int(end.timestamp() * 1000)
