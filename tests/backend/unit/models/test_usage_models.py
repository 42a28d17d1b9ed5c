from __future__ import annotations

import pytest

from models.usage_models import (
    UsageDelta,
    UsageLogEntry,
    UsageStatus,
    apply_delta,
    complete_entry,
    resolve_status,
    summary_message,
)


def _entry(**kwargs: object) -> UsageLogEntry:
    return UsageLogEntry(log_id="log-1", user_id="auth0|u1", agent="data-steward", **kwargs)  # type: ignore[arg-type]


def test_first_write_promotes_not_started() -> None:
    assert resolve_status(None, UsageStatus.NOT_STARTED) == UsageStatus.IN_PROGRESS
    assert resolve_status(None, UsageStatus.FAILED) == UsageStatus.FAILED


def test_counters_are_additive() -> None:
    entry = _entry(records_updated=2, queries_executed=1)

    updated = apply_delta(entry, UsageDelta(records_updated=3, records_created=1))

    assert updated.records_updated == 5
    assert updated.records_created == 1
    assert updated.queries_executed == 1
    assert updated.usage == 7
    assert updated.status == UsageStatus.IN_PROGRESS


def test_failed_delta_after_progress_keeps_status_and_summary() -> None:
    entry = _entry(records_updated=3, status=UsageStatus.SUCCESS, execution_summary="Created 0 records and updated 3 records")

    updated = apply_delta(entry, UsageDelta.failure("INVALID_FIELD: Industry"))

    assert updated.status == UsageStatus.SUCCESS
    assert updated.execution_summary == "Created 0 records and updated 3 records"
    assert updated.error_count == 1
    assert updated.error_messages == ["INVALID_FIELD: Industry"]
    assert updated.records_updated == 3


def test_failed_delta_without_progress_fails_entry() -> None:
    updated = apply_delta(_entry(queries_executed=1), UsageDelta.failure("boom"))

    assert updated.status == UsageStatus.FAILED
    assert updated.execution_summary == "Failed to complete the operation"


def test_success_is_not_downgraded_by_in_progress() -> None:
    entry = _entry(status=UsageStatus.SUCCESS)
    assert resolve_status(entry, UsageStatus.IN_PROGRESS) == UsageStatus.SUCCESS


def test_late_tool_result_does_not_reopen_failed_run() -> None:
    failed = complete_entry(_entry(), UsageStatus.FAILED, "client disconnected")

    updated = apply_delta(failed, UsageDelta(records_updated=1))

    assert updated.status == UsageStatus.FAILED
    assert updated.records_updated == 1
    assert updated.execution_summary == "Created 0 records and updated 1 records"


def test_late_tool_result_keeps_success() -> None:
    done = complete_entry(_entry(records_updated=2), UsageStatus.SUCCESS)

    updated = apply_delta(done, UsageDelta(records_created=1))

    assert updated.status == UsageStatus.SUCCESS
    assert updated.records_created == 1
    assert updated.execution_summary == "Created 1 records and updated 2 records"


def test_record_ids_are_deduplicated() -> None:
    entry = _entry(record_ids=["001A"])
    updated = apply_delta(entry, UsageDelta(records_updated=2, record_ids=["001A", "001B"]))
    assert updated.record_ids == ["001A", "001B"]


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (UsageStatus.FAILED, "Failed to complete the operation"),
        (UsageStatus.IN_PROGRESS, "Operation is in progress"),
        (UsageStatus.SUCCESS, "Created 2 records and updated 5 records"),
    ],
)
def test_summary_message(status: UsageStatus, expected: str) -> None:
    assert summary_message(status, 2, 5) == expected


def test_complete_entry_success_leaves_counters() -> None:
    entry = _entry(records_updated=3, queries_executed=2)

    done = complete_entry(entry, UsageStatus.SUCCESS)

    assert done.status == UsageStatus.SUCCESS
    assert done.records_updated == 3
    assert done.queries_executed == 2
    assert done.execution_summary == "Created 0 records and updated 3 records"


def test_complete_entry_failed_records_error() -> None:
    done = complete_entry(_entry(), UsageStatus.FAILED, "model unavailable")

    assert done.status == UsageStatus.FAILED
    assert done.error_messages == ["model unavailable"]
    assert done.error_count == 1


def test_complete_entry_requires_terminal_status() -> None:
    with pytest.raises(ValueError, match="Terminal status"):
        complete_entry(_entry(), UsageStatus.IN_PROGRESS)


def test_from_row_round_trips_response_data() -> None:
    entry = _entry(records_created=1, error_count=1, error_messages=["x"], record_ids=["001"], timestamp=1700000000000)
    row = {
        "id": entry.log_id,
        "user_sub": entry.user_id,
        "agent": entry.agent,
        "records_created": 1,
        "records_updated": 0,
        "meetings_booked": 0,
        "queries_executed": 0,
        "status": "in_progress",
        "response_data": entry.response_data(),
        "archived": False,
        "timestamp": 1700000000000,
    }

    loaded = UsageLogEntry.from_row(row)

    assert loaded.error_messages == ["x"]
    assert loaded.record_ids == ["001"]
    assert loaded.usage == 1
