"""
Usage ledger backed by PostgreSQL.

Billable CRM actions are accumulated per run into one `usage_log` row.
Writes to an existing row lock it first (SELECT ... FOR UPDATE) so
concurrent tool calls reporting against the same log id sum correctly.
"""

from __future__ import annotations

import time

from datetime import UTC, datetime
from typing import Any

import asyncpg

from models.usage_models import (
    UsageDelta,
    UsageLogEntry,
    UsageStatus,
    UsageTotals,
    apply_delta,
    complete_entry,
)
from utils.db_utils import transaction
from utils.logger import logger
from utils.metrics import usage_ledger_updates_total, usage_records_total

_SELECT_FOR_UPDATE = "SELECT * FROM usage_log WHERE id = $1 FOR UPDATE"

_INSERT = """
    INSERT INTO usage_log (
        id, user_sub, agent, records_created, records_updated, meetings_booked,
        queries_executed, usage, status, response_data, timestamp
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
    ON CONFLICT (id) DO NOTHING
    RETURNING *
"""

_UPDATE = """
    UPDATE usage_log
    SET records_created = $2,
        records_updated = $3,
        meetings_booked = $4,
        queries_executed = $5,
        usage = $6,
        status = $7,
        response_data = $8,
        updated_at = NOW()
    WHERE id = $1
    RETURNING *
"""


def month_start(now: datetime | None = None) -> datetime:
    now = now or datetime.now(UTC)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class UsageLedger:
    """Accumulates usage deltas into per-run log entries."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def record(self, log_id: str, user_id: str, agent: str, delta: UsageDelta) -> UsageLogEntry:
        """Add a tool call's counts to the run's entry, creating it on first write."""
        async with transaction(self.pool) as conn:
            row = await conn.fetchrow(_SELECT_FOR_UPDATE, log_id)

            if row is None:
                blank = UsageLogEntry(
                    log_id=log_id,
                    user_id=user_id,
                    agent=agent,
                    timestamp=int(time.time() * 1000),
                )
                entry = apply_delta(blank, delta)
                row = await conn.fetchrow(
                    _INSERT,
                    entry.log_id,
                    entry.user_id,
                    entry.agent,
                    entry.records_created,
                    entry.records_updated,
                    entry.meetings_booked,
                    entry.queries_executed,
                    entry.usage,
                    entry.status.value,
                    entry.response_data(),
                    entry.timestamp,
                )
                if row is None:
                    # A concurrent first write won the insert; accumulate onto it
                    row = await conn.fetchrow(_SELECT_FOR_UPDATE, log_id)
                    entry = apply_delta(UsageLogEntry.from_row(row), delta)
                    row = await self._update(conn, entry)
            else:
                entry = apply_delta(UsageLogEntry.from_row(row), delta)
                row = await self._update(conn, entry)

        stored = UsageLogEntry.from_row(row)
        self._observe(stored, delta)
        logger.info(
            f"Usage recorded for {log_id}: status={stored.status.value} usage={stored.usage}",
            usage_log_id=log_id,
            agent=agent,
            usage_status=stored.status.value,
        )
        return stored

    async def complete(self, log_id: str, outcome: UsageStatus, error: str | None = None) -> UsageLogEntry | None:
        """Set the terminal status once the model stream has finished.

        Returns None without writing when the run never created an entry.
        """
        async with transaction(self.pool) as conn:
            row = await conn.fetchrow(_SELECT_FOR_UPDATE, log_id)
            if row is None:
                return None
            entry = complete_entry(UsageLogEntry.from_row(row), outcome, error)
            row = await self._update(conn, entry)

        stored = UsageLogEntry.from_row(row)
        usage_ledger_updates_total.labels(status=stored.status.value).inc()
        logger.info(f"Usage log {log_id} completed as {stored.status.value}", usage_log_id=log_id)
        return stored

    async def get(self, user_id: str, log_id: str) -> UsageLogEntry | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM usage_log WHERE id = $1 AND user_sub = $2",
                log_id,
                user_id,
            )
        return UsageLogEntry.from_row(row) if row else None

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        agent: str | None = None,
        include_archived: bool = False,
    ) -> tuple[list[UsageLogEntry], int]:
        """Newest entries first, with the total count for pagination."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM usage_log
                WHERE user_sub = $1
                  AND ($2::text IS NULL OR agent = $2)
                  AND ($3 OR NOT archived)
                ORDER BY timestamp DESC
                LIMIT $4 OFFSET $5
                """,
                user_id,
                agent,
                include_archived,
                limit,
                offset,
            )
            total = await conn.fetchval(
                """
                SELECT COUNT(*) FROM usage_log
                WHERE user_sub = $1
                  AND ($2::text IS NULL OR agent = $2)
                  AND ($3 OR NOT archived)
                """,
                user_id,
                agent,
                include_archived,
            )
        return [UsageLogEntry.from_row(r) for r in rows], total or 0

    async def archive(self, user_id: str, log_id: str) -> bool:
        """Hide an entry from the dashboard. Counters still count toward totals."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE usage_log SET archived = TRUE, updated_at = NOW()
                WHERE id = $1 AND user_sub = $2
                """,
                log_id,
                user_id,
            )
        return result == "UPDATE 1"

    async def summary(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[UsageTotals, dict[str, UsageTotals]]:
        """Totals over [start, end), overall and per agent. Defaults to the current month."""
        end = end or datetime.now(UTC)
        start = start or month_start(end)
        start_ms = int(start.timestamp() * 1000)
        end_ms = int(end.timestamp() * 1000)

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT agent,
                       COALESCE(SUM(records_created), 0) AS records_created,
                       COALESCE(SUM(records_updated), 0) AS records_updated,
                       COALESCE(SUM(meetings_booked), 0) AS meetings_booked,
                       COALESCE(SUM(queries_executed), 0) AS queries_executed,
                       COUNT(*) AS runs
                FROM usage_log
                WHERE user_sub = $1 AND timestamp >= $2 AND timestamp < $3
                GROUP BY agent
                """,
                user_id,
                start_ms,
                end_ms,
            )

        by_agent = {row["agent"]: _totals(row, start, end) for row in rows}
        overall = UsageTotals(start=start, end=end)
        for agent_totals in by_agent.values():
            overall = overall.model_copy(
                update={
                    "records_created": overall.records_created + agent_totals.records_created,
                    "records_updated": overall.records_updated + agent_totals.records_updated,
                    "meetings_booked": overall.meetings_booked + agent_totals.meetings_booked,
                    "queries_executed": overall.queries_executed + agent_totals.queries_executed,
                    "usage": overall.usage + agent_totals.usage,
                    "runs": overall.runs + agent_totals.runs,
                }
            )
        return overall, by_agent

    async def totals(self, user_id: str, start: datetime | None = None, end: datetime | None = None) -> UsageTotals:
        overall, _ = await self.summary(user_id, start, end)
        return overall

    async def _update(self, conn: asyncpg.Connection, entry: UsageLogEntry) -> asyncpg.Record:
        return await conn.fetchrow(
            _UPDATE,
            entry.log_id,
            entry.records_created,
            entry.records_updated,
            entry.meetings_booked,
            entry.queries_executed,
            entry.usage,
            entry.status.value,
            entry.response_data(),
        )

    def _observe(self, entry: UsageLogEntry, delta: UsageDelta) -> None:
        usage_ledger_updates_total.labels(status=entry.status.value).inc()
        for kind, count in (
            ("created", delta.records_created),
            ("updated", delta.records_updated),
            ("meetings", delta.meetings_booked),
            ("queries", delta.queries_executed),
        ):
            if count:
                usage_records_total.labels(agent=entry.agent, kind=kind).inc(count)


def _totals(row: Any, start: datetime, end: datetime) -> UsageTotals:
    created = int(row["records_created"])
    updated = int(row["records_updated"])
    meetings = int(row["meetings_booked"])
    queries = int(row["queries_executed"])
    return UsageTotals(
        records_created=created,
        records_updated=updated,
        meetings_booked=meetings,
        queries_executed=queries,
        usage=created + updated + meetings + queries,
        runs=int(row["runs"]),
        start=start,
        end=end,
    )


__all__ = ["UsageLedger", "month_start"]
