"""
Prometheus metrics for the agent service.

Defines chat turn, tool, credential and usage ledger metrics plus the
helpers that record them.
"""

from __future__ import annotations

import time

from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Gauge, Histogram

# Use standard Prometheus naming conventions: namespace_subsystem_name_unit
NAMESPACE = "crmcopilot"

# ============================================================================
# Chat Turn Metrics
# ============================================================================

chat_turns_total = Counter(
    f"{NAMESPACE}_chat_turns_total",
    "Total number of chat turns executed",
    ["agent", "outcome"],  # outcome: "done", "failed", "cancelled"
)

chat_turn_steps = Histogram(
    f"{NAMESPACE}_chat_turn_steps",
    "Model calls per chat turn",
    ["agent"],
    buckets=(1, 2, 3, 4, 5, 6, 7, 8, 9, 10),
)

chat_turn_duration_seconds = Histogram(
    f"{NAMESPACE}_chat_turn_duration_seconds",
    "Wall-clock duration of a chat turn in seconds",
    ["agent"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

chat_turns_active = Gauge(
    f"{NAMESPACE}_chat_turns_active",
    "Number of chat turns currently streaming",
)

# ============================================================================
# Tool Metrics
# ============================================================================

tool_calls_total = Counter(
    f"{NAMESPACE}_tool_calls_total",
    "Total number of tool calls executed",
    ["tool_name", "status"],  # status: "success", "error"
)

tool_call_duration_seconds = Histogram(
    f"{NAMESPACE}_tool_call_duration_seconds",
    "Tool call execution duration in seconds",
    ["tool_name"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

tools_omitted_total = Counter(
    f"{NAMESPACE}_tools_omitted_total",
    "Tools left out of a registry because their provider credential was unavailable",
    ["provider"],
)

# ============================================================================
# Credential Metrics
# ============================================================================

credential_refreshes_total = Counter(
    f"{NAMESPACE}_credential_refreshes_total",
    "OAuth token refresh attempts",
    ["provider", "outcome"],  # outcome: "success", "error"
)

# ============================================================================
# Usage Ledger Metrics
# ============================================================================

usage_ledger_updates_total = Counter(
    f"{NAMESPACE}_usage_ledger_updates_total",
    "Usage ledger writes by resulting status",
    ["status"],
)

usage_records_total = Counter(
    f"{NAMESPACE}_usage_records_total",
    "Billable CRM actions recorded in the usage ledger",
    ["agent", "kind"],  # kind: "created", "updated", "meetings", "queries"
)

# ============================================================================
# Database Metrics
# ============================================================================

db_pool_connections = Gauge(
    f"{NAMESPACE}_db_pool_connections",
    "Number of database connections by state",
    ["state"],  # "free" or "used"
)


@contextmanager
def track_tool_call(tool_name: str) -> Iterator[None]:
    """Record duration and outcome of a tool call."""
    start = time.perf_counter()
    status = "success"
    try:
        yield
    except BaseException:
        status = "error"
        raise
    finally:
        tool_call_duration_seconds.labels(tool_name=tool_name).observe(time.perf_counter() - start)
        tool_calls_total.labels(tool_name=tool_name, status=status).inc()
