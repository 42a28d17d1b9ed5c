"""Tests for Prometheus metrics helpers."""

from __future__ import annotations

import pytest

from prometheus_client import REGISTRY

from utils.metrics import NAMESPACE, chat_turns_total, tool_calls_total, track_tool_call


def _count(tool: str, status: str) -> float:
    value = REGISTRY.get_sample_value(f"{NAMESPACE}_tool_calls_total", {"tool_name": tool, "status": status})
    return value or 0.0


def test_namespace() -> None:
    assert NAMESPACE == "crmcopilot"


def test_track_tool_call_success() -> None:
    before = _count("get_data", "success")

    with track_tool_call("get_data"):
        pass

    assert _count("get_data", "success") == before + 1


def test_track_tool_call_error_reraises() -> None:
    before = _count("update_data", "error")

    with pytest.raises(RuntimeError):
        with track_tool_call("update_data"):
            raise RuntimeError("boom")

    assert _count("update_data", "error") == before + 1


def test_labels() -> None:
    assert "tool_name" in tool_calls_total._labelnames
    assert set(chat_turns_total._labelnames) == {"agent", "outcome"}
