from __future__ import annotations

import uuid

from unittest.mock import MagicMock

import httpx
import pytest

from api.middleware.exception_handlers import ToolExecutionError
from tools.workflow import workflow_tool


def _response(status: int, json_body: object | None = None, text: str = "") -> httpx.Response:
    request = httpx.Request("POST", "https://hooks.example.com/workflow")
    if json_body is not None:
        return httpx.Response(status, json=json_body, request=request)
    return httpx.Response(status, text=text, request=request)


@pytest.mark.asyncio
async def test_posts_payload_with_usage_id(fresh_settings: MagicMock, mock_http_client: MagicMock) -> None:
    mock_http_client.post.return_value = _response(200, {"status": "started"})
    tool = workflow_tool(mock_http_client, fresh_settings, "data-steward", "auth0|u1")

    result = await tool.invoke(tool.parse_arguments('{"limit": "25", "accountIds": ["001A"]}'))

    url = mock_http_client.post.call_args.args[0]
    payload = mock_http_client.post.call_args.kwargs["json"]
    assert url == "https://hooks.example.com/workflow"
    assert payload["limit"] == "25"
    assert payload["subId"] == "auth0|u1"
    assert payload["accountIds"] == ["001A"]
    uuid.UUID(payload["usageId"])
    assert result == {"status": "started", "usageId": payload["usageId"]}
    fresh_settings.webhook_url_for.assert_called_with("data-steward")


def test_workflow_is_not_billed(fresh_settings: MagicMock, mock_http_client: MagicMock) -> None:
    tool = workflow_tool(mock_http_client, fresh_settings, "data-steward", "auth0|u1")

    assert not tool.billable


@pytest.mark.asyncio
async def test_missing_webhook_url(fresh_settings: MagicMock, mock_http_client: MagicMock) -> None:
    fresh_settings.webhook_url_for.return_value = None
    tool = workflow_tool(mock_http_client, fresh_settings, "contract-reader", "auth0|u1")

    with pytest.raises(ToolExecutionError, match="not configured"):
        await tool.invoke(tool.parse_arguments("{}"))

    mock_http_client.post.assert_not_called()


@pytest.mark.asyncio
async def test_webhook_error_status(fresh_settings: MagicMock, mock_http_client: MagicMock) -> None:
    mock_http_client.post.return_value = _response(503, text="workflow engine down")
    tool = workflow_tool(mock_http_client, fresh_settings, "prospect-finder", "auth0|u1")

    with pytest.raises(ToolExecutionError, match="Error from agent webhook: workflow engine down"):
        await tool.invoke(tool.parse_arguments("{}"))


@pytest.mark.asyncio
async def test_non_json_response_is_wrapped(fresh_settings: MagicMock, mock_http_client: MagicMock) -> None:
    mock_http_client.post.return_value = _response(200, text="Workflow was started")
    tool = workflow_tool(mock_http_client, fresh_settings, "data-steward", "auth0|u1")

    result = await tool.invoke(tool.parse_arguments("{}"))

    assert result["response"] == "Workflow was started"
    assert "usageId" in result
