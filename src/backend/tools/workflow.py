"""
Workflow tool: start an agent's background execution workflow via its webhook.

The workflow records its own usage under the usageId generated here, so
the call itself is not billed to the chat run.
"""

from __future__ import annotations

from typing import Any

import httpx

from pydantic import BaseModel, ConfigDict, Field

from api.middleware.exception_handlers import ToolExecutionError
from core.constants import (
    AGENT_CONTRACT_READER,
    AGENT_DATA_STEWARD,
    AGENT_PROSPECT_FINDER,
    DEFAULT_WORKFLOW_LIMIT,
    Settings,
)
from models.usage_models import generate_log_id
from tools.base import Tool

_DESCRIPTIONS = {
    AGENT_DATA_STEWARD: "Run the Data Steward workflow to enrich Account and Contact data in Salesforce.",
    AGENT_PROSPECT_FINDER: "Run the Prospect Finder workflow to generate new prospects.",
    AGENT_CONTRACT_READER: "Run the Contract Reader workflow to read contracts into the CRM.",
}


class CallWorkflowArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limit: str | None = Field(default=None, description="Maximum records to process")
    account_ids: list[str] | None = Field(
        default=None,
        alias="accountIds",
        description="Salesforce Account Ids to process. All accounts when omitted.",
    )


def workflow_tool(http: httpx.AsyncClient, settings: Settings, agent: str, user_id: str) -> Tool:
    async def call_workflow(args: CallWorkflowArgs) -> dict[str, Any]:
        webhook_url = settings.webhook_url_for(agent)
        if not webhook_url:
            raise ToolExecutionError("call_workflow", f"Workflow webhook URL is not configured for {agent}")

        usage_id = generate_log_id()
        payload: dict[str, Any] = {
            "limit": args.limit or DEFAULT_WORKFLOW_LIMIT,
            "subId": user_id,
            "usageId": usage_id,
        }
        if args.account_ids:
            payload["accountIds"] = args.account_ids

        response = await http.post(webhook_url, json=payload)
        if response.is_error:
            raise ToolExecutionError("call_workflow", f"Error from agent webhook: {response.text}")

        try:
            data = response.json()
        except ValueError:
            data = {"response": response.text}
        if not isinstance(data, dict):
            data = {"response": data}
        return {**data, "usageId": usage_id}

    return Tool(
        name="call_workflow",
        description=f"{_DESCRIPTIONS.get(agent, 'Run the agent workflow.')} ALWAYS ask the user for permission first.",
        parameters=CallWorkflowArgs,
        handler=call_workflow,
    )


__all__ = ["CallWorkflowArgs", "workflow_tool"]
