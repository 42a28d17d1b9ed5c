"""
Agent prompt API schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AgentPromptResponse(BaseModel):
    """The system prompt an agent currently runs with."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "agent": "data-steward",
                "prompt": "You are a Salesforce data steward...",
                "is_default": True,
            }
        }
    )

    agent: str
    prompt: str
    is_default: bool = Field(..., description="True when no stored override exists")


class UpdateAgentPromptRequest(BaseModel):
    """Request body for PUT /api/agents/{agent}/prompt."""

    prompt: str = Field(..., min_length=1, max_length=50_000)
