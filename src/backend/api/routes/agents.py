"""
Agent prompt endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter

from api.dependencies import Prompts
from api.middleware.auth import CurrentUser
from api.services.chat_service import require_agent
from models.schemas.agents import AgentPromptResponse, UpdateAgentPromptRequest
from utils.logger import logger

router = APIRouter()


@router.get("/{agent}/prompt", response_model=AgentPromptResponse, summary="Get an agent's system prompt")
async def get_prompt(user: CurrentUser, prompts: Prompts, agent: str) -> AgentPromptResponse:
    require_agent(agent)
    prompt, is_default = await prompts.current(agent)
    return AgentPromptResponse(agent=agent, prompt=prompt, is_default=is_default)


@router.put("/{agent}/prompt", response_model=AgentPromptResponse, summary="Override an agent's system prompt")
async def put_prompt(
    user: CurrentUser,
    prompts: Prompts,
    agent: str,
    body: UpdateAgentPromptRequest,
) -> AgentPromptResponse:
    require_agent(agent)
    await prompts.set_prompt(agent, body.prompt)
    logger.info(f"Prompt for {agent} updated by {user.id}", agent=agent)
    return AgentPromptResponse(agent=agent, prompt=body.prompt, is_default=False)
