"""
System prompt selection for agents.

A prompt stored in `agent_settings` overrides the built-in default for its
agent. Stored prompts are cached in process for PROMPT_CACHE_TTL_SECONDS.
"""

from __future__ import annotations

from datetime import date

import asyncpg

from core.constants import PROMPT_CACHE_TTL_SECONDS
from core.prompts import DEFAULT_AGENT_PROMPTS, with_current_date
from utils.cache import TTLCache
from utils.logger import logger

# Cached value for agents with no stored prompt, so misses are cached too
_NO_OVERRIDE = ""


class PromptSelector:
    """Resolve the system prompt an agent runs with."""

    def __init__(self, pool: asyncpg.Pool, cache: TTLCache | None = None):
        self.pool = pool
        self.cache = cache or TTLCache(max_size=100, default_ttl=PROMPT_CACHE_TTL_SECONDS)

    async def select(self, agent: str, today: date | None = None) -> str:
        """Prompt for a chat turn, dated so the model can resolve relative dates."""
        prompt, _ = await self.current(agent)
        return with_current_date(prompt, today)

    async def current(self, agent: str) -> tuple[str, bool]:
        """Return (prompt, is_default) without the date suffix."""
        stored = await self._stored_prompt(agent)
        if stored:
            return stored, False
        return DEFAULT_AGENT_PROMPTS[agent], True

    async def set_prompt(self, agent: str, prompt: str) -> None:
        """Store an override for an agent's prompt."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO agent_settings (agent, prompt)
                VALUES ($1, $2)
                ON CONFLICT (agent) DO UPDATE
                SET prompt = EXCLUDED.prompt, updated_at = NOW()
                """,
                agent,
                prompt,
            )
        await self.cache.delete(agent)
        logger.info(f"Stored prompt override for {agent}", agent=agent)

    async def _stored_prompt(self, agent: str) -> str | None:
        cached = await self.cache.get(agent)
        if cached is not None:
            return cached or None

        async with self.pool.acquire() as conn:
            prompt = await conn.fetchval("SELECT prompt FROM agent_settings WHERE agent = $1", agent)

        await self.cache.set(agent, prompt or _NO_OVERRIDE)
        return prompt or None


__all__ = ["PromptSelector"]
