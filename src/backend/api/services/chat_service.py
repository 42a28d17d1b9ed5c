from __future__ import annotations

import asyncio

from collections.abc import AsyncGenerator
from typing import Any

from api.middleware.exception_handlers import AppException, ChatTurnError, ValidationException
from api.services.prompt_service import PromptSelector
from api.services.thread_service import ThreadService
from core.constants import AGENTS, THREAD_TITLE_MAX_CHARS, THREAD_TITLE_MAX_TOKENS
from core.executor import ChatTurn, ChatTurnExecutor, prime
from core.prompts import THREAD_TITLE_GENERATION_PROMPT
from integrations.openai_model import ChatModel
from models.api_models import UserInfo
from models.error_models import ErrorCode
from models.event_models import FinishEvent, StreamEvent
from models.schemas.chat import ChatRequest
from models.thread_models import Thread, new_messages
from tools.registry import ToolRegistry
from utils.logger import logger


def require_agent(agent: str) -> str:
    """Reject agents this service does not run.

    Raises:
        ValidationException: If the agent is unknown (400)
    """
    if agent not in AGENTS:
        raise ValidationException(f"Unknown agent: {agent}", code=ErrorCode.VALIDATION_UNKNOWN_AGENT)
    return agent


class ChatService:
    """Chat orchestration: resolves everything a turn needs and starts it.

    Title generation runs after the response has been streamed; its tasks
    are kept in `background_tasks` so they are not garbage collected.
    """

    def __init__(
        self,
        threads: ThreadService,
        prompts: PromptSelector,
        registry: ToolRegistry,
        executor: ChatTurnExecutor,
        model: ChatModel,
        background_tasks: set[asyncio.Task[Any]] | None = None,
    ):
        self.threads = threads
        self.prompts = prompts
        self.registry = registry
        self.executor = executor
        self.model = model
        self._background_tasks: set[asyncio.Task[Any]] = background_tasks if background_tasks is not None else set()

    async def create_thread(self, user: UserInfo, agent: str) -> Thread:
        require_agent(agent)
        return await self.threads.create(user.id, agent)

    async def start_turn(
        self,
        user: UserInfo,
        agent: str,
        request: ChatRequest,
    ) -> tuple[str, AsyncGenerator[StreamEvent, None]]:
        """Start a chat turn and return (thread_id, event stream).

        The stream is primed: failures up to the first model output raise
        here instead of inside the stream.

        Raises:
            ValidationException: Unknown agent or no messages (400)
            ChatTurnError: Any other failure before streaming starts (500)
        """
        require_agent(agent)
        incoming = request.to_messages()
        if not incoming:
            raise ValidationException("messages is required", code=ErrorCode.VALIDATION_MISSING_FIELD)

        try:
            system_prompt, tools, thread = await asyncio.gather(
                self.prompts.select(agent),
                self.registry.build(agent, user.id, web_search=request.web_search),
                self._load_or_create(user, agent, request.id),
            )
            turn = ChatTurn(
                user_id=user.id,
                agent=agent,
                thread_id=thread.thread_id,
                system_prompt=system_prompt,
                tools=tools,
                history=thread.messages,
                new_messages=new_messages(thread.messages, incoming),
            )
            logger.info(
                f"Starting {agent} turn on thread {thread.thread_id}",
                thread_id=thread.thread_id,
                agent=agent,
                tools=len(tools),
                new_messages=len(turn.new_messages),
            )
            events = await prime(self.executor.run(turn))
        except AppException:
            raise
        except Exception as e:
            raise ChatTurnError(str(e) or type(e).__name__, cause=e) from e

        return thread.thread_id, self._with_title(thread, user, events)

    async def _load_or_create(self, user: UserInfo, agent: str, thread_id: str | None) -> Thread:
        if thread_id:
            thread = await self.threads.get(user.id, thread_id)
            if thread is not None:
                if thread.agent != agent:
                    logger.warning(
                        f"Thread {thread_id} belongs to {thread.agent}, continuing it as {agent}",
                        thread_id=thread_id,
                    )
                return thread
        return await self.threads.create(user.id, agent, thread_id=thread_id)

    async def _with_title(
        self,
        thread: Thread,
        user: UserInfo,
        events: AsyncGenerator[StreamEvent, None],
    ) -> AsyncGenerator[StreamEvent, None]:
        """Pass events through, scheduling a title once the first turn finishes."""
        try:
            async for event in events:
                yield event
                if isinstance(event, FinishEvent) and thread.name is None and not thread.messages:
                    task = asyncio.create_task(self._maybe_generate_title(user.id, thread.thread_id))
                    self._background_tasks.add(task)
                    task.add_done_callback(self._background_tasks.discard)
        finally:
            await events.aclose()

    async def _maybe_generate_title(self, user_id: str, thread_id: str) -> None:
        """Generate a title from the opening exchange if the thread is still unnamed."""
        try:
            thread = await self.threads.get(user_id, thread_id)
            if thread is None or thread.name:
                return

            opening = [m for m in thread.messages if m.role in ("user", "assistant") and m.content][:4]
            if len(opening) < 2:
                return

            transcript = "\n".join(f"{m.role}: {m.content}" for m in opening)
            title = await self.model.complete(
                THREAD_TITLE_GENERATION_PROMPT,
                transcript,
                max_tokens=THREAD_TITLE_MAX_TOKENS,
            )
            title = title.strip().strip('"').strip("'").rstrip(".!?")
            if len(title) < 3:
                return
            if len(title) > THREAD_TITLE_MAX_CHARS:
                title = title[: THREAD_TITLE_MAX_CHARS - 3] + "..."

            if await self.threads.set_name_if_unset(thread_id, title):
                logger.info(f"Generated title for thread {thread_id}: {title}", thread_id=thread_id)
        except Exception as e:
            logger.warning(f"Failed to generate title for {thread_id}: {e}")


__all__ = ["ChatService", "require_agent"]
