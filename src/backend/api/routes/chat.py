"""
Chat endpoints.

POST streams one chat turn as a UI message stream (server-sent events).
GET creates an empty thread the client can post to.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from api.dependencies import Chat
from api.middleware.auth import CurrentUser
from api.middleware.request_context import update_request_context
from core.constants import (
    DEFAULT_AGENT,
    THREAD_ID_HEADER,
    UI_MESSAGE_STREAM_HEADER,
    UI_MESSAGE_STREAM_VERSION,
)
from core.executor import stream_ui_messages
from models.schemas.chat import ChatRequest, NewThreadResponse

router = APIRouter()

AgentQuery = Annotated[str, Query(description="Agent to run", examples=["data-steward"])]


@router.post(
    "",
    summary="Run a chat turn",
    description="Stream the agent's response to the latest messages as a UI message stream.",
    responses={
        200: {"description": "Event stream", "content": {"text/event-stream": {}}},
        400: {"description": "Missing messages or unknown agent"},
        401: {"description": "Not signed in"},
        500: {"description": "Upstream failure before streaming started"},
    },
)
async def post_chat(
    user: CurrentUser,
    chat: Chat,
    body: ChatRequest | None = None,
    agent: AgentQuery = DEFAULT_AGENT,
) -> StreamingResponse:
    update_request_context(user_id=user.id, agent=agent)
    thread_id, events = await chat.start_turn(user, agent, body or ChatRequest())
    update_request_context(thread_id=thread_id)

    return StreamingResponse(
        stream_ui_messages(events),
        media_type="text/event-stream",
        headers={
            UI_MESSAGE_STREAM_HEADER: UI_MESSAGE_STREAM_VERSION,
            THREAD_ID_HEADER: thread_id,
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.get(
    "",
    response_model=NewThreadResponse,
    summary="Create a thread",
    description="Create an empty thread for the agent and return its id.",
)
async def new_thread(user: CurrentUser, chat: Chat, agent: AgentQuery = DEFAULT_AGENT) -> NewThreadResponse:
    thread = await chat.create_thread(user, agent)
    return NewThreadResponse(id=thread.thread_id, agent=thread.agent)
