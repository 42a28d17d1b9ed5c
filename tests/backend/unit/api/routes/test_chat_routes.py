from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_chat_service
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import ChatTurnError, register_exception_handlers
from api.routes import router
from api.services.chat_service import ChatService
from models.api_models import UserInfo
from models.event_models import FinishEvent, StartEvent, StreamEvent, TextDeltaEvent
from models.thread_models import Thread

USER = UserInfo(id="auth0|u1", email="user@test.com")

BODY = {"messages": [{"id": "m1", "role": "user", "parts": [{"type": "text", "text": "update 3 accounts"}]}]}


async def _events() -> AsyncGenerator[StreamEvent, None]:
    yield StartEvent(message_id="msg_1")
    yield TextDeltaEvent(id="txt_1", delta="Updated 3 accounts.")
    yield FinishEvent(message_metadata={"finishReason": "stop"})


@pytest.fixture
def chat_service() -> MagicMock:
    service = MagicMock()
    service.start_turn = AsyncMock(return_value=("thr_1", _events()))
    service.create_thread = AsyncMock(
        return_value=Thread(thread_id="thr_new", user_id=USER.id, agent="data-steward", created_at=datetime.now(UTC))
    )
    return service


@pytest.fixture
def test_app(chat_service: MagicMock) -> Generator[FastAPI, None, None]:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router)
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_current_user] = lambda: USER
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    return TestClient(test_app, raise_server_exceptions=False)


def test_post_chat_streams_ui_messages(client: TestClient, chat_service: MagicMock) -> None:
    response = client.post("/api/chat?agent=data-steward", json=BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["x-thread-id"] == "thr_1"
    assert response.headers["x-vercel-ai-ui-message-stream"] == "v1"
    lines = [line for line in response.text.split("\n\n") if line]
    assert lines[0] == 'data: {"type":"start","messageId":"msg_1"}'
    assert lines[-1] == "data: [DONE]"

    user, agent, request = chat_service.start_turn.call_args.args
    assert (user.id, agent) == ("auth0|u1", "data-steward")
    assert [m.content for m in request.to_messages()] == ["update 3 accounts"]


def test_post_chat_requires_sign_in(test_app: FastAPI, client: TestClient, chat_service: MagicMock) -> None:
    del test_app.dependency_overrides[get_current_user]

    response = client.post("/api/chat", json=BODY)

    assert response.status_code == 401
    assert response.json()["error"] == "You must be signed in to use this agent"
    chat_service.start_turn.assert_not_called()


@pytest.mark.parametrize("body", [None, {}, {"messages": []}])
def test_post_chat_without_messages_is_bad_request(test_app: FastAPI, client: TestClient, body: dict | None) -> None:
    service = ChatService(MagicMock(), MagicMock(), MagicMock(), MagicMock(), MagicMock())
    test_app.dependency_overrides[get_chat_service] = lambda: service

    response = client.post("/api/chat", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "messages is required"


def test_post_chat_unknown_agent(test_app: FastAPI, client: TestClient) -> None:
    service = ChatService(MagicMock(), MagicMock(), MagicMock(), MagicMock(), MagicMock())
    test_app.dependency_overrides[get_chat_service] = lambda: service

    response = client.post("/api/chat?agent=sales-bot", json=BODY)

    assert response.status_code == 400
    assert response.json()["error"] == "Unknown agent: sales-bot"


def test_post_chat_upstream_failure_returns_raw_message(client: TestClient, chat_service: MagicMock) -> None:
    chat_service.start_turn.side_effect = ChatTurnError("Incorrect API key provided")

    response = client.post("/api/chat", json=BODY)

    assert response.status_code == 500
    assert response.json()["error"] == "Incorrect API key provided"


def test_get_chat_creates_thread(client: TestClient, chat_service: MagicMock) -> None:
    response = client.get("/api/chat?agent=data-steward")

    assert response.status_code == 200
    assert response.json() == {"id": "thr_new", "agent": "data-steward"}
    chat_service.create_thread.assert_awaited_once()
