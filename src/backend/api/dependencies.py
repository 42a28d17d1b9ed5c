from __future__ import annotations

from typing import Annotated

import asyncpg
import httpx

from fastapi import Depends, Request

from api.services.chat_service import ChatService
from api.services.credential_service import CredentialResolver
from api.services.prompt_service import PromptSelector
from api.services.thread_service import ThreadService
from api.services.usage_service import UsageLedger
from core.constants import Settings, get_settings
from core.executor import ChatTurnExecutor
from integrations.openai_model import ChatModel
from tools.registry import ToolRegistry
from utils.cache import TTLCache


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Settings are validated at startup and cached. In development with
    CONFIG_HOT_RELOAD=true they are reloaded on each request.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound HTTP client for provider APIs and webhooks."""
    return request.app.state.http_client


def get_chat_model(request: Request) -> ChatModel:
    return request.app.state.chat_model


def get_prompt_cache(request: Request) -> TTLCache:
    return request.app.state.prompt_cache


def get_thread_service(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> ThreadService:
    """Provide thread store backed by PostgreSQL."""
    return ThreadService(db)


def get_usage_ledger(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> UsageLedger:
    return UsageLedger(db)


def get_prompt_selector(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    cache: Annotated[TTLCache, Depends(get_prompt_cache)],
) -> PromptSelector:
    return PromptSelector(db, cache)


def get_credential_resolver(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    http: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> CredentialResolver:
    return CredentialResolver(db, http, settings)


def get_tool_registry(
    credentials: Annotated[CredentialResolver, Depends(get_credential_resolver)],
    http: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    model: Annotated[ChatModel, Depends(get_chat_model)],
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ToolRegistry:
    return ToolRegistry(credentials, http, model, db, settings)


def get_executor(
    model: Annotated[ChatModel, Depends(get_chat_model)],
    usage: Annotated[UsageLedger, Depends(get_usage_ledger)],
    threads: Annotated[ThreadService, Depends(get_thread_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ChatTurnExecutor:
    return ChatTurnExecutor(model, usage, threads, max_steps=settings.max_chat_steps)


def get_chat_service(
    request: Request,
    threads: Annotated[ThreadService, Depends(get_thread_service)],
    prompts: Annotated[PromptSelector, Depends(get_prompt_selector)],
    registry: Annotated[ToolRegistry, Depends(get_tool_registry)],
    executor: Annotated[ChatTurnExecutor, Depends(get_executor)],
    model: Annotated[ChatModel, Depends(get_chat_model)],
) -> ChatService:
    """Provide chat orchestration; title tasks are tracked on app state."""
    return ChatService(threads, prompts, registry, executor, model, request.app.state.background_tasks)


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
HTTP = Annotated[httpx.AsyncClient, Depends(get_http_client)]
Model = Annotated[ChatModel, Depends(get_chat_model)]
Threads = Annotated[ThreadService, Depends(get_thread_service)]
Usage = Annotated[UsageLedger, Depends(get_usage_ledger)]
Prompts = Annotated[PromptSelector, Depends(get_prompt_selector)]
Chat = Annotated[ChatService, Depends(get_chat_service)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
