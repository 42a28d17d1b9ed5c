from __future__ import annotations

import asyncio

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes import router
from core.constants import PROMPT_CACHE_TTL_SECONDS, get_settings
from integrations.openai_model import OpenAIChatModel
from utils.cache import TTLCache
from utils.client_factory import create_http_client, create_openai_client
from utils.db_utils import check_pool_health, create_database_pool, graceful_pool_close
from utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local) - no manual dotenv loading needed
settings = get_settings()

if settings.debug:
    from core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, provider={settings.api_provider}, "
        f"db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}]"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: owns the pool, HTTP and model clients, and caches."""
    app.state.background_tasks = set()

    app.state.db_pool = await create_database_pool(
        dsn=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
        connection_timeout=settings.db_connection_timeout,
        statement_cache_size=settings.db_statement_cache_size,
        max_inactive_connection_lifetime=settings.db_max_inactive_connection_lifetime,
    )

    health = await check_pool_health(app.state.db_pool)
    if not health["healthy"]:
        logger.error("Database health check failed during startup")
        await app.state.db_pool.close()
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health}")

    # Provider APIs and webhooks
    app.state.http_client = create_http_client(
        enable_logging=settings.http_request_logging,
        read_timeout=settings.http_read_timeout,
        connect_timeout=settings.http_connect_timeout,
    )

    # Model streams get their own connection pool
    model_http = create_http_client(
        enable_logging=settings.http_request_logging,
        read_timeout=settings.http_read_timeout,
        connect_timeout=settings.http_connect_timeout,
    )
    app.state.openai_client = create_openai_client(
        settings.model_api_key or "",
        base_url=settings.model_base_url,
        http_client=model_http,
    )
    app.state.chat_model = OpenAIChatModel(
        app.state.openai_client,
        model=settings.chat_model,
        utility_model=settings.utility_model,
    )
    logger.info(f"Model client configured ({settings.api_provider}, {settings.chat_model})")

    app.state.prompt_cache = TTLCache(max_size=100, default_ttl=PROMPT_CACHE_TTL_SECONDS)

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")

        # Phase 1: Let title generation finish
        pending = list(app.state.background_tasks)
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=settings.shutdown_timeout)
            for task in still_running:
                task.cancel()

        # Phase 2: Close outbound clients
        await app.state.openai_client.close()
        await app.state.http_client.aclose()
        logger.info("HTTP clients closed")

        # Phase 3: Gracefully close database pool
        await graceful_pool_close(app.state.db_pool, timeout=settings.shutdown_timeout)


app = FastAPI(
    title="CRM Co-pilot Agent API",
    description="""
## CRM Co-pilot Agent API

Conversational agents that read and update Salesforce and HubSpot, book
meetings and trigger workflows on the user's behalf.

### Agents
- **data-steward**: Cleans and enriches CRM records
- **prospect-finder**: Finds prospects against ideal customer profiles
- **contract-reader**: Extracts contract terms into CRM fields

### Streaming
`POST /api/chat` answers with a UI message stream (`text/event-stream`,
`x-vercel-ai-ui-message-stream: v1`) ending with `data: [DONE]`.

### Authentication
All endpoints except health and metrics require a JWT Bearer token.
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check and metrics endpoints"},
        {"name": "Chat", "description": "Streaming chat turns and thread creation"},
        {"name": "Threads", "description": "Conversation history"},
        {"name": "Usage", "description": "Usage ledger for the dashboard"},
        {"name": "Agents", "description": "Agent system prompts"},
    ],
)

# Register global exception handlers for consistent error responses
register_exception_handlers(app)

# Request context middleware (adds request ID tracking)
# Note: Middleware is executed in reverse order of registration
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-thread-id", "x-vercel-ai-ui-message-stream", "X-Request-ID"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
