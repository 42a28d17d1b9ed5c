"""
HTTP and model client factory utilities.

The FastAPI lifespan owns the clients built here; nothing in this module
keeps a reference to them.
"""

from __future__ import annotations

from typing import Any

import httpx

from openai import AsyncOpenAI

from utils.logger import logger

DEFAULT_CONNECT_TIMEOUT = 10.0  # Time to establish connection
DEFAULT_READ_TIMEOUT = 300.0  # Model streams and slow CRM queries
DEFAULT_WRITE_TIMEOUT = 30.0  # Time to send request
DEFAULT_POOL_TIMEOUT = 30.0  # Time to acquire connection from pool

_SENSITIVE_HEADERS = ("authorization", "api-key", "x-api-key")


async def _log_request(request: httpx.Request) -> None:
    headers = {
        k: ("***" if k.lower() in _SENSITIVE_HEADERS else v) for k, v in request.headers.items()
    }
    logger.debug(f"HTTP Request: {request.method} {request.url}", http_request=True, headers=headers)


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.info(
        f"HTTP Response: {response.status_code} {request.method} {request.url.host}{request.url.path}",
        http_response=True,
        status_code=response.status_code,
    )


def create_http_client(
    enable_logging: bool = False,
    read_timeout: float | None = None,
    connect_timeout: float | None = None,
) -> httpx.AsyncClient:
    """Create the shared HTTP client for provider APIs, webhooks and the model client.

    Args:
        enable_logging: Log outbound requests and response statuses
        read_timeout: Read timeout in seconds (default: 300s)
        connect_timeout: Connect timeout in seconds (default: 10s)

    Returns:
        Configured httpx.AsyncClient
    """
    timeout = httpx.Timeout(
        connect=connect_timeout if connect_timeout is not None else DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout if read_timeout is not None else DEFAULT_READ_TIMEOUT,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )

    if enable_logging:
        return httpx.AsyncClient(
            timeout=timeout,
            event_hooks={"request": [_log_request], "response": [_log_response]},
        )

    return httpx.AsyncClient(timeout=timeout)


def create_openai_client(
    api_key: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create AsyncOpenAI client with consistent configuration.

    Args:
        api_key: OpenAI or OpenRouter API key
        base_url: Optional base URL for OpenAI-compatible endpoints
        http_client: Optional shared httpx client

    Returns:
        Configured AsyncOpenAI client
    """
    kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client}
    if base_url:
        kwargs["base_url"] = base_url
    return AsyncOpenAI(**kwargs)
