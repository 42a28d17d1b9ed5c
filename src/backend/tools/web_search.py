"""
Web search tool using the Google Custom Search JSON API.
"""

from __future__ import annotations

from typing import Any

import httpx

from pydantic import BaseModel, Field

from api.middleware.exception_handlers import ToolExecutionError
from core.constants import WEB_SEARCH_RESULT_COUNT, Settings
from tools.base import Tool


class WebSearchArgs(BaseModel):
    query: str = Field(..., min_length=1, description="The search query")


def web_search_tool(http: httpx.AsyncClient, settings: Settings) -> Tool:
    async def web_search(args: WebSearchArgs) -> dict[str, Any]:
        if not settings.google_search_api_key or not settings.google_search_cx:
            raise ToolExecutionError("web_search", "Web search is not configured")

        response = await http.get(
            settings.google_search_url,
            params={
                "key": settings.google_search_api_key,
                "cx": settings.google_search_cx,
                "q": args.query,
                "num": WEB_SEARCH_RESULT_COUNT,
            },
        )
        if response.is_error:
            raise ToolExecutionError("web_search", f"Web search failed: {response.status_code} {response.reason_phrase}")

        items = response.json().get("items", [])
        return {
            "query": args.query,
            "results": [
                {"title": item.get("title"), "link": item.get("link"), "snippet": item.get("snippet")}
                for item in items
            ],
        }

    return Tool(
        name="web_search",
        description="Search the web for real-time information about companies, people and news.",
        parameters=WebSearchArgs,
        handler=web_search,
    )


__all__ = ["WebSearchArgs", "web_search_tool"]
