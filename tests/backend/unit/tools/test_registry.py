from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.credential_models import GoogleCredential, HubSpotCredential, SalesforceCredential
from tools.registry import ToolRegistry, providers_for

SALESFORCE = SalesforceCredential(user_id="auth0|u1", access_token="sf-token", instance_url="https://acme.my.salesforce.com")
HUBSPOT = HubSpotCredential(user_id="auth0|u1", access_token="hs-token")
GOOGLE = GoogleCredential(user_id="auth0|u1", access_token="g-token")


def _resolver(available: dict[str, Any]) -> MagicMock:
    async def get(user_id: str, provider: str) -> Any:
        return available.get(provider)

    credentials = MagicMock()
    credentials.get = AsyncMock(side_effect=get)
    credentials.refresh = AsyncMock()
    return credentials


@pytest.fixture
def make_registry(
    fresh_settings: MagicMock, mock_http_client: MagicMock, mock_db_pool: MagicMock
) -> Callable[[dict[str, Any]], ToolRegistry]:
    def make(available: dict[str, Any]) -> ToolRegistry:
        return ToolRegistry(_resolver(available), mock_http_client, MagicMock(), mock_db_pool, fresh_settings)

    return make


def test_prospect_finder_checks_calendar_providers() -> None:
    assert "google" in providers_for("prospect-finder")
    assert "google" not in providers_for("data-steward")


@pytest.mark.asyncio
async def test_tools_without_credentials_are_omitted(make_registry: Callable[..., ToolRegistry]) -> None:
    tools = await make_registry({}).build("data-steward", "auth0|u1")

    assert sorted(tools) == ["call_workflow", "visualize_data"]


@pytest.mark.asyncio
async def test_connected_providers_add_their_tools(make_registry: Callable[..., ToolRegistry]) -> None:
    registry = make_registry({"salesforce": SALESFORCE, "hubspot": HUBSPOT})

    tools = await registry.build("data-steward", "auth0|u1")

    assert {"get_data", "update_data", "create_data", "get_hubspot_data", "update_hubspot_data"} <= set(tools)
    assert "book_meeting" not in tools
    assert "web_search" not in tools


@pytest.mark.asyncio
async def test_prospect_finder_gets_profiles_and_calendar(make_registry: Callable[..., ToolRegistry]) -> None:
    registry = make_registry({"salesforce": SALESFORCE, "google": GOOGLE})

    tools = await registry.build("prospect-finder", "auth0|u1")

    assert "book_meeting" in tools
    assert tools["book_meeting"].provider == "google"
    assert {"get_customer_profile", "create_customer_profile", "update_customer_profile"} <= set(tools)


@pytest.mark.asyncio
async def test_web_search_is_opt_in(make_registry: Callable[..., ToolRegistry]) -> None:
    tools = await make_registry({}).build("contract-reader", "auth0|u1", web_search=True)

    assert "web_search" in tools


@pytest.mark.asyncio
async def test_unknown_agent_rejected(make_registry: Callable[..., ToolRegistry]) -> None:
    with pytest.raises(ValueError, match="Unknown agent"):
        await make_registry({}).build("sales-bot", "auth0|u1")
