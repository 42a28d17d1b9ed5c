"""
Per-turn tool registry.

Builds the set of tools an agent may call for one user. Tools that need a
provider credential are only included when that credential resolves; a
missing or unusable credential leaves the tool out instead of failing the
turn.
"""

from __future__ import annotations

import asyncio

import asyncpg
import httpx

from api.services.credential_service import CredentialResolver
from api.services.customer_profile_service import CustomerProfileService
from core.constants import (
    AGENT_PROSPECT_FINDER,
    AGENTS,
    PROVIDER_GOOGLE,
    PROVIDER_HUBSPOT,
    PROVIDER_MICROSOFT,
    PROVIDER_SALESFORCE,
    Settings,
    get_settings,
)
from integrations.calendar_clients import CalendarClient, GoogleCalendarClient, MicrosoftCalendarClient
from integrations.hubspot_client import HubSpotClient
from integrations.openai_model import ChatModel
from integrations.salesforce_client import SalesforceClient
from models.credential_models import (
    GoogleCredential,
    HubSpotCredential,
    MicrosoftCredential,
    SalesforceCredential,
)
from tools.base import Tool
from tools.calendar import book_meeting_tool
from tools.customer_profiles import customer_profile_tools
from tools.hubspot import hubspot_tools
from tools.salesforce import salesforce_tools
from tools.visualization import visualization_tools
from tools.web_search import web_search_tool
from tools.workflow import workflow_tool
from utils.logger import logger
from utils.metrics import tools_omitted_total


def providers_for(agent: str) -> tuple[str, ...]:
    """Credentials an agent's tools may need."""
    if agent == AGENT_PROSPECT_FINDER:
        return (PROVIDER_SALESFORCE, PROVIDER_HUBSPOT, PROVIDER_GOOGLE, PROVIDER_MICROSOFT)
    return (PROVIDER_SALESFORCE, PROVIDER_HUBSPOT)


class ToolRegistry:
    """Assemble tools for (agent, user) from the user's connected providers."""

    def __init__(
        self,
        credentials: CredentialResolver,
        http: httpx.AsyncClient,
        model: ChatModel,
        pool: asyncpg.Pool,
        settings: Settings | None = None,
    ):
        self.credentials = credentials
        self.http = http
        self.model = model
        self.pool = pool
        self.settings = settings or get_settings()

    async def build(self, agent: str, user_id: str, web_search: bool = False) -> dict[str, Tool]:
        """Tools available to this agent for this user, keyed by name.

        Raises:
            ValueError: If the agent is unknown
        """
        if agent not in AGENTS:
            raise ValueError(f"Unknown agent: {agent}")

        providers = providers_for(agent)
        resolved = await asyncio.gather(*(self.credentials.get(user_id, p) for p in providers))
        creds = dict(zip(providers, resolved, strict=True))

        tools: list[Tool] = []

        salesforce = creds.get(PROVIDER_SALESFORCE)
        if isinstance(salesforce, SalesforceCredential):
            client = SalesforceClient(
                self.http, salesforce, self.credentials.refresh, api_version=self.settings.salesforce_api_version
            )
            tools.extend(salesforce_tools(client, self.model))
        else:
            self._omit(PROVIDER_SALESFORCE, agent)

        hubspot = creds.get(PROVIDER_HUBSPOT)
        if isinstance(hubspot, HubSpotCredential):
            client_hs = HubSpotClient(self.http, hubspot, self.credentials.refresh, api_url=self.settings.hubspot_api_url)
            tools.extend(hubspot_tools(client_hs))
        else:
            self._omit(PROVIDER_HUBSPOT, agent)

        tools.extend(visualization_tools())

        if web_search:
            tools.append(web_search_tool(self.http, self.settings))

        if agent == AGENT_PROSPECT_FINDER:
            tools.extend(customer_profile_tools(CustomerProfileService(self.pool), user_id))
            calendar = self._calendar_client(creds)
            if calendar is not None:
                tools.append(book_meeting_tool(calendar))
            else:
                self._omit(PROVIDER_GOOGLE, agent)

        tools.append(workflow_tool(self.http, self.settings, agent, user_id))

        registry = {tool.name: tool for tool in tools}
        logger.info(
            f"Built {len(registry)} tools for {agent}",
            agent=agent,
            tools=sorted(registry),
        )
        return registry

    def _calendar_client(self, creds: dict[str, object]) -> CalendarClient | None:
        """Google Calendar when connected, else Microsoft."""
        google = creds.get(PROVIDER_GOOGLE)
        if isinstance(google, GoogleCredential):
            return GoogleCalendarClient(
                self.http, google, self.credentials.refresh, base_url=self.settings.google_calendar_url
            )
        microsoft = creds.get(PROVIDER_MICROSOFT)
        if isinstance(microsoft, MicrosoftCredential):
            return MicrosoftCalendarClient(
                self.http, microsoft, self.credentials.refresh, graph_url=self.settings.microsoft_graph_url
            )
        return None

    def _omit(self, provider: str, agent: str) -> None:
        tools_omitted_total.labels(provider=provider).inc()
        logger.info(f"No usable {provider} credential, omitting its tools", provider=provider, agent=agent)


__all__ = ["ToolRegistry", "providers_for"]
