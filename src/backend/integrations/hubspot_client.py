"""
HubSpot CRM v3 API client.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.constants import PROVIDER_HUBSPOT
from integrations.provider_client import CredentialRefresher, ProviderClient
from models.credential_models import HubSpotCredential


class HubSpotClient(ProviderClient[HubSpotCredential]):
    """Search and batch-update CRM objects (contacts, companies, deals...)."""

    provider = PROVIDER_HUBSPOT

    def __init__(
        self,
        http: httpx.AsyncClient,
        credential: HubSpotCredential,
        refresh: CredentialRefresher,
        api_url: str = "https://api.hubapi.com",
    ) -> None:
        super().__init__(http, credential, refresh)
        self.api_url = api_url.rstrip("/")

    async def search(
        self,
        object_type: str,
        filters: list[dict[str, Any]] | None = None,
        properties: list[str] | None = None,
        limit: int = 100,
    ) -> dict[str, Any]:
        """Search objects with AND-ed property filters.

        Filters use HubSpot's shape: {propertyName, operator, value}.
        """
        payload: dict[str, Any] = {"limit": limit}
        if filters:
            payload["filterGroups"] = [{"filters": filters}]
        if properties:
            payload["properties"] = properties

        response = await self.request("POST", f"{self.api_url}/crm/v3/objects/{object_type}/search", json=payload)
        data = response.json()
        return {"total": data.get("total", 0), "results": data.get("results", [])}

    async def update(self, object_type: str, records: list[dict[str, Any]]) -> dict[str, Any]:
        """Batch update objects. Each record is {id, properties}.

        HubSpot answers 207 when some inputs fail; both the results and the
        errors are returned.
        """
        response = await self.request(
            "POST",
            f"{self.api_url}/crm/v3/objects/{object_type}/batch/update",
            json={"inputs": records},
        )
        data = response.json()
        return {"results": data.get("results", []), "errors": data.get("errors", [])}


__all__ = ["HubSpotClient"]
