"""
Salesforce REST API client.

Queries run through the SOQL query endpoint; updates use the composite
sObject collections endpoint so one call can touch up to 200 records.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.constants import MAX_RECORDS_PER_UPDATE, PROVIDER_SALESFORCE
from integrations.provider_client import CredentialRefresher, ProviderClient
from models.credential_models import SalesforceCredential


class SalesforceClient(ProviderClient[SalesforceCredential]):
    """Calls one org's REST API on behalf of one user."""

    provider = PROVIDER_SALESFORCE

    def __init__(
        self,
        http: httpx.AsyncClient,
        credential: SalesforceCredential,
        refresh: CredentialRefresher,
        api_version: str = "v60.0",
    ) -> None:
        super().__init__(http, credential, refresh)
        self.api_version = api_version

    @property
    def base_url(self) -> str:
        # instance_url can change on refresh, so it is read per call
        return f"{self.credential.instance_url.rstrip('/')}/services/data/{self.api_version}"

    async def query(self, soql: str) -> dict[str, Any]:
        """Run a SOQL query and return {totalSize, done, records}."""
        response = await self.request("GET", f"{self.base_url}/query", params={"q": soql})
        data = response.json()
        records = [_strip_attributes(r) for r in data.get("records", [])]
        return {"totalSize": data.get("totalSize", len(records)), "done": data.get("done", True), "records": records}

    async def update(self, sobject: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Update records of one sObject type.

        Each record must carry its Id. Records succeed or fail independently
        (allOrNone=false); the per-record results are returned in order.
        """
        if len(records) > MAX_RECORDS_PER_UPDATE:
            raise ValueError(f"At most {MAX_RECORDS_PER_UPDATE} records can be updated per call")

        payload = {
            "allOrNone": False,
            "records": [{"attributes": {"type": sobject}, **record} for record in records],
        }
        response = await self.request("PATCH", f"{self.base_url}/composite/sobjects", json=payload)
        return list(response.json())

    async def create(self, sobject: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Create one record and return {id, success, errors}."""
        response = await self.request("POST", f"{self.base_url}/sobjects/{sobject}/", json=fields)
        return dict(response.json())


def _strip_attributes(record: dict[str, Any]) -> dict[str, Any]:
    """Drop the `attributes` envelope Salesforce adds to every record, recursively."""
    cleaned: dict[str, Any] = {}
    for key, value in record.items():
        if key == "attributes":
            continue
        if isinstance(value, dict):
            if "records" in value:
                value = {**value, "records": [_strip_attributes(r) for r in value["records"]]}
            else:
                value = _strip_attributes(value)
        cleaned[key] = value
    return cleaned


__all__ = ["SalesforceClient"]
