"""
Calendar clients for booking meetings.

Google Calendar and Microsoft Graph take differently shaped event bodies;
both clients accept the same arguments and return the same
{id, link, provider} summary.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.constants import PROVIDER_GOOGLE, PROVIDER_MICROSOFT
from integrations.provider_client import CredentialRefresher, ProviderClient
from models.credential_models import GoogleCredential, MicrosoftCredential


class GoogleCalendarClient(ProviderClient[GoogleCredential]):
    provider = PROVIDER_GOOGLE

    def __init__(
        self,
        http: httpx.AsyncClient,
        credential: GoogleCredential,
        refresh: CredentialRefresher,
        base_url: str = "https://www.googleapis.com/calendar/v3",
    ) -> None:
        super().__init__(http, credential, refresh)
        self.base_url = base_url.rstrip("/")

    async def create_event(
        self,
        subject: str,
        start: str,
        end: str,
        attendees: list[str],
        time_zone: str = "UTC",
        description: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "summary": subject,
            "start": {"dateTime": start, "timeZone": time_zone},
            "end": {"dateTime": end, "timeZone": time_zone},
            "attendees": [{"email": email} for email in attendees],
        }
        if description:
            body["description"] = description

        response = await self.request(
            "POST",
            f"{self.base_url}/calendars/{self.credential.calendar_id}/events",
            params={"sendUpdates": "all"},
            json=body,
        )
        data = response.json()
        return {"id": data.get("id"), "link": data.get("htmlLink"), "provider": self.provider}


class MicrosoftCalendarClient(ProviderClient[MicrosoftCredential]):
    provider = PROVIDER_MICROSOFT

    def __init__(
        self,
        http: httpx.AsyncClient,
        credential: MicrosoftCredential,
        refresh: CredentialRefresher,
        graph_url: str = "https://graph.microsoft.com/v1.0",
    ) -> None:
        super().__init__(http, credential, refresh)
        self.graph_url = graph_url.rstrip("/")

    async def create_event(
        self,
        subject: str,
        start: str,
        end: str,
        attendees: list[str],
        time_zone: str = "UTC",
        description: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "subject": subject,
            "start": {"dateTime": start, "timeZone": time_zone},
            "end": {"dateTime": end, "timeZone": time_zone},
            "attendees": [{"emailAddress": {"address": email}, "type": "required"} for email in attendees],
        }
        if description:
            body["body"] = {"contentType": "text", "content": description}

        response = await self.request("POST", f"{self.graph_url}/me/events", json=body)
        data = response.json()
        return {"id": data.get("id"), "link": data.get("webLink"), "provider": self.provider}


CalendarClient = GoogleCalendarClient | MicrosoftCalendarClient

__all__ = ["CalendarClient", "GoogleCalendarClient", "MicrosoftCalendarClient"]
