"""
Credential resolution for provider integrations.

Reads a user's stored OAuth credential for a provider, validates it into
the provider's typed record and refreshes it on demand when it has
expired. The connect/callback flows that first write these rows live
outside this service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import asyncpg
import httpx

from pydantic import ValidationError

from api.middleware.exception_handlers import CredentialRefreshError
from core.constants import (
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    PROVIDER_GOOGLE,
    PROVIDER_HUBSPOT,
    PROVIDER_MICROSOFT,
    PROVIDER_SALESFORCE,
    Settings,
    get_settings,
)
from integrations.provider_client import provider_error_message
from models.credential_models import Credential, SalesforceCredential, credential_from_row
from utils.logger import logger
from utils.metrics import credential_refreshes_total

#: Scopes re-requested on Microsoft refresh; the v2 token endpoint requires them.
MICROSOFT_REFRESH_SCOPE = "offline_access Calendars.ReadWrite"


@dataclass(frozen=True)
class TokenEndpoint:
    """Where and as whom to refresh one provider's tokens."""

    url: str
    client_id: str | None
    client_secret: str | None
    extra: dict[str, str] | None = None

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


def token_endpoint(provider: str, settings: Settings) -> TokenEndpoint:
    """Token endpoint and OAuth client for a provider."""
    if provider == PROVIDER_SALESFORCE:
        return TokenEndpoint(settings.salesforce_token_url, settings.salesforce_client_id, settings.salesforce_client_secret)
    if provider == PROVIDER_HUBSPOT:
        return TokenEndpoint(settings.hubspot_token_url, settings.hubspot_client_id, settings.hubspot_client_secret)
    if provider == PROVIDER_GOOGLE:
        return TokenEndpoint(settings.google_token_url, settings.google_client_id, settings.google_client_secret)
    if provider == PROVIDER_MICROSOFT:
        return TokenEndpoint(
            settings.microsoft_token_url,
            settings.microsoft_client_id,
            settings.microsoft_client_secret,
            extra={"scope": MICROSOFT_REFRESH_SCOPE},
        )
    raise ValueError(f"Unknown provider: {provider}")


class CredentialResolver:
    """Look up, validate and refresh per-user provider credentials.

    Storage holds at most one row per (user_id, provider). This service only
    writes to it when a refresh produces a new token.
    """

    def __init__(self, pool: asyncpg.Pool, http: httpx.AsyncClient, settings: Settings | None = None):
        self.pool = pool
        self.http = http
        self.settings = settings or get_settings()

    async def get(self, user_id: str, provider: str) -> Credential | None:
        """Return a usable credential, or None when the provider is unavailable.

        An expired credential is refreshed first. Missing rows, malformed rows
        and failed refreshes all report the provider as unavailable.
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT user_id, provider, access_token, refresh_token,
                       instance_url, expires_at, metadata
                FROM credentials
                WHERE user_id = $1 AND provider = $2
                """,
                user_id,
                provider,
            )

        if not row:
            return None

        try:
            credential = credential_from_row(row)
        except ValidationError as e:
            logger.warning(
                f"Stored {provider} credential is malformed, treating as unavailable",
                provider=provider,
                error_count=e.error_count(),
            )
            return None

        if not credential.is_expired():
            return credential

        if not credential.can_refresh:
            logger.info(f"{provider} credential expired with no refresh token", provider=provider)
            return None

        try:
            return await self.refresh(credential)
        except CredentialRefreshError as e:
            logger.warning(f"Could not refresh {provider} credential: {e.message}", provider=provider)
            return None

    async def refresh(self, credential: Credential) -> Credential:
        """Exchange the refresh token for a new access token and store it.

        Raises:
            CredentialRefreshError: If the provider is not configured, the
                credential has no refresh token, or the token endpoint fails.
        """
        provider = credential.provider
        endpoint = token_endpoint(provider, self.settings)

        if not endpoint.configured:
            credential_refreshes_total.labels(provider=provider, outcome="error").inc()
            raise CredentialRefreshError(provider, "OAuth client is not configured")
        if not credential.refresh_token:
            credential_refreshes_total.labels(provider=provider, outcome="error").inc()
            raise CredentialRefreshError(provider, "No refresh token stored")

        form = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
            "client_id": endpoint.client_id or "",
            "client_secret": endpoint.client_secret or "",
            **(endpoint.extra or {}),
        }

        try:
            response = await self.http.post(endpoint.url, data=form, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            credential_refreshes_total.labels(provider=provider, outcome="error").inc()
            raise CredentialRefreshError(provider, f"Token endpoint unreachable: {e}", cause=e) from e

        if response.is_error:
            credential_refreshes_total.labels(provider=provider, outcome="error").inc()
            raise CredentialRefreshError(provider, provider_error_message(response))

        try:
            body = response.json()
        except ValueError as e:
            credential_refreshes_total.labels(provider=provider, outcome="error").inc()
            raise CredentialRefreshError(provider, "Token response was not valid JSON", cause=e) from e
        if not isinstance(body, dict) or not body.get("access_token"):
            credential_refreshes_total.labels(provider=provider, outcome="error").inc()
            raise CredentialRefreshError(provider, "Token response did not include an access token")

        expires_in = body.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS
        update: dict[str, Any] = {
            "access_token": body["access_token"],
            "refresh_token": body.get("refresh_token") or credential.refresh_token,
            "expires_at": datetime.now(UTC) + timedelta(seconds=int(expires_in)),
        }
        if isinstance(credential, SalesforceCredential) and body.get("instance_url"):
            update["instance_url"] = body["instance_url"]

        refreshed = credential.model_copy(update=update)
        await self._store(refreshed)

        credential_refreshes_total.labels(provider=provider, outcome="success").inc()
        logger.info(f"Refreshed {provider} credential", provider=provider)
        return refreshed

    async def _store(self, credential: Credential) -> None:
        instance_url = credential.instance_url if isinstance(credential, SalesforceCredential) else None
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE credentials
                SET access_token = $3,
                    refresh_token = $4,
                    expires_at = $5,
                    instance_url = COALESCE($6, instance_url),
                    updated_at = NOW()
                WHERE user_id = $1 AND provider = $2
                """,
                credential.user_id,
                credential.provider,
                credential.access_token,
                credential.refresh_token,
                credential.expires_at,
                instance_url,
            )


__all__ = ["CredentialResolver", "TokenEndpoint", "token_endpoint"]
