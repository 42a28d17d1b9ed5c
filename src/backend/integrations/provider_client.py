"""
Shared request handling for CRM and calendar provider APIs.

Every provider client sends the user's bearer token, refreshes it once when
the provider answers 401, and turns any other error status into a
ProviderAPIError carrying the provider's own message.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import httpx

from api.middleware.exception_handlers import ProviderAPIError
from models.credential_models import BaseCredential
from utils.logger import logger

C = TypeVar("C", bound=BaseCredential)

#: Callable that exchanges a credential's refresh token for a fresh record.
CredentialRefresher = Callable[[Any], Awaitable[Any]]


def provider_error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a provider error body.

    Handles Salesforce (list of {message, errorCode}), HubSpot ({message}),
    Google and Microsoft Graph ({error: {message}}) and OAuth
    ({error, error_description}) shapes.
    """
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, list) and body and isinstance(body[0], dict):
        return "; ".join(str(item.get("message", item)) for item in body)

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("error_description"):
            return str(body["error_description"])
        if body.get("message"):
            return str(body["message"])
        if isinstance(error, str):
            return error

    return f"HTTP {response.status_code}"


class ProviderClient(Generic[C]):
    """Base for clients that call a provider API with a stored OAuth credential."""

    provider: str = ""

    def __init__(self, http: httpx.AsyncClient, credential: C, refresh: CredentialRefresher) -> None:
        self._http = http
        self._credential = credential
        self._refresh = refresh

    @property
    def credential(self) -> C:
        return self._credential

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**kwargs.pop("headers", {}), **self._credential.auth_header()}
        return await self._http.request(method, url, headers=headers, **kwargs)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying once with a refreshed token on 401.

        Raises:
            ProviderAPIError: If the provider answers with an error status
            CredentialRefreshError: If the token refresh itself fails
        """
        response = await self._send(method, url, **dict(kwargs))

        if response.status_code == 401 and self._credential.can_refresh:
            logger.info(f"{self.provider} session expired, refreshing token", provider=self.provider)
            self._credential = await self._refresh(self._credential)
            response = await self._send(method, url, **dict(kwargs))

        if response.is_error:
            message = provider_error_message(response)
            logger.warning(
                f"{self.provider} API error {response.status_code}: {message}",
                provider=self.provider,
                status_code=response.status_code,
            )
            raise ProviderAPIError(self.provider, message, response.status_code)

        return response


__all__ = ["CredentialRefresher", "ProviderClient", "provider_error_message"]
