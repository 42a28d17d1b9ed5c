from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from api.middleware.exception_handlers import CredentialRefreshError
from api.services.credential_service import CredentialResolver, token_endpoint
from models.credential_models import HubSpotCredential, SalesforceCredential

TOKEN_URL = "https://login.salesforce.com/services/oauth2/token"


@pytest.fixture
def settings(fresh_settings: MagicMock) -> MagicMock:
    fresh_settings.salesforce_token_url = TOKEN_URL
    fresh_settings.salesforce_client_id = "sf-client"
    fresh_settings.salesforce_client_secret = "sf-secret"
    fresh_settings.hubspot_token_url = "https://api.hubapi.com/oauth/v1/token"
    fresh_settings.hubspot_client_id = None
    fresh_settings.hubspot_client_secret = None
    return fresh_settings


@pytest.fixture
def resolver(mock_db_pool: MagicMock, mock_http_client: MagicMock, settings: MagicMock) -> CredentialResolver:
    return CredentialResolver(mock_db_pool, mock_http_client, settings)


def _row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "user_id": "auth0|u1",
        "provider": "salesforce",
        "access_token": "old-token",
        "refresh_token": "refresh-1",
        "instance_url": "https://acme.my.salesforce.com",
        "expires_at": datetime.now(UTC) + timedelta(hours=1),
        "metadata": {},
    }
    row.update(overrides)
    return row


def _response(status: int, body: dict[str, Any]) -> httpx.Response:
    return httpx.Response(status, json=body, request=httpx.Request("POST", TOKEN_URL))


@pytest.mark.asyncio
async def test_missing_row_is_unavailable(resolver: CredentialResolver, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = None
    assert await resolver.get("auth0|u1", "salesforce") is None


@pytest.mark.asyncio
async def test_valid_credential_is_returned(resolver: CredentialResolver, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = _row()

    credential = await resolver.get("auth0|u1", "salesforce")

    assert isinstance(credential, SalesforceCredential)
    assert credential.access_token == "old-token"


@pytest.mark.asyncio
async def test_malformed_row_is_unavailable(resolver: CredentialResolver, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = _row(instance_url=None)
    assert await resolver.get("auth0|u1", "salesforce") is None


@pytest.mark.asyncio
async def test_expired_without_refresh_token_is_unavailable(
    resolver: CredentialResolver, mock_conn: AsyncMock, mock_http_client: MagicMock
) -> None:
    mock_conn.fetchrow.return_value = _row(refresh_token=None, expires_at=datetime.now(UTC) - timedelta(minutes=5))

    assert await resolver.get("auth0|u1", "salesforce") is None
    mock_http_client.post.assert_not_called()


@pytest.mark.asyncio
async def test_expired_credential_is_refreshed_and_stored(
    resolver: CredentialResolver, mock_conn: AsyncMock, mock_http_client: MagicMock
) -> None:
    mock_conn.fetchrow.return_value = _row(expires_at=datetime.now(UTC) - timedelta(minutes=5))
    mock_http_client.post.return_value = _response(
        200, {"access_token": "new-token", "instance_url": "https://acme2.my.salesforce.com"}
    )

    credential = await resolver.get("auth0|u1", "salesforce")

    assert isinstance(credential, SalesforceCredential)
    assert credential.access_token == "new-token"
    assert credential.refresh_token == "refresh-1"
    assert credential.instance_url == "https://acme2.my.salesforce.com"
    assert not credential.is_expired()

    form = mock_http_client.post.call_args.kwargs["data"]
    assert form["grant_type"] == "refresh_token"
    assert form["refresh_token"] == "refresh-1"
    assert form["client_id"] == "sf-client"

    sql, *params = mock_conn.execute.call_args.args
    assert "UPDATE credentials" in sql
    assert params[:4] == ["auth0|u1", "salesforce", "new-token", "refresh-1"]


@pytest.mark.asyncio
async def test_rotated_refresh_token_is_kept(
    resolver: CredentialResolver, mock_conn: AsyncMock, mock_http_client: MagicMock
) -> None:
    mock_conn.fetchrow.return_value = _row(expires_at=datetime.now(UTC) - timedelta(minutes=5))
    mock_http_client.post.return_value = _response(200, {"access_token": "new", "refresh_token": "refresh-2"})

    credential = await resolver.get("auth0|u1", "salesforce")

    assert credential is not None
    assert credential.refresh_token == "refresh-2"


@pytest.mark.asyncio
async def test_failed_refresh_is_unavailable(
    resolver: CredentialResolver, mock_conn: AsyncMock, mock_http_client: MagicMock
) -> None:
    mock_conn.fetchrow.return_value = _row(expires_at=datetime.now(UTC) - timedelta(minutes=5))
    mock_http_client.post.return_value = _response(400, {"error": "invalid_grant", "error_description": "expired"})

    assert await resolver.get("auth0|u1", "salesforce") is None
    mock_conn.execute.assert_not_called()


@pytest.mark.asyncio
async def test_refresh_raises_when_client_not_configured(resolver: CredentialResolver) -> None:
    credential = HubSpotCredential(user_id="auth0|u1", access_token="t", refresh_token="r")

    with pytest.raises(CredentialRefreshError, match="not configured"):
        await resolver.refresh(credential)


@pytest.mark.asyncio
async def test_refresh_wraps_transport_errors(resolver: CredentialResolver, mock_http_client: MagicMock) -> None:
    mock_http_client.post.side_effect = httpx.ConnectError("down")
    credential = SalesforceCredential(
        user_id="auth0|u1", access_token="t", refresh_token="r", instance_url="https://acme.my.salesforce.com"
    )

    with pytest.raises(CredentialRefreshError, match="unreachable"):
        await resolver.refresh(credential)


@pytest.mark.asyncio
async def test_non_json_token_response_is_unavailable(
    resolver: CredentialResolver, mock_conn: AsyncMock, mock_http_client: MagicMock
) -> None:
    mock_conn.fetchrow.return_value = _row(expires_at=datetime.now(UTC) - timedelta(minutes=5))
    mock_http_client.post.return_value = httpx.Response(
        200, text="<html>maintenance</html>", request=httpx.Request("POST", TOKEN_URL)
    )

    assert await resolver.get("auth0|u1", "salesforce") is None
    mock_conn.execute.assert_not_called()

    credential = SalesforceCredential(
        user_id="auth0|u1", access_token="t", refresh_token="r", instance_url="https://acme.my.salesforce.com"
    )
    with pytest.raises(CredentialRefreshError, match="not valid JSON"):
        await resolver.refresh(credential)


def test_microsoft_refresh_requests_calendar_scope(settings: MagicMock) -> None:
    endpoint = token_endpoint("microsoft", settings)
    assert endpoint.extra == {"scope": "offline_access Calendars.ReadWrite"}
