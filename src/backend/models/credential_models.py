"""
Provider credential records.

Each OAuth provider has its own strongly typed record; `Credential` is the
tagged union over them, discriminated by `provider`. Rows from the
credential store are validated into this union at the point they are read,
so nothing past the resolver handles loosely typed token blobs.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from core.constants import (
    CREDENTIAL_EXPIRY_SKEW_SECONDS,
    PROVIDER_GOOGLE,
    PROVIDER_HUBSPOT,
    PROVIDER_MICROSOFT,
    PROVIDER_SALESFORCE,
)


class BaseCredential(BaseModel):
    """Fields shared by every provider credential."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    access_token: str = Field(min_length=1, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once the token is within the expiry skew of expires_at."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=UTC)
        return expires_at <= now + timedelta(seconds=CREDENTIAL_EXPIRY_SKEW_SECONDS)

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def auth_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


class SalesforceCredential(BaseCredential):
    provider: Literal["salesforce"] = PROVIDER_SALESFORCE
    instance_url: str = Field(min_length=1)


class HubSpotCredential(BaseCredential):
    provider: Literal["hubspot"] = PROVIDER_HUBSPOT
    hub_id: str | None = None


class GoogleCredential(BaseCredential):
    provider: Literal["google"] = PROVIDER_GOOGLE
    scope: str | None = None
    calendar_id: str = "primary"


class MicrosoftCredential(BaseCredential):
    provider: Literal["microsoft"] = PROVIDER_MICROSOFT
    tenant_id: str | None = None


Credential = Annotated[
    SalesforceCredential | HubSpotCredential | GoogleCredential | MicrosoftCredential,
    Field(discriminator="provider"),
]

_credential_adapter: TypeAdapter[Credential] = TypeAdapter(Credential)


def parse_credential(data: dict[str, Any]) -> Credential:
    """Validate a raw credential payload into its provider's record.

    Raises:
        pydantic.ValidationError: If the provider is unknown or fields are missing.
    """
    return _credential_adapter.validate_python(data)


def credential_from_row(row: Any) -> Credential:
    """Build a typed credential from a `credentials` table row.

    Provider-specific fields live in the row's `metadata` JSONB column.
    """
    data = dict(row)
    metadata = data.pop("metadata", None) or {}
    payload = {
        **metadata,
        "provider": data["provider"],
        "user_id": data["user_id"],
        "access_token": data["access_token"],
        "refresh_token": data.get("refresh_token"),
        "expires_at": data.get("expires_at"),
    }
    if data.get("instance_url"):
        payload["instance_url"] = data["instance_url"]
    return parse_credential(payload)


__all__ = [
    "BaseCredential",
    "Credential",
    "GoogleCredential",
    "HubSpotCredential",
    "MicrosoftCredential",
    "SalesforceCredential",
    "credential_from_row",
    "parse_credential",
]
