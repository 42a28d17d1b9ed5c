from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from api.services.customer_profile_service import CustomerProfileService
from models.customer_profile_models import CustomerProfileFields, CustomerProfileUpdate


def _row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": uuid4(),
        "user_id": "auth0|u1",
        "customer_profile_name": "Mid-market SaaS",
        "common_industries": "Software;Fintech",
        "frequently_purchased_products": "Platform",
        "geographic_regions": "North America",
        "average_days_to_close": 45,
        "active": True,
        "social_media_presence": None,
        "channel_recommendation": None,
        "account_strategy": None,
        "account_employee_size": None,
        "account_lifecycle": None,
        "created_at": datetime.now(UTC),
        "updated_at": datetime.now(UTC),
    }
    row.update(overrides)
    return row


@pytest.fixture
def profiles(mock_db_pool: MagicMock) -> CustomerProfileService:
    return CustomerProfileService(mock_db_pool)


@pytest.mark.asyncio
async def test_create_inserts_model_columns(profiles: CustomerProfileService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = _row()
    fields = CustomerProfileFields(
        customer_profile_name="Mid-market SaaS",
        common_industries="Software;Fintech",
        frequently_purchased_products="Platform",
        geographic_regions="North America",
        average_days_to_close=45,
    )

    profile = await profiles.create("auth0|u1", fields)

    sql, user_id, *values = mock_conn.fetchrow.call_args.args
    assert "INSERT INTO customer_profiles (user_id, customer_profile_name" in sql
    assert user_id == "auth0|u1"
    assert values[0] == "Mid-market SaaS"
    assert isinstance(profile.id, str)


@pytest.mark.asyncio
async def test_update_sets_only_given_fields(profiles: CustomerProfileService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = _row(average_days_to_close=30)

    profile = await profiles.update("auth0|u1", "pid", CustomerProfileUpdate(average_days_to_close=30))

    assert profile is not None
    sql, profile_id, user_id, *values = mock_conn.fetchrow.call_args.args
    assert "average_days_to_close = $3" in sql
    assert "customer_profile_name" not in sql
    assert (profile_id, user_id, values) == ("pid", "auth0|u1", [30])


@pytest.mark.asyncio
async def test_update_without_changes_is_rejected(profiles: CustomerProfileService) -> None:
    with pytest.raises(ValueError, match="No update fields"):
        await profiles.update("auth0|u1", "pid", CustomerProfileUpdate())


@pytest.mark.asyncio
async def test_get_missing_profile(profiles: CustomerProfileService, mock_conn: AsyncMock) -> None:
    mock_conn.fetchrow.return_value = None
    assert await profiles.get("auth0|u1", "pid") is None
