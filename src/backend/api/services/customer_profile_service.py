from __future__ import annotations

import asyncpg

from models.customer_profile_models import (
    UPDATABLE_COLUMNS,
    CustomerProfile,
    CustomerProfileFields,
    CustomerProfileUpdate,
)
from utils.logger import logger


class CustomerProfileService:
    """Customer profiles backed by PostgreSQL, scoped per user."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def list(self, user_id: str, active_only: bool = False) -> list[CustomerProfile]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM customer_profiles
                WHERE user_id = $1 AND (NOT $2 OR active)
                ORDER BY updated_at DESC
                """,
                user_id,
                active_only,
            )
        return [CustomerProfile.from_row(r) for r in rows]

    async def get(self, user_id: str, profile_id: str) -> CustomerProfile | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM customer_profiles WHERE id = $1::uuid AND user_id = $2",
                profile_id,
                user_id,
            )
        return CustomerProfile.from_row(row) if row else None

    async def create(self, user_id: str, fields: CustomerProfileFields) -> CustomerProfile:
        values = fields.model_dump()
        columns = list(values)
        placeholders = ", ".join(f"${i}" for i in range(2, len(columns) + 2))

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO customer_profiles (user_id, {", ".join(columns)})
                VALUES ($1, {placeholders})
                RETURNING *
                """,  # noqa: S608 - column names come from the model, not user input
                user_id,
                *values.values(),
            )
        profile = CustomerProfile.from_row(row)
        logger.info(f"Created customer profile {profile.id}", profile_id=profile.id)
        return profile

    async def update(self, user_id: str, profile_id: str, update: CustomerProfileUpdate) -> CustomerProfile | None:
        """Apply a partial update. Returns None when the profile does not exist for this user."""
        changes = {k: v for k, v in update.changes().items() if k in UPDATABLE_COLUMNS}
        if not changes:
            raise ValueError("No update fields provided")

        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(changes, start=3))
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE customer_profiles
                SET {assignments}, updated_at = NOW()
                WHERE id = $1::uuid AND user_id = $2
                RETURNING *
                """,  # noqa: S608 - column names come from the model, not user input
                profile_id,
                user_id,
                *changes.values(),
            )
        return CustomerProfile.from_row(row) if row else None


__all__ = ["CustomerProfileService"]
