"""
Thread store backed by PostgreSQL.

A thread's messages live in one JSONB array on the `threads` row. Messages
are only ever added with `messages = messages || $new`, a single atomic
statement, so two turns writing to the same thread at once both keep
their messages.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from api.middleware.exception_handlers import ThreadNotFoundError
from models.thread_models import Message, Thread, generate_thread_id
from utils.db_utils import with_retry
from utils.logger import logger


def row_to_thread(row: Any) -> Thread:
    return Thread(
        thread_id=row["id"],
        user_id=row["user_id"],
        agent=row["agent"],
        name=row["name"],
        messages=[Message.model_validate(m) for m in row["messages"] or []],
        created_at=row["created_at"],
        last_updated=row["last_updated"],
    )


class ThreadService:
    """Thread business logic backed by PostgreSQL.

    Every operation is scoped by user: a thread owned by someone else is
    indistinguishable from a missing one.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create(self, user_id: str, agent: str, name: str | None = None, thread_id: str | None = None) -> Thread:
        """Create an empty thread.

        Raises:
            ThreadNotFoundError: If a client-chosen id is already taken
        """
        thread_id = thread_id or generate_thread_id()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO threads (id, user_id, agent, name, messages)
                VALUES ($1, $2, $3, $4, '[]'::jsonb)
                ON CONFLICT (id) DO NOTHING
                RETURNING *
                """,
                thread_id,
                user_id,
                agent,
                name,
            )
        if row is None:
            raise ThreadNotFoundError(thread_id)
        thread = row_to_thread(row)
        logger.info(f"Created thread {thread.thread_id}", thread_id=thread.thread_id, agent=agent)
        return thread

    @with_retry()
    async def get(self, user_id: str, thread_id: str) -> Thread | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM threads WHERE id = $1 AND user_id = $2",
                thread_id,
                user_id,
            )
        return row_to_thread(row) if row else None

    async def list(self, user_id: str, limit: int = 50, offset: int = 0) -> tuple[list[Thread], int]:
        """Threads most recently updated first, with the total count."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM threads
                WHERE user_id = $1
                ORDER BY last_updated DESC
                LIMIT $2 OFFSET $3
                """,
                user_id,
                limit,
                offset,
            )
            total = await conn.fetchval("SELECT COUNT(*) FROM threads WHERE user_id = $1", user_id)
        return [row_to_thread(r) for r in rows], total or 0

    async def append_messages(
        self,
        user_id: str,
        thread_id: str,
        messages: list[Message],
        agent: str | None = None,
    ) -> bool:
        """Append messages to the end of a thread.

        An empty list only touches last_updated. When `agent` is given and the
        thread does not exist yet, it is created with these messages.

        Returns:
            True if the messages were stored
        """
        documents = [m.to_document() for m in messages]

        async with self.pool.acquire() as conn:
            if agent is not None:
                result = await conn.execute(
                    """
                    INSERT INTO threads (id, user_id, agent, messages)
                    VALUES ($1, $2, $3, $4::jsonb)
                    ON CONFLICT (id) DO UPDATE
                    SET messages = threads.messages || EXCLUDED.messages,
                        last_updated = NOW()
                    WHERE threads.user_id = EXCLUDED.user_id
                    """,
                    thread_id,
                    user_id,
                    agent,
                    documents,
                )
            else:
                result = await conn.execute(
                    """
                    UPDATE threads
                    SET messages = messages || $3::jsonb,
                        last_updated = NOW()
                    WHERE id = $1 AND user_id = $2
                    """,
                    thread_id,
                    user_id,
                    documents,
                )

        stored = result.endswith(" 1")
        if stored:
            logger.debug(f"Appended {len(documents)} messages to thread {thread_id}", thread_id=thread_id)
        else:
            logger.warning(f"Append to thread {thread_id} matched no row", thread_id=thread_id)
        return stored

    async def rename(self, user_id: str, thread_id: str, name: str) -> Thread | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE threads SET name = $3
                WHERE id = $1 AND user_id = $2
                RETURNING *
                """,
                thread_id,
                user_id,
                name,
            )
        return row_to_thread(row) if row else None

    async def set_name_if_unset(self, thread_id: str, name: str) -> bool:
        """Store a generated title unless the user already named the thread."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE threads SET name = $2 WHERE id = $1 AND name IS NULL",
                thread_id,
                name,
            )
        return result == "UPDATE 1"

    async def delete(self, user_id: str, thread_id: str) -> bool:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM threads WHERE id = $1 AND user_id = $2",
                thread_id,
                user_id,
            )
        return result == "DELETE 1"


__all__ = ["ThreadService", "row_to_thread"]
