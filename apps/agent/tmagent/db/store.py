"""Persistence for memories, idempotency records and cached markers."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import asyncpg

from tmagent.models import MemoryRecord

logger = logging.getLogger(__name__)


def _decode(value):
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


class PostgresStore:
    """All reads/writes are scoped to one agent id."""

    def __init__(self, pool: asyncpg.Pool, agent_id: str) -> None:
        self._pool = pool
        self.agent_id = agent_id

    @asynccontextmanager
    async def get_conn(self) -> AsyncGenerator:
        async with self._pool.acquire() as conn:
            yield conn

    async def close(self) -> None:
        await self._pool.close()

    # ── Memories ──

    async def get_memory_by_id(self, memory_id: str) -> dict | None:
        async with self.get_conn() as conn:
            row = await conn.fetchrow("SELECT * FROM memories WHERE id = $1", memory_id)
        if not row:
            return None
        d = dict(row)
        d["content"] = _decode(d.get("content"))
        return d

    async def create_memory(self, record: MemoryRecord) -> bool:
        """Insert a memory. Returns False if one with this id already exists."""
        async with self.get_conn() as conn:
            result = await conn.execute(
                """INSERT INTO memories (id, agent_id, user_id, room_id, content, created_at)
                   VALUES ($1, $2, $3, $4, $5::jsonb, $6)
                   ON CONFLICT (id) DO NOTHING""",
                record.id, self.agent_id, record.user_id, record.room_id,
                json.dumps(record.content),
                datetime.fromtimestamp(record.created_at, tz=timezone.utc),
            )
        return result.endswith(" 1")

    async def ensure_connection(
        self,
        user_id: str,
        room_id: str,
        handle: str,
        display_name: str,
        source: str = "twitter",
    ) -> None:
        async with self.get_conn() as conn:
            async with conn.transaction():
                await conn.execute(
                    """INSERT INTO accounts (id, handle, display_name, source)
                       VALUES ($1, $2, $3, $4) ON CONFLICT (id) DO NOTHING""",
                    user_id, handle, display_name or handle, source,
                )
                await conn.execute(
                    "INSERT INTO rooms (id) VALUES ($1) ON CONFLICT (id) DO NOTHING", room_id,
                )
                await conn.execute(
                    """INSERT INTO participants (room_id, user_id)
                       VALUES ($1, $2) ON CONFLICT DO NOTHING""",
                    room_id, user_id,
                )

    # ── Idempotency records ──

    async def get_response_record(self, post_id: str) -> dict | None:
        async with self.get_conn() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM post_responses WHERE agent_id = $1 AND post_id = $2",
                self.agent_id, post_id,
            )
        return dict(row) if row else None

    async def create_response_record(
        self, post_id: str, response_id: str | None, decision: str
    ) -> bool:
        """Record how a post was handled. False if it was already recorded."""
        async with self.get_conn() as conn:
            result = await conn.execute(
                """INSERT INTO post_responses (agent_id, post_id, response_id, decision)
                   VALUES ($1, $2, $3, $4)
                   ON CONFLICT (agent_id, post_id) DO NOTHING""",
                self.agent_id, post_id, response_id, decision,
            )
        return result.endswith(" 1")

    # ── Cache ──

    async def cache_get(self, key: str):
        async with self.get_conn() as conn:
            row = await conn.fetchrow(
                """SELECT value FROM agent_cache
                   WHERE agent_id = $1 AND key = $2
                     AND (expires_at IS NULL OR expires_at > NOW())""",
                self.agent_id, key,
            )
        return _decode(row["value"]) if row else None

    async def cache_set(self, key: str, value, ttl: float | None = None) -> None:
        expires_at = None
        if ttl:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        async with self.get_conn() as conn:
            await conn.execute(
                """INSERT INTO agent_cache (agent_id, key, value, expires_at, updated_at)
                   VALUES ($1, $2, $3::jsonb, $4, NOW())
                   ON CONFLICT (agent_id, key)
                   DO UPDATE SET value = EXCLUDED.value,
                                 expires_at = EXCLUDED.expires_at,
                                 updated_at = NOW()""",
                self.agent_id, key, json.dumps(value), expires_at,
            )

    async def cache_delete(self, key: str) -> None:
        async with self.get_conn() as conn:
            await conn.execute(
                "DELETE FROM agent_cache WHERE agent_id = $1 AND key = $2", self.agent_id, key,
            )
