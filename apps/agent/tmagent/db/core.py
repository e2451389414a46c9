"""Core database connection pool and migrations.

PostgreSQL holds the agent's memories, idempotency records and the small
key/value cache used for progress markers.
"""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger(__name__)


async def create_pool(postgres_url: str) -> asyncpg.Pool:
    """Create connection pool and run migrations. Raises if PostgreSQL is unavailable."""
    pool = await asyncpg.create_pool(postgres_url, min_size=1, max_size=5)
    async with pool.acquire() as conn:
        await run_migrations(conn)
    logger.info("Database initialized (PostgreSQL)")
    return pool


async def run_migrations(conn) -> None:
    """Create tables if they don't exist."""
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS accounts (
            id TEXT PRIMARY KEY,
            handle TEXT NOT NULL DEFAULT '',
            display_name TEXT NOT NULL DEFAULT '',
            source TEXT NOT NULL DEFAULT 'twitter',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    await conn.execute("""
        CREATE TABLE IF NOT EXISTS rooms (
            id TEXT PRIMARY KEY,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    await conn.execute("""
        CREATE TABLE IF NOT EXISTS participants (
            room_id TEXT NOT NULL REFERENCES rooms(id),
            user_id TEXT NOT NULL REFERENCES accounts(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (room_id, user_id)
        )
    """)

    await conn.execute("""
        CREATE TABLE IF NOT EXISTS memories (
            id TEXT PRIMARY KEY,
            agent_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            room_id TEXT NOT NULL,
            content JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    await conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_memories_room ON memories(room_id, created_at DESC)
    """)

    await conn.execute("""
        CREATE TABLE IF NOT EXISTS post_responses (
            agent_id TEXT NOT NULL,
            post_id TEXT NOT NULL,
            response_id TEXT,
            decision TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (agent_id, post_id)
        )
    """)

    await conn.execute("""
        CREATE TABLE IF NOT EXISTS agent_cache (
            agent_id TEXT NOT NULL,
            key TEXT NOT NULL,
            value JSONB NOT NULL,
            expires_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (agent_id, key)
        )
    """)
