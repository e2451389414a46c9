"""asyncpg-backed warehouse connections for the bounded pool."""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger(__name__)


class AsyncpgWarehouse:
    """ConnectionFactory over single asyncpg connections.

    The pool owns lifetimes; this class only knows how to open, health-check, close
    and run a statement on one connection.
    """

    def __init__(self, dsn: str, statement_timeout: float = 60.0) -> None:
        self.dsn = dsn
        self.statement_timeout = statement_timeout

    async def connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self.dsn, timeout=30)
        logger.info("Opened warehouse connection")
        return conn

    async def health_check(self, conn: asyncpg.Connection) -> bool:
        return not conn.is_closed()

    async def destroy(self, conn: asyncpg.Connection) -> None:
        if not conn.is_closed():
            await conn.close(timeout=5)

    async def execute(self, conn: asyncpg.Connection, sql: str) -> list[dict]:
        rows = await conn.fetch(sql, timeout=self.statement_timeout)
        return [dict(r) for r in rows]
