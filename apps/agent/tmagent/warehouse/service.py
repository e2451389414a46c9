"""Query service — runs plans against the warehouse.

Order on every call: rate limiter, then cache, then a pool lease. A cache hit
still spends rate-limit budget. Nothing here retries; AcquireTimeout,
RateLimitExceeded and QueryExecutionError go straight to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from tmagent.errors import QueryExecutionError
from tmagent.warehouse.cache import TTLCache
from tmagent.warehouse.pool import BoundedPool
from tmagent.warehouse.rate_limiter import SlidingWindowRateLimiter
from tmagent.warehouse.synthesis import (
    LlmQuerySynthesizer,
    Predicate,
    QueryPlan,
    SortKey,
    synthesize,
)

logger = logging.getLogger(__name__)


class Warehouse(Protocol):
    async def execute(self, conn, sql: str) -> list[dict]: ...


@dataclass
class QueryAnswer:
    sql: str
    rows: list[dict]
    plan: QueryPlan | None = None


class QueryService:
    def __init__(
        self,
        warehouse: Warehouse,
        pool: BoundedPool,
        limiter: SlidingWindowRateLimiter,
        cache: TTLCache,
        *,
        table: str,
        max_rows: int = 10,
        llm_synthesizer: LlmQuerySynthesizer | None = None,
    ) -> None:
        self.warehouse = warehouse
        self.pool = pool
        self.limiter = limiter
        self.cache = cache
        self.table = table
        self.max_rows = max_rows
        self.llm_synthesizer = llm_synthesizer

    async def execute(self, plan: QueryPlan) -> list[dict]:
        return await self.execute_sql(plan.to_sql())

    async def execute_sql(self, sql: str) -> list[dict]:
        self.limiter.check()

        cached = self.cache.get(sql)
        if cached is not None:
            return cached

        async with self.pool.lease() as conn:
            try:
                rows = await self.warehouse.execute(conn, sql)
            except Exception as e:
                logger.error("Warehouse query failed: %s | %s", e, sql[:200])
                raise QueryExecutionError(f"Query failed: {e}") from e

        self.cache.set(sql, rows)
        logger.info("Warehouse query returned %d rows", len(rows))
        return rows

    async def answer(self, question: str, context: str = "") -> QueryAnswer:
        """Synthesize SQL for a question and run it."""
        if self.llm_synthesizer is not None:
            sql = await self.llm_synthesizer.synthesize(question, context)
            return QueryAnswer(sql=sql, rows=await self.execute_sql(sql))

        plan = synthesize(question, context, table=self.table, max_rows=self.max_rows)
        return QueryAnswer(sql=plan.to_sql(), rows=await self.execute(plan), plan=plan)

    async def market_snapshot(self, limit: int = 5) -> list[dict]:
        """Top tokens by trader grade with market-cap and volume floors."""
        plan = QueryPlan(
            columns=(
                "TOKEN_NAME", "TOKEN_SYMBOL", "TOKEN_URL", "TM_TRADER_GRADE",
                "MARKET_CAP", "VOLUME_24H", "TRADING_SIGNAL", "TOKEN_TREND",
            ),
            filters=(
                Predicate("MARKET_CAP", ">", 1_000_000),
                Predicate("VOLUME_24H", ">", 100_000),
            ),
            sort=SortKey("TM_TRADER_GRADE"),
            limit=limit,
            table=self.table,
        )
        return await self.execute(plan)
