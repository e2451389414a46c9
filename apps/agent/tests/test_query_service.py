"""Tests for the query service: limiter → cache → pool → warehouse."""

import asyncio

import pytest

from tmagent.errors import AcquireTimeout, QueryExecutionError, RateLimitExceeded
from tmagent.warehouse.cache import TTLCache
from tmagent.warehouse.pool import BoundedPool
from tmagent.warehouse.rate_limiter import SlidingWindowRateLimiter
from tmagent.warehouse.service import QueryService
from tmagent.warehouse.synthesis import LlmQuerySynthesizer, synthesize

from tests.fakes import FakeClock, FakeGenerator, FakeWarehouse


def make_service(warehouse=None, limit=100, max_size=2, acquire_timeout=0.5, llm=None):
    warehouse = warehouse or FakeWarehouse()
    clock = FakeClock()
    pool = BoundedPool(warehouse, max_size=max_size, acquire_timeout=acquire_timeout)
    service = QueryService(
        warehouse,
        pool,
        SlidingWindowRateLimiter(limit, 60.0, clock=clock),
        TTLCache(300, clock=clock),
        table="TOKENS",
        max_rows=10,
        llm_synthesizer=llm,
    )
    return service, warehouse, clock


def btc_plan():
    return synthesize("trader grade of $BTC", table="TOKENS")


class TestQueryService:
    def test_executes_plan_and_returns_rows(self):
        service, warehouse, _ = make_service()
        rows = asyncio.run(service.execute(btc_plan()))
        assert rows[0]["TOKEN_SYMBOL"] == "BTC"
        assert warehouse.executed == [btc_plan().to_sql()]
        assert service.pool.stats()["in_use"] == 0

    def test_cache_hit_skips_warehouse_but_spends_budget(self):
        service, warehouse, _ = make_service()

        async def run():
            await service.execute(btc_plan())
            await service.execute(btc_plan())

        asyncio.run(run())
        assert len(warehouse.executed) == 1
        assert service.limiter.remaining() == 98

    def test_cache_expires(self):
        service, warehouse, clock = make_service()
        asyncio.run(service.execute(btc_plan()))
        clock.advance(301)
        asyncio.run(service.execute(btc_plan()))
        assert len(warehouse.executed) == 2

    def test_rate_limit_checked_before_cache_and_pool(self):
        service, warehouse, _ = make_service(limit=1)
        asyncio.run(service.execute(btc_plan()))
        with pytest.raises(RateLimitExceeded):
            asyncio.run(service.execute(btc_plan()))
        assert len(warehouse.executed) == 1

    def test_warehouse_error_wrapped_and_lease_released(self):
        warehouse = FakeWarehouse()
        warehouse.fail_execute = True
        service, _, _ = make_service(warehouse)
        with pytest.raises(QueryExecutionError):
            asyncio.run(service.execute(btc_plan()))
        stats = service.pool.stats()
        assert stats["in_use"] == 0
        assert stats["idle"] == 1
        assert len(service.cache) == 0

    def test_acquire_timeout_propagates(self):
        service, _, _ = make_service(max_size=1, acquire_timeout=0.05)

        async def run():
            held = await service.pool.acquire()
            try:
                await service.execute(btc_plan())
            finally:
                await service.pool.release(held)

        with pytest.raises(AcquireTimeout):
            asyncio.run(run())

    def test_answer_uses_rule_synthesis(self):
        service, warehouse, _ = make_service()
        answer = asyncio.run(service.answer("what's the grade of $BTC?"))
        assert answer.plan is not None
        assert answer.plan.limit == 1
        assert answer.sql == warehouse.executed[0]
        assert answer.rows

    def test_answer_uses_llm_synthesis_when_configured(self):
        gen = FakeGenerator(reply="SELECT TOKEN_NAME FROM TOKENS LIMIT 2")
        llm = LlmQuerySynthesizer(gen, "TOKENS")
        service, warehouse, _ = make_service(llm=llm)
        answer = asyncio.run(service.answer("two tokens please"))
        assert answer.plan is None
        assert warehouse.executed == ["SELECT TOKEN_NAME FROM TOKENS LIMIT 2"]

    def test_market_snapshot_query(self):
        service, warehouse, _ = make_service()
        asyncio.run(service.market_snapshot())
        sql = warehouse.executed[0]
        assert "MARKET_CAP > 1000000" in sql
        assert "VOLUME_24H > 100000" in sql
        assert sql.endswith("ORDER BY TM_TRADER_GRADE DESC NULLS LAST LIMIT 5")
