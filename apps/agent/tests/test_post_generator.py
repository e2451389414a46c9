"""Tests for periodic market posts."""

import asyncio
import random

from tmagent.models import memory_id_for
from tmagent.posting.generator import PostGenerator
from tmagent.warehouse.cache import TTLCache
from tmagent.warehouse.pool import BoundedPool
from tmagent.warehouse.rate_limiter import SlidingWindowRateLimiter
from tmagent.warehouse.service import QueryService

from tests.conftest import make_settings
from tests.fakes import FakeChannel, FakeClock, FakeGenerator, FakeStore, FakeWarehouse

LAST_POST_KEY = "twitter/tmagent/lastPost"


def build(settings=None, rows=None, reply="$BTC leads the board with a trader grade of 82.5."):
    settings = settings or make_settings(post_interval_min=1, post_interval_max=1)
    warehouse = FakeWarehouse(rows)
    service = QueryService(
        warehouse,
        BoundedPool(warehouse, max_size=1),
        SlidingWindowRateLimiter(100, 60.0),
        TTLCache(300),
        table="TOKENS",
    )
    clock = FakeClock(10_000.0)
    channel, store = FakeChannel(), FakeStore()
    poster = PostGenerator(
        settings, channel, store, FakeGenerator(reply=reply), service,
        clock=clock, rng=random.Random(0),
    )
    return poster, channel, store, warehouse, clock


class TestPostGenerator:
    def test_first_post_when_never_posted(self):
        poster, channel, store, warehouse, clock = build()
        text = asyncio.run(poster.maybe_post())
        assert channel.originals == [text]
        assert store.cache[LAST_POST_KEY] == {"id": "900000", "timestamp": clock.now}
        assert memory_id_for("900000", "test-agent") in store.memories
        assert "ORDER BY TM_TRADER_GRADE" in warehouse.executed[0]

    def test_not_due_yet(self):
        poster, channel, store, _, clock = build()
        store.cache[LAST_POST_KEY] = {"id": "1", "timestamp": clock.now - 30}
        assert asyncio.run(poster.maybe_post()) is None
        assert channel.originals == []

    def test_due_after_delay(self):
        poster, channel, store, _, clock = build()
        store.cache[LAST_POST_KEY] = {"id": "1", "timestamp": clock.now - 61}
        assert asyncio.run(poster.maybe_post()) is not None
        assert len(channel.originals) == 1

    def test_next_delay_in_configured_range(self):
        poster, *_ = build(make_settings(post_interval_min=90, post_interval_max=180))
        for _ in range(20):
            delay = poster.next_delay()
            assert 90 * 60 <= delay <= 180 * 60
            assert poster.current_delay == delay

    def test_post_immediately_forces_first_tick_only(self):
        poster, channel, store, _, clock = build(
            make_settings(post_interval_min=1, post_interval_max=1, post_immediately=True)
        )
        store.cache[LAST_POST_KEY] = {"id": "1", "timestamp": clock.now}

        async def run():
            await poster.tick()
            await poster.tick()

        asyncio.run(run())
        assert len(channel.originals) == 1

    def test_dry_run_returns_text_without_posting(self):
        poster, channel, store, _, _ = build(
            make_settings(twitter_dry_run=True, post_interval_min=1, post_interval_max=1)
        )
        text = asyncio.run(poster.generate_post())
        assert text.startswith("$BTC")
        assert channel.originals == []
        assert LAST_POST_KEY not in store.cache

    def test_no_market_data_skips(self):
        poster, channel, _, _, _ = build(rows=[])
        assert asyncio.run(poster.generate_post()) is None
        assert channel.originals == []

    def test_long_post_truncated(self):
        long_text = " ".join(f"Token {i} is moving." for i in range(40))
        poster, channel, _, _, _ = build(reply=long_text)
        asyncio.run(poster.generate_post())
        assert len(channel.originals[0]) <= 280
        assert channel.originals[0].endswith(".")
