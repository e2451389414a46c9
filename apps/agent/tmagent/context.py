"""Application-scoped wiring.

Everything long-lived (pool, limiter, cache, clients, loops) is built once
here and handed around explicitly. ``build_app_context`` creates the real
collaborators; ``AppContext.assemble`` takes the leaves as arguments so tests
can pass in-memory ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tmagent.channel import SocialChannel, TwitterChannel
from tmagent.config import Settings
from tmagent.db import PostgresStore, create_pool
from tmagent.generation.llm import TextGenerator
from tmagent.interactions.orchestrator import InteractionOrchestrator
from tmagent.posting.actions import ActionProcessor
from tmagent.posting.generator import PostGenerator
from tmagent.scheduler import Scheduler
from tmagent.search import WebSearchService
from tmagent.warehouse.cache import TTLCache
from tmagent.warehouse.connection import AsyncpgWarehouse
from tmagent.warehouse.pool import BoundedPool
from tmagent.warehouse.rate_limiter import SlidingWindowRateLimiter
from tmagent.warehouse.service import QueryService
from tmagent.warehouse.synthesis import LlmQuerySynthesizer

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    store: object
    channel: SocialChannel
    generator: object
    pool: BoundedPool
    limiter: SlidingWindowRateLimiter
    cache: TTLCache
    query_service: QueryService
    search: WebSearchService
    orchestrator: InteractionOrchestrator
    actions: ActionProcessor
    poster: PostGenerator
    scheduler: Scheduler

    @classmethod
    def assemble(cls, settings: Settings, *, store, channel, generator, warehouse, search=None) -> AppContext:
        pool = BoundedPool(
            warehouse,
            min_size=settings.warehouse_pool_min,
            max_size=settings.warehouse_pool_max,
            acquire_timeout=settings.warehouse_acquire_timeout,
        )
        limiter = SlidingWindowRateLimiter(settings.rate_limit_count, settings.rate_limit_window)
        cache = TTLCache(settings.cache_ttl)

        llm_synthesizer = None
        if settings.query_synthesis_mode == "llm":
            llm_synthesizer = LlmQuerySynthesizer(generator, settings.warehouse_table, settings.query_max_rows)
        query_service = QueryService(
            warehouse, pool, limiter, cache,
            table=settings.warehouse_table,
            max_rows=settings.query_max_rows,
            llm_synthesizer=llm_synthesizer,
        )
        if search is None:
            search = WebSearchService(
                settings.tavily_api_key, limiter,
                max_results=settings.web_search_max_results,
                search_depth=settings.web_search_depth,
            )

        orchestrator = InteractionOrchestrator(
            settings, channel, store, generator, query_service, search=search,
        )
        actions = ActionProcessor(settings, channel, store, generator)
        poster = PostGenerator(settings, channel, store, generator, query_service)

        scheduler = Scheduler()
        scheduler.add_job("interactions", orchestrator.run_once, settings.twitter_poll_interval, run_immediately=True)
        scheduler.add_job("posting", poster.tick, poster.next_delay, run_immediately=True)
        if settings.enable_action_processing:
            scheduler.add_job("actions", actions.process, settings.action_interval, run_immediately=True)

        return cls(
            settings=settings,
            store=store,
            channel=channel,
            generator=generator,
            pool=pool,
            limiter=limiter,
            cache=cache,
            query_service=query_service,
            search=search,
            orchestrator=orchestrator,
            actions=actions,
            poster=poster,
            scheduler=scheduler,
        )

    async def start(self) -> None:
        await self.channel.init()
        await self.pool.start()
        self.scheduler.start()
        logger.info("Agent %s started (dry_run=%s)", self.settings.agent_name, self.settings.twitter_dry_run)

    async def close(self) -> None:
        self.actions.stop()
        await self.scheduler.stop()
        await self.pool.close()
        for closable in (self.channel, self.store):
            try:
                await closable.close()
            except Exception as e:
                logger.warning("Error closing %s: %s", type(closable).__name__, e)
        logger.info("Agent %s stopped", self.settings.agent_name)

    def status(self) -> dict:
        return {
            "agent": self.settings.agent_name,
            "dry_run": self.settings.twitter_dry_run,
            "last_checked_id": self.orchestrator.last_checked_id,
            "scheduler": self.scheduler.status(),
            "pool": self.pool.stats(),
            "rate_limit_remaining": self.limiter.remaining(),
            "cache_entries": len(self.cache),
            "web_search_enabled": self.search.enabled,
            "actions_processing": self.actions.is_processing,
        }


async def build_app_context(settings: Settings) -> AppContext:
    db_pool = await create_pool(settings.postgres_url)
    return AppContext.assemble(
        settings,
        store=PostgresStore(db_pool, settings.agent_name),
        channel=TwitterChannel(
            settings.twitter_api_base,
            settings.twitter_access_token,
            settings.twitter_username,
        ),
        generator=TextGenerator(settings),
        warehouse=AsyncpgWarehouse(settings.warehouse_dsn),
    )
