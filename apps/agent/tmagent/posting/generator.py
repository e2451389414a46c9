"""Periodic data-driven posts.

Posts a short market update built from the warehouse snapshot, no more often
than a random delay between the configured min and max minutes. The time of
the last post lives in the persistence cache so restarts keep the cadence.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

from tmagent.channel.base import SocialChannel
from tmagent.config import Settings
from tmagent.generation.cleanup import clean_generated_text, truncate_to_complete_sentence
from tmagent.generation.prompts import MARKET_POST_PROMPT
from tmagent.models import MemoryRecord, memory_id_for, room_id_for, user_id_for
from tmagent.warehouse.formatting import snapshot_lines

logger = logging.getLogger(__name__)

MAX_POST_LENGTH = 280


class PostGenerator:
    def __init__(
        self,
        settings: Settings,
        channel: SocialChannel,
        store,
        generator,
        query_service,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.channel = channel
        self.store = store
        self.generator = generator
        self.query_service = query_service
        self.agent_id = settings.agent_name
        self._clock = clock
        self._rng = rng or random.Random()
        self._force_next = settings.post_immediately
        self.current_delay = self.next_delay()

    @property
    def last_post_key(self) -> str:
        return f"twitter/{self.channel.username}/lastPost"

    def next_delay(self) -> float:
        """Pick the next delay (seconds) in [min, max] minutes."""
        lo, hi = sorted((self.settings.post_interval_min, self.settings.post_interval_max))
        self.current_delay = self._rng.randint(lo, hi) * 60
        return self.current_delay

    async def tick(self) -> str | None:
        force, self._force_next = self._force_next, False
        return await self.maybe_post(force=force)

    async def maybe_post(self, force: bool = False) -> str | None:
        if not force:
            last = await self.store.cache_get(self.last_post_key)
            last_ts = float(last.get("timestamp", 0)) if isinstance(last, dict) else 0.0
            if self._clock() < last_ts + self.current_delay:
                logger.debug("Next post not due yet")
                return None
        return await self.generate_post()

    async def generate_post(self) -> str | None:
        logger.info("Generating new post")
        rows = await self.query_service.market_snapshot()
        if not rows:
            logger.warning("No market data for post, skipping")
            return None

        raw = await self.generator.generate(MARKET_POST_PROMPT.format(
            agent_name=self.agent_id,
            username=self.channel.username,
            data=snapshot_lines(rows),
            max_length=MAX_POST_LENGTH,
        ), quality="medium")
        text = truncate_to_complete_sentence(clean_generated_text(raw), MAX_POST_LENGTH)
        if not text:
            logger.warning("Generated post was empty, skipping")
            return None

        if self.settings.twitter_dry_run:
            logger.info("Dry run: would have posted: %s", text)
            return text

        result = await self.channel.post_original(text)
        now = self._clock()
        await self.store.cache_set(self.last_post_key, {"id": result.id, "timestamp": now})

        user_id = user_id_for(self.channel.user_id or self.channel.username)
        room_id = room_id_for(result.id, self.agent_id)
        try:
            await self.store.ensure_connection(
                user_id, room_id, self.channel.username, self.agent_id, "twitter",
            )
            await self.store.create_memory(MemoryRecord(
                id=memory_id_for(result.id, self.agent_id),
                user_id=user_id,
                room_id=room_id,
                content={"text": text, "url": result.permanent_url, "source": "twitter"},
                created_at=now,
            ))
        except Exception as e:
            logger.error("Failed to store memory for post %s: %s", result.id, e)

        logger.info("Posted new post: %s", result.permanent_url or result.id)
        return text
