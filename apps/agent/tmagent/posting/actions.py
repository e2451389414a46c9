"""Timeline action processor — like / retweet / quote / reply.

One cycle reads the home timeline, skips posts already seen (a memory
exists), asks the generator which actions qualify and performs them. A
cycle that starts while another is still running is skipped, not queued.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from tmagent.channel.base import SocialChannel
from tmagent.config import Settings
from tmagent.generation.cleanup import (
    clean_generated_text,
    split_post_content,
    truncate_to_complete_sentence,
)
from tmagent.generation.prompts import ACTION_PROMPT, QUOTE_PROMPT, TIMELINE_REPLY_PROMPT
from tmagent.interactions.thread import build_thread, format_thread
from tmagent.models import (
    ActionFlags,
    CandidatePost,
    MemoryRecord,
    memory_id_for,
    room_id_for,
    user_id_for,
)

logger = logging.getLogger(__name__)


class ActionProcessor:
    def __init__(
        self,
        settings: Settings,
        channel: SocialChannel,
        store,
        generator,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.channel = channel
        self.store = store
        self.generator = generator
        self.agent_id = settings.agent_name
        self._clock = clock
        self._processing = False
        self._stopped = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """No new cycles after the current one."""
        self._stopped = True

    async def process(self) -> list[dict] | None:
        if self._stopped:
            return None
        if self._processing:
            logger.info("Already processing timeline actions, skipping")
            return None
        self._processing = True
        try:
            return await self._process_timeline()
        finally:
            self._processing = False

    async def _process_timeline(self) -> list[dict]:
        logger.info("Processing timeline actions")
        timeline = await self.channel.fetch_timeline(self.settings.action_timeline_count)
        results = []

        for post in timeline:
            if post.author_id == self.channel.user_id or post.author_handle.lower() == self.channel.username.lower():
                continue
            try:
                if await self.store.get_memory_by_id(memory_id_for(post.id, self.agent_id)):
                    continue
                flags = await self.generator.decide_actions(ACTION_PROMPT.format(
                    agent_name=self.agent_id,
                    username=self.channel.username,
                    current_post=f"ID: {post.id}\nFrom: @{post.author_handle}\nText: {post.text}",
                ))
            except Exception as e:
                logger.error("Error deciding actions for post %s: %s", post.id, e)
                continue

            executed = await self._execute(post, flags) if flags.any() else []
            await self._remember(post, executed)
            results.append({"post_id": post.id, "actions": executed})

        logger.info("Processed %d timeline posts", len(results))
        return results

    async def _execute(self, post: CandidatePost, flags: ActionFlags) -> list[str]:
        executed: list[str] = []
        dry_run = self.settings.twitter_dry_run

        if flags.like:
            try:
                if dry_run:
                    logger.info("Dry run: would have liked post %s", post.id)
                else:
                    await self.channel.like(post.id)
                executed.append("like")
            except Exception as e:
                logger.error("Error liking post %s: %s", post.id, e)

        if flags.retweet:
            try:
                if dry_run:
                    logger.info("Dry run: would have retweeted post %s", post.id)
                else:
                    await self.channel.retweet(post.id)
                executed.append("retweet")
            except Exception as e:
                logger.error("Error retweeting post %s: %s", post.id, e)

        if flags.quote:
            try:
                if await self._quote(post):
                    executed.append("quote")
            except Exception as e:
                logger.error("Error quoting post %s: %s", post.id, e)

        if flags.reply:
            try:
                if await self._reply(post):
                    executed.append("reply")
            except Exception as e:
                logger.error("Error replying to post %s: %s", post.id, e)

        return executed

    async def _quote(self, post: CandidatePost) -> bool:
        quoted_content = ""
        if post.quoted_id:
            quoted = await self.channel.get_by_id(post.quoted_id)
            if quoted:
                quoted_content = f"Quoted Post from @{quoted.author_handle}:\n{quoted.text}"

        raw = await self.generator.generate(QUOTE_PROMPT.format(
            agent_name=self.agent_id,
            username=self.channel.username,
            current_post=f"From @{post.author_handle}: {post.text}",
            quoted_content=quoted_content,
            max_length=280,
        ), quality="medium")
        text = truncate_to_complete_sentence(clean_generated_text(raw), 280)
        if not text:
            logger.warning("Empty quote generated for post %s", post.id)
            return False
        if self.settings.twitter_dry_run:
            logger.info("Dry run: would have quoted post %s with: %s", post.id, text)
            return True
        await self.channel.post_quote(text, post.id)
        return True

    async def _reply(self, post: CandidatePost) -> bool:
        thread = await build_thread(
            post, self.channel, self.store, self.agent_id, self.settings.max_thread_depth,
        )
        raw = await self.generator.generate(TIMELINE_REPLY_PROMPT.format(
            agent_name=self.agent_id,
            username=self.channel.username,
            current_post=f"From @{post.author_handle}: {post.text}",
            thread=format_thread(thread),
            max_length=280,
        ), quality="medium")
        text = clean_generated_text(raw)
        if not text:
            logger.warning("Empty reply generated for post %s", post.id)
            return False
        if self.settings.twitter_dry_run:
            logger.info("Dry run: would have replied to post %s with: %s", post.id, text)
            return True
        reply_to = post.id
        for part in split_post_content(text):
            result = await self.channel.post_reply(part, reply_to)
            reply_to = result.id
        return True

    async def _remember(self, post: CandidatePost, executed: list[str]) -> None:
        user_id = user_id_for(post.author_id)
        room_id = room_id_for(post.conversation_id, self.agent_id)
        try:
            await self.store.ensure_connection(
                user_id, room_id, post.author_handle, post.author_name, "twitter",
            )
            await self.store.create_memory(MemoryRecord(
                id=memory_id_for(post.id, self.agent_id),
                user_id=user_id,
                room_id=room_id,
                content={
                    "text": post.text,
                    "url": post.permanent_url,
                    "source": "twitter",
                    "actions": executed,
                },
                created_at=self._clock(),
            ))
        except Exception as e:
            logger.error("Failed to store action memory for post %s: %s", post.id, e)
