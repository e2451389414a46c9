"""Interaction orchestrator — mentions and watched accounts in, data-backed replies out.

One pass (``run_once``):
  1. discover candidates (mentions + one recent post per target user)
  2. drop anything at or below the stored last-processed id
  3. per candidate: dedup via the idempotency record, rebuild the thread,
     ask RESPOND/IGNORE/STOP, answer from the warehouse, post, persist
  4. advance and persist the last-processed marker

A failing candidate is logged and the pass moves on. The marker advances
past every attempted candidate, success or not.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable

from tmagent.channel.base import SocialChannel
from tmagent.config import Settings
from tmagent.generation.cleanup import clean_generated_text, split_post_content
from tmagent.generation.prompts import REPLY_PROMPT, SHOULD_RESPOND_PROMPT
from tmagent.interactions.question import extract_question
from tmagent.interactions.thread import build_thread, format_thread
from tmagent.models import (
    CandidatePost,
    Decision,
    MemoryRecord,
    memory_id_for,
    room_id_for,
    user_id_for,
)
from tmagent.search import WebSearchService, format_search_results
from tmagent.warehouse.formatting import rows_for_prompt

logger = logging.getLogger(__name__)

SKIPPED = "skipped"
RESPONDED = "responded"
IGNORED = "ignored"
STOPPED = "stopped"
EMPTY = "empty"
FAILED = "failed"


@dataclass
class RunSummary:
    outcomes: dict[str, str] = field(default_factory=dict)  # post id -> outcome
    last_checked_id: int | None = None

    @property
    def processed(self) -> list[str]:
        return [pid for pid, o in self.outcomes.items() if o not in (SKIPPED, FAILED)]

    @property
    def skipped(self) -> list[str]:
        return [pid for pid, o in self.outcomes.items() if o == SKIPPED]

    @property
    def failed(self) -> list[str]:
        return [pid for pid, o in self.outcomes.items() if o == FAILED]


class InteractionOrchestrator:
    def __init__(
        self,
        settings: Settings,
        channel: SocialChannel,
        store,
        generator,
        query_service,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
        search: WebSearchService | None = None,
    ) -> None:
        self.settings = settings
        self.channel = channel
        self.store = store
        self.generator = generator
        self.query_service = query_service
        self.search = search
        self.agent_id = settings.agent_name
        self._clock = clock
        self._rng = rng or random.Random()
        self._in_flight: set[str] = set()
        self._running = False
        self.last_checked_id: int | None = None
        self._marker_loaded = False

    @property
    def marker_key(self) -> str:
        return f"twitter/{self.channel.username}/latest_checked_tweet_id"

    # ── Marker ──

    async def load_marker(self) -> int | None:
        if not self._marker_loaded:
            value = await self.store.cache_get(self.marker_key)
            if value is not None:
                self._advance_marker(int(value))
            self._marker_loaded = True
        return self.last_checked_id

    def _advance_marker(self, post_id: int) -> None:
        if self.last_checked_id is None or post_id > self.last_checked_id:
            self.last_checked_id = post_id

    async def save_marker(self) -> None:
        if self.last_checked_id is None:
            return
        try:
            await self.store.cache_set(self.marker_key, str(self.last_checked_id))
        except Exception as e:
            logger.error("Failed to persist last checked id %s: %s", self.last_checked_id, e)

    # ── Discovery ──

    def _is_self(self, post: CandidatePost) -> bool:
        if self.channel.user_id and post.author_id == self.channel.user_id:
            return True
        return post.author_handle.lower() == self.channel.username.lower()

    async def _target_user_candidates(self) -> list[CandidatePost]:
        picked = []
        cutoff = self._clock() - self.settings.target_recency_hours * 3600
        for user in self.settings.target_users:
            try:
                posts = await self.channel.search(
                    f"from:{user}", self.settings.target_user_fetch_count, "latest",
                )
            except Exception as e:
                logger.error("Error fetching posts for target user %s: %s", user, e)
                continue
            valid = [
                p for p in posts
                if not p.is_reply
                and not p.is_retweet
                and (self.last_checked_id is None or p.numeric_id > self.last_checked_id)
                and p.timestamp > cutoff
            ]
            if valid:
                choice = self._rng.choice(valid)
                picked.append(choice)
                logger.info("Selected post %s from target user %s", choice.id, user)
        return picked

    async def discover_candidates(self) -> list[CandidatePost]:
        await self.load_marker()
        mentions = await self.channel.search(
            f"@{self.channel.username}", self.settings.twitter_search_count, "latest",
        )
        by_id: dict[str, CandidatePost] = {p.id: p for p in mentions}

        if self.settings.target_users:
            for post in await self._target_user_candidates():
                by_id.setdefault(post.id, post)

        ordered = sorted(by_id.values(), key=lambda p: p.numeric_id)
        return [p for p in ordered if not self._is_self(p)]

    # ── Processing ──

    async def process_candidate(self, post: CandidatePost) -> str:
        if post.id in self._in_flight:
            logger.debug("Post %s already in flight", post.id)
            return SKIPPED
        self._in_flight.add(post.id)
        try:
            return await self._process(post)
        finally:
            self._in_flight.discard(post.id)

    async def _process(self, post: CandidatePost) -> str:
        if await self.store.get_response_record(post.id):
            logger.info("Already handled post %s", post.id)
            return SKIPPED

        if not post.text.strip():
            logger.info("Skipping post %s with no text", post.id)
            return IGNORED

        logger.info("New post found: %s (@%s)", post.permanent_url or post.id, post.author_handle)

        user_id = user_id_for(post.author_id)
        room_id = room_id_for(post.conversation_id, self.agent_id)
        await self.store.ensure_connection(
            user_id, room_id, post.author_handle, post.author_name, "twitter",
        )

        thread = await build_thread(
            post, self.channel, self.store, self.agent_id, self.settings.max_thread_depth,
        )
        formatted = format_thread(thread)
        current = f"From @{post.author_handle}: {post.text}"

        decision = await self.generator.decide(SHOULD_RESPOND_PROMPT.format(
            agent_name=self.agent_id,
            username=self.channel.username,
            target_users=", ".join(self.settings.target_users) or "(none)",
            current_post=current,
            thread=formatted,
        ))
        if decision != Decision.RESPOND:
            logger.info("Not responding to post %s (%s)", post.id, decision.value)
            await self._record(post.id, None, decision.value)
            return STOPPED if decision == Decision.STOP else IGNORED

        question = extract_question(post, thread)
        if not question:
            logger.info("No question found in post %s", post.id)
            await self._record(post.id, None, Decision.IGNORE.value)
            return IGNORED

        answer = await self.query_service.answer(question, formatted)
        web_results = await self._web_context(post, question) if not answer.rows else []

        raw = await self.generator.generate(REPLY_PROMPT.format(
            agent_name=self.agent_id,
            username=self.channel.username,
            current_post=current,
            thread=formatted,
            data=rows_for_prompt(answer.rows),
            web_results=format_search_results(web_results),
            max_length=280,
        ), quality="large")
        reply = clean_generated_text(raw)
        if not reply:
            logger.warning("Empty reply generated for post %s", post.id)
            return EMPTY

        if self.settings.twitter_dry_run:
            logger.info("Dry run: would have replied to %s: %s", post.id, reply)
            return RESPONDED

        await self._send_reply(post, room_id, reply)

        try:
            await self.store.cache_set(f"twitter/tweet_generation_{post.id}.txt", {
                "question": question,
                "sql": answer.sql,
                "rows": len(answer.rows),
                "web_results": len(web_results),
                "reply": reply,
            })
        except Exception as e:
            logger.warning("Failed to cache generation trace for %s: %s", post.id, e)
        return RESPONDED

    async def _web_context(self, post: CandidatePost, question: str) -> list[dict]:
        if self.search is None or not self.search.enabled:
            return []
        try:
            return await self.search.search(question)
        except Exception as e:
            logger.warning("Web search failed for post %s: %s", post.id, e)
            return []

    async def _send_reply(self, post: CandidatePost, room_id: str, reply: str) -> None:
        agent_user_id = user_id_for(self.channel.user_id or self.channel.username)
        reply_to = post.id
        for i, part in enumerate(split_post_content(reply)):
            result = await self.channel.post_reply(part, reply_to)
            if i == 0:
                # Record once the first part is live
                await self._record(post.id, result.id, Decision.RESPOND.value)
            try:
                await self.store.create_memory(MemoryRecord(
                    id=memory_id_for(result.id, self.agent_id),
                    user_id=agent_user_id,
                    room_id=room_id,
                    content={
                        "text": part,
                        "url": result.permanent_url,
                        "source": "twitter",
                        "in_reply_to": memory_id_for(reply_to, self.agent_id),
                        "action": "REPLY",
                    },
                    created_at=self._clock(),
                ))
            except Exception as e:
                logger.error("Failed to store memory for reply %s: %s", result.id, e)
            reply_to = result.id
        logger.info("Replied to post %s", post.id)

    async def _record(self, post_id: str, response_id: str | None, decision: str) -> None:
        try:
            await self.store.create_response_record(post_id, response_id, decision)
        except Exception as e:
            logger.error("Failed to record response for post %s: %s", post_id, e)

    # ── Pass ──

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> RunSummary:
        summary = RunSummary()
        if self._running:
            logger.info("Previous interaction pass still running, skipping")
            return summary
        self._running = True
        try:
            return await self._run(summary)
        finally:
            self._running = False

    async def _run(self, summary: RunSummary) -> RunSummary:
        logger.info("Checking Twitter interactions")
        try:
            candidates = await self.discover_candidates()
        except Exception as e:
            logger.error("Error discovering candidates: %s", e)
            return summary

        try:
            for post in candidates:
                if self.last_checked_id is not None and post.numeric_id <= self.last_checked_id:
                    continue
                try:
                    outcome = await self.process_candidate(post)
                except Exception as e:
                    logger.error("Error handling post %s: %s", post.id, e)
                    outcome = FAILED
                summary.outcomes[post.id] = outcome
                self._advance_marker(post.numeric_id)
        finally:
            await self.save_marker()

        summary.last_checked_id = self.last_checked_id
        logger.info(
            "Finished checking interactions (%d processed, %d skipped, %d failed)",
            len(summary.processed), len(summary.skipped), len(summary.failed),
        )
        return summary
