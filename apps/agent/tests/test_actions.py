"""Tests for the timeline action processor."""

import asyncio

from tmagent.models import ActionFlags, MemoryRecord, memory_id_for
from tmagent.posting.actions import ActionProcessor

from tests.conftest import make_settings
from tests.fakes import FakeChannel, FakeGenerator, FakeStore, make_post


def build(flags=None, settings=None, reply="Solid take on $ETH."):
    settings = settings or make_settings()
    channel, store = FakeChannel(), FakeStore()
    generator = FakeGenerator(reply=reply, flags=flags or ActionFlags(like=True))
    processor = ActionProcessor(settings, channel, store, generator)
    return processor, channel, store, generator


class TestActionProcessor:
    def test_executes_flagged_actions(self):
        processor, channel, store, _ = build(ActionFlags(like=True, retweet=True, quote=True, reply=True))
        post = make_post(1, author="bob", text="ETH breaking out")
        channel.timeline = [post]
        channel.add(post)

        results = asyncio.run(processor.process())

        assert results == [{"post_id": "1", "actions": ["like", "retweet", "quote", "reply"]}]
        assert channel.likes == ["1"]
        assert channel.retweets == ["1"]
        assert channel.quotes == [("1", "Solid take on $ETH.")]
        assert channel.replies == [("1", "Solid take on $ETH.")]
        assert memory_id_for("1", "test-agent") in store.memories

    def test_memory_lists_executed_actions(self):
        processor, channel, store, _ = build(ActionFlags(like=True, retweet=True))
        channel.timeline = [make_post(4, author="bob")]
        asyncio.run(processor.process())
        memory = store.memories[memory_id_for("4", "test-agent")]
        assert memory.content["actions"] == ["like", "retweet"]

    def test_seen_posts_and_own_posts_skipped(self):
        processor, channel, store, generator = build()
        seen = make_post(1, author="bob")
        own = make_post(2, author="tmagent")
        fresh = make_post(3, author="carol")
        channel.timeline = [seen, own, fresh]
        store.memories[memory_id_for("1", "test-agent")] = MemoryRecord(
            id=memory_id_for("1", "test-agent"), user_id="u", room_id="r", content={"text": "old"}, created_at=0.0,
        )

        results = asyncio.run(processor.process())

        assert [r["post_id"] for r in results] == ["3"]
        assert channel.likes == ["3"]
        assert len([p for p in generator.prompts if p[0] == "actions"]) == 1

    def test_no_flags_still_remembered(self):
        processor, channel, store, _ = build(ActionFlags())
        channel.timeline = [make_post(5, author="bob")]
        results = asyncio.run(processor.process())
        assert results == [{"post_id": "5", "actions": []}]
        assert memory_id_for("5", "test-agent") in store.memories

    def test_failed_action_does_not_block_others(self):
        processor, channel, _, _ = build(ActionFlags(like=True, retweet=True))

        async def broken_like(post_id):
            raise RuntimeError("rate limited")

        channel.like = broken_like
        channel.timeline = [make_post(6, author="bob")]
        results = asyncio.run(processor.process())
        assert results[0]["actions"] == ["retweet"]
        assert channel.retweets == ["6"]

    def test_dry_run_sends_nothing(self):
        settings = make_settings(twitter_dry_run=True)
        processor, channel, _, _ = build(ActionFlags(like=True, quote=True, reply=True), settings=settings)
        channel.timeline = [make_post(7, author="bob")]
        results = asyncio.run(processor.process())
        assert results[0]["actions"] == ["like", "quote", "reply"]
        assert channel.likes == channel.quotes == channel.replies == []

    def test_empty_generated_quote_not_counted(self):
        processor, channel, _, _ = build(ActionFlags(quote=True), reply='""')
        channel.timeline = [make_post(8, author="bob")]
        results = asyncio.run(processor.process())
        assert results[0]["actions"] == []
        assert channel.quotes == []

    def test_overlapping_cycle_skipped(self):
        processor, channel, _, _ = build()
        channel.timeline = [make_post(9, author="bob")]

        async def run():
            channel.timeline_gate = asyncio.Event()
            first = asyncio.create_task(processor.process())
            await asyncio.sleep(0)
            assert processor.is_processing
            second = await processor.process()
            channel.timeline_gate.set()
            return await first, second

        first, second = asyncio.run(run())
        assert second is None
        assert [r["post_id"] for r in first] == ["9"]
        assert not processor.is_processing

    def test_stopped_processor_does_nothing(self):
        processor, channel, _, _ = build()
        channel.timeline = [make_post(10, author="bob")]
        processor.stop()
        assert asyncio.run(processor.process()) is None
        assert channel.likes == []
        assert processor.stopped
