"""Conversation thread reconstruction.

Walks parent references from a leaf post up towards the root with an
explicit worklist. A visited-id set scoped to the call guards against parent
cycles, and ``max_depth`` bounds the walk. Every post seen gets a persisted
memory (created once, keyed by post id + agent id).
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone

from tmagent.models import (
    CandidatePost,
    MemoryRecord,
    memory_id_for,
    room_id_for,
    user_id_for,
)

logger = logging.getLogger(__name__)


async def ensure_post_memory(store, post: CandidatePost, agent_id: str) -> bool:
    """Create the memory for a post if missing. True if a new one was written."""
    memory_id = memory_id_for(post.id, agent_id)
    if await store.get_memory_by_id(memory_id):
        return False

    user_id = user_id_for(post.author_id)
    room_id = room_id_for(post.conversation_id, agent_id)
    await store.ensure_connection(
        user_id, room_id, post.author_handle, post.author_name, "twitter",
    )
    return await store.create_memory(MemoryRecord(
        id=memory_id,
        user_id=user_id,
        room_id=room_id,
        content={
            "text": post.text,
            "url": post.permanent_url,
            "source": "twitter",
            "in_reply_to": memory_id_for(post.parent_id, agent_id) if post.parent_id else None,
        },
        created_at=post.timestamp,
    ))


async def build_thread(
    leaf: CandidatePost,
    channel,
    store,
    agent_id: str,
    max_depth: int = 10,
) -> list[CandidatePost]:
    """Return the conversation ending at ``leaf``, ordered root → leaf."""
    thread: deque[CandidatePost] = deque()
    visited: set[str] = set()
    current: CandidatePost | None = leaf
    depth = 0

    while current is not None:
        if current.id in visited:
            logger.debug("Parent cycle at post %s", current.id)
            break
        if depth >= max_depth:
            logger.debug("Max thread depth %d reached", max_depth)
            break

        visited.add(current.id)
        thread.appendleft(current)

        try:
            await ensure_post_memory(store, current, agent_id)
        except Exception as e:
            logger.warning("Failed to persist memory for post %s: %s", current.id, e)

        if not current.parent_id:
            break
        try:
            current = await channel.get_by_id(current.parent_id)
        except Exception as e:
            logger.warning("Error fetching parent post %s: %s", current.parent_id, e)
            break
        if current is None:
            logger.debug("Parent post missing, thread ends here")
        depth += 1

    return list(thread)


def format_thread(thread: list[CandidatePost]) -> str:
    blocks = []
    for post in thread:
        when = datetime.fromtimestamp(post.timestamp, tz=timezone.utc).strftime("%b %d, %H:%M")
        blocks.append(f"@{post.author_handle} ({when}):\n{post.text}")
    return "\n\n".join(blocks)
