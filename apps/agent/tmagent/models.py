"""Domain types for posts, decisions and memories."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field


class Decision(str, enum.Enum):
    RESPOND = "RESPOND"
    IGNORE = "IGNORE"
    STOP = "STOP"


@dataclass(frozen=True)
class CandidatePost:
    """A post fetched from the social channel. Never mutated after fetch."""
    id: str
    author_id: str
    text: str
    timestamp: float  # epoch seconds
    conversation_id: str
    author_handle: str
    author_name: str = ""
    parent_id: str | None = None
    permanent_url: str = ""
    is_reply: bool = False
    is_retweet: bool = False
    quoted_id: str | None = None

    @property
    def numeric_id(self) -> int:
        return int(self.id)


@dataclass
class PostResult:
    id: str
    permanent_url: str = ""
    raw: dict = field(default_factory=dict)


@dataclass
class ActionFlags:
    like: bool = False
    retweet: bool = False
    quote: bool = False
    reply: bool = False

    def any(self) -> bool:
        return self.like or self.retweet or self.quote or self.reply


@dataclass
class MemoryRecord:
    id: str
    user_id: str
    room_id: str
    content: dict
    created_at: float


# ── Deterministic ids ──

_NAMESPACE = uuid.NAMESPACE_URL


def string_to_uuid(value: str) -> str:
    return str(uuid.uuid5(_NAMESPACE, value))


def memory_id_for(post_id: str, agent_id: str) -> str:
    return string_to_uuid(f"{post_id}-{agent_id}")


def room_id_for(conversation_id: str, agent_id: str) -> str:
    return string_to_uuid(f"{conversation_id}-{agent_id}")


def user_id_for(author_id: str) -> str:
    return string_to_uuid(author_id)
