"""Interface the agent expects from a social channel."""

from __future__ import annotations

from typing import Protocol

from tmagent.models import CandidatePost, PostResult


class SocialChannel(Protocol):
    user_id: str
    username: str

    async def search(self, query: str, count: int, mode: str = "latest") -> list[CandidatePost]: ...

    async def fetch_timeline(self, count: int) -> list[CandidatePost]: ...

    async def get_by_id(self, post_id: str) -> CandidatePost | None: ...

    async def post_reply(self, text: str, reply_to_id: str) -> PostResult: ...

    async def post_quote(self, text: str, quoted_id: str) -> PostResult: ...

    async def post_original(self, text: str) -> PostResult: ...

    async def like(self, post_id: str) -> None: ...

    async def retweet(self, post_id: str) -> None: ...
