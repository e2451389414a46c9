"""Twitter/X API v2 client.

Wraps the handful of endpoints the agent needs and maps tweet payloads into
CandidatePost. Any HTTP or transport failure becomes TransientIOError.
"""

from __future__ import annotations

import logging
from datetime import datetime

import httpx

from tmagent.errors import TransientIOError
from tmagent.models import CandidatePost, PostResult

logger = logging.getLogger(__name__)

TWEET_FIELDS = "created_at,author_id,conversation_id,referenced_tweets"
USER_FIELDS = "username,name"

_SORT_ORDER = {"latest": "recency", "top": "relevancy"}


def _parse_timestamp(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def tweet_to_post(tweet: dict, users: dict[str, dict]) -> CandidatePost:
    """Map a v2 tweet object (plus expanded users by id) to a CandidatePost."""
    refs = {r.get("type"): r.get("id") for r in tweet.get("referenced_tweets") or []}
    author_id = str(tweet.get("author_id", ""))
    user = users.get(author_id, {})
    handle = user.get("username", "")
    tweet_id = str(tweet["id"])
    return CandidatePost(
        id=tweet_id,
        author_id=author_id,
        text=tweet.get("text", ""),
        timestamp=_parse_timestamp(tweet.get("created_at")),
        conversation_id=str(tweet.get("conversation_id") or tweet_id),
        author_handle=handle,
        author_name=user.get("name", ""),
        parent_id=refs.get("replied_to"),
        permanent_url=f"https://twitter.com/{handle or 'i'}/status/{tweet_id}",
        is_reply="replied_to" in refs,
        is_retweet="retweeted" in refs,
        quoted_id=refs.get("quoted"),
    )


def _posts_from_payload(payload: dict) -> list[CandidatePost]:
    users = {u["id"]: u for u in (payload.get("includes") or {}).get("users", [])}
    return [tweet_to_post(t, users) for t in payload.get("data") or []]


class TwitterChannel:
    def __init__(
        self,
        base_url: str,
        access_token: str | None,
        username: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.username = username
        self.user_id = ""
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=30)
        self._client.headers["Authorization"] = f"Bearer {access_token or ''}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as e:
            logger.warning("Twitter %s %s -> %s", method, path, e.response.status_code)
            raise TransientIOError(f"Twitter {method} {path} failed: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("Twitter %s %s failed: %s", method, path, e)
            raise TransientIOError(f"Twitter {method} {path} failed: {e}") from e

    async def init(self) -> None:
        """Resolve the authenticated account's id and handle."""
        resp = await self._request("GET", "/users/me")
        data = resp.json().get("data") or {}
        self.user_id = str(data.get("id", ""))
        self.username = data.get("username") or self.username
        logger.info("Twitter user @%s (id=%s)", self.username, self.user_id)

    async def search(self, query: str, count: int, mode: str = "latest") -> list[CandidatePost]:
        params = {
            "query": query,
            "max_results": max(10, min(count, 100)),
            "sort_order": _SORT_ORDER.get(mode, "recency"),
            "tweet.fields": TWEET_FIELDS,
            "expansions": "author_id",
            "user.fields": USER_FIELDS,
        }
        resp = await self._request("GET", "/tweets/search/recent", params=params)
        return _posts_from_payload(resp.json())[:count]

    async def fetch_timeline(self, count: int) -> list[CandidatePost]:
        params = {
            "max_results": max(1, min(count, 100)),
            "tweet.fields": TWEET_FIELDS,
            "expansions": "author_id",
            "user.fields": USER_FIELDS,
        }
        resp = await self._request(
            "GET", f"/users/{self.user_id}/timelines/reverse_chronological", params=params
        )
        return _posts_from_payload(resp.json())[:count]

    async def get_by_id(self, post_id: str) -> CandidatePost | None:
        params = {"tweet.fields": TWEET_FIELDS, "expansions": "author_id", "user.fields": USER_FIELDS}
        try:
            resp = await self._client.get(f"/tweets/{post_id}", params=params)
        except httpx.HTTPError as e:
            raise TransientIOError(f"Twitter GET /tweets/{post_id} failed: {e}") from e
        if resp.status_code == 404:
            return None
        if resp.is_error:
            raise TransientIOError(f"Twitter GET /tweets/{post_id} failed: {resp.status_code}")
        payload = resp.json()
        tweet = payload.get("data")
        if not tweet:
            return None
        users = {u["id"]: u for u in (payload.get("includes") or {}).get("users", [])}
        return tweet_to_post(tweet, users)

    async def _create_tweet(self, body: dict) -> PostResult:
        resp = await self._request("POST", "/tweets", json=body)
        data = resp.json().get("data") or {}
        tweet_id = str(data.get("id", ""))
        if not tweet_id:
            raise TransientIOError("Twitter returned no tweet id")
        return PostResult(
            id=tweet_id,
            permanent_url=f"https://twitter.com/{self.username}/status/{tweet_id}",
            raw=data,
        )

    async def post_reply(self, text: str, reply_to_id: str) -> PostResult:
        return await self._create_tweet({"text": text, "reply": {"in_reply_to_tweet_id": reply_to_id}})

    async def post_quote(self, text: str, quoted_id: str) -> PostResult:
        return await self._create_tweet({"text": text, "quote_tweet_id": quoted_id})

    async def post_original(self, text: str) -> PostResult:
        return await self._create_tweet({"text": text})

    async def like(self, post_id: str) -> None:
        await self._request("POST", f"/users/{self.user_id}/likes", json={"tweet_id": post_id})

    async def retweet(self, post_id: str) -> None:
        await self._request("POST", f"/users/{self.user_id}/retweets", json={"tweet_id": post_id})

    async def close(self) -> None:
        await self._client.aclose()
