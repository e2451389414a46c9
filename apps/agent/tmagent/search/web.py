"""Web search via Tavily.

Calls share the warehouse rate limiter, so search and query traffic draw on
one budget. The Tavily client is synchronous and runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging

from tavily import TavilyClient

from tmagent.errors import TransientIOError
from tmagent.warehouse.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

MAX_SNIPPET_CHARS = 2000


class WebSearchService:
    def __init__(
        self,
        api_key: str | None,
        limiter: SlidingWindowRateLimiter,
        max_results: int = 5,
        search_depth: str = "advanced",
        client=None,
    ) -> None:
        self.limiter = limiter
        self.max_results = max_results
        self.search_depth = search_depth
        if client is None and api_key:
            client = TavilyClient(api_key=api_key)
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def search(self, query: str, max_results: int | None = None) -> list[dict]:
        """Top results as ``{title, url, content, score}``; [] when not configured.

        Raises RateLimitExceeded before calling out, TransientIOError on failure.
        """
        if not self.enabled or not query.strip():
            return []
        self.limiter.check()

        count = min(max_results or self.max_results, 10)
        try:
            response = await asyncio.to_thread(
                self._client.search,
                query=query,
                max_results=count,
                search_depth=self.search_depth,
            )
        except Exception as e:
            logger.error("web_search error: %s", e)
            raise TransientIOError(f"Web search failed: {e}") from e

        results = []
        for r in (response or {}).get("results", [])[:count]:
            results.append({
                "title": r.get("title", ""),
                "url": r.get("url", ""),
                "content": (r.get("content") or "")[:MAX_SNIPPET_CHARS],
                "score": r.get("score", 0),
            })
        logger.info("Web search returned %d results for %r", len(results), query[:80])
        return results


def format_search_results(results: list[dict]) -> str:
    if not results:
        return "No web results."
    blocks = []
    for r in results:
        blocks.append(f"{r['title']} ({r['url']}):\n{r['content']}")
    return "\n\n".join(blocks)
