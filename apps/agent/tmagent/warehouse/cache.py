"""TTL cache for warehouse query results."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TTLCache:
    """Dict-based cache with per-key expiry.

    Entries are valid while ``now - inserted_at < ttl``. Expired entries are
    dropped when read; nothing sweeps them in the background.
    """

    def __init__(
        self,
        default_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._data: dict[str, tuple[float, float, Any]] = {}  # key -> (inserted_at, ttl, value)

    def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        inserted_at, ttl, value = entry
        if self._clock() - inserted_at >= ttl:
            del self._data[key]
            return None
        logger.debug("cache hit: %s", key[:80])
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._data[key] = (self._clock(), self.default_ttl if ttl is None else ttl, value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
