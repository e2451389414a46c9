"""Bounded, lazily-populated connection pool.

Generic over the connection type: everything connection-specific goes
through a ConnectionFactory. Connections are created on demand up to
``max_size``; further acquirers wait in FIFO order until a connection is
released or the acquire timeout elapses.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Generic, Protocol, TypeVar

from tmagent.errors import AcquireTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _handed_off(fut: asyncio.Future) -> bool:
    """True if a release resolved this waiter's future."""
    return fut.done() and not fut.cancelled() and fut.exception() is None


class ConnectionFactory(Protocol[T]):
    async def connect(self) -> T: ...

    async def health_check(self, conn: T) -> bool: ...

    async def destroy(self, conn: T) -> None: ...


class BoundedPool(Generic[T]):
    """Holds between ``min_size`` and ``max_size`` live connections."""

    def __init__(
        self,
        factory: ConnectionFactory[T],
        min_size: int = 0,
        max_size: int = 5,
        acquire_timeout: float = 30.0,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if not 0 <= min_size <= max_size:
            raise ValueError("min_size must be between 0 and max_size")
        self._factory = factory
        self.min_size = min_size
        self.max_size = max_size
        self.acquire_timeout = acquire_timeout
        self._idle: deque[T] = deque()
        self._in_use: set[int] = set()  # id() of leased connections
        self._size = 0  # live + being created
        # Resolved with a handed-off connection, or None when a slot frees up
        self._waiters: deque[asyncio.Future] = deque()
        self._closed = False

    async def start(self) -> None:
        """Pre-create ``min_size`` connections."""
        while self._size < self.min_size:
            self._size += 1
            try:
                conn = await self._factory.connect()
            except BaseException:
                self._size -= 1
                raise
            self._idle.append(conn)
        logger.info("Warehouse pool started (min=%d, max=%d)", self.min_size, self.max_size)

    # ── Acquire / release ──

    async def acquire(self, timeout: float | None = None) -> T:
        if self._closed:
            raise RuntimeError("Pool is closed")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (self.acquire_timeout if timeout is None else timeout)

        while True:
            while self._idle:
                conn = self._idle.popleft()
                try:
                    healthy = await self._is_healthy(conn)
                except asyncio.CancelledError:
                    self._hand_back(conn)
                    raise
                if healthy:
                    self._in_use.add(id(conn))
                    return conn
                logger.info("Dropping unhealthy warehouse connection")
                try:
                    await self._destroy(conn)
                finally:
                    self._size -= 1

            if self._size < self.max_size:
                self._size += 1
                try:
                    conn = await self._factory.connect()
                except BaseException:
                    self._size -= 1
                    self._wake_one(None)
                    raise
                self._in_use.add(id(conn))
                return conn

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise AcquireTimeout(f"No warehouse connection free within {self.acquire_timeout:g}s")

            fut = loop.create_future()
            self._waiters.append(fut)
            try:
                conn = await asyncio.wait_for(fut, remaining)
            except asyncio.TimeoutError:
                # A release may have resolved the future just as the timer fired
                if _handed_off(fut):
                    conn = fut.result()
                    if conn is not None:
                        self._in_use.add(id(conn))
                        return conn
                    self._wake_one(None)
                raise AcquireTimeout(
                    f"No warehouse connection free within {self.acquire_timeout:g}s"
                ) from None
            except asyncio.CancelledError:
                # Whatever was handed to this waiter goes to the next one in line
                if _handed_off(fut):
                    conn = fut.result()
                    if conn is None:
                        self._wake_one(None)
                    else:
                        self._hand_back(conn)
                raise
            finally:
                if fut in self._waiters:
                    self._waiters.remove(fut)

            if conn is not None:
                self._in_use.add(id(conn))
                return conn
            # A slot freed up; go round again and create one

    async def release(self, conn: T, discard: bool = False) -> None:
        """Return a leased connection. ``discard`` destroys it instead."""
        self._in_use.discard(id(conn))
        if self._closed or discard:
            try:
                await self._destroy(conn)
            finally:
                self._size -= 1
                if not self._closed:
                    self._wake_one(None)
            return
        self._hand_back(conn)

    @asynccontextmanager
    async def lease(self, timeout: float | None = None) -> AsyncIterator[T]:
        conn = await self.acquire(timeout)
        try:
            yield conn
        finally:
            await self.release(conn)

    def _wake_one(self, value: T | None) -> bool:
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(value)
                return True
        return False

    # ── Helpers ──

    def _hand_back(self, conn: T) -> None:
        if not self._wake_one(conn):
            self._idle.append(conn)

    async def _is_healthy(self, conn: T) -> bool:
        try:
            return bool(await self._factory.health_check(conn))
        except Exception as e:
            logger.warning("Warehouse health check failed: %s", e)
            return False

    async def _destroy(self, conn: T) -> None:
        try:
            await self._factory.destroy(conn)
        except Exception as e:
            logger.warning("Failed to destroy warehouse connection: %s", e)

    async def close(self) -> None:
        """Destroy idle connections and fail anyone still waiting.

        Leased connections are destroyed when they come back.
        """
        self._closed = True
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_exception(RuntimeError("Pool is closed"))
        while self._idle:
            await self._destroy(self._idle.popleft())
            self._size -= 1
        logger.info("Warehouse pool closed")

    def stats(self) -> dict:
        return {
            "size": self._size,
            "idle": len(self._idle),
            "in_use": len(self._in_use),
            "waiting": sum(1 for f in self._waiters if not f.done()),
            "max": self.max_size,
        }
