"""Tests for the bounded connection pool."""

import asyncio

import pytest

from tmagent.errors import AcquireTimeout
from tmagent.warehouse.pool import BoundedPool

from tests.fakes import FakeWarehouse


class TestBoundedPool:
    def test_connections_created_lazily(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, min_size=0, max_size=3)
            assert factory.created == []
            conn = await pool.acquire()
            assert len(factory.created) == 1
            await pool.release(conn)
            # Reused, not recreated
            again = await pool.acquire()
            assert again is conn
            assert len(factory.created) == 1

        asyncio.run(run())

    def test_start_precreates_min_size(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, min_size=2, max_size=4)
            await pool.start()
            assert len(factory.created) == 2
            assert pool.stats()["idle"] == 2

        asyncio.run(run())

    def test_third_acquire_waits_for_release(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, max_size=2, acquire_timeout=1.0)
            a = await pool.acquire()
            await pool.acquire()

            waiter = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)
            assert not waiter.done()
            assert pool.stats()["waiting"] == 1

            await pool.release(a)
            got = await asyncio.wait_for(waiter, 1.0)
            assert got is a
            assert len(factory.created) == 2
            assert pool.stats()["in_use"] == 2

        asyncio.run(run())

    def test_acquire_times_out_without_release(self):
        async def run():
            pool = BoundedPool(FakeWarehouse(), max_size=2, acquire_timeout=0.05)
            await pool.acquire()
            await pool.acquire()
            with pytest.raises(AcquireTimeout):
                await pool.acquire()
            assert pool.stats()["waiting"] == 0

        asyncio.run(run())

    def test_waiters_served_in_fifo_order(self):
        async def run():
            pool = BoundedPool(FakeWarehouse(), max_size=1, acquire_timeout=1.0)
            conn = await pool.acquire()
            order = []

            async def worker(name):
                c = await pool.acquire()
                order.append(name)
                await pool.release(c)

            tasks = [asyncio.create_task(worker(n)) for n in ("first", "second", "third")]
            await asyncio.sleep(0.01)
            await pool.release(conn)
            await asyncio.gather(*tasks)
            assert order == ["first", "second", "third"]

        asyncio.run(run())

    def test_unhealthy_idle_connection_replaced(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, max_size=1)
            conn = await pool.acquire()
            await pool.release(conn)
            conn.healthy = False

            fresh = await pool.acquire()
            assert fresh is not conn
            assert factory.destroyed == [conn]
            assert pool.stats()["size"] == 1

        asyncio.run(run())

    def test_discard_frees_slot_for_waiter(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, max_size=1, acquire_timeout=1.0)
            conn = await pool.acquire()
            waiter = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)

            await pool.release(conn, discard=True)
            fresh = await asyncio.wait_for(waiter, 1.0)
            assert fresh is not conn
            assert len(factory.created) == 2

        asyncio.run(run())

    def test_destroy_errors_are_swallowed(self):
        async def run():
            factory = FakeWarehouse()
            factory.fail_destroy = True
            pool = BoundedPool(factory, max_size=1)
            conn = await pool.acquire()
            await pool.release(conn, discard=True)
            assert factory.destroyed == [conn]
            assert pool.stats()["size"] == 0

        asyncio.run(run())

    def test_lease_releases_on_error(self):
        async def run():
            pool = BoundedPool(FakeWarehouse(), max_size=1)
            with pytest.raises(RuntimeError):
                async with pool.lease():
                    raise RuntimeError("boom")
            stats = pool.stats()
            assert stats["in_use"] == 0
            assert stats["idle"] == 1

        asyncio.run(run())

    def test_close_destroys_idle_and_returned(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, max_size=2)
            a = await pool.acquire()
            b = await pool.acquire()
            await pool.release(a)

            await pool.close()
            assert factory.destroyed == [a]
            await pool.release(b)
            assert factory.destroyed == [a, b]
            with pytest.raises(RuntimeError):
                await pool.acquire()

        asyncio.run(run())

    def test_outstanding_never_exceeds_max(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, max_size=3, acquire_timeout=2.0)
            peak = 0
            active = 0

            async def worker():
                nonlocal peak, active
                async with pool.lease():
                    active += 1
                    peak = max(peak, active)
                    await asyncio.sleep(0.005)
                    active -= 1

            await asyncio.gather(*(worker() for _ in range(12)))
            assert peak <= 3
            assert len(factory.created) <= 3

        asyncio.run(run())

    def test_cancelled_waiter_passes_handed_connection_on(self):
        async def run():
            factory = FakeWarehouse()
            pool = BoundedPool(factory, max_size=1, acquire_timeout=1.0)
            conn = await pool.acquire()
            waiter = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)

            # Hand-off resolves the waiter, then it is cancelled before resuming
            await pool.release(conn)
            waiter.cancel()
            result, = await asyncio.gather(waiter, return_exceptions=True)
            if not isinstance(result, BaseException):
                await pool.release(result)

            stats = pool.stats()
            assert stats["in_use"] == 0
            assert stats["idle"] == 1
            assert stats["size"] == 1
            assert await pool.acquire(timeout=0.2) is conn

        asyncio.run(run())

    def test_cancelled_waiter_hands_connection_to_next_in_line(self):
        async def run():
            pool = BoundedPool(FakeWarehouse(), max_size=1, acquire_timeout=1.0)
            conn = await pool.acquire()
            first = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)
            second = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)

            await pool.release(conn)
            first.cancel()
            result, = await asyncio.gather(first, return_exceptions=True)
            if isinstance(result, BaseException):
                assert await asyncio.wait_for(second, 1.0) is conn
            else:
                second.cancel()
                await asyncio.gather(second, return_exceptions=True)
                await pool.release(result)
            assert pool.stats()["size"] == 1

        asyncio.run(run())

    def test_cancel_during_health_check_keeps_connection(self):
        class SlowHealthWarehouse(FakeWarehouse):
            async def health_check(self, conn):
                await asyncio.sleep(10)
                return True

        async def run():
            factory = SlowHealthWarehouse()
            pool = BoundedPool(factory, max_size=1)
            conn = await pool.acquire()
            await pool.release(conn)

            task = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

            assert pool.stats() == {"size": 1, "idle": 1, "in_use": 0, "waiting": 0, "max": 1}
            assert factory.destroyed == []

        asyncio.run(run())

    def test_cancel_during_connect_frees_slot(self):
        class SlowConnectWarehouse(FakeWarehouse):
            async def connect(self):
                await asyncio.sleep(10)
                return await super().connect()

        async def run():
            pool = BoundedPool(SlowConnectWarehouse(), max_size=1)
            task = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0.01)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            assert pool.stats()["size"] == 0

        asyncio.run(run())

    @pytest.mark.parametrize("min_size,max_size", [(0, 0), (3, 2), (-1, 2)])
    def test_rejects_bad_bounds(self, min_size, max_size):
        with pytest.raises(ValueError):
            BoundedPool(FakeWarehouse(), min_size=min_size, max_size=max_size)
