import asyncio
import threading
from contextvars import ContextVar

import pytest

from newsletter.services.hashing_pool import HashingPool

marker: ContextVar[str] = ContextVar("marker", default="unset")


@pytest.fixture
def pool():
    p = HashingPool(workers=2, queue_factor=1)
    yield p
    p.shutdown()


@pytest.mark.asyncio
async def test_run_returns_function_result(pool):
    assert await pool.run(pow, 2, 10) == 1024


@pytest.mark.asyncio
async def test_run_propagates_worker_exceptions(pool):
    def boom():
        raise ValueError("from worker")

    with pytest.raises(ValueError, match="from worker"):
        await pool.run(boom)


@pytest.mark.asyncio
async def test_work_runs_off_the_event_loop_thread(pool):
    loop_thread = threading.get_ident()
    worker_thread = await pool.run(threading.get_ident)
    assert worker_thread != loop_thread


@pytest.mark.asyncio
async def test_context_variables_reach_the_worker(pool):
    marker.set("request-42")
    assert await pool.run(marker.get) == "request-42"


@pytest.mark.asyncio
async def test_callers_wait_when_pool_is_saturated(pool):
    release = threading.Event()
    started = []

    def blocking(i):
        started.append(i)
        release.wait(timeout=5)
        return i

    first = [asyncio.create_task(pool.run(blocking, i)) for i in range(pool.capacity)]
    await asyncio.sleep(0.05)
    assert pool.saturated

    extra = asyncio.create_task(pool.run(blocking, 99))
    await asyncio.sleep(0.05)
    assert 99 not in started
    assert not extra.done()

    release.set()
    results = await asyncio.gather(*first, extra)
    assert sorted(results) == [*range(pool.capacity), 99]
    assert not pool.saturated


@pytest.mark.asyncio
async def test_event_loop_stays_responsive_during_work(pool):
    release = threading.Event()
    job = asyncio.create_task(pool.run(release.wait, 5))

    ticks = 0
    for _ in range(3):
        await asyncio.sleep(0.01)
        ticks += 1

    assert ticks == 3
    assert not job.done()
    release.set()
    assert await job is True


@pytest.mark.asyncio
async def test_run_after_shutdown_raises():
    p = HashingPool(workers=1)
    p.shutdown()
    with pytest.raises(RuntimeError):
        await p.run(pow, 2, 2)


@pytest.mark.asyncio
async def test_cancelled_caller_keeps_its_slot_until_the_job_finishes():
    p = HashingPool(workers=1, queue_factor=1)
    release = threading.Event()
    started = []

    def blocking(i):
        started.append(i)
        release.wait(timeout=5)
        return i

    try:
        first = asyncio.create_task(p.run(blocking, 1))
        await asyncio.sleep(0.05)
        assert started == [1]

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        # The first job is still running on the worker, so no slot is free
        assert p.saturated
        second = asyncio.create_task(p.run(blocking, 2))
        await asyncio.sleep(0.05)
        assert not second.done()
        assert started == [1]

        release.set()
        assert await second == 2
        assert started == [1, 2]
    finally:
        release.set()
        p.shutdown()


@pytest.mark.asyncio
async def test_cancelling_a_queued_job_frees_its_slot():
    p = HashingPool(workers=1, queue_factor=2)
    release = threading.Event()
    started = []

    def blocking(i):
        started.append(i)
        release.wait(timeout=5)
        return i

    try:
        running = asyncio.create_task(p.run(blocking, 1))
        queued = asyncio.create_task(p.run(blocking, 2))
        await asyncio.sleep(0.05)
        assert p.saturated

        queued.cancel()
        with pytest.raises(asyncio.CancelledError):
            await queued
        await asyncio.sleep(0.01)
        assert not p.saturated

        release.set()
        assert await running == 1
        assert started == [1]
    finally:
        release.set()
        p.shutdown()
