"""Hashing Pool - Off-loop execution for Argon2 work

Argon2 hashing and verification cost tens of milliseconds of CPU and ~15 MB
of memory per call. They run on a small thread pool, never on the event loop.

The pool is bounded twice:
- ``workers`` threads compute hashes concurrently
- a semaphore admits at most ``workers * queue_factor`` jobs at a time; further
  callers wait for a slot before their job is even queued

The calling task suspends until its job finishes and receives the job's return
value or exception. The caller's context variables (request id and other
structlog bindings) are copied into the worker thread.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


class HashingPool:
    """Bounded worker pool for CPU-heavy password hashing."""

    def __init__(self, workers: int = 2, queue_factor: int = 4):
        self.workers = workers
        self.capacity = workers * queue_factor
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="argon2")
        self._slots = asyncio.Semaphore(self.capacity)
        self._closed = False

    @property
    def saturated(self) -> bool:
        return self._slots.locked()

    async def run(self, fn: Callable[..., T], *args) -> T:
        """Run ``fn(*args)`` on a worker thread and wait for its result.

        The slot is held until the job itself finishes. Cancelling the caller
        drops a job that has not started yet; a job already running keeps its
        slot until the worker returns.

        Raises:
            RuntimeError: if the pool has been shut down.
        """
        if self._closed:
            raise RuntimeError("Hashing pool is shut down")
        if self._slots.locked():
            logger.debug(f"Hashing pool saturated ({self.capacity} jobs in flight), waiting for a slot")
        await self._slots.acquire()
        loop = asyncio.get_running_loop()
        ctx = contextvars.copy_context()
        try:
            future = self._executor.submit(ctx.run, fn, *args)
        except RuntimeError:
            self._slots.release()
            raise

        def release_slot(_):
            if not loop.is_closed():
                loop.call_soon_threadsafe(self._slots.release)

        future.add_done_callback(release_slot)
        return await asyncio.wrap_future(future)

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)
