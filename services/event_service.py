"""
Event publishing.

DomainEvents are published as arq `record_event` jobs; services/event_worker.py
writes them to analytics_events and retries failed writes. emit() schedules
the enqueue on the application's event loop and returns at once, so the
operation that produced the event never waits on Redis. A failed enqueue is
logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from functools import partial
from typing import Set

from arq.connections import ArqRedis

from domain.events import DomainEvent
from repositories.event_repository import event_row
from services.event_worker import RECORD_EVENT_JOB

logger = logging.getLogger(__name__)


class EventDispatcher:
    def __init__(self, redis: ArqRedis, loop: asyncio.AbstractEventLoop, enqueue_timeout: float = 5.0):
        self._redis = redis
        self._loop = loop
        self._enqueue_timeout = enqueue_timeout
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def emit(self, event: DomainEvent) -> None:
        """Schedule a record_event job. Never raises and never blocks."""

        if self._closed:
            logger.warning("Event dispatcher closed, dropping %s", event.name.value)
            return
        try:
            future = asyncio.run_coroutine_threadsafe(self._enqueue(event), self._loop)
        except RuntimeError:
            logger.warning("Event loop unavailable, dropping %s", event.name.value)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(partial(self._finished, event))

    async def _enqueue(self, event: DomainEvent) -> None:
        row = event_row(event)
        # The job id is the event id, so a second enqueue of the same event is a no-op
        await asyncio.wait_for(
            self._redis.enqueue_job(RECORD_EVENT_JOB, row, _job_id=row["event_id"]),
            timeout=self._enqueue_timeout,
        )

    def _finished(self, event: DomainEvent, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Failed to enqueue event %s: %r", event.name.value, error)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for enqueues already scheduled."""

        with self._lock:
            pending = [asyncio.wrap_future(f) for f in self._pending]
        if not pending:
            return
        try:
            # Failures were already logged by _finished
            await asyncio.wait_for(asyncio.gather(*pending, return_exceptions=True), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("%d event(s) still enqueuing after %.1fs", len(pending), timeout)

    async def close(self, timeout: float = 5.0) -> None:
        """Stop accepting events, drain, and release the Redis pool."""

        self._closed = True
        await self.drain(timeout)
        await self._redis.aclose()


__all__ = ["EventDispatcher"]
