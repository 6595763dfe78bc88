"""A long-lived asyncio loop for the synchronous Flask boundary.

Flask views run in worker threads; they hand coroutines to this loop and block
on the result. Because the loop outlives every request, background tasks
spawned during a request keep running after its response has been sent.
"""
from __future__ import annotations

from typing import Awaitable, Optional, TypeVar

import asyncio
import logging
import threading

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventLoopThread:
    def __init__(self, name: str = "cosmicwatch-loop") -> None:
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "EventLoopThread":
        if self.running:
            return self
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        self._ready.wait()
        logger.debug("Event loop thread %s started", self._name)
        return self

    def run(self, work: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Run ``work`` on the loop and wait for its result from this thread."""

        if self._loop is None or not self.running:
            raise RuntimeError("event loop thread is not running")
        future = asyncio.run_coroutine_threadsafe(_as_coroutine(work), self._loop)
        return future.result(timeout)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        if self._loop is None or self._thread is None:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Event loop thread %s did not stop within %ss", self._name, timeout)
            return
        self._loop.close()
        self._loop = None
        self._thread = None

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        loop.run_forever()


async def _as_coroutine(work: Awaitable[T]) -> T:
    return await work
