"""Supervision for detached background work.

Tasks spawned here are referenced until they finish so the event loop cannot
garbage-collect them mid-flight, and any failure is logged with its traceback.
"""
from __future__ import annotations

from typing import Awaitable, Dict, Optional

import asyncio
import logging


logger = logging.getLogger(__name__)


class BackgroundTasks:
    def __init__(self) -> None:
        self._tasks: Dict[asyncio.Task, str] = {}

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, work: Awaitable[object], *, description: str) -> asyncio.Task:
        """Run ``work`` on the current loop without awaiting it."""

        task = asyncio.ensure_future(work)
        self._tasks[task] = description
        task.add_done_callback(self._on_done)
        return task

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for pending work. Returns False if some tasks outlived ``timeout``."""

        if not self._tasks:
            return True
        logger.info("Waiting for %d background tasks", len(self._tasks))
        _, still_pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_pending:
            logger.warning(
                "%d background tasks still running after %.1fs: %s",
                len(still_pending),
                timeout or 0.0,
                ", ".join(self._tasks.get(task, "?") for task in still_pending),
            )
            return False
        return True

    def _on_done(self, task: asyncio.Task) -> None:
        description = self._tasks.pop(task, "background task")
        if task.cancelled():
            logger.warning("Background task cancelled: %s", description)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed: %s", description, exc_info=exc)
        else:
            logger.debug("Background task finished: %s", description)
