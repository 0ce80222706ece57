# galibot_engine/background.py
"""
Fire-and-forget work that must never fail the request that spawned it.

Tasks are held in a set until they finish so they are not garbage collected
mid-flight. Failures are logged and counted here instead of propagating.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from galibot_engine.models import BackgroundStats

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Owns background tasks spawned on the running loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._stats = {"spawned": 0, "completed": 0, "failed": 0}

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        self._stats["spawned"] += 1
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            self._stats["failed"] += 1
            logger.debug(f"[Background] {task.get_name()} cancelled")
            return

        error = task.exception()
        if error is not None:
            self._stats["failed"] += 1
            logger.warning(f"[Background] {task.get_name()} failed: {error!r}")
        else:
            self._stats["completed"] += 1

    async def drain(self) -> None:
        """Wait until every spawned task (including ones spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()

    def get_stats(self) -> BackgroundStats:
        return BackgroundStats(pending=len(self._tasks), **self._stats)
