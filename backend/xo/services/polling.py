from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger


class PeriodicTask:
    """Run ``callback`` every ``interval`` seconds on the running event loop.

    Failures are logged and the loop keeps going; ``stop`` cancels the loop
    and waits for it to unwind.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[object]],
        interval: float,
        *,
        run_immediately: bool = True,
    ) -> None:
        self.name = name
        self._callback = callback
        self.interval = interval
        self.run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.debug("Periodic task {} already running", self.name)
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug("Started periodic task {} every {}s", self.name, self.interval)

    def cancel(self) -> None:
        """Request cancellation without waiting for the loop to unwind."""

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Cancelled periodic task {}", self.name)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Stopped periodic task {}", self.name)

    async def _run(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            try:
                await self._callback()
            except Exception:
                logger.exception("Periodic task {} failed", self.name)
            await asyncio.sleep(self.interval)
