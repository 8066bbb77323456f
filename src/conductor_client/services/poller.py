"""Fixed-interval refresh loops (run list, dashboard stats)."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

RefreshFn = Callable[[], Awaitable[Any]]


class Poller:
    def __init__(self, name: str, refresh: RefreshFn, interval_sec: float) -> None:
        self.name = name
        self._refresh = refresh
        self._interval_sec = max(0.1, float(interval_sec))
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"poller-{self.name}")
        logger.info("poller %s: started (interval=%.1fs)", self.name, self._interval_sec)

    async def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _loop(self) -> None:
        while self._running:
            try:
                await self._refresh()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("poller %s: refresh error", self.name)
            self.ticks += 1
            try:
                await asyncio.sleep(self._interval_sec)
            except asyncio.CancelledError:
                break
