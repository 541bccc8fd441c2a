"""Periodic refresh of the in-memory name index.

The index maps every lowercase main and alternate name in the profile table
to its owner's Discord ID. It backs quick lookups (``find``, the console
status) without a database round trip.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

from zero.configuration.app_configuration import app_config
from zero.services.user_service import user_service
from zero.util.logger import get_logger

logger = get_logger("user_cache_scheduler")


class UserCacheScheduler:
    """Rebuilds the name index every ``user_cache_refresh_seconds``."""

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None
        self._index: Dict[str, int] = {}
        self._refreshes = 0

    @property
    def size(self) -> int:
        return len(self._index)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def lookup(self, name: str) -> Optional[int]:
        return self._index.get(name.lower())

    async def refresh(self) -> int:
        self._index = await user_service.name_index()
        self._refreshes += 1
        logger.debug("[USER CACHE] Indexed %d names", len(self._index))
        return len(self._index)

    async def _run_loop(self, interval: float) -> None:
        logger.info("[USER CACHE] Starting periodic refresh (interval=%.1fs)", interval)
        try:
            while True:
                try:
                    await self.refresh()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[USER CACHE] Unexpected error during refresh: %s", exc)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("[USER CACHE] Periodic refresh cancelled")
            raise

    def start(self) -> None:
        if self.is_running:
            logger.warning("[USER CACHE] Refresh task already running")
            return
        self._task = asyncio.create_task(self._run_loop(app_config.user_cache_refresh_seconds))

    async def shutdown(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[USER CACHE] Scheduler shutdown complete")


USER_CACHE_SCHEDULER = UserCacheScheduler()
