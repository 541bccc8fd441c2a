from __future__ import annotations

import asyncio
from contextlib import suppress

import discord

from zero.util.logger import get_logger

logger = get_logger("auto_tick")

DEFAULT_TEMPLATE = "⏳ Time Remaining: {m} Minutes and {s} Seconds."


def remaining_parts(seconds: float) -> tuple[int, int]:
    seconds = max(0, int(seconds))
    return seconds // 60, seconds % 60


class MessageAutoTick:
    """Keep an embed footer counting down until stopped or time runs out.

    ``template`` is formatted with ``m`` (whole minutes) and ``s`` (leftover
    seconds).
    """

    TICK_SECONDS = 5.0

    def __init__(
        self,
        message: discord.Message,
        embed: discord.Embed,
        duration_seconds: float,
        template: str = DEFAULT_TEMPLATE,
    ) -> None:
        self.message = message
        self.embed = embed
        self.duration = duration_seconds
        self.template = template
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "MessageAutoTick":
        if not self.running:
            self._task = asyncio.create_task(self._run())
        return self

    def footer_text(self, remaining: float) -> str:
        minutes, seconds = remaining_parts(remaining)
        return self.template.format(m=minutes, s=seconds)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.duration
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            self.embed.set_footer(text=self.footer_text(remaining))
            try:
                await self.message.edit(embed=self.embed)
            except discord.HTTPException as exc:
                logger.debug("Stopping countdown, edit failed: %s", exc)
                return
            await asyncio.sleep(min(self.TICK_SECONDS, remaining))

    def disable(self) -> None:
        if self.running:
            self._task.cancel()
        self._task = None

    async def stop(self) -> None:
        """Cancel the countdown and wait until no footer edit can still land."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
