"""Single-choice reaction menus."""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import discord

from zero.datatypes.time_unit import TimeUnit
from zero.ui.collectors import CollectorResult, add_reactions
from zero.util.logger import get_logger

logger = get_logger("reaction_menu")


class FastReactionMenu:
    """Wait for ``target`` to press one of ``reactions`` on ``message``.

    Reactions are added in the background so the user can answer before the
    bot has finished reacting.
    """

    def __init__(
        self,
        bot: discord.Client,
        message: discord.Message,
        target: Any,
        reactions: Sequence[str],
        duration: float,
        unit: TimeUnit = TimeUnit.MINUTE,
        react_to_message: bool = True,
    ) -> None:
        self.bot = bot
        self.message = message
        self.target = target
        self.reactions = list(reactions)
        self.timeout = unit.to_seconds(duration)
        self.react_to_message = react_to_message

    async def react(self) -> str | CollectorResult:
        """Return the pressed emoji, or ``CollectorResult.TIME``."""
        reactor = (
            asyncio.create_task(add_reactions(self.message, self.reactions)) if self.react_to_message else None
        )

        def check(reaction: discord.Reaction, user: discord.abc.User) -> bool:
            return (
                user.id == self.target.id
                and reaction.message.id == self.message.id
                and str(reaction.emoji) in self.reactions
            )

        try:
            reaction, user = await self.bot.wait_for("reaction_add", check=check, timeout=self.timeout)
        except asyncio.TimeoutError:
            return CollectorResult.TIME
        finally:
            if reactor is not None and not reactor.done():
                reactor.cancel()

        if self.message.guild is not None:
            try:
                await reaction.remove(user)
            except discord.HTTPException as exc:
                logger.debug("Could not remove menu reaction: %s", exc)
        return str(reaction.emoji)
