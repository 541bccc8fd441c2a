"""Message listener Cog for Zero.

Routes prefixed messages to the command manager.
"""

import discord
from discord.ext import commands

from zero.commands import build_command_manager
from zero.commands.command_manager import CommandManager
from zero.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for turning messages into commands."""

    def __init__(self, discord_bot_instance, manager: CommandManager | None = None):
        self.bot = discord_bot_instance
        self.manager = manager or build_command_manager()
        logger.info("Message listener cog loaded with %d commands", len(self.manager.commands))

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        if message.author.bot or message.webhook_id is not None:
            return
        await self.manager.dispatch(self.bot, message)


def setup(discord_bot_instance):
    """Register the MessageListenerCog with the bot."""
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance))
