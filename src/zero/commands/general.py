"""Informational commands available to everyone."""

from __future__ import annotations

import math
from typing import List, Optional

import discord

from zero.commands.command import Command, CommandContext, CommandDetail
from zero.commands.command_manager import CommandManager
from zero.datatypes.guild_document import GuildDocument
from zero.util.message_utils import default_error_embed, generate_blank_embed, send_temporary


class HelpCommand(Command):
    detail = CommandDetail(
        name="Help Command",
        command_code="help",
        aliases=["commands"],
        description="Lists the commands you can run, or shows details about one command.",
        usage=["help", "help <command>"],
        examples=["help", "help checkquota"],
    )
    guild_only = False

    def __init__(self, manager: CommandManager) -> None:
        self.manager = manager

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        if args:
            command = self.manager.find_command(args[0])
            if command is None:
                await send_temporary(
                    context.channel,
                    embed=default_error_embed(context.author, f"No command named `{args[0]}` was found."),
                )
                return
            await context.channel.send(embed=self.manager.detail_embed(context.author, command, context.prefix))
            return

        usable = self.manager.usable_commands(context.author, guild_doc)
        embed = generate_blank_embed(context.author)
        embed.title = "Available Commands"
        embed.description = (
            f"Run `{context.prefix}help <command>` for details about a command.\n\n"
            + (", ".join(f"`{command.code}`" for command in usable) or "You cannot run any commands here.")
        )
        embed.set_footer(text=f"{len(usable)} command(s)")
        await context.channel.send(embed=embed)


class PingCommand(Command):
    detail = CommandDetail(
        name="Ping Command",
        command_code="ping",
        description="Shows the gateway latency.",
        usage=["ping"],
        examples=["ping"],
    )
    guild_only = False

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        latency = context.bot.latency
        latency_text = "N/A" if latency is None or math.isnan(latency) else f"{latency * 1000:.0f} ms"
        embed = generate_blank_embed(context.author, discord.Color.blurple())
        embed.title = "🏓 Pong!"
        embed.description = f"Gateway latency: `{latency_text}`"
        await context.channel.send(embed=embed)
