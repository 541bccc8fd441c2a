"""
Operator console.

While the bot is connected, the terminal reads commands through a prompt_toolkit
prompt. Log records printed by :mod:`zero.util.logger` go through the same
library, so they appear above the prompt rather than inside the typed line.
"""

from __future__ import annotations

import asyncio
import math
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field

import discord
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession

from zero.scheduler.punishment_scheduler import PUNISHMENT_SCHEDULER
from zero.scheduler.user_cache_scheduler import USER_CACHE_SCHEDULER
from zero.services.guild_service import guild_service
from zero.services.user_service import user_service
from zero.util.logger import get_logger

logger = get_logger("console")

PANEL_WIDTH = 45
PROMPT = "zero> "

ConsoleHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]


def panel(title: str) -> list[str]:
    inner = PANEL_WIDTH - 2
    return [f"╔{'═' * inner}╗", f"║{title.center(inner)}║", f"╚{'═' * inner}╝"]


def console_print(message: str, style: str = "") -> None:
    if style:
        print_formatted_text(FormattedText([(style, message)]))
    else:
        print_formatted_text(message)


def print_panel(title: str, style: str) -> None:
    for line in panel(title):
        console_print(line, style)


@dataclass
class ConsoleCommand:
    name: str
    handler: ConsoleHandler
    description: str
    aliases: list[str] = field(default_factory=list)

    def matches(self, word: str) -> bool:
        return word == self.name or word in self.aliases


CONSOLE_COMMANDS: list[ConsoleCommand] = []


def console_command(name: str, description: str, *aliases: str) -> Callable[[ConsoleHandler], ConsoleHandler]:
    def register(handler: ConsoleHandler) -> ConsoleHandler:
        CONSOLE_COMMANDS.append(ConsoleCommand(name, handler, description, list(aliases)))
        return handler

    return register


def find_console_command(word: str) -> ConsoleCommand | None:
    for command in CONSOLE_COMMANDS:
        if command.matches(word):
            return command
    return None


class ConsoleControl:
    """What the console and ``main`` share: the running bot and how the session should end."""

    def __init__(self) -> None:
        self.bot: discord.Bot | None = None
        self.stopping = False
        self.restarting = False

    def set_bot(self, bot: discord.Bot | None) -> None:
        self.bot = bot

    def request_shutdown(self, restart: bool = False) -> None:
        self.stopping = True
        self.restarting = self.restarting or restart

    def is_shutdown_requested(self) -> bool:
        return self.stopping

    def is_restart_requested(self) -> bool:
        return self.restarting


async def close_bot_instance(bot: discord.Bot | None, *, log_close: bool = False) -> None:
    """Close the gateway connection of ``bot``. Failures are logged and swallowed."""
    if bot is None or bot.is_closed():
        return
    try:
        await bot.close()
    except Exception:
        logger.exception("[CONSOLE] Closing the Discord client failed")
    else:
        if log_close:
            logger.info("[CONSOLE] Discord client closed")


def format_latency(latency: float | None) -> str:
    if latency is None or math.isnan(latency) or math.isinf(latency):
        return "N/A"
    return f"{latency * 1000:.0f}ms"


@console_command("help", "List console commands", "h", "?")
async def show_help(control: ConsoleControl, args: list[str]) -> None:
    print_panel("Console Commands", "ansigreen")
    for command in CONSOLE_COMMANDS:
        names = ", ".join([command.name, *command.aliases])
        console_print(f"  {names}", "ansicyan")
        console_print(f"      {command.description}")


@console_command("status", "Show connection, latency, guilds, profiles and scheduled punishments", "stat", "info")
async def show_status(control: ConsoleControl, args: list[str]) -> None:
    rows: list[tuple[str, object]] = []
    bot = control.bot
    if bot is None:
        rows.append(("Bot", "🔴 Not initialized"))
    else:
        rows.append(("Bot", "🔴 Disconnected" if bot.is_closed() else "🟢 Connected"))
        rows.append(("Latency", format_latency(bot.latency)))
        rows.append(("Guilds", f"{len(bot.guilds)} ({guild_service.cached_count} documents cached)"))
    rows.append(("Profiles", await user_service.count()))
    rows.append(("Cached names", USER_CACHE_SCHEDULER.size))
    rows.append(("Punishments", f"{PUNISHMENT_SCHEDULER.pending_count} scheduled"))

    print_panel("Zero Status", "ansiblue")
    for label, value in rows:
        console_print(f"  {label + ':':<14}{value}")


@console_command("guilds", "List the guilds the bot is in", "servers", "g")
async def show_guilds(control: ConsoleControl, args: list[str]) -> None:
    guilds = list(control.bot.guilds) if control.bot is not None else []
    if not guilds:
        console_print("No guilds found. Is the bot connected?", "ansiyellow")
        return
    print_panel(f"Guilds ({len(guilds)})", "ansiblue")
    for guild in sorted(guilds, key=lambda guild: guild.name.lower()):
        console_print(f"  {guild.name}  id={guild.id}  members={guild.member_count}")


@console_command("clear", "Clear the screen", "cls")
async def clear_screen(control: ConsoleControl, args: list[str]) -> None:
    os.system("cls" if os.name == "nt" else "clear")


@console_command("restart", "Restart the whole process", "reboot")
async def restart(control: ConsoleControl, args: list[str]) -> None:
    console_print("Restarting Zero...", "ansiyellow")
    control.request_shutdown(restart=True)
    await close_bot_instance(control.bot)


@console_command("shutdown", "Disconnect and exit", "stop", "quit", "exit")
async def shutdown(control: ConsoleControl, args: list[str]) -> None:
    console_print("Stopping Zero...", "ansiyellow")
    control.request_shutdown()
    await close_bot_instance(control.bot)


async def handle_console_command(line: str, control: ConsoleControl) -> None:
    """Parse and run one line typed at the prompt. Command errors are printed, never raised."""
    word, *args = line.split() or [""]
    if not word:
        return
    command = find_console_command(word.lower())
    if command is None:
        console_print(f"Unknown command '{word.lower()}'. Type 'help' to list commands.", "ansired")
        return
    try:
        await command.handler(control, args)
    except Exception as error:
        logger.exception("[CONSOLE] '%s' failed", command.name)
        console_print(f"'{command.name}' failed: {error}", "ansired")


async def run_console(control: ConsoleControl) -> None:
    session: PromptSession[str] = PromptSession(PROMPT)
    print_panel("Zero Console", "ansigreen")
    console_print("Type 'help' to list commands.", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
            except (EOFError, KeyboardInterrupt):
                # Ctrl+D / Ctrl+C at the prompt
                await shutdown(control, [])
                return
            await handle_console_command(line, control)


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Keep the prompt running for as long as the block runs."""
    prompt_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.request_shutdown()
        prompt_task.cancel()
        with suppress(asyncio.CancelledError):
            await prompt_task
