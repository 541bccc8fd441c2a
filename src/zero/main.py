"""
Entry point of Zero, a Discord bot that runs a RotMG community server:
RealmEye-backed account verification, member profiles, staff quotas and
moderation.

``zero`` starts the bot next to the operator console. The ``restart`` console
command ends the session with ``RESTART_EXIT_CODE`` and the process replaces
itself with a fresh interpreter.
"""

import os
import sys
from pathlib import Path

RESTART_EXIT_CODE = 42


def project_home() -> Path:
    """``ZERO_HOME`` if set, else the checkout this file lives in."""
    configured = os.getenv("ZERO_HOME")
    if configured:
        return Path(configured).resolve()
    return Path(__file__).resolve().parents[2]


HOME = project_home()
# config/, data/ and logs/ are resolved relative to the working directory
os.chdir(HOME)

import asyncio
import discord
from dotenv import load_dotenv

from zero.configuration.app_configuration import app_config
from zero.database.database import database
from zero.realmeye.client import realmeye_client
from zero.scheduler.punishment_scheduler import PUNISHMENT_SCHEDULER
from zero.scheduler.user_cache_scheduler import USER_CACHE_SCHEDULER
from zero.services.guild_service import guild_service
from zero.ui.console import ConsoleControl, close_bot_instance, console_session
from zero.util.logger import get_logger, handle_exception

logger = get_logger("main")

COG_MODULES = ("events_listener", "message_listener", "reaction_listener")


def read_token() -> str | None:
    load_dotenv(dotenv_path=HOME / ".env")
    return os.getenv("DISCORD_BOT_TOKEN") or None


def create_bot() -> discord.Bot:
    """A ``discord.Bot`` with the intents prefix commands and reaction menus need."""
    from importlib import import_module

    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True
    intents.reactions = True
    intents.dm_messages = True
    intents.dm_reactions = True

    bot = discord.Bot(intents=intents)
    for module_name in COG_MODULES:
        import_module(f"zero.bot.cogs.{module_name}").setup(bot)
    logger.info("[STARTUP] Registered %d cogs", len(COG_MODULES))
    return bot


async def stop_services(bot: discord.Bot | None) -> None:
    """Close the gateway connection first so no handler runs against a closed database."""
    await close_bot_instance(bot, log_close=True)
    steps = (
        ("punishment scheduler", PUNISHMENT_SCHEDULER.shutdown),
        ("user cache scheduler", USER_CACHE_SCHEDULER.shutdown),
        ("RealmEye client", realmeye_client.close),
        ("database", database.shutdown),
    )
    for label, step in steps:
        try:
            await step()
        except Exception:
            logger.exception("[SHUTDOWN] Stopping the %s failed", label)
    logger.info("[SHUTDOWN] Done")


async def run(token: str) -> int:
    if not await database.initialize(app_config.database_path):
        logger.critical("[STARTUP] Database at %s could not be opened", app_config.database_path)
        return 1

    try:
        logger.info("[STARTUP] Loaded %d guild documents", await guild_service.load_all())
        bot = create_bot()
    except Exception:
        logger.exception("[STARTUP] Startup failed")
        await database.shutdown()
        return 1

    control = ConsoleControl()
    control.set_bot(bot)
    exit_code = 0
    try:
        async with console_session(control):
            try:
                await bot.start(token)
            except asyncio.CancelledError:
                logger.info("[SHUTDOWN] Gateway task cancelled")
            except Exception:
                logger.exception("[RUNTIME] The Discord client stopped with an error")
                exit_code = 1
    finally:
        control.set_bot(None)
        await stop_services(bot)

    return RESTART_EXIT_CODE if control.is_restart_requested() else exit_code


def main() -> int:
    sys.excepthook = handle_exception
    token = read_token()
    if token is None:
        logger.critical("[STARTUP] DISCORD_BOT_TOKEN is not set")
        return 1

    logger.info("[STARTUP] Starting Zero")
    try:
        exit_code = asyncio.run(run(token))
    except KeyboardInterrupt:
        logger.info("[SHUTDOWN] Interrupted")
        return 0

    if exit_code == RESTART_EXIT_CODE:
        logger.info("[RESTART] Re-executing %s", sys.executable)
        os.execv(sys.executable, [sys.executable, *sys.argv])
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
