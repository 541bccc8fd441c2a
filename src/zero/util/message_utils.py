"""
message_utils.py
================

Stateless Discord messaging helpers: canned embeds, temporary notices, and
best-effort deletes and DMs that log instead of raising.
"""

from __future__ import annotations

from typing import Any, Optional

import discord

from zero.configuration.app_configuration import app_config
from zero.util.logger import get_logger

logger = get_logger("message_utils")


def generate_blank_embed(
    author: discord.abc.User | discord.Guild | None = None,
    color: discord.Color | None = None,
) -> discord.Embed:
    """Create an empty embed with the author line set to a user or guild."""
    embed = discord.Embed(color=color or discord.Color.random())
    if isinstance(author, discord.Guild):
        embed.set_author(name=author.name, icon_url=author.icon.url if author.icon else None)
    elif author is not None:
        embed.set_author(name=str(author), icon_url=author.display_avatar.url)
    return embed


def no_user_found_embed(author: discord.abc.User, query: str) -> discord.Embed:
    embed = generate_blank_embed(author, discord.Color.red())
    embed.title = "No User Found"
    embed.description = f"I could not find a member matching `{query}`. Try a mention, an ID, or an exact in-game name."
    return embed


def no_channel_permissions_embed(author: discord.abc.User, channel: Any, permissions: list[str]) -> discord.Embed:
    embed = generate_blank_embed(author, discord.Color.red())
    embed.title = "Missing Channel Permissions"
    embed.description = (
        f"I need the following permissions in {getattr(channel, 'mention', channel)}: "
        + ", ".join(f"`{perm}`" for perm in permissions)
    )
    return embed


def invalid_id_embed(author: discord.abc.User, what: str = "ID") -> discord.Embed:
    embed = generate_blank_embed(author, discord.Color.red())
    embed.title = f"Invalid {what}"
    embed.description = f"Please mention a valid {what.lower()} or provide its ID."
    return embed


def default_error_embed(author: discord.abc.User | None, description: str) -> discord.Embed:
    embed = generate_blank_embed(author, discord.Color.red())
    embed.title = "Error"
    embed.description = description
    return embed


def no_profile_embed(author: discord.abc.User) -> discord.Embed:
    embed = generate_blank_embed(author, discord.Color.red())
    embed.title = "No Profile Found"
    embed.description = (
        "You do not have a profile yet. Verify in a server that uses me to create one, then try again."
    )
    return embed


async def send_temporary(
    channel: discord.abc.Messageable,
    content: str | None = None,
    *,
    embed: discord.Embed | None = None,
    delete_after: float | None = None,
) -> Optional[discord.Message]:
    """Send a notice that deletes itself after ``delete_after`` seconds.

    Defaults to the configured notice lifetime. Returns None if the channel
    refused the message.
    """
    lifetime = app_config.delete_embed_seconds if delete_after is None else delete_after
    try:
        return await channel.send(content=content, embed=embed, delete_after=lifetime)
    except discord.HTTPException as exc:
        logger.warning("Could not send temporary message: %s", exc)
        return None


async def try_delete(message: discord.Message | None) -> bool:
    """Delete a message, ignoring messages that are already gone or off limits."""
    if message is None:
        return False
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return False
    except discord.HTTPException as exc:
        logger.debug("Could not delete message %s: %s", getattr(message, "id", "?"), exc)
        return False


async def try_dm(user: discord.abc.User, content: str | None = None, *, embed: discord.Embed | None = None) -> Optional[discord.Message]:
    """DM a user, returning None when their DMs are closed."""
    try:
        return await user.send(content=content, embed=embed)
    except discord.HTTPException as exc:
        logger.debug("Could not DM user %s: %s", user.id, exc)
        return None


async def send_log(
    guild: discord.Guild,
    channel_id: int | None,
    content: str | None = None,
    *,
    embed: discord.Embed | None = None,
) -> None:
    """Post to a configured logging channel, if it exists."""
    if not channel_id:
        return
    channel = guild.get_channel(channel_id)
    if not isinstance(channel, discord.TextChannel):
        return
    try:
        await channel.send(content=content, embed=embed)
    except discord.HTTPException as exc:
        logger.warning("Could not log to channel %s in %s: %s", channel_id, guild.name, exc)
