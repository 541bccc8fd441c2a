"""Event listener Cog for Zero.

This cog handles bot lifecycle events and guild membership changes.
Messages and reactions are handled by their own cogs.
"""

import datetime

import discord
from discord.ext import commands

from zero.configuration.app_configuration import app_config
from zero.datatypes.guild_document import LOGGING_CHANNEL_FIELDS, ROLE_FIELDS, GuildDocument
from zero.scheduler.punishment_scheduler import (
    PUNISHMENT_SCHEDULER,
    PunishmentKind,
    punishment_entries,
    punishment_log_channel,
    punishment_role_id,
)
from zero.scheduler.user_cache_scheduler import USER_CACHE_SCHEDULER
from zero.services.guild_service import guild_service
from zero.util.logger import get_logger
from zero.util.message_utils import send_log
from zero.util.user_handler import manage_staff_role

logger = get_logger("events_listener")

SECTION_CHANNEL_FIELDS = [
    "verification_channel",
    "manual_verification_channel",
    "verification_attempts_channel",
    "verification_success_channel",
]


def clear_role_id(document: GuildDocument, role_id: int) -> None:
    """Forget every reference to a deleted role."""
    roles = document.roles
    for name in ROLE_FIELDS:
        if getattr(roles, name) == role_id:
            setattr(roles, name, None)
    roles.talking_roles[:] = [rid for rid in roles.talking_roles if rid != role_id]
    for tier in roles.key_tiers:
        if tier.role == role_id:
            tier.role = None
    for section in document.sections:
        if section.verified_role == role_id:
            section.verified_role = None


def clear_channel_id(document: GuildDocument, channel_id: int) -> None:
    """Forget every reference to a deleted channel."""
    channels = document.channels
    for name in ("verification", "manual_verification", "control_panel"):
        if getattr(channels, name) == channel_id:
            setattr(channels, name, None)
    for name in LOGGING_CHANNEL_FIELDS:
        if getattr(channels.logging, name) == channel_id:
            setattr(channels.logging, name, None)
    for section in document.sections:
        for name in SECTION_CHANNEL_FIELDS:
            if getattr(section, name) == channel_id:
                setattr(section, name, None)


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and guild membership handlers."""

    def __init__(self, discord_bot_instance):
        self.bot = discord_bot_instance
        logger.debug("[COGS] Events listener ready")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        """
        Runs after every (re)connect: presence, one document per guild,
        timed punishments back on the scheduler, and the name cache refresh.
        """
        await self.bot.change_presence(
            activity=discord.Activity(type=discord.ActivityType.watching, name=app_config.presence_text)
        )
        if self.bot.user is None:
            logger.warning("[READY] Gateway ready without a user object")
        else:
            logger.info("[READY] Logged in as %s (%s)", self.bot.user, self.bot.user.id)

        for guild in self.bot.guilds:
            await guild_service.get_or_create(guild.id)
        logger.info("[READY] Guild documents ready for %d guilds", len(self.bot.guilds))

        await PUNISHMENT_SCHEDULER.restore(self.bot)
        if not USER_CACHE_SCHEDULER.is_running:
            USER_CACHE_SCHEDULER.start()

    @commands.Cog.listener(name="on_guild_join")
    async def on_guild_join(self, guild: discord.Guild):
        await guild_service.get_or_create(guild.id)
        logger.info("Joined guild %s (%s)", guild.name, guild.id)

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member):
        document = await guild_service.get(member.guild.id)
        if document is None:
            return

        for kind in PunishmentKind:
            if not any(entry.user_id == member.id for entry in punishment_entries(document, kind)):
                continue
            role_id = punishment_role_id(document, kind)
            role = member.guild.get_role(role_id) if role_id else None
            if role is None:
                continue
            try:
                await member.add_roles(role, reason=f"Rejoined while under a {kind.value}.")
            except discord.HTTPException as exc:
                logger.warning("Could not re-apply %s to %s: %s", kind.value, member, exc)
                continue
            await send_log(
                member.guild,
                punishment_log_channel(document, kind),
                f"🔇 {member.mention} rejoined the server while under a {kind.value}; the role has been re-applied.",
            )

        await self._log_membership(member, document, joined=True)

    @commands.Cog.listener(name="on_member_remove")
    async def on_member_remove(self, member: discord.Member):
        document = await guild_service.get(member.guild.id)
        if document is not None:
            await self._log_membership(member, document, joined=False)

    @staticmethod
    async def _log_membership(member: discord.Member, document: GuildDocument, joined: bool) -> None:
        embed = discord.Embed(
            title="📥 Member Joined" if joined else "📤 Member Left",
            description=f"{member.mention} (`{member.id}`)",
            color=discord.Color.green() if joined else discord.Color.red(),
            timestamp=datetime.datetime.now(datetime.timezone.utc),
        )
        embed.set_author(name=str(member), icon_url=member.display_avatar.url)
        if joined:
            embed.add_field(name="Account Created", value=discord.utils.format_dt(member.created_at, "R"))
        await send_log(member.guild, document.channels.logging.join_leave, embed=embed)

    @commands.Cog.listener(name="on_member_update")
    async def on_member_update(self, before: discord.Member, after: discord.Member):
        if before.roles == after.roles:
            return
        document = await guild_service.get(after.guild.id)
        if document is not None:
            await manage_staff_role(after, document)

    @commands.Cog.listener(name="on_guild_role_delete")
    async def on_guild_role_delete(self, role: discord.Role):
        if await guild_service.get(role.guild.id) is None:
            return
        await guild_service.update(role.guild.id, lambda document: clear_role_id(document, role.id))
        logger.info("Cleared deleted role %s from the configuration of %s", role.id, role.guild.name)

    @commands.Cog.listener(name="on_guild_channel_delete")
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel):
        if await guild_service.get(channel.guild.id) is None:
            return
        await guild_service.update(channel.guild.id, lambda document: clear_channel_id(document, channel.id))
        logger.info("Cleared deleted channel %s from the configuration of %s", channel.id, channel.guild.name)


def setup(discord_bot_instance):
    """Register the EventsListenerCog with the bot."""
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance))
