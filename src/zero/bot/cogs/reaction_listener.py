"""Reaction listener Cog for Zero.

Reactions drive two flows: ✅ on a section's control message starts a
verification, and ☑️ / ❌ on a manual verification request resolves it.
Raw events are used so reactions on messages sent before a restart count.
"""

from typing import Optional, Tuple

import discord
from discord.ext import commands

from zero.commands.command_manager import TEAM_ROLE, CommandManager
from zero.datatypes.guild_document import GuildDocument, ManualVerificationEntry, Section
from zero.services.guild_service import guild_service
from zero.util.logger import get_logger
from zero.util.message_utils import try_delete
from zero.verification.handler import ACCEPT_EMOJI, CANCEL_EMOJI, CHECK_EMOJI, verification_handler

logger = get_logger("reaction_listener_cog")


def find_manual_entry(
    document: GuildDocument, message_id: int
) -> Tuple[Optional[Section], Optional[ManualVerificationEntry]]:
    for section in document.all_sections():
        for entry in section.manual_verification_entries:
            if entry.message_id == message_id:
                return section, entry
    return None, None


def is_team_member(member: discord.Member, document: GuildDocument) -> bool:
    if member.guild_permissions.administrator:
        return True
    allowed = set(CommandManager.named_role_ids(document, TEAM_ROLE))
    return any(role.id in allowed for role in member.roles)


class ReactionListenerCog(commands.Cog):
    """Cog handling verification reactions."""

    def __init__(self, discord_bot_instance):
        self.bot = discord_bot_instance
        logger.info("Reaction listener cog loaded")

    @commands.Cog.listener(name="on_raw_reaction_add")
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent):
        if payload.guild_id is None or payload.member is None or payload.member.bot:
            return
        guild = self.bot.get_guild(payload.guild_id)
        if guild is None:
            return
        document = await guild_service.get(guild.id)
        if document is None:
            return

        emoji = str(payload.emoji)
        section = document.section_by_control_message(payload.message_id)
        if section is not None:
            if emoji != CHECK_EMOJI:
                return
            await self._remove_reaction(guild, payload)
            await verification_handler.verify_user(self.bot, payload.member, document, section)
            return

        if emoji not in (ACCEPT_EMOJI, CANCEL_EMOJI):
            return
        section, entry = find_manual_entry(document, payload.message_id)
        if entry is None or not is_team_member(payload.member, document):
            return
        await self._resolve_manual(guild, document, section, entry, payload, accepted=emoji == ACCEPT_EMOJI)

    async def _resolve_manual(
        self,
        guild: discord.Guild,
        document: GuildDocument,
        section: Section,
        entry: ManualVerificationEntry,
        payload: discord.RawReactionActionEvent,
        accepted: bool,
    ) -> None:
        request = await self._fetch_message(guild, payload.channel_id, payload.message_id)
        member = guild.get_member(entry.user_id)
        if member is None:
            def drop(doc: GuildDocument) -> None:
                target = doc.find_section(section.name)
                if target is not None:
                    target.manual_verification_entries[:] = [
                        e for e in target.manual_verification_entries if e.message_id != entry.message_id
                    ]

            await guild_service.update(guild.id, drop)
            await try_delete(request)
            logger.info("Dropped manual verification of %s who left %s", entry.user_id, guild.name)
            return

        if accepted:
            await verification_handler.accept_manual_verification(member, payload.member, document, section, entry, request)
        else:
            await verification_handler.deny_manual_verification(member, payload.member, section, entry, request)

    @staticmethod
    async def _fetch_message(guild: discord.Guild, channel_id: int, message_id: int) -> Optional[discord.Message]:
        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            return None
        try:
            return await channel.fetch_message(message_id)
        except discord.HTTPException as exc:
            logger.debug("Could not fetch message %s: %s", message_id, exc)
            return None

    @staticmethod
    async def _remove_reaction(guild: discord.Guild, payload: discord.RawReactionActionEvent) -> None:
        channel = guild.get_channel(payload.channel_id)
        if not isinstance(channel, discord.TextChannel):
            return
        try:
            await channel.get_partial_message(payload.message_id).remove_reaction(payload.emoji, payload.member)
        except discord.HTTPException as exc:
            logger.debug("Could not remove reaction: %s", exc)


def setup(discord_bot_instance):
    """Register the ReactionListenerCog with the bot."""
    discord_bot_instance.add_cog(ReactionListenerCog(discord_bot_instance))
