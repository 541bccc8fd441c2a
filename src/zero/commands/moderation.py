"""
Moderation commands: blacklist, mutes, suspensions and member lookup.

Mutes and suspensions are recorded on the guild document and, when timed,
handed to :data:`PUNISHMENT_SCHEDULER` which lifts them on expiry.
"""

from __future__ import annotations

import datetime
import time
from typing import List, Optional, Tuple

import discord

from zero.commands.command import Command, CommandContext, CommandDetail, CommandPermission
from zero.datatypes.guild_document import BlacklistEntry, GuildDocument, PunishmentEntry
from zero.datatypes.user_document import ModerationRecord
from zero.scheduler.punishment_scheduler import (
    PUNISHMENT_SCHEDULER,
    PunishmentKind,
    lift_punishment,
    punishment_entries,
    punishment_log_channel,
)
from zero.scheduler.user_cache_scheduler import USER_CACHE_SCHEDULER
from zero.services.guild_service import guild_service
from zero.services.user_service import user_service
from zero.util.logger import get_logger
from zero.util.message_utils import default_error_embed, generate_blank_embed, no_user_found_embed, send_log, send_temporary
from zero.util.string_utils import format_duration, parse_duration, strip_non_letters
from zero.util.user_handler import names_of, resolve_member

logger = get_logger("moderation_commands")

NO_REASON = "No reason provided."


def now_ms() -> int:
    return int(time.time() * 1000)


def split_duration(args: List[str]) -> Tuple[Optional[int], List[str]]:
    """Pop a leading duration (``30m``, ``2d``) off ``args``."""
    if args:
        seconds = parse_duration(args[0])
        if seconds is not None:
            return seconds, args[1:]
    return None, args


def punishment_embed(
    kind: PunishmentKind, member: discord.Member, moderator: discord.abc.User, reason: str, duration: Optional[int]
) -> discord.Embed:
    embed = discord.Embed(
        title=f"🔇 {kind.label} Issued",
        description=f"{member.mention} (`{member.id}`) is now under a {kind.value}.",
        color=discord.Color.red(),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.add_field(name="Moderator", value=f"{moderator.mention} (`{moderator.id}`)")
    embed.add_field(name="Duration", value=format_duration(duration) if duration is not None else "Indefinite")
    embed.add_field(name="Reason", value=reason, inline=False)
    return embed


async def record_on_profile(
    member: discord.Member, kind: str, moderator: discord.abc.User, reason: str, duration: Optional[int]
) -> None:
    record = ModerationRecord(
        server=member.guild.id,
        kind=kind,
        moderator=moderator.id,
        reason=reason,
        issued_at=now_ms(),
        duration=duration * 1000 if duration is not None else None,
    )
    await user_service.update_profile(member.id, lambda profile: profile.moderation_history.append(record))


async def _resolve_or_complain(context: CommandContext, query: str, guild_doc: GuildDocument) -> Optional[discord.Member]:
    member = await resolve_member(context.guild, query, guild_doc)
    if member is None:
        await send_temporary(context.channel, embed=no_user_found_embed(context.author, query))
    return member


async def _reply(context: CommandContext, title: str, description: str, color: discord.Color) -> None:
    embed = generate_blank_embed(context.author, color)
    embed.title = title
    embed.description = description
    await context.channel.send(embed=embed)


class BlacklistCommand(Command):
    detail = CommandDetail(
        name="Blacklist Command",
        command_code="blacklist",
        description="Prevents an in-game name from verifying in this server.",
        usage=["blacklist <in-game name> <reason>"],
        examples=["blacklist Alchemist Crashing runs."],
        arg_count=2,
    )
    permission = CommandPermission(bot_permissions=["manage_roles"], role_permissions=["moderator"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        name = strip_non_letters(args[0]).lower()
        reason = " ".join(args[1:])
        if not name:
            await send_temporary(context.channel, embed=default_error_embed(context.author, "Please provide a valid in-game name."))
            return
        if guild_doc.moderation.is_blacklisted(name):
            await send_temporary(context.channel, embed=default_error_embed(context.author, f"`{name}` is already blacklisted."))
            return

        entry = BlacklistEntry(in_game_name=name, reason=reason, moderator=context.author.id, issued_at=now_ms())

        def add(document: GuildDocument) -> None:
            if not document.moderation.is_blacklisted(name):
                document.moderation.blacklisted_users.append(entry)

        document = await guild_service.update(context.guild.id, add)

        stripped = ""
        member = await resolve_member(context.guild, name, document)
        if member is not None and name in names_of(member):
            verified_ids = {section.verified_role for section in document.all_sections() if section.verified_role}
            roles = [role for role in member.roles if role.id in verified_ids]
            if roles:
                try:
                    await member.remove_roles(*roles, reason=f"Blacklisted: {reason}")
                    stripped = f"\nRemoved the verified roles of {member.mention}."
                except discord.HTTPException as exc:
                    logger.warning("[MODERATION] Could not remove roles of %s: %s", member, exc)

        logger.info("[MODERATION] %s blacklisted %s in %s", context.author, name, context.guild.name)
        await send_log(
            context.guild,
            document.channels.logging.moderation,
            f"⛔ **`{name}`** has been blacklisted by {context.author.mention}. Reason: {reason}",
        )
        await _reply(context, "Blacklisted", f"**`{name}`** has been blacklisted.\n**Reason:** {reason}{stripped}", discord.Color.red())


class UnblacklistCommand(Command):
    detail = CommandDetail(
        name="Unblacklist Command",
        command_code="unblacklist",
        description="Removes an in-game name from the blacklist.",
        usage=["unblacklist <in-game name>"],
        examples=["unblacklist Alchemist"],
        arg_count=1,
    )
    permission = CommandPermission(role_permissions=["moderator"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        name = strip_non_letters(args[0]).lower()
        removed: List[BlacklistEntry] = []

        def remove(document: GuildDocument) -> None:
            entries = document.moderation.blacklisted_users
            removed.extend(entry for entry in entries if entry.in_game_name == name)
            entries[:] = [entry for entry in entries if entry.in_game_name != name]

        document = await guild_service.update(context.guild.id, remove)
        if not removed:
            await send_temporary(context.channel, embed=default_error_embed(context.author, f"`{name}` is not blacklisted."))
            return

        logger.info("[MODERATION] %s unblacklisted %s in %s", context.author, name, context.guild.name)
        await send_log(
            context.guild,
            document.channels.logging.moderation,
            f"✅ **`{name}`** has been unblacklisted by {context.author.mention}.",
        )
        await _reply(context, "Unblacklisted", f"**`{name}`** is no longer blacklisted.", discord.Color.green())


class _PunishCommand(Command):
    """Shared flow of ``mute`` and ``suspend``."""

    kind: PunishmentKind
    duration_required = False

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        member = await _resolve_or_complain(context, args[0], guild_doc)
        if member is None:
            return

        duration, rest = split_duration(args[1:])
        if duration is None and self.duration_required:
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, "Please provide a duration such as `30m`, `12h` or `3d`."),
            )
            return
        if duration is not None and duration <= 0:
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, "The duration must be longer than zero."),
            )
            return
        reason = " ".join(rest) or NO_REASON

        role_id = guild_doc.roles.muted if self.kind is PunishmentKind.MUTE else guild_doc.roles.suspended
        role = context.guild.get_role(role_id) if role_id else None
        if role is None:
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, f"This server has no {self.kind.label.lower()} role configured."),
            )
            return
        if any(entry.user_id == member.id for entry in punishment_entries(guild_doc, self.kind)):
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, f"{member.mention} is already under a {self.kind.value}."),
            )
            return

        saved_roles = await self.apply_roles(member, role, guild_doc, reason)
        if saved_roles is None:
            await send_temporary(
                context.channel, embed=default_error_embed(context.author, f"I could not change the roles of {member.mention}.")
            )
            return

        issued = now_ms()
        entry = PunishmentEntry(
            user_id=member.id,
            moderator_id=context.author.id,
            reason=reason,
            issued_at=issued,
            expires_at=issued + duration * 1000 if duration is not None else None,
            roles=saved_roles,
        )
        document = await guild_service.update(
            context.guild.id, lambda doc: punishment_entries(doc, self.kind).append(entry)
        )
        if entry.expires_at is not None:
            await PUNISHMENT_SCHEDULER.schedule(context.guild, member.id, self.kind, entry.expires_at)

        await record_on_profile(member, self.kind.value, context.author, reason, duration)
        embed = punishment_embed(self.kind, member, context.author, reason, duration)
        await send_log(context.guild, punishment_log_channel(document, self.kind), embed=embed)
        logger.info("[MODERATION] %s issued a %s to %s in %s", context.author, self.kind.value, member, context.guild.name)
        await context.channel.send(embed=embed)

    async def apply_roles(
        self, member: discord.Member, role: discord.Role, guild_doc: GuildDocument, reason: str
    ) -> Optional[List[int]]:
        """Give the punishment role. Returns the IDs of roles taken away, or None on failure."""
        try:
            await member.add_roles(role, reason=reason)
        except discord.HTTPException as exc:
            logger.warning("[MODERATION] Could not add %s to %s: %s", role, member, exc)
            return None
        return []


class _LiftCommand(Command):
    kind: PunishmentKind

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        member = await _resolve_or_complain(context, args[0], guild_doc)
        if member is None:
            return
        reason = " ".join(args[1:]) or NO_REASON

        await PUNISHMENT_SCHEDULER.cancel(context.guild.id, member.id, self.kind)
        entry = await lift_punishment(context.guild, member.id, self.kind, reason, context.author)
        if entry is None:
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, f"{member.mention} is not under a {self.kind.value}."),
            )
            return
        await _reply(
            context, f"{self.kind.label} Lifted", f"{member.mention} is no longer under a {self.kind.value}.", discord.Color.green()
        )


class MuteCommand(_PunishCommand):
    detail = CommandDetail(
        name="Mute Command",
        command_code="mute",
        description="Mutes a member, optionally for a limited time.",
        usage=["mute <member> [duration] [reason]"],
        examples=["mute @Raider 30m Spamming.", "mute Alchemist Being rude."],
        arg_count=1,
    )
    permission = CommandPermission(bot_permissions=["manage_roles"], role_permissions=["support"])
    kind = PunishmentKind.MUTE


class UnmuteCommand(_LiftCommand):
    detail = CommandDetail(
        name="Unmute Command",
        command_code="unmute",
        description="Lifts the mute of a member.",
        usage=["unmute <member> [reason]"],
        examples=["unmute @Raider"],
        arg_count=1,
    )
    permission = CommandPermission(bot_permissions=["manage_roles"], role_permissions=["support"])
    kind = PunishmentKind.MUTE


class SuspendCommand(_PunishCommand):
    detail = CommandDetail(
        name="Suspend Command",
        command_code="suspend",
        description="Suspends a member from raids for a limited time.",
        usage=["suspend <member> <duration> <reason>"],
        examples=["suspend @Raider 3d Leeching."],
        arg_count=3,
    )
    permission = CommandPermission(bot_permissions=["manage_roles"], role_permissions=["raid_leader"])
    kind = PunishmentKind.SUSPENSION
    duration_required = True

    async def apply_roles(
        self, member: discord.Member, role: discord.Role, guild_doc: GuildDocument, reason: str
    ) -> Optional[List[int]]:
        section_ids = {section.verified_role for section in guild_doc.all_sections() if section.verified_role}
        taken = [r for r in member.roles if r.id in section_ids]
        try:
            if taken:
                await member.remove_roles(*taken, reason=reason)
            await member.add_roles(role, reason=reason)
        except discord.HTTPException as exc:
            logger.warning("[MODERATION] Could not suspend %s: %s", member, exc)
            return None
        return [r.id for r in taken]


class UnsuspendCommand(_LiftCommand):
    detail = CommandDetail(
        name="Unsuspend Command",
        command_code="unsuspend",
        description="Lifts the suspension of a member and gives back their section roles.",
        usage=["unsuspend <member> [reason]"],
        examples=["unsuspend @Raider Appealed."],
        arg_count=1,
    )
    permission = CommandPermission(bot_permissions=["manage_roles"], role_permissions=["raid_leader"])
    kind = PunishmentKind.SUSPENSION


class FindCommand(Command):
    detail = CommandDetail(
        name="Find Command",
        command_code="find",
        description="Finds a member by in-game name, mention or ID and shows their status.",
        usage=["find <in-game name | mention | id>"],
        examples=["find Alchemist", "find @Raider"],
        arg_count=1,
    )
    permission = CommandPermission(role_permissions=["team"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        query = args[0]
        member = await resolve_member(context.guild, query, guild_doc)
        if member is None:
            owner_id = USER_CACHE_SCHEDULER.lookup(strip_non_letters(query))
            if owner_id is not None:
                member = context.guild.get_member(owner_id)
        if member is None:
            await send_temporary(context.channel, embed=no_user_found_embed(context.author, query))
            return

        profile = await user_service.get_profile(member.id)
        embed = generate_blank_embed(member, discord.Color.blurple())
        embed.title = f"Find: {member.display_name}"
        embed.description = f"{member.mention} (`{member.id}`)"

        names = profile.all_names() if profile else []
        embed.add_field(name="Profile Names", value=", ".join(names) if names else "No profile.", inline=False)

        now = now_ms()
        for kind in PunishmentKind:
            entry = next((e for e in punishment_entries(guild_doc, kind) if e.user_id == member.id), None)
            if entry is None:
                status = "No"
            elif entry.expires_at is None:
                status = f"Yes, indefinitely.\nReason: {entry.reason}"
            else:
                remaining = max(0, (entry.expires_at - now) // 1000)
                status = f"Yes, {format_duration(remaining) if remaining else 'expiring now'} left.\nReason: {entry.reason}"
            embed.add_field(name="Muted" if kind is PunishmentKind.MUTE else "Suspended", value=status)

        checked = names or names_of(member)
        blacklisted = [entry for entry in (guild_doc.moderation.is_blacklisted(name) for name in checked) if entry]
        embed.add_field(
            name="Blacklisted",
            value="\n".join(f"`{entry.in_game_name}`: {entry.reason}" for entry in blacklisted) or "No",
            inline=False,
        )
        await context.channel.send(embed=embed)
