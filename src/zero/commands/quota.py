"""Quota tracking for staff runs."""

from __future__ import annotations

import time
from typing import List, Optional

import discord

from zero.commands.command import Command, CommandContext, CommandDetail, CommandPermission
from zero.datatypes.guild_document import GuildDocument, QuotaEntry, RunCounts
from zero.services.guild_service import guild_service
from zero.services.user_service import user_service
from zero.util.array_utils import array_to_string_fields, generate_leaderboard_array
from zero.util.date_utils import get_time
from zero.util.logger import get_logger
from zero.util.message_utils import default_error_embed, generate_blank_embed, send_temporary
from zero.util.string_utils import StringBuilder
from zero.util.user_handler import resolve_member

logger = get_logger("quota_commands")

CATEGORY_ALIASES = {
    "general": "general",
    "endgame": "endgame",
    "realmclearing": "realm_clearing",
    "realm_clearing": "realm_clearing",
    "rc": "realm_clearing",
}
RESULT_KINDS = ("completed", "failed", "assists")
MAX_LOGGED_RUNS = 50


def _counts(entry: QuotaEntry) -> str:
    return (
        f"⇒ General: {entry.general}\n"
        f"⇒ Endgame: {entry.endgame}\n"
        f"⇒ Realm Clearing: {entry.realm_clearing}\n"
    )


def add_runs(counts: RunCounts, kind: str, amount: int) -> None:
    setattr(counts, kind, max(0, getattr(counts, kind) + amount))


class CheckQuotaCommand(Command):
    detail = CommandDetail(
        name="Check Quota Command",
        command_code="checkquota",
        aliases=["checkq", "checkquotas"],
        description="Shows your quota status, or someone else's, and the quota leaderboard.",
        usage=["checkquota [member]"],
        examples=["checkquota", "checkquota @Staff"],
    )
    permission = CommandPermission(role_permissions=["team"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        guild = context.guild
        person = await resolve_member(guild, args[0], guild_doc) if args else None
        if person is None:
            person = context.author

        quotas = guild_doc.properties.quotas
        embed = generate_blank_embed(person)
        embed.title = f"**Current Quota Status**: {person.display_name}"
        embed.set_footer(text="Completed / Failed / Assists")

        desc = StringBuilder().append(f"⇒ **Last Reset:** {get_time(quotas.last_reset)}").append_line()
        entry = quotas.entry_for(person.id)
        if entry is None:
            desc.append("⇒ **Notice:** You do not have any runs logged for this quota period.")
        else:
            desc.append(f"⇒ **Last Updated:** {get_time(entry.last_updated)}").append_line(2)
            desc.append(f"⇒ **General:** {entry.general}").append_line()
            desc.append(f"⇒ **Endgame:** {entry.endgame}").append_line()
            desc.append(f"⇒ **Realm Clearing:** {entry.realm_clearing}")
        embed.description = desc.str()

        present = [quota for quota in quotas.details if guild.get_member(quota.member_id) is not None]
        leaderboard = generate_leaderboard_array(present, lambda quota: quota.total)

        def render(_: int, item) -> str:
            place, quota = item
            member = guild.get_member(quota.member_id)
            star = " ⭐" if quota.member_id == person.id else ""
            return f"**`[{place}]`** {member.mention} ({member.display_name}){star}\n⇒ TTL: {quota.total}\n{_counts(quota)}\n"

        for field_value in array_to_string_fields(leaderboard, render, 1012)[:25]:
            embed.add_field(name="Quota Leaderboard", value=field_value, inline=False)
        await context.channel.send(embed=embed)


class LogRunCommand(Command):
    detail = CommandDetail(
        name="Log Run Command",
        command_code="logrun",
        aliases=["lr"],
        description="Logs runs you led toward your quota.",
        usage=["logrun <general | endgame | realmclearing> <completed | failed | assists> [amount]"],
        examples=["logrun general completed", "logrun endgame failed 2"],
        arg_count=2,
    )
    permission = CommandPermission(role_permissions=["team"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        category = CATEGORY_ALIASES.get(args[0].lower())
        kind = args[1].lower()
        if category is None or kind not in RESULT_KINDS:
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, f"Usage: `{context.prefix}{self.detail.usage[0]}`"),
            )
            return

        amount = 1
        if len(args) > 2:
            if not args[2].lstrip("-").isdigit() or not 0 < abs(int(args[2])) <= MAX_LOGGED_RUNS:
                await send_temporary(
                    context.channel,
                    embed=default_error_embed(context.author, f"The amount must be a number between 1 and {MAX_LOGGED_RUNS}."),
                )
                return
            amount = int(args[2])

        author_id = context.author.id
        now = int(time.time() * 1000)

        def log(document: GuildDocument) -> None:
            entry = document.properties.quotas.entry_for(author_id)
            if entry is None:
                entry = QuotaEntry(member_id=author_id)
                document.properties.quotas.details.append(entry)
            add_runs(getattr(entry, category), kind, amount)
            entry.last_updated = now

        document = await guild_service.update(context.guild.id, log)
        await user_service.update_profile(
            author_id, lambda profile: add_runs(getattr(profile.leader_runs_for(context.guild.id), category), kind, amount)
        )
        logger.info("[QUOTA] %s logged %d %s %s run(s) in %s", context.author, amount, kind, category, context.guild.name)

        entry = document.properties.quotas.entry_for(author_id)
        embed = generate_blank_embed(context.author, discord.Color.green())
        embed.title = "Run Logged"
        embed.description = f"Logged `{amount}` {category.replace('_', ' ')} run(s) as **{kind}**.\n\n{_counts(entry)}"
        embed.set_footer(text="Completed / Failed / Assists")
        await context.channel.send(embed=embed)


class ResetQuotasCommand(Command):
    detail = CommandDetail(
        name="Reset Quotas Command",
        command_code="resetquotas",
        description="Clears every logged run and starts a new quota period.",
        usage=["resetquotas"],
        examples=["resetquotas"],
    )
    permission = CommandPermission(role_permissions=["officer"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        now = int(time.time() * 1000)
        cleared: List[int] = []

        def reset(document: GuildDocument) -> None:
            quotas = document.properties.quotas
            cleared.append(len(quotas.details))
            quotas.details.clear()
            quotas.last_reset = now

        await guild_service.update(context.guild.id, reset)
        logger.info("[QUOTA] %s reset %d quota entries in %s", context.author, cleared[0], context.guild.name)

        embed = generate_blank_embed(context.author, discord.Color.green())
        embed.title = "Quotas Reset"
        embed.description = f"Cleared `{cleared[0]}` quota entries. The new period started {get_time(now)}."
        await context.channel.send(embed=embed)

