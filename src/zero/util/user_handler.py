"""
Member resolution and staff-role bookkeeping.

Members are addressed in commands by mention, raw ID, or in-game name. Raiders
keep their in-game name (or several, separated by ``|``) as their server
nickname, which is what the name lookup matches against.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

import discord

from zero.datatypes.guild_document import GuildDocument
from zero.util.logger import get_logger
from zero.util.string_utils import compare_two_strings, strip_non_letters

logger = get_logger("user_handler")

MENTION_PATTERN = re.compile(r"^<@!?(\d+)>$")
SIMILARITY_THRESHOLD = 0.75


def get_user_id_from_mention(text: str) -> Optional[int]:
    match = MENTION_PATTERN.match(text.strip())
    return int(match.group(1)) if match else None


def names_of(member: discord.Member) -> List[str]:
    """Lowercase, letters-only in-game names from a member's display name."""
    names = (strip_non_letters(part).lower() for part in member.display_name.split("|"))
    return [name for name in names if name]


def _has_role(member: discord.Member, role_id: Optional[int]) -> bool:
    return role_id is not None and any(role.id == role_id for role in member.roles)


def find_user_by_in_game_name(guild: discord.Guild, name: str, guild_doc: GuildDocument) -> List[discord.Member]:
    """Find verified or suspended members whose nickname matches ``name``.

    An exact match wins outright and is returned alone. Otherwise every member
    with a name at least 75% similar is returned.
    """
    wanted = strip_non_letters(name).lower()
    if not wanted:
        return []

    similar: List[discord.Member] = []
    for member in guild.members:
        if not (_has_role(member, guild_doc.roles.raider) or _has_role(member, guild_doc.roles.suspended)):
            continue

        for candidate in names_of(member):
            if candidate == wanted:
                return [member]
            if compare_two_strings(candidate, wanted) >= SIMILARITY_THRESHOLD and member not in similar:
                similar.append(member)
    return similar


async def resolve_member(guild: discord.Guild, text: str, guild_doc: GuildDocument) -> Optional[discord.Member]:
    """Resolve a mention, an ID, or a uniquely matching in-game name to a member."""
    user_id = get_user_id_from_mention(text)
    if user_id is None and text.strip().isdigit():
        user_id = int(text.strip())

    if user_id is not None:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException:
            return None

    matches = find_user_by_in_game_name(guild, text, guild_doc)
    return matches[0] if len(matches) == 1 else None


async def resolve_multiple_members(
    guild: discord.Guild, queries: Iterable[str], guild_doc: GuildDocument
) -> Tuple[List[discord.Member], List[str]]:
    """Resolve several queries; returns the members found and the queries that failed."""
    found: List[discord.Member] = []
    failed: List[str] = []
    for query in queries:
        member = await resolve_member(guild, query, guild_doc)
        if member is None:
            failed.append(query)
        elif member not in found:
            found.append(member)
    return found, failed


async def fetch_user(bot: discord.Client, user_id: int) -> Optional[discord.User]:
    user = bot.get_user(user_id)
    if user is not None:
        return user
    try:
        return await bot.fetch_user(user_id)
    except discord.HTTPException:
        return None


async def manage_staff_role(member: discord.Member, guild_doc: GuildDocument) -> None:
    """Give the team role to members holding any staff role and take it from everyone else."""
    team_role_id = guild_doc.roles.team
    if not team_role_id:
        return
    team_role = member.guild.get_role(team_role_id)
    if team_role is None:
        return

    staff_ids = set(guild_doc.roles.staff_role_ids())
    is_staff = any(role.id in staff_ids for role in member.roles)
    has_team = team_role in member.roles

    try:
        if is_staff and not has_team:
            await member.add_roles(team_role, reason="Member holds a staff role.")
            logger.info("[USER HANDLER] Added team role to %s in %s", member, member.guild.name)
        elif not is_staff and has_team:
            await member.remove_roles(team_role, reason="Member no longer holds a staff role.")
            logger.info("[USER HANDLER] Removed team role from %s in %s", member, member.guild.name)
    except discord.HTTPException as exc:
        logger.warning("[USER HANDLER] Could not update team role of %s: %s", member, exc)
