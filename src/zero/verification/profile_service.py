"""
Profile bookkeeping after a successful verification.

When a member verifies with an in-game name, the profile table may already
know the member, the name, both (possibly as two different profiles), or
neither. :func:`account_in_database` reconciles the table with what was just
proven, using the player's name history to tell a rename from a new account.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from zero.database.db_connection import db_connection
from zero.datatypes.errors import ProfileNotFoundError
from zero.datatypes.realmeye import NameHistoryEntry
from zero.datatypes.user_document import (
    AltName,
    CompletedRuns,
    KeyPops,
    LeaderRuns,
    UserDocument,
    VoidVials,
    WcOryx,
)
from zero.repositories import UserRepository, UserRow
from zero.services.user_service import now_ms
from zero.util.logger import get_logger

logger = get_logger("profile_service")

_repo = UserRepository()


async def account_in_database(discord_user_id: int, name: str, name_history: Sequence[NameHistoryEntry]) -> UserDocument:
    """Make the profile table agree with a member who just proved they own ``name``.

    * Profiles exist for both the member and the name: they are merged.
    * Neither exists: a new profile is created.
    * Only the member's profile exists: if an older name in ``name_history``
      matches the main or an alternate name, that name is renamed in place.
      Otherwise ``name`` becomes the main name and the old main an alternate.
    * Only the name's profile exists: it is re-linked to the member.

    ``name_history`` is the player's history with the current name first.
    """
    async with db_connection.transaction() as conn:
        by_id = await _repo.get_by_discord_id(conn, discord_user_id)
        by_name = await _repo.get_by_name(conn, name)

        if by_id is not None and by_name is not None:
            if by_id.row_id == by_name.row_id:
                return by_id.document
            return await _merge(conn, discord_user_id, name)

        if by_id is None and by_name is None:
            document = UserDocument.new(discord_user_id, name, now_ms())
            await _repo.insert(conn, document)
            logger.info("[PROFILE SERVICE] New profile %s for %s", name, discord_user_id)
            return document

        if by_id is not None:
            rename_from_history(by_id.document, name, name_history[1:])
            by_id.document.last_modified = now_ms()
            await _repo.update(conn, by_id)
            return by_id.document

        by_name.document.discord_user_id = discord_user_id
        by_name.document.last_modified = now_ms()
        await _repo.update(conn, by_name)
        logger.info("[PROFILE SERVICE] Re-linked profile %s to %s", name, discord_user_id)
        return by_name.document


def _match_history(profile: UserDocument, older_names: Sequence[NameHistoryEntry]) -> Tuple[Optional[str], bool]:
    """Find a stored name that appears among ``older_names``.

    Returns the matching previous name (or None) and whether it is the main
    name. Stored names are scanned in order (main first, then
    alternates) and the last one found in the history wins.
    """
    stored = [profile.lowercase_name, *(alt.lowercase for alt in profile.other_accounts)]
    name_to_replace = None
    is_main = False
    for index, stored_name in enumerate(stored):
        for entry in older_names:
            if stored_name == entry.name.lower():
                name_to_replace = entry.name
                if index == 0:
                    is_main = True
    return name_to_replace, is_main


def rename_from_history(profile: UserDocument, name: str, older_names: Sequence[NameHistoryEntry]) -> None:
    """Apply a verified main ``name`` to ``profile`` given the player's previous names.

    A previous name already on the profile means the player renamed that
    account, so it is replaced in place.
    """
    name_to_replace, is_main = _match_history(profile, older_names)
    if name_to_replace is None:
        new_name_entry(profile, name)
    elif is_main:
        profile.set_main_name(name)
    else:
        profile.other_accounts[profile.alt_index(name_to_replace)] = AltName.of(name)


def add_alt_from_history(profile: UserDocument, name: str, older_names: Sequence[NameHistoryEntry]) -> None:
    """Like :func:`rename_from_history`, but an unknown ``name`` becomes a new alternate."""
    name_to_replace, is_main = _match_history(profile, older_names)
    if name_to_replace is None:
        if not profile.has_name(name):
            profile.other_accounts.append(AltName.of(name))
    elif is_main:
        profile.set_main_name(name)
    else:
        profile.other_accounts[profile.alt_index(name_to_replace)] = AltName.of(name)


def new_name_entry(profile: UserDocument, name: str) -> None:
    """Make ``name`` the main name and keep the previous main as an alternate."""
    if profile.lowercase_name == name.lower():
        return
    index = profile.alt_index(name)
    if index != -1:
        profile.other_accounts.pop(index)
    profile.other_accounts.append(AltName.of(profile.display_name))
    profile.set_main_name(name)


async def merge_profiles(discord_user_id: int, name: str) -> UserDocument:
    """Fold every profile owned by the member or claiming ``name`` into one.

    Raises:
        ProfileNotFoundError: If no profile matches at all.
    """
    async with db_connection.transaction() as conn:
        return await _merge(conn, discord_user_id, name)


async def _merge(conn, discord_user_id: int, name: str) -> UserDocument:
    rows: List[UserRow] = await _repo.find_matching(conn, [name], discord_user_id)
    if not rows:
        raise ProfileNotFoundError(f"No profiles found for {name} / {discord_user_id}")
    if len(rows) == 1:
        return rows[0].document

    merged = combine_profiles(discord_user_id, name, [row.document for row in rows])
    await _repo.delete(conn, [row.row_id for row in rows])
    await _repo.insert(conn, merged)
    logger.info("[PROFILE SERVICE] Merged %d profiles into %s for %s", len(rows), name, discord_user_id)
    return merged


def combine_profiles(discord_user_id: int, name: str, profiles: Sequence[UserDocument]) -> UserDocument:
    """Build one profile out of several, summing per-server counters."""
    merged = UserDocument.new(discord_user_id, name, now_ms())

    for profile in profiles:
        for display_name in profile.all_names():
            if not merged.has_name(display_name):
                merged.other_accounts.append(AltName.of(display_name))

        key_pops: Dict[int, KeyPops] = {entry.server: entry for entry in merged.key_pops}
        for entry in profile.key_pops:
            if entry.server in key_pops:
                key_pops[entry.server].keys_popped += entry.keys_popped
            else:
                key_pops[entry.server] = KeyPops(entry.server, entry.keys_popped)
                merged.key_pops.append(key_pops[entry.server])

        vials: Dict[int, VoidVials] = {entry.server: entry for entry in merged.void_vials}
        for entry in profile.void_vials:
            if entry.server in vials:
                vials[entry.server].popped += entry.popped
                vials[entry.server].stored += entry.stored
            else:
                vials[entry.server] = VoidVials(entry.server, entry.popped, entry.stored)
                merged.void_vials.append(vials[entry.server])

        oryx: Dict[int, WcOryx] = {entry.server: entry for entry in merged.wc_oryx}
        for entry in profile.wc_oryx:
            target = oryx.get(entry.server)
            if target is None:
                target = oryx[entry.server] = WcOryx(entry.server)
                merged.wc_oryx.append(target)
            target.wc_incs = target.wc_incs.add(entry.wc_incs)
            target.sword_rune = target.sword_rune.add(entry.sword_rune)
            target.helm_rune = target.helm_rune.add(entry.helm_rune)
            target.shield_rune = target.shield_rune.add(entry.shield_rune)

        completed: Dict[int, CompletedRuns] = {entry.server: entry for entry in merged.completed_runs}
        for entry in profile.completed_runs:
            target = completed.get(entry.server)
            if target is None:
                target = completed[entry.server] = CompletedRuns(entry.server)
                merged.completed_runs.append(target)
            target.general += entry.general
            target.endgame += entry.endgame
            target.realm_clearing += entry.realm_clearing

        led: Dict[int, LeaderRuns] = {entry.server: entry for entry in merged.leader_runs}
        for entry in profile.leader_runs:
            target = led.get(entry.server)
            if target is None:
                target = led[entry.server] = LeaderRuns(entry.server)
                merged.leader_runs.append(target)
            target.general = target.general.add(entry.general)
            target.endgame = target.endgame.add(entry.endgame)
            target.realm_clearing = target.realm_clearing.add(entry.realm_clearing)

        merged.moderation_history.extend(profile.moderation_history)

    return merged
