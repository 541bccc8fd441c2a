"""
Member verification against RealmEye.

A member verifies by proving they own an in-game account: they put a one-time
code into their RealmEye description, and the bot checks the code together
with the section's requirements. Members who fall short may be routed to a
manual review channel where staff accept or deny them.

The whole conversation happens in DMs. At most one flow runs per member at a
time, tracked in :attr:`VerificationHandler.in_progress`.
"""

from __future__ import annotations

import asyncio
import re
import string
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

import discord

from zero.configuration.app_configuration import app_config
from zero.datatypes.guild_document import GuildDocument, ManualVerificationEntry, Section
from zero.datatypes.realmeye import LookupFailure, NameHistoryEntry, PlayerProfile
from zero.datatypes.time_unit import TimeUnit
from zero.datatypes.user_document import UserDocument
from zero.realmeye.client import realmeye_client
from zero.services.guild_service import guild_service
from zero.services.user_service import user_service
from zero.ui.auto_tick import MessageAutoTick
from zero.ui.collectors import CollectorResult, GenericMessageCollector, add_reactions
from zero.ui.reaction_menu import FastReactionMenu
from zero.util.array_utils import get_random_element
from zero.util.logger import get_logger
from zero.util.message_utils import default_error_embed, generate_blank_embed, send_log, send_temporary, try_dm
from zero.util.string_utils import StringBuilder, apply_code_block, strip_non_letters
from zero.util.user_handler import find_user_by_in_game_name, names_of
from zero.verification.profile_service import account_in_database, add_alt_from_history
from zero.verification.requirements import RequirementCheck, preliminary_check, requirements_text

logger = get_logger("verification")

CODE_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*()"
CODE_LENGTH = 8
NAME_PATTERN = re.compile(r"^[a-zA-Z]+$")
MAX_NAME_LENGTH = 10

CHECK_EMOJI = "✅"
CANCEL_EMOJI = "❌"
ACCEPT_EMOJI = "☑️"

DEFAULT_SUCCESS_MESSAGE = (
    "You have been successfully verified. Please make sure you read the rules posted in the server, "
    "if any, and any other regulations/guidelines. Good luck and have fun!"
)
STOPPED_FOOTER = "Verification Process: Stopped."


class VerificationKind(Enum):
    GENERAL = "general"
    ALT = "alt"


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(get_random_element(CODE_ALPHABET) for _ in range(length))


def nickname_for(member: discord.Member, name: str) -> str:
    # Discord refuses a nickname equal to the username
    return f"{name}." if member.name == name else name


def _guild_icon(guild: discord.Guild) -> Optional[str]:
    return guild.icon.url if guild.icon else None


async def prompt_in_game_name(
    bot: discord.Client,
    user: discord.abc.User,
    channel: discord.abc.Messageable,
    guild: Optional[discord.Guild] = None,
    profile: Optional[UserDocument] = None,
) -> str | CollectorResult:
    """Ask for an in-game name in DMs.

    With a ``guild`` the name is the member's main name for that server and
    must not belong to somebody else's profile. Without one the name is a new
    alternate account and must not already be on ``profile``.
    """
    embed = discord.Embed(color=discord.Color.random())
    if guild is not None:
        embed.set_author(name=guild.name, icon_url=_guild_icon(guild))
        embed.title = f"Verification For: **{guild.name}**"
        embed.description = (
            "Please type your in-game name now. Your in-game name should be spelled exactly as seen in-game; "
            "however, capitalization does NOT matter.\n\nTo cancel, react with ❌."
        )
    else:
        embed.set_author(name=str(user), icon_url=user.display_avatar.url)
        embed.title = "Verification For: **Alternative Account**"
        embed.description = (
            "Please type the in-game name of your alternative account, or the new name of an account that "
            "changed names. Capitalization does NOT matter.\n\nTo cancel, react with ❌."
        )

    check_shape = GenericMessageCollector.get_string_prompt(
        channel,
        min_chars=1,
        max_chars=MAX_NAME_LENGTH,
        regex=NAME_PATTERN,
        regex_fail_message="Please type a valid in-game name. In-game names only contain letters.",
    )

    async def validate(message: discord.Message) -> Optional[str]:
        name = await check_shape(message)
        if name is None:
            return None

        if guild is None:
            if profile is not None and profile.has_name(name):
                await send_temporary(
                    channel,
                    embed=default_error_embed(user, f"The name `{name}` is already linked to your profile."),
                )
                return None
            return name

        owner = await user_service.get_profile_by_name(name)
        if owner is not None and owner.discord_user_id != user.id:
            await send_temporary(
                channel,
                embed=default_error_embed(user, f"The name `{name}` is already linked to another Discord account."),
            )
            return None
        return name

    collector = GenericMessageCollector(
        bot, user, embed, app_config.name_prompt_timeout, TimeUnit.SECOND, channel=channel, countdown=True
    )
    result = await collector.send_with_reactions(validate, [CANCEL_EMOJI], delete_responses=False)
    if result == CANCEL_EMOJI:
        return CollectorResult.CANCEL
    return result


def verification_embed(guild_name: str, icon_url: Optional[str], name: str, reqs: str, is_old_profile: bool, code: str) -> discord.Embed:
    embed = discord.Embed(color=discord.Color.random())
    embed.set_author(name=guild_name, icon_url=icon_url)
    embed.title = f"Verification For: **{guild_name}**"
    embed.description = (
        f"You have selected the in-game name: **`{name}`**. To access your RealmEye profile, click "
        f"[here](https://www.realmeye.com/player/{name}).\n\nYou are almost done verifying; however, you need "
        f"to do a few more things.\n\nTo stop the verification process, react with ❌."
    )
    embed.add_field(
        name="1. Meet the Requirements",
        value="Ensure you meet the requirements posted. For your convenience, the requirements are listed below."
        + apply_code_block(reqs),
        inline=False,
    )
    if is_old_profile:
        embed.add_field(
            name="2. Get Your Verification Code",
            value="Normally, I would require a verification code for your RealmEye profile; however, because I "
            "recognize you from a different server, you can skip this process completely.",
            inline=False,
        )
    else:
        embed.add_field(
            name="2. Get Your Verification Code",
            value=f"Your verification code is: {apply_code_block(code)}Please put this verification code in one "
            "of your three lines of your RealmEye profile's description.",
            inline=False,
        )
    embed.add_field(
        name="3. Check Profile Settings",
        value="Ensure __anyone__ can view your general profile (stars, alive fame), characters, fame history, and "
        f"name history. You can access your profile settings [here](https://www.realmeye.com/settings-of/{name}).",
        inline=False,
    )
    embed.add_field(
        name="4. Wait",
        value="Before you react with the check, make sure you wait. RealmEye may sometimes take up to 30 seconds "
        "to fully register your changes!",
        inline=False,
    )
    embed.add_field(
        name="5. Confirm",
        value="React with ✅ to begin the verification check. If you have already reacted, un-react and react again.",
        inline=False,
    )
    return embed


class VerificationHandler:
    """Runs verification conversations and manual verification decisions."""

    def __init__(self) -> None:
        self.in_progress: Dict[int, VerificationKind] = {}

    def is_busy(self, user_id: int) -> bool:
        return user_id in self.in_progress

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def verify_user(
        self,
        bot: discord.Client,
        member: discord.Member,
        guild_doc: GuildDocument,
        section: Section,
    ) -> None:
        """Start a verification flow for ``member`` in ``section``, if one is due."""
        role = member.guild.get_role(section.verified_role) if section.verified_role else None
        if role is None or role in member.roles or self.is_busy(member.id):
            return

        pending = next(
            (
                candidate
                for candidate in guild_doc.all_sections()
                if any(entry.user_id == member.id for entry in candidate.manual_verification_entries)
            ),
            None,
        )
        if pending is not None:
            await try_dm(
                member,
                f"**`[{member.guild.name}]`**: Your profile is currently under manual review in the "
                f"**`{pending.name}`** section. Please wait for a staff member to review it.",
            )
            return

        self.in_progress[member.id] = VerificationKind.GENERAL
        try:
            if section.is_main:
                await self._verify_main(bot, member, guild_doc, section, role)
            else:
                await self._verify_section(member, guild_doc, section, role)
        except discord.Forbidden:
            logger.info("[VERIFICATION] Cannot DM %s in %s", member, member.guild.name)
            await send_log(
                member.guild,
                section.verification_attempts_channel,
                f"⛔ **`[{section.name}]`** {member.mention} tried to verify, but their direct messages are closed.",
            )
        finally:
            self.in_progress.pop(member.id, None)

    async def verify_alt(self, bot: discord.Client, user: discord.abc.User, profile: UserDocument) -> bool:
        """Link another in-game account to ``user``'s profile. Returns True once linked."""
        if self.is_busy(user.id):
            return False

        self.in_progress[user.id] = VerificationKind.ALT
        try:
            return await self._verify_alt(bot, user, profile)
        finally:
            self.in_progress.pop(user.id, None)

    # ------------------------------------------------------------------
    # Main section
    # ------------------------------------------------------------------

    async def _verify_main(
        self,
        bot: discord.Client,
        member: discord.Member,
        guild_doc: GuildDocument,
        section: Section,
        role: discord.Role,
    ) -> None:
        guild = member.guild
        dm = await member.create_dm()
        await send_log(
            guild,
            section.verification_attempts_channel,
            f"▶️ **`[{section.name}]`** {member.mention} has started the verification process.",
        )

        profile = await user_service.get_profile(member.id)
        name: Optional[str] = None
        is_old_profile = False

        if profile is not None:
            ask = generate_blank_embed(guild)
            ask.title = f"Verification For: **{guild.name}**"
            ask.description = (
                f"It appears that the name, **`{profile.display_name}`**, is linked to this Discord account. "
                "Do you want to verify using this in-game name? Type `yes` or `no`."
            )
            answer = await GenericMessageCollector(
                bot, member, ask, app_config.name_prompt_timeout, TimeUnit.SECOND, channel=dm, countdown=True
            ).send(GenericMessageCollector.get_yes_no_prompt(dm), delete_responses=False)
            if isinstance(answer, CollectorResult):
                await self._notify_stopped(dm, guild, answer)
                return
            if answer:
                name = profile.display_name
                is_old_profile = True

        if name is None:
            chosen = await prompt_in_game_name(bot, member, dm, guild=guild, profile=profile)
            if isinstance(chosen, CollectorResult):
                await self._notify_stopped(dm, guild, chosen)
                return
            name = chosen

        await send_log(
            guild,
            section.verification_attempts_channel,
            f"⌛ **`[{section.name}]`** {member.mention} will be trying to verify under the in-game name `{name}`.",
        )

        code = generate_code()
        embed = verification_embed(
            guild.name, _guild_icon(guild), name, requirements_text(section), is_old_profile, code
        )
        message = await dm.send(embed=embed)

        async def check(ticker: MessageAutoTick) -> bool:
            return await self._check_main(member, guild_doc, section, role, name, code, is_old_profile, message, embed, ticker)

        await self._confirmation_loop(bot, member, message, embed, check, guild.name)

    async def _confirmation_loop(self, bot, user, message, embed, check, title) -> None:
        """Wait for ✅ presses until ``check`` reports the flow is over.

        ``check`` receives the countdown ticker and stops it before it edits
        the final result into ``message``.
        """
        await add_reactions(message, [CHECK_EMOJI, CANCEL_EMOJI])
        ticker = MessageAutoTick(message, embed, app_config.verification_timeout).start()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + app_config.verification_timeout
        try:
            while True:
                remaining = deadline - loop.time()
                choice = (
                    await FastReactionMenu(
                        bot, message, user, [CHECK_EMOJI, CANCEL_EMOJI], remaining, TimeUnit.SECOND,
                        react_to_message=False,
                    ).react()
                    if remaining > 0
                    else CollectorResult.TIME
                )
                if choice is CollectorResult.TIME or choice == CANCEL_EMOJI:
                    reason = (
                        "the time limit has been reached"
                        if choice is CollectorResult.TIME
                        else "you have stopped the verification process manually"
                    )
                    await self._stop(message, embed, title, f"Your verification process has been stopped because {reason}.", ticker)
                    return
                if await check(ticker):
                    return
        finally:
            ticker.disable()

    async def _check_main(
        self,
        member: discord.Member,
        guild_doc: GuildDocument,
        section: Section,
        role: discord.Role,
        name: str,
        code: str,
        is_old_profile: bool,
        message: discord.Message,
        embed: discord.Embed,
        ticker: MessageAutoTick,
    ) -> bool:
        """Run the verification checks once. Returns True when the flow has ended."""
        guild = member.guild
        attempts = section.verification_attempts_channel

        player = await realmeye_client.get_player(name)
        if player is LookupFailure.REQUEST_FAILED:
            await self._stop(message, embed, guild.name, "An error occurred when trying to connect to RealmEye. Please try again later.", ticker)
            await send_log(guild, attempts, f"⛔ **`[{section.name}]`** {member.mention} tried to verify as `{name}`, but RealmEye could not be reached.")
            return True
        if player is LookupFailure.PLAYER_NOT_FOUND:
            await try_dm(member, "I could not find your RealmEye profile; you probably made your profile private. Ensure your profile's visibility is set to public and try again.")
            await send_log(guild, attempts, f"🚫 **`[{section.name}]`** {member.mention} tried to verify as `{name}`, but the RealmEye profile is private or missing.")
            return False

        history = await realmeye_client.get_name_history(name)
        if history is LookupFailure.REQUEST_FAILED:
            await self._stop(message, embed, guild.name, "An error occurred when trying to read your name history. Please try again later.", ticker)
            return True
        if history is LookupFailure.HISTORY_HIDDEN:
            await try_dm(member, "Your Name History is not public! Set your name history visibility to public and try again.")
            await send_log(guild, attempts, f"🚫 **`[{section.name}]`** {member.mention} tried to verify as `{name}`, but the name history is private.")
            return False

        if not is_old_profile and not player.description_contains(code):
            await try_dm(member, f"Your verification code, `{code}`, wasn't found in your RealmEye description! Make sure the code is on your description and then try again.")
            await send_log(guild, attempts, f"🚫 **`[{section.name}]`** {member.mention} tried to verify as `{name}`, but the verification code was not found.")
            return False

        for candidate in [player.name, *(entry.name for entry in history)]:
            entry = guild_doc.moderation.is_blacklisted(candidate)
            if entry is None:
                continue
            stopped = self._stopped_embed(embed, guild.name, "You have been blacklisted from the server.")
            stopped.add_field(name="Reason", value=entry.reason or "No reason provided.")
            await ticker.stop()
            await message.edit(embed=stopped)
            await send_log(guild, attempts, f"⛔ **`[{section.name}]`** {member.mention} tried to verify as `{name}`, but `{candidate}` is blacklisted.")
            return True

        if player.last_seen != "hidden":
            await try_dm(member, "Your last-seen location is not hidden. Please make sure __no one__ can see your last-seen location and try again.")
            await send_log(guild, attempts, f"🚫 **`[{section.name}]`** {member.mention} tried to verify as `{name}`, but their last-seen location is public.")
            return False

        result = preliminary_check(section, player)
        if not result.passed_all:
            if player.characters_hidden and section.requirements.maxed_stats.required:
                await try_dm(member, "Your characters are hidden. Please make your characters public and try again.")
                return False
            await self._handle_failed(member, guild_doc, section, player, result, history, message, ticker)
            return True

        await ticker.stop()
        await self._grant(member, role, nickname_for(member, player.name))
        success = discord.Embed(
            title=f"Successful Verification: **{guild.name}**",
            description=guild_doc.properties.successful_verification_message or DEFAULT_SUCCESS_MESSAGE,
            color=discord.Color.green(),
        )
        success.set_author(name=guild.name, icon_url=_guild_icon(guild))
        success.set_footer(text=STOPPED_FOOTER)
        await message.edit(embed=success)
        await send_log(
            guild,
            section.verification_success_channel,
            f"📥 **`[{section.name}]`** {member.mention} has successfully been verified as `{player.name}`.",
        )
        logger.info("[VERIFICATION] %s verified as %s in %s", member, player.name, guild.name)

        await account_in_database(member.id, player.name, history)
        await self.find_other_user_and_remove_verified_role(member, guild_doc)
        return True

    # ------------------------------------------------------------------
    # Other sections
    # ------------------------------------------------------------------

    async def _verify_section(
        self,
        member: discord.Member,
        guild_doc: GuildDocument,
        section: Section,
        role: discord.Role,
    ) -> None:
        guild = member.guild
        name = strip_non_letters(member.display_name.split("|")[0])

        if not section.requirements.any_required():
            await self._grant(member, role)
            await send_log(guild, section.verification_success_channel, f"📥 **`[{section.name}]`** {member.mention} has received the section member role.")
            await try_dm(member, f"**`[{guild.name}]`**: You have successfully been verified in the **`{section.name}`** section!")
            return

        if not name:
            await try_dm(member, f"**`[{guild.name}]`**: Your nickname does not contain an in-game name, so I cannot check your profile.")
            return

        player = await realmeye_client.get_player(name)
        if isinstance(player, LookupFailure):
            await try_dm(member, f"**`[{guild.name}]`**: I could not find your RealmEye profile. Make sure your profile is public and try again.")
            return

        result = preliminary_check(section, player)
        if not result.passed_all:
            if player.characters_hidden and section.requirements.maxed_stats.required:
                await try_dm(member, f"**`[{guild.name}]`**: Your characters are hidden. Please make your characters public and try again.")
                return
            await self._handle_failed(member, guild_doc, section, player, result, [])
            return

        await self._grant(member, role)
        await send_log(guild, section.verification_success_channel, f"📥 **`[{section.name}]`** {member.mention} has received the section member role.")
        await try_dm(member, f"**`[{guild.name}]`**: You have successfully been verified in the **`{section.name}`** section!")

    # ------------------------------------------------------------------
    # Alternate accounts
    # ------------------------------------------------------------------

    async def _verify_alt(self, bot: discord.Client, user: discord.abc.User, profile: UserDocument) -> bool:
        dm = await user.create_dm()
        chosen = await prompt_in_game_name(bot, user, dm, guild=None, profile=profile)
        if isinstance(chosen, CollectorResult):
            await self._notify_stopped(dm, None, chosen)
            return False

        code = generate_code()
        embed = verification_embed("Alternative Account", None, chosen, requirements_text(Section(name="Alt", show_requirements=False)), False, code)
        message = await dm.send(embed=embed)
        linked = False

        async def check(ticker: MessageAutoTick) -> bool:
            nonlocal linked
            player = await realmeye_client.get_player(chosen)
            if player is LookupFailure.REQUEST_FAILED:
                await self._stop(message, embed, "Alternative Account", "An error occurred when trying to connect to RealmEye. Please try again later.", ticker)
                return True
            if player is LookupFailure.PLAYER_NOT_FOUND:
                await try_dm(user, "I could not find that RealmEye profile. Ensure the profile is public and try again.")
                return False

            history = await realmeye_client.get_name_history(chosen)
            if history is LookupFailure.REQUEST_FAILED:
                await self._stop(message, embed, "Alternative Account", "An error occurred when trying to read the name history. Please try again later.", ticker)
                return True
            if history is LookupFailure.HISTORY_HIDDEN:
                await try_dm(user, "The name history of that account is not public! Set it to public and try again.")
                return False
            if not player.description_contains(code):
                await try_dm(user, f"Your verification code, `{code}`, wasn't found in the RealmEye description! Make sure the code is on the description and then try again.")
                return False
            if player.last_seen != "hidden":
                await try_dm(user, "The last-seen location of that account is not hidden. Hide it and try again.")
                return False

            updated = await user_service.update_profile(
                user.id, lambda document: add_alt_from_history(document, player.name, history[1:])
            )
            if updated is None:
                await self._stop(message, embed, "Alternative Account", "Your profile no longer exists.", ticker)
                return True

            done = discord.Embed(
                title="Alternative Account Added",
                description=f"The in-game name **`{player.name}`** is now linked to your profile.",
                color=discord.Color.green(),
            )
            done.set_footer(text=STOPPED_FOOTER)
            await ticker.stop()
            await message.edit(embed=done)
            logger.info("[VERIFICATION] %s linked alternate account %s", user, player.name)
            linked = True
            return True

        await self._confirmation_loop(bot, user, message, embed, check, "Alternative Account")
        return linked

    # ------------------------------------------------------------------
    # Manual verification
    # ------------------------------------------------------------------

    async def _handle_failed(
        self,
        member: discord.Member,
        guild_doc: GuildDocument,
        section: Section,
        player: PlayerProfile,
        result: RequirementCheck,
        history: Sequence[NameHistoryEntry],
        message: Optional[discord.Message] = None,
        ticker: Optional[MessageAutoTick] = None,
    ) -> None:
        guild = member.guild
        failed_text = "\n".join(result.failed_requirements)
        manual_channel = (
            guild.get_channel(section.manual_verification_channel) if section.manual_verification_channel else None
        )

        outcome = discord.Embed(title=f"Verification For: **{guild.name}**", color=discord.Color.red())
        outcome.set_author(name=guild.name, icon_url=_guild_icon(guild))
        outcome.set_footer(text=STOPPED_FOOTER)

        if isinstance(manual_channel, discord.TextChannel):
            outcome.description = (
                f"You did not meet the requirements of the **`{section.name}`** section. Your profile is now under "
                "manual review; a staff member will look at it shortly."
            )
            await self.manual_verification(member, section, player, manual_channel, result.failed_requirements, history)
            await send_log(guild, section.verification_attempts_channel, f"🚫 **`[{section.name}]`** {member.mention} did not meet the requirements as `{player.name}` and is now under manual review.")
        else:
            if section.show_requirements:
                outcome.description = "You did not meet the requirements. Please review the requirements you missed below."
                outcome.add_field(name="Requirements Missed", value=apply_code_block(failed_text))
            else:
                outcome.description = "You did not meet the requirements of this server or section."
            await send_log(guild, section.verification_attempts_channel, f"🚫 **`[{section.name}]`** {member.mention} tried to verify as `{player.name}`, but did not meet the requirements:{apply_code_block(failed_text)}")

        if ticker is not None:
            await ticker.stop()
        if message is not None:
            await message.edit(embed=outcome)
        else:
            await try_dm(member, embed=outcome)

    async def manual_verification(
        self,
        member: discord.Member,
        section: Section,
        player: PlayerProfile,
        channel: discord.TextChannel,
        failed_requirements: List[str],
        history: Sequence[NameHistoryEntry] = (),
    ) -> ManualVerificationEntry:
        """Post a review request for ``member`` and remember it on the guild document."""
        if section.is_main:
            await account_in_database(member.id, player.name, history)

        desc = (
            StringBuilder()
            .append(f"⇒ **Section:** {section.name}").append_line()
            .append(f"⇒ **User:** {member.mention}").append_line()
            .append(f"⇒ **IGN:** {player.name}").append_line()
            .append(f"⇒ **First Seen:** {player.first_seen or 'N/A'}").append_line()
            .append(f"⇒ **Last Seen:** {player.last_seen or 'N/A'}").append_line()
            .append(f"⇒ **RealmEye:** [Profile]({player.profile_url})").append_line(2)
            .append(f"React with {ACCEPT_EMOJI} to manually verify this person; otherwise, react with {CANCEL_EMOJI}.")
        )
        embed = discord.Embed(
            title=f"**{'Server' if section.is_main else section.name}** ⇒ Manual Verification Request: **{player.name}**",
            description=desc.str(),
            color=discord.Color.yellow(),
            timestamp=datetime.now(timezone.utc),
        )
        embed.set_author(name=str(member), icon_url=member.display_avatar.url)
        embed.add_field(name="Unmet Requirements", value=apply_code_block("\n".join(failed_requirements)), inline=True)
        embed.set_footer(text=str(member.id))

        request = await channel.send(embed=embed)
        await add_reactions(request, [ACCEPT_EMOJI, CANCEL_EMOJI])

        entry = ManualVerificationEntry(
            user_id=member.id,
            in_game_name=player.name,
            rank=player.rank,
            alive_fame=player.alive_fame,
            name_history=[item.to_dict() for item in history],
            message_id=request.id,
            channel_id=channel.id,
        )

        def add_entry(document: GuildDocument) -> None:
            target = document.find_section(section.name)
            if target is not None:
                target.manual_verification_entries.append(entry)

        await guild_service.update(member.guild.id, add_entry)
        logger.info("[VERIFICATION] Manual verification requested for %s (%s) in %s", member, player.name, member.guild.name)
        return entry

    async def accept_manual_verification(
        self,
        member: discord.Member,
        responsible: discord.Member,
        guild_doc: GuildDocument,
        section: Section,
        entry: ManualVerificationEntry,
        request: Optional[discord.Message] = None,
    ) -> None:
        guild = member.guild
        role = guild.get_role(section.verified_role) if section.verified_role else None
        if role is not None:
            await self._grant(member, role, nickname_for(member, entry.in_game_name) if section.is_main else None)

        if section.is_main:
            history = [NameHistoryEntry.from_dict(item) for item in entry.name_history]
            await account_in_database(member.id, entry.in_game_name, history)
            await self.find_other_user_and_remove_verified_role(member, guild_doc)
            success = discord.Embed(
                title=f"Successful Verification: **{guild.name}**",
                description=guild_doc.properties.successful_verification_message or DEFAULT_SUCCESS_MESSAGE,
                color=discord.Color.green(),
            )
            success.set_author(name=guild.name, icon_url=_guild_icon(guild))
            success.set_footer(text=STOPPED_FOOTER)
            await try_dm(member, embed=success)
        else:
            await try_dm(member, f"**`[{guild.name}]`** You have successfully been verified in the **`{section.name}`** section!")

        log = (
            f"✅ **`[{section.name}]`** {member.mention} has been manually verified as `{entry.in_game_name}`. "
            f"This manual verification was done by {responsible.mention} ({responsible.display_name})"
        )
        await self._close_manual(member, responsible, section, log, request, accepted=True)

    async def deny_manual_verification(
        self,
        member: discord.Member,
        responsible: discord.Member,
        section: Section,
        entry: ManualVerificationEntry,
        request: Optional[discord.Message] = None,
    ) -> None:
        guild = member.guild
        if section.is_main:
            await try_dm(member, f"**`[{guild.name}]`**: After manually reviewing your profile, we have determined that you do not meet the requirements defined by server.")
        else:
            await try_dm(member, f"**`[{guild.name}]`**: After reviewing your profile, we have determined that your profile does not meet the minimum requirements for the **`{section.name}`** section.")

        log = (
            f"❌ **`[{section.name}]`** {member.mention} ({entry.in_game_name})'s manual verification review has been "
            f"rejected by {responsible.mention} ({responsible.display_name})"
        )
        await self._close_manual(member, responsible, section, log, request, accepted=False)

    async def _close_manual(
        self,
        member: discord.Member,
        responsible: discord.Member,
        section: Section,
        log: str,
        request: Optional[discord.Message],
        accepted: bool,
    ) -> None:
        guild = member.guild
        await send_log(guild, section.verification_success_channel, log)

        def remove_entry(document: GuildDocument) -> None:
            target = document.find_section(section.name)
            if target is not None:
                target.manual_verification_entries[:] = [
                    item for item in target.manual_verification_entries if item.user_id != member.id
                ]

        await guild_service.update(guild.id, remove_entry)
        logger.info(
            "[VERIFICATION] Manual verification of %s in %s %s by %s",
            member, guild.name, "accepted" if accepted else "denied", responsible,
        )

        if request is None or not request.embeds:
            return
        embed = request.embeds[0]
        embed.color = discord.Color.green() if accepted else discord.Color.red()
        embed.set_footer(text=f"{'Accepted' if accepted else 'Denied'} by {responsible.display_name} ({member.id})")
        try:
            await request.edit(embed=embed)
            await request.clear_reactions()
        except discord.HTTPException as exc:
            logger.debug("Could not update manual verification message: %s", exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def find_other_user_and_remove_verified_role(self, member: discord.Member, guild_doc: GuildDocument) -> List[discord.Member]:
        """Unverify every other member whose nickname claims one of ``member``'s names."""
        profile = await user_service.get_profile(member.id)
        if profile is None:
            return []

        unverified: List[discord.Member] = []
        for name in profile.all_names():
            matches = find_user_by_in_game_name(member.guild, name, guild_doc)
            if len(matches) != 1:
                continue
            other = matches[0]
            if other.id == member.id or name.lower() not in names_of(other) or other in unverified:
                continue

            roles = [role for role in other.roles if not role.is_default() and not role.managed]
            try:
                if roles:
                    await other.remove_roles(*roles, reason=f"{member} verified as {name}.")
                await other.edit(nick=None)
            except discord.HTTPException as exc:
                logger.warning("[VERIFICATION] Could not unverify %s: %s", other, exc)
                continue
            logger.info("[VERIFICATION] Unverified %s, who was using %s's name %s", other, member, name)
            unverified.append(other)
        return unverified

    async def _grant(self, member: discord.Member, role: discord.Role, nickname: Optional[str] = None) -> None:
        try:
            await member.add_roles(role, reason="Verified.")
        except discord.HTTPException as exc:
            logger.warning("[VERIFICATION] Could not give %s to %s: %s", role, member, exc)
        if nickname is not None:
            try:
                await member.edit(nick=nickname)
            except discord.HTTPException as exc:
                logger.debug("Could not set nickname of %s: %s", member, exc)

    @staticmethod
    def _stopped_embed(embed: discord.Embed, title: str, description: str) -> discord.Embed:
        stopped = discord.Embed(title=f"Verification For: **{title}**", description=description, color=discord.Color.red())
        author = embed.author
        if author is not None and author.name:
            stopped.set_author(name=author.name, icon_url=author.icon_url)
        stopped.set_footer(text=STOPPED_FOOTER)
        return stopped

    async def _stop(
        self,
        message: discord.Message,
        embed: discord.Embed,
        title: str,
        description: str,
        ticker: Optional[MessageAutoTick] = None,
    ) -> None:
        if ticker is not None:
            await ticker.stop()
        try:
            await message.edit(embed=self._stopped_embed(embed, title, description))
        except discord.HTTPException as exc:
            logger.debug("Could not edit verification message: %s", exc)

    @staticmethod
    async def _notify_stopped(channel: discord.abc.Messageable, guild: Optional[discord.Guild], result: CollectorResult) -> None:
        reason = "the time limit has been reached" if result is CollectorResult.TIME else "you have stopped the verification process manually"
        prefix = f"**`[{guild.name}]`**: " if guild is not None else ""
        try:
            await channel.send(f"{prefix}Your verification process has been stopped because {reason}.")
        except discord.HTTPException as exc:
            logger.debug("Could not send verification stop notice: %s", exc)


verification_handler = VerificationHandler()
