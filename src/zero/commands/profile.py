"""
Profile commands.

``usermanager`` lets members manage their own profile from DMs.
``adminprofileupdater`` lets officers repair the profile table for their
server: sync verified members without a profile, and create, delete or edit
profiles by hand.
"""

from __future__ import annotations

import re
from typing import Any, List, Optional, Sequence, Set, Tuple

import discord

from zero.commands.command import Command, CommandContext, CommandDetail, CommandPermission
from zero.datatypes.guild_document import GuildDocument
from zero.datatypes.time_unit import TimeUnit
from zero.datatypes.user_document import AltName, UserDocument
from zero.services.user_service import user_service
from zero.ui.collectors import CollectorResult, GenericMessageCollector
from zero.ui.reaction_menu import FastReactionMenu
from zero.util.array_utils import array_to_string_fields
from zero.util.logger import get_logger
from zero.util.message_utils import default_error_embed, generate_blank_embed, no_profile_embed, send_temporary, try_delete
from zero.util.string_utils import StringBuilder, strip_non_letters
from zero.util.user_handler import resolve_member
from zero.verification.handler import verification_handler

logger = get_logger("profile_commands")

IGN_PATTERN = re.compile(r"^[a-zA-Z]{1,10}$")
ADMIN_CANCEL_FLAG = "-cancel"
CONFIRM_EMOJI = "✅"
EXIT_EMOJI = "❌"


def _numbered(names: Sequence[str]) -> str:
    return "\n".join(f"`[{index}]` {name}" for index, name in enumerate(names, start=1))


class UserManagerCommand(Command):
    detail = CommandDetail(
        name="User Manager Command",
        command_code="usermanager",
        aliases=["userprofile", "profile", "manager"],
        description="Manage your profile: link alternative accounts, remove them, or swap your main account.",
        usage=["usermanager"],
        examples=["usermanager"],
    )
    guild_only = False

    MENU_MINUTES = 15

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        author = context.author
        profile = await user_service.get_profile(author.id)
        if profile is None:
            await send_temporary(context.channel, embed=no_profile_embed(author))
            return

        try:
            dm = await author.create_dm()
            menu = generate_blank_embed(author)
            menu.title = "User Profile Configuration Manager"
            menu.description = "React with ⚙️ to configure your personal profile settings.\nReact with ❌ to cancel this process."
            menu.set_footer(text="Configuration Menu")
            message = await dm.send(embed=menu)
        except discord.Forbidden:
            await send_temporary(
                context.channel, embed=default_error_embed(author, "Please open your direct messages and try again.")
            )
            return

        choice = await FastReactionMenu(context.bot, message, author, ["⚙️", EXIT_EMOJI], self.MENU_MINUTES).react()
        await try_delete(message)
        if choice != "⚙️":
            return
        await self.manage_user_settings(context, dm, profile)

    async def manage_user_settings(self, context: CommandContext, dm: discord.DMChannel, profile: UserDocument) -> None:
        desc = StringBuilder().append(
            "⇒ React with ➕ to verify an alternative account. Use this if you recently got a name change."
        ).append_line()
        reactions = ["➕"]
        if profile.other_accounts:
            desc.append("⇒ React with ➖ to remove an alternative account.").append_line()
            desc.append("⇒ React with 🔄 to switch your main account with one of your alternative accounts.").append_line()
            reactions += ["➖", "🔄"]
        desc.append("⇒ React with ❌ to cancel this process.")
        reactions.append(EXIT_EMOJI)

        embed = generate_blank_embed(context.author)
        embed.title = "User Profile Manager"
        embed.description = desc.str()
        embed.add_field(name="Main Account", value=profile.display_name)
        embed.add_field(
            name="Alternative Accounts",
            value=", ".join(alt.display_name for alt in profile.other_accounts) or "None",
        )
        embed.set_footer(text="Configuration Menu")
        message = await dm.send(embed=embed)

        choice = await FastReactionMenu(context.bot, message, context.author, reactions, self.MENU_MINUTES).react()
        await try_delete(message)

        if choice == "➕":
            await verification_handler.verify_alt(context.bot, context.author, profile)
        elif choice == "➖":
            alt = await self._pick_alt(context, dm, profile, "Remove Alternative Account")
            if alt is not None:
                await user_service.update_profile(context.author.id, lambda doc: doc.remove_alt(alt.display_name))
                await dm.send(f"The name **`{alt.display_name}`** has been removed from your profile.")
        elif choice == "🔄":
            alt = await self._pick_alt(context, dm, profile, "Switch Main Account")
            if alt is not None:
                await user_service.update_profile(context.author.id, lambda doc: doc.swap_main(alt.display_name))
                await dm.send(f"**`{alt.display_name}`** is now your main account.")

    @staticmethod
    async def _pick_alt(
        context: CommandContext, dm: discord.DMChannel, profile: UserDocument, title: str
    ) -> Optional[AltName]:
        embed = generate_blank_embed(context.author)
        embed.title = title
        embed.description = "Type the number of the account.\n\n" + _numbered(
            [alt.display_name for alt in profile.other_accounts]
        )
        embed.set_footer(text="Type cancel to cancel.")
        number = await GenericMessageCollector(
            context.bot, context.author, embed, 2, TimeUnit.MINUTE, channel=dm
        ).send(GenericMessageCollector.get_number(dm, 1, len(profile.other_accounts)))
        if isinstance(number, CollectorResult):
            return None
        return profile.other_accounts[number - 1]


class AdminProfileUpdaterCommand(Command):
    detail = CommandDetail(
        name="Administrator Profile Updater Command",
        command_code="adminprofileupdater",
        aliases=["apu"],
        description="Allows officers to sync, create, remove and edit member profiles.",
        usage=["adminprofileupdater"],
        examples=["adminprofileupdater"],
    )
    permission = CommandPermission(
        bot_permissions=["manage_nicknames", "add_reactions", "manage_messages"],
        role_permissions=["officer"],
    )

    MENU_MINUTES = 5
    MENU = ["🔄", "🔼", "🔽", "📩", EXIT_EMOJI]

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        intro = generate_blank_embed(context.author, discord.Color.red())
        intro.title = "**Administrator: Profile Manager**"
        intro.description = (
            "Use this command to make changes, such as creating a new profile, editing someone's profile, and more.\n\n"
            "⚠️ Changes made here affect every server that uses this bot. Usage of this command is logged."
        )
        intro.add_field(
            name="Force-Sync Members/DB",
            value="React with 🔄 to give every verified (or suspended) member without a profile a new profile. "
            "You will be shown the changes and asked to confirm them first.",
            inline=False,
        )
        intro.add_field(name="Add Profile", value="React with 🔼 to create a profile for a member.", inline=False)
        intro.add_field(name="Remove Profile", value="React with 🔽 to delete a member's profile.", inline=False)
        intro.add_field(name="Edit Profile", value="React with 📩 to edit a member's main or alternative names.", inline=False)
        intro.add_field(name="Exit", value="React with ❌ to close this menu.", inline=False)
        intro.set_footer(text="Administrator: Profile Updater")
        message = await context.channel.send(embed=intro)

        choice = await FastReactionMenu(context.bot, message, context.author, self.MENU, self.MENU_MINUTES).react()
        await self._clear_reactions(message)
        logger.info("[PROFILE UPDATER] %s chose %s in %s", context.author, choice, context.guild.name)

        if choice == "🔄":
            await self.force_sync(context, guild_doc, message)
        elif choice == "🔼":
            await self.add_profile(context, guild_doc, message)
        elif choice == "🔽":
            await self.remove_profile(context, guild_doc, message)
        elif choice == "📩":
            await self.edit_profile(context, guild_doc, message)
        else:
            await try_delete(message)

    @staticmethod
    async def _clear_reactions(message: discord.Message) -> None:
        try:
            await message.clear_reactions()
        except discord.HTTPException as exc:
            logger.debug("Could not clear reactions: %s", exc)

    async def _collect(
        self, context: CommandContext, message: discord.Message, embed: discord.Embed, validate, first: bool
    ) -> Any:
        """Edit ``message`` into a prompt and wait for an answer or ✅/❌."""
        collector = GenericMessageCollector(context.bot, context.message, embed, self.MENU_MINUTES, TimeUnit.MINUTE)
        return await collector.send_with_reactions(
            validate,
            [CONFIRM_EMOJI, EXIT_EMOJI],
            cancel_flag=ADMIN_CANCEL_FLAG,
            react_to_message=first,
            delete_message=False,
            existing_message=message,
        )

    async def _finish(self, message: discord.Message, title: str, description: str, color: discord.Color) -> None:
        embed = discord.Embed(title=title, description=description, color=color)
        embed.set_footer(text="Process Completed.")
        await self._clear_reactions(message)
        try:
            await message.edit(embed=embed)
            await message.delete(delay=5)
        except discord.HTTPException as exc:
            logger.debug("Could not finish profile updater message: %s", exc)

    # ------------------------------------------------------------------
    # Force sync
    # ------------------------------------------------------------------

    @staticmethod
    def unsynced_members(
        guild: discord.Guild, guild_doc: GuildDocument, linked_ids: Set[int]
    ) -> List[Tuple[discord.Member, List[str]]]:
        """Verified or suspended members without a profile, with the names in their nickname."""
        role_ids = {role_id for role_id in (guild_doc.roles.raider, guild_doc.roles.suspended) if role_id}
        found = []
        for member in guild.members:
            if member.bot or member.id in linked_ids:
                continue
            if not any(role.id in role_ids for role in member.roles):
                continue
            names = [strip_non_letters(part.strip()) for part in member.display_name.split("|")]
            names = [name for name in names if name]
            if names:
                found.append((member, names))
        return found

    async def force_sync(self, context: CommandContext, guild_doc: GuildDocument, message: discord.Message) -> None:
        if not guild_doc.roles.raider or context.guild.get_role(guild_doc.roles.raider) is None:
            await self._finish(message, "No Verified Role", "This server does not have a verified role configured.", discord.Color.red())
            return

        linked_ids = set((await user_service.name_index()).values())
        candidates = self.unsynced_members(context.guild, guild_doc, linked_ids)
        if not candidates:
            await self._finish(
                message, "All Synced", "All verified members in this server have a profile. You don't need to do anything!",
                discord.Color.green(),
            )
            return

        excluded: Set[int] = set()
        first = True
        while True:
            embed = discord.Embed(title="Members With No Profile", color=discord.Color.orange())
            embed.description = (
                "The members below are verified in this server but do not have a profile. The first IGN is the main "
                "IGN; any other IGNs become alternative IGNs.\n\n**DIRECTIONS:** Type the number of a member to "
                "exclude them (type it again to include them).\n\n**FINISHED?** React with ✅ to create the profiles "
                "or ❌ to cancel."
            )
            fields = array_to_string_fields(
                candidates,
                lambda index, item: (
                    f"**`[{index + 1}]`** {item[0].mention}{' (excluded)' if index in excluded else ''}\n"
                    f"⇒ IGN(s): {', '.join(item[1])}\n\n"
                ),
            )
            for field in fields[:20]:
                embed.add_field(name="No Profile", value=field, inline=False)

            response = await self._collect(
                context, message, embed, GenericMessageCollector.get_number(context.channel, 1, len(candidates)), first
            )
            first = False
            if isinstance(response, int):
                excluded ^= {response - 1}
                continue
            if response == CONFIRM_EMOJI:
                break
            await self._finish(message, "Sync Cancelled", "No profiles were created.", discord.Color.red())
            return

        chosen = [item for index, item in enumerate(candidates) if index not in excluded]
        added = 0
        for member, names in chosen:
            if await user_service.get_profile(member.id) is not None:
                continue
            if await user_service.get_profile_by_name(names[0]) is not None:
                continue
            await user_service.create_profile(member.id, names[0], names[1:])
            added += 1

        logger.info("[PROFILE UPDATER] %s synced %d/%d profiles in %s", context.author, added, len(chosen), context.guild.name)
        await self._finish(
            message, "Sync Completed", f"{added}/{len(chosen)} accounts were successfully synced.", discord.Color.green()
        )

    # ------------------------------------------------------------------
    # Single profiles
    # ------------------------------------------------------------------

    async def get_person(
        self, context: CommandContext, guild_doc: GuildDocument, message: discord.Message
    ) -> Optional[discord.Member]:
        """Let the admin pick a member until they confirm with ✅."""
        selected: Optional[discord.Member] = None
        first = True

        async def validate(response: discord.Message) -> Optional[discord.Member]:
            member = await resolve_member(context.guild, response.content, guild_doc)
            if member is None:
                await send_temporary(
                    context.channel, embed=default_error_embed(context.author, f"No member matching `{response.content}` was found.")
                )
            return member

        while True:
            embed = discord.Embed(title="**Select Member**", color=discord.Color.blurple())
            embed.description = (
                f"You have currently selected: {selected.mention if selected else 'N/A'}\n\n"
                "**DIRECTIONS:** Mention a member, type their ID, or type their in-game name.\n\n"
                "**FINISHED?** React with ✅ to use the member above, or ❌ to cancel."
            )
            embed.set_footer(text="Administrator: Profile Updater")
            response = await self._collect(context, message, embed, validate, first)
            first = False
            if isinstance(response, CollectorResult) or response == EXIT_EMOJI:
                return None
            if response == CONFIRM_EMOJI:
                if selected is not None:
                    return selected
                continue
            selected = response

    async def get_name(self, context: CommandContext, message: discord.Message, title: str) -> Optional[str]:
        """Let the admin type an in-game name until they confirm with ✅."""
        name = ""
        first = True
        validate = GenericMessageCollector.get_string_prompt(
            context.channel, regex=IGN_PATTERN, regex_fail_message="In-game names have 1 to 10 letters and nothing else."
        )
        while True:
            embed = discord.Embed(title=title, color=discord.Color.green())
            embed.description = (
                f"Set In-Game Name: {name or 'N/A'}\n\n**DIRECTIONS:** Type the in-game name.\n\n"
                "**FINISHED?** React with ✅ to use the name above, or ❌ to cancel."
            )
            embed.set_footer(text="Administrator: Profile Updater")
            response = await self._collect(context, message, embed, validate, first)
            first = False
            if isinstance(response, CollectorResult) or response == EXIT_EMOJI:
                return None
            if response == CONFIRM_EMOJI:
                if name:
                    return name
                continue
            name = response

    async def add_profile(self, context: CommandContext, guild_doc: GuildDocument, message: discord.Message) -> None:
        member = await self.get_person(context, guild_doc, message)
        if member is None:
            await self._finish(message, "Process Canceled", "No profile was created.", discord.Color.red())
            return
        if await user_service.get_profile(member.id) is not None:
            await self._finish(message, "Profile Already Exists!", f"{member.mention} already has a profile!", discord.Color.red())
            return

        name = await self.get_name(context, message, "Provide In-Game Name")
        if name is None:
            await self._finish(message, "Process Canceled", "No profile was created.", discord.Color.red())
            return
        if await user_service.get_profile_by_name(name) is not None:
            await self._finish(message, "Name Already Used", f"The name `{name}` is already linked to a profile.", discord.Color.red())
            return

        await user_service.create_profile(member.id, name)
        logger.info("[PROFILE UPDATER] %s created profile %s for %s", context.author, name, member)
        await self._finish(message, "Profile Created", f"{member.mention} now has a profile with the name `{name}`.", discord.Color.green())

    async def remove_profile(self, context: CommandContext, guild_doc: GuildDocument, message: discord.Message) -> None:
        member = await self.get_person(context, guild_doc, message)
        if member is None:
            await self._finish(message, "Process Canceled", "No profile was removed.", discord.Color.red())
            return
        if not await user_service.delete_profile(member.id):
            await self._finish(message, "No Profile", f"{member.mention} does not have a profile.", discord.Color.red())
            return
        logger.info("[PROFILE UPDATER] %s deleted the profile of %s", context.author, member)
        await self._finish(message, "Profile Removed", f"The profile of {member.mention} has been deleted.", discord.Color.green())

    async def edit_profile(self, context: CommandContext, guild_doc: GuildDocument, message: discord.Message) -> None:
        member = await self.get_person(context, guild_doc, message)
        if member is None:
            await self._finish(message, "Process Canceled", "No profile was edited.", discord.Color.red())
            return
        profile = await user_service.get_profile(member.id)
        if profile is None:
            await self._finish(message, "No Profile", f"{member.mention} does not have a profile.", discord.Color.red())
            return

        embed = discord.Embed(title=f"Edit Profile: {member.display_name}", color=discord.Color.blurple())
        embed.add_field(name="Main Account", value=profile.display_name)
        embed.add_field(name="Alternative Accounts", value=_numbered([alt.display_name for alt in profile.other_accounts]) or "None")
        embed.description = "React with ✏️ to change the main name, ➕ to add an alternative name, ➖ to remove one, or ❌ to cancel."
        await message.edit(embed=embed)
        reactions = ["✏️", "➕", "➖", EXIT_EMOJI] if profile.other_accounts else ["✏️", "➕", EXIT_EMOJI]
        choice = await FastReactionMenu(context.bot, message, context.author, reactions, self.MENU_MINUTES).react()
        await self._clear_reactions(message)

        if choice in ("✏️", "➕"):
            name = await self.get_name(context, message, "Main In-Game Name" if choice == "✏️" else "Alternative In-Game Name")
            if name is None:
                await self._finish(message, "Process Canceled", "The profile was not changed.", discord.Color.red())
                return
            owner = await user_service.get_profile_by_name(name)
            if owner is not None and owner.discord_user_id != member.id:
                await self._finish(message, "Name Already Used", f"The name `{name}` belongs to another profile.", discord.Color.red())
                return

            def apply(doc: UserDocument) -> None:
                if choice == "✏️":
                    doc.remove_alt(name)
                    doc.set_main_name(name)
                elif not doc.has_name(name):
                    doc.other_accounts.append(AltName.of(name))

            await user_service.update_profile(member.id, apply)
        elif choice == "➖":
            number = await GenericMessageCollector(
                context.bot, context.message,
                discord.Embed(title="Remove Alternative Name", description="Type the number of the name to remove."),
                2, TimeUnit.MINUTE,
            ).send(GenericMessageCollector.get_number(context.channel, 1, len(profile.other_accounts)))
            if isinstance(number, CollectorResult):
                await self._finish(message, "Process Canceled", "The profile was not changed.", discord.Color.red())
                return
            alt_name = profile.other_accounts[number - 1].display_name
            await user_service.update_profile(member.id, lambda doc: doc.remove_alt(alt_name))
        else:
            await self._finish(message, "Process Canceled", "The profile was not changed.", discord.Color.red())
            return

        logger.info("[PROFILE UPDATER] %s edited the profile of %s", context.author, member)
        await self._finish(message, "Profile Updated", f"The profile of {member.mention} has been updated.", discord.Color.green())
