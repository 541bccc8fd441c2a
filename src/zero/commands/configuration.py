"""
Guild configuration commands: prefix, the configuration menu, and sections.

All edits go through :meth:`GuildService.update`, so a change made from one
menu never overwrites a change made elsewhere in the meantime.
"""

from __future__ import annotations

import re
from typing import Any, Callable, List, Optional, Sequence

import discord

from zero.commands.command import Command, CommandContext, CommandDetail, CommandPermission
from zero.datatypes.guild_document import (
    LOGGING_CHANNEL_FIELDS,
    MAIN_SECTION_NAME,
    ROLE_FIELDS,
    GuildDocument,
    Section,
)
from zero.datatypes.time_unit import TimeUnit
from zero.services.guild_service import guild_service
from zero.ui.collectors import CollectorResult, GenericMessageCollector
from zero.ui.reaction_menu import FastReactionMenu
from zero.util.logger import get_logger
from zero.util.message_utils import default_error_embed, generate_blank_embed, send_temporary, try_delete
from zero.verification.requirements import requirements_text

logger = get_logger("configuration_commands")

MAX_PREFIX_LENGTH = 5
MENU_MINUTES = 5
PROMPT_MINUTES = 2
SECTION_NAME_PATTERN = re.compile(r"^[\w ]+$")

EXIT_EMOJI = "❌"
BACK_EMOJI = "⬅️"
SKIP_EMOJI = "⏭️"
CLEAR_EMOJI = "🗑️"


def _title(field_name: str) -> str:
    return field_name.replace("_", " ").title()


async def ask(context: CommandContext, embed: discord.Embed, validate, minutes: float = PROMPT_MINUTES) -> Any:
    """Prompt the command author in the command channel."""
    collector = GenericMessageCollector(context.bot, context.message, embed, minutes, TimeUnit.MINUTE)
    return await collector.send(validate)


async def ask_with_reactions(
    context: CommandContext, embed: discord.Embed, validate, reactions: Sequence[str], minutes: float = PROMPT_MINUTES
) -> Any:
    collector = GenericMessageCollector(context.bot, context.message, embed, minutes, TimeUnit.MINUTE)
    return await collector.send_with_reactions(validate, reactions)


def prompt_embed(context: CommandContext, title: str, description: str) -> discord.Embed:
    embed = generate_blank_embed(context.author)
    embed.title = title
    embed.description = description
    embed.set_footer(text="Type cancel to cancel.")
    return embed


async def menu_choice(context: CommandContext, message: discord.Message, reactions: Sequence[str]) -> Optional[str]:
    """Wait for a menu reaction; None on timeout."""
    choice = await FastReactionMenu(
        context.bot, message, context.author, reactions, MENU_MINUTES, TimeUnit.MINUTE
    ).react()
    return None if choice is CollectorResult.TIME else choice


async def update_guild(context: CommandContext, mutator: Callable[[GuildDocument], None]) -> GuildDocument:
    return await guild_service.update(context.guild.id, mutator)


async def edit_requirements(context: CommandContext, message: discord.Message, section_name: str) -> None:
    """Reaction menu for the verification requirements of one section.

    Reuses ``message`` for the menu and returns when the user goes back or the
    menu times out.
    """
    reactions = ["⭐", "💰", "📊", "👁️", BACK_EMOJI]
    while True:
        document = await guild_service.get_or_create(context.guild.id)
        section = document.find_section(section_name)
        if section is None:
            return
        reqs = section.requirements

        embed = generate_blank_embed(context.author)
        embed.title = f"Verification Requirements: **{section.name}**"
        embed.description = "React to the setting you want to change."
        embed.add_field(name="⭐ Stars", value=f"{'Required' if reqs.stars.required else 'Off'}: `{reqs.stars.minimum}`")
        embed.add_field(
            name="💰 Alive Fame",
            value=f"{'Required' if reqs.alive_fame.required else 'Off'}: `{reqs.alive_fame.minimum}`",
        )
        embed.add_field(
            name="📊 Maxed Stats",
            value=("Required: " if reqs.maxed_stats.required else "Off: ")
            + " ".join(f"`{tier}/8: {amount}`" for tier, amount in enumerate(reqs.maxed_stats.stats)),
            inline=False,
        )
        embed.add_field(
            name="👁️ Show Requirements", value="Yes" if section.show_requirements else "No", inline=False
        )
        embed.add_field(name=f"{BACK_EMOJI} Back", value="Return to the previous menu.", inline=False)
        await message.edit(embed=embed)

        choice = await menu_choice(context, message, reactions)
        if choice is None or choice == BACK_EMOJI:
            return

        if choice == "👁️":
            show = not section.show_requirements
            await update_guild(context, lambda doc: doc.set_show_requirements(section_name, show))
            continue

        if choice in ("⭐", "💰"):
            what = "stars" if choice == "⭐" else "alive fame"
            maximum = 85 if choice == "⭐" else None
            amount = await ask(
                context,
                prompt_embed(context, f"Minimum {what.title()}", f"Type the minimum {what} needed. Type `0` to disable this requirement."),
                GenericMessageCollector.get_number(context.channel, 0, maximum),
            )
            if isinstance(amount, CollectorResult):
                continue

            def set_threshold(doc: GuildDocument) -> None:
                target = doc.find_section(section_name)
                if target is None:
                    return
                threshold = target.requirements.stars if choice == "⭐" else target.requirements.alive_fame
                threshold.minimum = amount
                threshold.required = amount > 0

            await update_guild(context, set_threshold)
            continue

        tier = await ask(
            context,
            prompt_embed(context, "Maxed Stats", "Type the number of maxed stats (`0` to `8`) you want to set a requirement for."),
            GenericMessageCollector.get_number(context.channel, 0, 8),
        )
        if isinstance(tier, CollectorResult):
            continue
        amount = await ask(
            context,
            prompt_embed(context, "Maxed Stats", f"How many {tier}/8 characters are needed? Type `0` to clear this tier."),
            GenericMessageCollector.get_number(context.channel, 0, 50),
        )
        if isinstance(amount, CollectorResult):
            continue

        def set_tier(doc: GuildDocument) -> None:
            target = doc.find_section(section_name)
            if target is None:
                return
            target.requirements.maxed_stats.stats[tier] = amount
            target.requirements.maxed_stats.required = any(target.requirements.maxed_stats.stats)

        await update_guild(context, set_tier)


async def post_control_message(
    context: CommandContext, document: GuildDocument, section: Section
) -> Optional[discord.Message]:
    """Post the ✅ verification message for ``section`` in its verification channel."""
    channel = context.guild.get_channel(section.verification_channel) if section.verification_channel else None
    if not isinstance(channel, discord.TextChannel):
        await send_temporary(
            context.channel,
            embed=default_error_embed(context.author, f"The **{section.name}** section has no valid verification channel."),
        )
        return None

    embed = generate_blank_embed(context.guild, discord.Color.green())
    embed.title = f"Verification: **{context.guild.name if section.is_main else section.name}**"
    embed.description = (
        "React with ✅ to begin the verification process. Make sure your direct messages are open; "
        "the bot will message you with further instructions."
    )
    embed.add_field(name="Requirements", value=f"```\n{requirements_text(section)}```", inline=False)

    try:
        control = await channel.send(embed=embed)
        await control.add_reaction("✅")
    except discord.HTTPException as exc:
        logger.warning("[CONFIGURATION] Could not post control message in %s: %s", channel, exc)
        await send_temporary(
            context.channel, embed=default_error_embed(context.author, f"I could not post in {channel.mention}.")
        )
        return None

    if section.control_message_id:
        previous = channel.get_partial_message(section.control_message_id)
        await try_delete(previous)

    await update_guild(context, lambda doc: doc.set_control_message(section.name, control.id))
    logger.info("[CONFIGURATION] Posted control message for %s in %s", section.name, context.guild.name)
    return control


class PrefixCommand(Command):
    detail = CommandDetail(
        name="Prefix Command",
        command_code="prefix",
        description="Shows or changes the prefix of the bot in this server.",
        usage=["prefix", "prefix <new prefix>"],
        examples=["prefix", "prefix !"],
    )
    permission = CommandPermission(role_permissions=["moderator"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        if not args:
            await context.channel.send(f"The current prefix is `{guild_doc.prefix}`.")
            return

        new_prefix = args[0]
        if len(new_prefix) > MAX_PREFIX_LENGTH:
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, f"The prefix must be at most {MAX_PREFIX_LENGTH} characters long."),
            )
            return

        def set_prefix(doc: GuildDocument) -> None:
            doc.prefix = new_prefix

        await update_guild(context, set_prefix)
        logger.info("[CONFIGURATION] Prefix of %s set to %s by %s", context.guild.name, new_prefix, context.author)
        await context.channel.send(f"The prefix has been changed to `{new_prefix}`.")


class ConfigureCommand(Command):
    detail = CommandDetail(
        name="Configure Command",
        command_code="configure",
        aliases=["config"],
        description="Opens the server configuration menu.",
        usage=["configure"],
        examples=["configure"],
    )
    permission = CommandPermission(
        bot_permissions=["manage_roles", "manage_nicknames", "add_reactions", "manage_messages"],
        role_permissions=["officer"],
    )
    delete_command_after = 1

    CHANNEL_FIELDS = ["verification", "manual_verification", "control_panel"] + [
        f"logging.{name}" for name in LOGGING_CHANNEL_FIELDS
    ]
    MENU = ["🎭", "#️⃣", "📋", "💬", "✅", EXIT_EMOJI]

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        message = await context.channel.send(embed=self._main_embed(context))
        try:
            while True:
                await message.edit(embed=self._main_embed(context))
                choice = await menu_choice(context, message, self.MENU)
                if choice is None or choice == EXIT_EMOJI:
                    return

                if choice == "🎭":
                    await self._edit_ids(context, message, "Roles", ROLE_FIELDS, is_role=True)
                elif choice == "#️⃣":
                    await self._edit_ids(context, message, "Channels", self.CHANNEL_FIELDS, is_role=False)
                elif choice == "📋":
                    await edit_requirements(context, message, MAIN_SECTION_NAME)
                elif choice == "💬":
                    await self._edit_success_message(context)
                elif choice == "✅":
                    document = await guild_service.get_or_create(context.guild.id)
                    control = await post_control_message(context, document, document.main_section())
                    if control is not None:
                        await send_temporary(context.channel, f"Posted the verification message in {control.channel.mention}.")
        finally:
            await try_delete(message)

    @staticmethod
    def _main_embed(context: CommandContext) -> discord.Embed:
        embed = generate_blank_embed(context.guild)
        embed.title = "Server Configuration"
        embed.description = "React to the option you want to configure."
        embed.add_field(name="🎭 Roles", value="Set the roles the bot uses.", inline=False)
        embed.add_field(name="#️⃣ Channels", value="Set the verification and logging channels.", inline=False)
        embed.add_field(name="📋 Requirements", value="Set the verification requirements of the server.", inline=False)
        embed.add_field(name="💬 Success Message", value="Set the message sent after a successful verification.", inline=False)
        embed.add_field(name="✅ Verification Message", value="Post the verification message members react to.", inline=False)
        embed.add_field(name=f"{EXIT_EMOJI} Exit", value="Close this menu.", inline=False)
        return embed

    @staticmethod
    def _current(document: GuildDocument, field_path: str, is_role: bool) -> Optional[int]:
        holder: Any = document.roles if is_role else document.channels
        for part in field_path.split("."):
            holder = getattr(holder, part)
        return holder

    @staticmethod
    def _assign(document: GuildDocument, field_path: str, is_role: bool, value: Optional[int]) -> None:
        holder: Any = document.roles if is_role else document.channels
        *parents, leaf = field_path.split(".")
        for part in parents:
            holder = getattr(holder, part)
        setattr(holder, leaf, value)

    async def _edit_ids(
        self, context: CommandContext, message: discord.Message, kind: str, fields: List[str], is_role: bool
    ) -> None:
        document = await guild_service.get_or_create(context.guild.id)
        mention = "<@&{}>" if is_role else "<#{}>"
        lines = []
        for index, field_path in enumerate(fields, start=1):
            current = self._current(document, field_path, is_role)
            lines.append(f"`{index}` {_title(field_path.split('.')[-1])}: {mention.format(current) if current else 'N/A'}")

        embed = prompt_embed(context, f"Configure {kind}", "Type the number of the entry you want to change.\n\n" + "\n".join(lines))
        index = await ask(context, embed, GenericMessageCollector.get_number(context.channel, 1, len(fields)))
        if isinstance(index, CollectorResult):
            return
        field_path = fields[index - 1]

        validate = (
            GenericMessageCollector.get_role_prompt(context.message)
            if is_role
            else GenericMessageCollector.get_channel_prompt(context.message)
        )
        embed = prompt_embed(
            context,
            f"Configure {_title(field_path.split('.')[-1])}",
            f"Mention the {'role' if is_role else 'channel'} or type its ID. React with {CLEAR_EMOJI} to clear it.",
        )
        result = await ask_with_reactions(context, embed, validate, [CLEAR_EMOJI])
        if isinstance(result, CollectorResult):
            return
        value = None if result == CLEAR_EMOJI else result.id

        await update_guild(context, lambda doc: self._assign(doc, field_path, is_role, value))
        logger.info("[CONFIGURATION] %s.%s of %s set to %s", kind.lower(), field_path, context.guild.name, value)

    @staticmethod
    async def _edit_success_message(context: CommandContext) -> None:
        embed = prompt_embed(
            context,
            "Successful Verification Message",
            f"Type the message members receive after verifying, or react with {CLEAR_EMOJI} to use the default message.",
        )
        result = await ask_with_reactions(
            context, embed, GenericMessageCollector.get_string_prompt(context.channel, 1, 1000), [CLEAR_EMOJI]
        )
        if isinstance(result, CollectorResult):
            return
        text = "" if result == CLEAR_EMOJI else result

        def set_message(doc: GuildDocument) -> None:
            doc.properties.successful_verification_message = text

        await update_guild(context, set_message)


class SectionCommand(Command):
    detail = CommandDetail(
        name="Section Command",
        command_code="section",
        description="Adds, removes, lists and configures verification sections.",
        usage=[
            "section list",
            "section add <name>",
            "section remove <name>",
            "section requirements <name>",
            "section post <name>",
        ],
        examples=["section add Veterans", "section requirements Veterans"],
        arg_count=1,
    )
    permission = CommandPermission(bot_permissions=["manage_roles", "add_reactions"], role_permissions=["officer"])

    async def execute_command(self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]) -> None:
        action = args[0].lower()
        name = " ".join(args[1:]).strip()

        if action == "list":
            await self._list(context, guild_doc)
            return
        if action not in ("add", "remove", "requirements", "post"):
            await send_temporary(context.channel, embed=default_error_embed(context.author, f"Unknown action `{action}`."))
            return
        if not name:
            await send_temporary(context.channel, embed=default_error_embed(context.author, "Please provide a section name."))
            return

        if action == "add":
            await self._add(context, guild_doc, name)
            return

        section = guild_doc.find_section(name)
        if section is None:
            await send_temporary(context.channel, embed=default_error_embed(context.author, f"No section named `{name}` exists."))
            return

        if action == "remove":
            await self._remove(context, section)
        elif action == "requirements":
            message = await context.channel.send(embed=generate_blank_embed(context.author))
            try:
                await edit_requirements(context, message, section.name)
            finally:
                await try_delete(message)
        else:
            await post_control_message(context, guild_doc, section)

    @staticmethod
    async def _list(context: CommandContext, guild_doc: GuildDocument) -> None:
        embed = generate_blank_embed(context.guild)
        embed.title = "Verification Sections"
        for section in guild_doc.all_sections():
            role = f"<@&{section.verified_role}>" if section.verified_role else "N/A"
            channel = f"<#{section.verification_channel}>" if section.verification_channel else "N/A"
            manual = f"<#{section.manual_verification_channel}>" if section.manual_verification_channel else "N/A"
            embed.add_field(
                name=section.name,
                value=f"Role: {role}\nVerification: {channel}\nManual Review: {manual}\n"
                f"Requirements: {'Yes' if section.requirements.any_required() else 'None'}",
                inline=True,
            )
        await context.channel.send(embed=embed)

    @staticmethod
    async def _add(context: CommandContext, guild_doc: GuildDocument, name: str) -> None:
        if not SECTION_NAME_PATTERN.match(name) or len(name) > 30:
            await send_temporary(
                context.channel,
                embed=default_error_embed(context.author, "Section names may only contain letters, numbers and spaces (30 characters at most)."),
            )
            return
        if guild_doc.find_section(name) is not None:
            await send_temporary(context.channel, embed=default_error_embed(context.author, f"A section named `{name}` already exists."))
            return

        role = await ask(
            context,
            prompt_embed(context, f"New Section: {name}", "Mention the role members receive when they verify in this section."),
            GenericMessageCollector.get_role_prompt(context.message),
        )
        if isinstance(role, CollectorResult):
            return
        channel = await ask(
            context,
            prompt_embed(context, f"New Section: {name}", "Mention the verification channel of this section."),
            GenericMessageCollector.get_channel_prompt(context.message),
        )
        if isinstance(channel, CollectorResult):
            return
        manual = await ask_with_reactions(
            context,
            prompt_embed(context, f"New Section: {name}", f"Mention the manual verification channel, or react with {SKIP_EMOJI} to skip."),
            GenericMessageCollector.get_channel_prompt(context.message),
            [SKIP_EMOJI],
        )
        if manual is CollectorResult.TIME or manual is CollectorResult.CANCEL:
            return

        section = Section(
            name=name,
            verified_role=role.id,
            verification_channel=channel.id,
            manual_verification_channel=None if manual == SKIP_EMOJI else manual.id,
            verification_attempts_channel=guild_doc.channels.logging.verification_attempts,
            verification_success_channel=guild_doc.channels.logging.verification_success,
        )

        def add_section(doc: GuildDocument) -> None:
            if doc.find_section(name) is None:
                doc.sections.append(section)

        await update_guild(context, add_section)
        logger.info("[CONFIGURATION] Section %s added to %s by %s", name, context.guild.name, context.author)
        await context.channel.send(
            f"The **{name}** section has been added. Use `{context.prefix}section requirements {name}` to set its "
            f"requirements and `{context.prefix}section post {name}` to post its verification message."
        )

    @staticmethod
    async def _remove(context: CommandContext, section: Section) -> None:
        if section.is_main:
            await send_temporary(context.channel, embed=default_error_embed(context.author, "The main section cannot be removed."))
            return

        def remove_section(doc: GuildDocument) -> None:
            doc.sections[:] = [item for item in doc.sections if item.name.lower() != section.name.lower()]

        await update_guild(context, remove_section)
        logger.info("[CONFIGURATION] Section %s removed from %s by %s", section.name, context.guild.name, context.author)
        await context.channel.send(f"The **{section.name}** section has been removed.")
