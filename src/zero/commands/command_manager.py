"""
CommandManager: parse prefixed messages and dispatch them to commands.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Set, Tuple

import discord

from zero.commands.command import Command, CommandContext
from zero.configuration.app_configuration import app_config
from zero.datatypes.guild_document import STAFF_HIERARCHY, GuildDocument
from zero.services.guild_service import guild_service
from zero.util.logger import get_logger
from zero.util.message_utils import default_error_embed, generate_blank_embed, send_temporary, try_delete

logger = get_logger("command_manager")

TEAM_ROLE = "team"


class CommandManager:
    """Registry of commands plus the checks applied before running one."""

    def __init__(self) -> None:
        self._commands: Dict[str, Command] = {}
        # pending delayed deletions of invoking messages
        self._cleanup_tasks: Set[asyncio.Task] = set()

    @property
    def commands(self) -> List[Command]:
        return list(self._commands.values())

    @property
    def pending_cleanups(self) -> int:
        return len(self._cleanup_tasks)

    def delete_later(self, message: discord.Message, delay: float) -> asyncio.Task:
        """Delete ``message`` after ``delay`` seconds in the background."""

        async def delete() -> None:
            await asyncio.sleep(delay)
            await try_delete(message)

        task = asyncio.create_task(delete())
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)
        return task

    def register(self, command: Command) -> None:
        code = command.code.lower()
        if code in self._commands:
            raise ValueError(f"Command {code!r} is already registered")
        self._commands[code] = command

    def register_all(self, commands: Iterable[Command]) -> None:
        for command in commands:
            self.register(command)

    def find_command(self, name: str) -> Optional[Command]:
        lowered = name.lower()
        if lowered in self._commands:
            return self._commands[lowered]
        return next((command for command in self._commands.values() if command.matches(lowered)), None)

    @staticmethod
    def parse(content: str, prefix: str) -> Optional[Tuple[str, List[str]]]:
        """Split ``content`` into a command name and its arguments.

        Returns None when the message does not start with ``prefix`` or has no
        command name after it.
        """
        if not prefix or not content.startswith(prefix):
            return None
        parts = content[len(prefix):].split()
        if not parts:
            return None
        return parts[0].lower(), parts[1:]

    # ------------------------------------------------------------------
    # Permission checks
    # ------------------------------------------------------------------

    @staticmethod
    def named_role_ids(guild_doc: GuildDocument, role_name: str) -> List[int]:
        """Role IDs that satisfy ``role_name``.

        A staff rank is satisfied by itself or any rank above it. ``team`` is
        satisfied by the team role or any staff role.
        """
        roles = guild_doc.roles
        if role_name == TEAM_ROLE:
            ids = [roles.team, *roles.staff_role_ids()]
        elif role_name in STAFF_HIERARCHY:
            ids = [getattr(roles, rank) for rank in STAFF_HIERARCHY[STAFF_HIERARCHY.index(role_name):]]
        else:
            ids = [getattr(roles, role_name, None)]
        return [role_id for role_id in ids if role_id]

    def has_permission(self, member: discord.Member, command: Command, guild_doc: GuildDocument) -> bool:
        permissions = member.guild_permissions
        if permissions.administrator:
            return True

        if any(not getattr(permissions, name, False) for name in command.permission.general_permissions):
            return False

        required = command.permission.role_permissions
        if not required:
            return True

        allowed = {role_id for name in required for role_id in self.named_role_ids(guild_doc, name)}
        return any(role.id in allowed for role in member.roles)

    @staticmethod
    def missing_bot_permissions(guild: discord.Guild, command: Command) -> List[str]:
        permissions = guild.me.guild_permissions
        if permissions.administrator:
            return []
        return [name for name in command.permission.bot_permissions if not getattr(permissions, name, False)]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, bot: discord.Client, message: discord.Message) -> bool:
        """Run the command in ``message``, if any. Returns True when a command ran."""
        guild = message.guild
        guild_doc: Optional[GuildDocument] = None
        if guild is not None:
            guild_doc = await guild_service.get_or_create(guild.id)
            prefix = guild_doc.prefix
        else:
            prefix = app_config.default_prefix

        parsed = self.parse(message.content, prefix)
        if parsed is None:
            return False
        name, args = parsed
        command = self.find_command(name)
        if command is None:
            return False

        refusal = self._refusal(message, command, args, guild_doc, prefix)
        if refusal is not None:
            if refusal:
                await send_temporary(message.channel, embed=default_error_embed(message.author, refusal))
            return False

        if guild is not None and command.delete_command_after:
            self.delete_later(message, command.delete_command_after)

        context = CommandContext(
            bot=bot,
            message=message,
            guild=guild,
            author=message.author,
            channel=message.channel,
            prefix=prefix,
        )
        logger.debug("[COMMAND MANAGER] %s ran %s %s", message.author, command.code, args)
        try:
            await command.execute_command(context, args, guild_doc)
        except Exception:
            logger.exception("[COMMAND MANAGER] Command %s failed for %s", command.code, message.author)
            embed = default_error_embed(
                message.author, "Something went wrong while running this command. Please try again later."
            )
            await send_temporary(message.channel, embed=embed)
        return True

    def _refusal(
        self,
        message: discord.Message,
        command: Command,
        args: List[str],
        guild_doc: Optional[GuildDocument],
        prefix: str,
    ) -> Optional[str]:
        """Explain why ``command`` may not run here, or None when it may.

        An empty string refuses silently.
        """
        guild = message.guild
        if command.bot_owner_only and message.author.id not in app_config.bot_owner_ids:
            return ""
        if command.guild_only and guild is None:
            return "This command can only be used in a server."
        if command.dm_only and guild is not None:
            return "This command can only be used in direct messages."
        if len(args) < command.detail.arg_count:
            usage = ", ".join(f"`{prefix}{usage}`" for usage in command.detail.usage) or f"`{prefix}{command.code}`"
            return f"This command needs at least {command.detail.arg_count} argument(s). Usage: {usage}"

        if guild is not None and guild_doc is not None:
            if not isinstance(message.author, discord.Member) or not self.has_permission(message.author, command, guild_doc):
                return "You do not have permission to run this command."
            missing = self.missing_bot_permissions(guild, command)
            if missing:
                return "I am missing the following permissions: " + ", ".join(f"`{name}`" for name in missing)
        return None

    def usable_commands(self, member: Optional[discord.abc.User], guild_doc: Optional[GuildDocument]) -> List[Command]:
        """Commands ``member`` could run in the current context."""
        usable = []
        for command in self._commands.values():
            if command.bot_owner_only and (member is None or member.id not in app_config.bot_owner_ids):
                continue
            if guild_doc is None:
                if command.guild_only:
                    continue
            elif command.dm_only or not isinstance(member, discord.Member) or not self.has_permission(member, command, guild_doc):
                continue
            usable.append(command)
        return usable

    @staticmethod
    def detail_embed(author: discord.abc.User, command: Command, prefix: str) -> discord.Embed:
        detail = command.detail
        embed = generate_blank_embed(author)
        embed.title = f"Command Information: **{detail.name}**"
        embed.description = detail.description or "No description."
        embed.add_field(name="Command Code", value=f"`{detail.command_code}`")
        embed.add_field(name="Aliases", value=", ".join(f"`{alias}`" for alias in detail.aliases) or "None")
        embed.add_field(
            name="Usage", value="\n".join(f"`{prefix}{usage}`" for usage in detail.usage) or "N/A", inline=False
        )
        embed.add_field(
            name="Examples", value="\n".join(f"`{prefix}{example}`" for example in detail.examples) or "N/A", inline=False
        )
        embed.add_field(
            name="Required Roles", value=", ".join(command.permission.role_permissions) or "None", inline=False
        )
        return embed
