"""
Base types for prefix commands.

Every command is a :class:`Command` subclass describing itself with a
:class:`CommandDetail` and gating itself with a :class:`CommandPermission`.
The :class:`~zero.commands.command_manager.CommandManager` owns parsing,
permission checks and dispatch; commands only implement
:meth:`Command.execute_command`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, field
from typing import List, Optional

import discord

from zero.datatypes.guild_document import GuildDocument


@dataclass(slots=True)
class CommandDetail:
    name: str
    command_code: str
    aliases: List[str] = field(default_factory=list)
    description: str = ""
    usage: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    # Minimum number of arguments
    arg_count: int = 0


@dataclass(slots=True)
class CommandPermission:
    """Who may run a command and what the bot needs to run it.

    ``general_permissions`` and ``bot_permissions`` are names of
    :class:`discord.Permissions` flags. ``role_permissions`` are named guild
    roles (``"team"``, ``"officer"``, ...); holding any of them, or a higher
    staff role, is enough.
    """

    general_permissions: List[str] = field(default_factory=list)
    bot_permissions: List[str] = field(default_factory=list)
    role_permissions: List[str] = field(default_factory=list)


@dataclass(slots=True)
class CommandContext:
    bot: discord.Client
    message: discord.Message
    guild: Optional[discord.Guild]
    author: discord.abc.User
    channel: discord.abc.Messageable
    prefix: str

    @property
    def member(self) -> Optional[discord.Member]:
        return self.author if isinstance(self.author, discord.Member) else None


class Command(ABC):
    """A prefix command.

    Attributes:
        guild_only: Refuse to run in DMs.
        bot_owner_only: Only configured bot owners may run it.
        dm_only: Refuse to run in guild channels.
        delete_command_after: Seconds after which the invoking message is
            deleted; 0 keeps it.
    """

    detail: CommandDetail
    permission: CommandPermission
    guild_only: bool = True
    bot_owner_only: bool = False
    dm_only: bool = False
    delete_command_after: float = 0

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        # every class owns its permission; undeclared ones copy the inherited rules
        if "permission" not in cls.__dict__:
            inherited = getattr(cls, "permission", None)
            cls.permission = deepcopy(inherited) if inherited is not None else CommandPermission()

    @property
    def code(self) -> str:
        return self.detail.command_code

    def matches(self, name: str) -> bool:
        lowered = name.lower()
        return lowered == self.detail.command_code.lower() or lowered in (alias.lower() for alias in self.detail.aliases)

    @abstractmethod
    async def execute_command(
        self, context: CommandContext, args: List[str], guild_doc: Optional[GuildDocument]
    ) -> None:
        """Run the command. ``guild_doc`` is None in DMs."""
