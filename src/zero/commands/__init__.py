"""
Prefix commands.

- **command.py**: base classes describing a command and its permissions
- **command_manager.py**: parsing, permission checks and dispatch
- **general.py**: help and ping
- **configuration.py**: prefix, the configuration menu and sections
- **profile.py**: self-service and administrator profile management
- **quota.py**: staff run quotas
- **moderation.py**: blacklist, mutes, suspensions and member lookup
"""

from zero.commands.command_manager import CommandManager


def build_command_manager() -> CommandManager:
    """Create a manager with every command registered."""
    from zero.commands.configuration import ConfigureCommand, PrefixCommand, SectionCommand
    from zero.commands.general import HelpCommand, PingCommand
    from zero.commands.moderation import (
        BlacklistCommand,
        FindCommand,
        MuteCommand,
        SuspendCommand,
        UnblacklistCommand,
        UnmuteCommand,
        UnsuspendCommand,
    )
    from zero.commands.profile import AdminProfileUpdaterCommand, UserManagerCommand
    from zero.commands.quota import CheckQuotaCommand, LogRunCommand, ResetQuotasCommand

    manager = CommandManager()
    manager.register_all(
        [
            HelpCommand(manager),
            PingCommand(),
            PrefixCommand(),
            ConfigureCommand(),
            SectionCommand(),
            UserManagerCommand(),
            AdminProfileUpdaterCommand(),
            CheckQuotaCommand(),
            LogRunCommand(),
            ResetQuotasCommand(),
            BlacklistCommand(),
            UnblacklistCommand(),
            MuteCommand(),
            UnmuteCommand(),
            SuspendCommand(),
            UnsuspendCommand(),
            FindCommand(),
        ]
    )
    return manager
