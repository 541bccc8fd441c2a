"""Tests for prefix parsing, permission checks and command dispatch."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from zero.commands.command import Command, CommandDetail, CommandPermission
from zero.commands.command_manager import CommandManager
from zero.datatypes.guild_document import GuildDocument
from zero.services.guild_service import guild_service

TEAM, SUPPORT, RAID_LEADER, OFFICER, MODERATOR = 1, 2, 3, 4, 5


class RecordingCommand(Command):
    def __init__(self, code="ping", aliases=(), roles=(), arg_count=0, guild_only=True, bot_permissions=()):
        self.detail = CommandDetail(
            name=code.title(),
            command_code=code,
            aliases=list(aliases),
            usage=[f"{code} <arg>"],
            arg_count=arg_count,
        )
        self.permission = CommandPermission(role_permissions=list(roles), bot_permissions=list(bot_permissions))
        self.guild_only = guild_only
        self.calls = []

    async def execute_command(self, context, args, guild_doc):
        self.calls.append((context, args, guild_doc))


class FailingCommand(RecordingCommand):
    async def execute_command(self, context, args, guild_doc):
        raise RuntimeError("boom")


@pytest.fixture
def document():
    doc = GuildDocument.new(99, "!")
    doc.roles.team = TEAM
    doc.roles.support = SUPPORT
    doc.roles.raid_leader = RAID_LEADER
    doc.roles.officer = OFFICER
    doc.roles.moderator = MODERATOR
    return doc


def make_member(*role_ids, administrator=False):
    member = MagicMock(spec=discord.Member)
    member.id = 1234
    member.roles = [SimpleNamespace(id=role_id) for role_id in role_ids]
    member.guild_permissions = discord.Permissions(administrator=administrator)
    member.display_avatar = SimpleNamespace(url="https://example.invalid/a.png")
    return member


def make_message(content, author, in_guild=True, bot_permissions=None):
    guild = None
    if in_guild:
        me = SimpleNamespace(guild_permissions=bot_permissions or discord.Permissions.all())
        guild = SimpleNamespace(id=99, me=me)
    return SimpleNamespace(
        content=content,
        author=author,
        guild=guild,
        channel=SimpleNamespace(id=5, send=AsyncMock()),
        delete=AsyncMock(),
    )


@pytest.fixture
def stored_document(monkeypatch, document):
    monkeypatch.setattr(guild_service, "get_or_create", AsyncMock(return_value=document))
    return document


class TestParse:
    def test_splits_name_and_args(self):
        assert CommandManager.parse("!Find  Alchemist  now", "!") == ("find", ["Alchemist", "now"])

    def test_wrong_prefix(self):
        assert CommandManager.parse(";find", "!") is None

    def test_prefix_only(self):
        assert CommandManager.parse("!   ", "!") is None

    def test_multi_character_prefix(self):
        assert CommandManager.parse("z!help", "z!") == ("help", [])


class TestRegistry:
    def test_find_by_alias_is_case_insensitive(self):
        manager = CommandManager()
        command = RecordingCommand("checkquota", aliases=["checkq"])
        manager.register(command)
        assert manager.find_command("CHECKQ") is command
        assert manager.find_command("checkquota") is command
        assert manager.find_command("other") is None

    def test_duplicate_codes_rejected(self):
        manager = CommandManager()
        manager.register(RecordingCommand("ping"))
        with pytest.raises(ValueError):
            manager.register(RecordingCommand("PING"))


class TestNamedRoleIds:
    def test_staff_rank_includes_higher_ranks(self, document):
        assert CommandManager.named_role_ids(document, "raid_leader") == [RAID_LEADER, OFFICER, MODERATOR]

    def test_team_includes_every_staff_role(self, document):
        assert set(CommandManager.named_role_ids(document, "team")) == {TEAM, SUPPORT, RAID_LEADER, OFFICER, MODERATOR}

    def test_unconfigured_roles_are_skipped(self, document):
        document.roles.officer = None
        assert CommandManager.named_role_ids(document, "officer") == [MODERATOR]

    def test_non_staff_role(self, document):
        document.roles.raider = 77
        assert CommandManager.named_role_ids(document, "raider") == [77]


class TestHasPermission:
    def test_higher_rank_satisfies_lower(self, document):
        command = RecordingCommand(roles=["raid_leader"])
        assert CommandManager().has_permission(make_member(OFFICER), command, document)

    def test_lower_rank_refused(self, document):
        command = RecordingCommand(roles=["raid_leader"])
        assert not CommandManager().has_permission(make_member(SUPPORT), command, document)

    def test_administrator_bypasses_roles(self, document):
        command = RecordingCommand(roles=["moderator"])
        assert CommandManager().has_permission(make_member(administrator=True), command, document)

    def test_no_requirements(self, document):
        assert CommandManager().has_permission(make_member(), RecordingCommand(), document)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_runs_matching_command(self, stored_document):
        manager = CommandManager()
        command = RecordingCommand("ping")
        manager.register(command)
        message = make_message("!ping a b", make_member())

        assert await manager.dispatch(MagicMock(), message)
        context, args, guild_doc = command.calls[0]
        assert args == ["a", "b"]
        assert guild_doc is stored_document
        assert context.prefix == "!"

    @pytest.mark.asyncio
    async def test_ignores_unknown_commands(self, stored_document):
        manager = CommandManager()
        manager.register(RecordingCommand("ping"))
        assert not await manager.dispatch(MagicMock(), make_message("!pong", make_member()))

    @pytest.mark.asyncio
    async def test_refuses_missing_role(self, stored_document):
        manager = CommandManager()
        command = RecordingCommand("suspend", roles=["raid_leader"])
        manager.register(command)
        message = make_message("!suspend x", make_member(SUPPORT))

        assert not await manager.dispatch(MagicMock(), message)
        assert command.calls == []
        embed = message.channel.send.await_args.kwargs["embed"]
        assert "permission" in embed.description

    @pytest.mark.asyncio
    async def test_refuses_too_few_arguments(self, stored_document):
        manager = CommandManager()
        command = RecordingCommand("logrun", arg_count=2)
        manager.register(command)
        message = make_message("!logrun 1", make_member())

        assert not await manager.dispatch(MagicMock(), message)
        assert "`!logrun <arg>`" in message.channel.send.await_args.kwargs["embed"].description

    @pytest.mark.asyncio
    async def test_refuses_when_bot_lacks_permissions(self, stored_document):
        manager = CommandManager()
        manager.register(RecordingCommand("apu", bot_permissions=["manage_nicknames"]))
        message = make_message("!apu", make_member(), bot_permissions=discord.Permissions.none())

        assert not await manager.dispatch(MagicMock(), message)
        assert "manage_nicknames" in message.channel.send.await_args.kwargs["embed"].description

    @pytest.mark.asyncio
    async def test_guild_only_command_refused_in_dms(self):
        manager = CommandManager()
        command = RecordingCommand("ping")
        manager.register(command)
        message = make_message(";ping", SimpleNamespace(id=1, display_avatar=SimpleNamespace(url="u")), in_guild=False)

        assert not await manager.dispatch(MagicMock(), message)
        assert command.calls == []

    @pytest.mark.asyncio
    async def test_dm_command_uses_default_prefix(self):
        manager = CommandManager()
        command = RecordingCommand("profile", guild_only=False)
        manager.register(command)
        message = make_message(";profile", SimpleNamespace(id=1), in_guild=False)

        assert await manager.dispatch(MagicMock(), message)
        assert command.calls[0][2] is None

    @pytest.mark.asyncio
    async def test_command_errors_are_reported(self, stored_document):
        manager = CommandManager()
        manager.register(FailingCommand("ping"))
        message = make_message("!ping", make_member())

        assert await manager.dispatch(MagicMock(), message)
        assert "Something went wrong" in message.channel.send.await_args.kwargs["embed"].description


def test_usable_commands_filters_by_role(document):
    manager = CommandManager()
    open_command = RecordingCommand("help")
    staff_command = RecordingCommand("mute", roles=["support"])
    manager.register_all([open_command, staff_command])

    assert manager.usable_commands(make_member(), document) == [open_command]
    assert manager.usable_commands(make_member(SUPPORT), document) == [open_command, staff_command]
    assert manager.usable_commands(SimpleNamespace(id=1), None) == []


class TestPermissionOwnership:
    def test_each_subclass_gets_its_own_permission(self):
        class First(Command):
            detail = CommandDetail(name="First", command_code="first")

            async def execute_command(self, context, args, guild_doc):
                pass

        class Second(Command):
            detail = CommandDetail(name="Second", command_code="second")

            async def execute_command(self, context, args, guild_doc):
                pass

        assert First.permission is not Second.permission
        First.permission.role_permissions.append("officer")
        assert Second.permission.role_permissions == []

    def test_inherited_permission_is_copied(self):
        class Parent(Command):
            detail = CommandDetail(name="Parent", command_code="parent")
            permission = CommandPermission(role_permissions=["support"])

            async def execute_command(self, context, args, guild_doc):
                pass

        class Child(Parent):
            pass

        assert Child.permission.role_permissions == ["support"]
        Child.permission.role_permissions.append("officer")
        assert Parent.permission.role_permissions == ["support"]


class TestDeleteLater:
    @pytest.mark.asyncio
    async def test_task_is_tracked_until_done(self):
        manager = CommandManager()
        message = SimpleNamespace(id=1, delete=AsyncMock())

        task = manager.delete_later(message, 0)
        assert manager.pending_cleanups == 1
        await task
        await asyncio.sleep(0)

        message.delete.assert_awaited_once()
        assert manager.pending_cleanups == 0

    @pytest.mark.asyncio
    async def test_dispatch_deletes_invoking_message(self, stored_document):
        manager = CommandManager()
        command = RecordingCommand("ping")
        command.delete_command_after = 0.01
        manager.register(command)
        message = make_message("!ping", make_member())

        assert await manager.dispatch(MagicMock(), message)
        assert manager.pending_cleanups == 1
        await asyncio.sleep(0.05)

        message.delete.assert_awaited_once()
        assert manager.pending_cleanups == 0
