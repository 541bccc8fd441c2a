"""Tests for the usermanager and adminprofileupdater commands."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import discord
import pytest

from zero.commands import profile as profile_commands
from zero.commands.command import CommandContext
from zero.commands.profile import CONFIRM_EMOJI, EXIT_EMOJI, AdminProfileUpdaterCommand, UserManagerCommand
from zero.datatypes.guild_document import GuildDocument
from zero.services.user_service import user_service

RAIDER_ROLE = SimpleNamespace(id=10, name="Raider")
SUSPENDED_ROLE = SimpleNamespace(id=41, name="Suspended")


def make_member(member_id, display_name, *roles, bot=False):
    return SimpleNamespace(
        id=member_id,
        display_name=display_name,
        mention=f"<@{member_id}>",
        roles=list(roles),
        bot=bot,
        display_avatar=SimpleNamespace(url="https://example.invalid/a.png"),
    )


class FakeGuild:
    def __init__(self, members=()):
        self.id = 1
        self.name = "Guild"
        self.members = list(members)

    def get_role(self, role_id):
        return {RAIDER_ROLE.id: RAIDER_ROLE, SUSPENDED_ROLE.id: SUSPENDED_ROLE}.get(role_id)


def make_sent_message(message_id=500):
    return SimpleNamespace(
        id=message_id, edit=AsyncMock(), delete=AsyncMock(), clear_reactions=AsyncMock(), add_reaction=AsyncMock()
    )


def make_context(author, guild=None, bot=None):
    channel = SimpleNamespace(id=3, send=AsyncMock(return_value=make_sent_message()))
    return CommandContext(
        bot=bot or SimpleNamespace(),
        message=SimpleNamespace(author=author, channel=channel, guild=guild),
        guild=guild,
        author=author,
        channel=channel,
        prefix=";",
    )


@pytest.fixture
def document():
    document = GuildDocument.new(1, ";")
    document.roles.raider = RAIDER_ROLE.id
    document.roles.suspended = SUSPENDED_ROLE.id
    return document


class TestUserManager:
    @pytest.fixture
    def dm(self):
        return SimpleNamespace(id=77, send=AsyncMock(return_value=make_sent_message(600)))

    @pytest.fixture
    def author(self, dm):
        author = make_member(8, "Alchemist")
        author.create_dm = AsyncMock(return_value=dm)
        return author

    @pytest.mark.asyncio
    async def test_requires_a_profile(self, temp_db, author):
        context = make_context(author)
        await UserManagerCommand().execute_command(context, [], None)
        assert context.channel.send.await_args.kwargs["embed"].title == "No Profile Found"
        author.create_dm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_closed_direct_messages(self, temp_db, author):
        await user_service.create_profile(8, "Alchemist")
        author.create_dm.side_effect = discord.Forbidden(SimpleNamespace(status=403, reason="Forbidden"), "closed")
        context = make_context(author)

        await UserManagerCommand().execute_command(context, [], None)
        assert "open your direct messages" in context.channel.send.await_args.kwargs["embed"].description

    @pytest.mark.asyncio
    async def test_exit(self, temp_db, author, dm, menu_answers):
        await user_service.create_profile(8, "Alchemist")
        menu_answers(profile_commands, EXIT_EMOJI)

        await UserManagerCommand().execute_command(make_context(author), [], None)
        assert dm.send.await_count == 1
        dm.send.return_value.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_add_alt_starts_alt_verification(self, temp_db, author, monkeypatch, menu_answers):
        await user_service.create_profile(8, "Alchemist")
        menu_answers(profile_commands, "⚙️", "➕")
        handler = SimpleNamespace(verify_alt=AsyncMock(return_value=True))
        monkeypatch.setattr(profile_commands, "verification_handler", handler)
        context = make_context(author)

        await UserManagerCommand().execute_command(context, [], None)
        bot, user, profile = handler.verify_alt.await_args.args
        assert user is author
        assert profile.display_name == "Alchemist"

    @pytest.mark.asyncio
    async def test_remove_alt(self, temp_db, author, dm, fake_bot, menu_answers):
        await user_service.create_profile(8, "Alchemist", ["Wizard", "Priest"])
        menu_answers(profile_commands, "⚙️", "➖")
        fake_bot.queue("message", SimpleNamespace(author=author, channel=dm, content="2", guild=None))

        await UserManagerCommand().execute_command(make_context(author, bot=fake_bot), [], None)
        profile = await user_service.get_profile(8)
        assert [alt.display_name for alt in profile.other_accounts] == ["Wizard"]
        assert "**`Priest`** has been removed" in dm.send.await_args.args[0]

    @pytest.mark.asyncio
    async def test_switch_main(self, temp_db, author, dm, fake_bot, menu_answers):
        await user_service.create_profile(8, "Alchemist", ["Wizard"])
        menu_answers(profile_commands, "⚙️", "🔄")
        fake_bot.queue("message", SimpleNamespace(author=author, channel=dm, content="1", guild=None))

        await UserManagerCommand().execute_command(make_context(author, bot=fake_bot), [], None)
        profile = await user_service.get_profile(8)
        assert profile.display_name == "Wizard"
        assert [alt.display_name for alt in profile.other_accounts] == ["Alchemist"]

    @pytest.mark.asyncio
    async def test_alt_options_need_alts(self, temp_db, author, dm, menu_answers):
        await user_service.create_profile(8, "Alchemist")
        menu_answers(profile_commands, "⚙️", EXIT_EMOJI)

        await UserManagerCommand().execute_command(make_context(author), [], None)
        menu = dm.send.await_args_list[1].kwargs["embed"]
        assert "➖" not in menu.description
        assert "➕" in menu.description


class TestAdminProfileUpdater:
    @pytest.fixture
    def members(self):
        return SimpleNamespace(
            admin=make_member(1, "Officer"),
            verified=make_member(7, "Alchemist | Wizard", RAIDER_ROLE),
            suspended=make_member(9, "Priest", SUSPENDED_ROLE),
            linked=make_member(11, "Knight", RAIDER_ROLE),
            unverified=make_member(12, "Rogue"),
            nameless=make_member(13, "123", RAIDER_ROLE),
            bot=make_member(14, "Helper", RAIDER_ROLE, bot=True),
        )

    @pytest.fixture
    def guild(self, members):
        return FakeGuild(vars(members).values())

    @pytest.fixture
    def collect(self, monkeypatch):
        collect = AsyncMock()
        monkeypatch.setattr(AdminProfileUpdaterCommand, "_collect", collect)
        return collect

    def test_unsynced_members(self, guild, members, document):
        found = AdminProfileUpdaterCommand.unsynced_members(guild, document, {members.linked.id})
        assert found == [(members.verified, ["Alchemist", "Wizard"]), (members.suspended, ["Priest"])]

    @pytest.mark.asyncio
    async def test_exit_deletes_the_menu(self, guild, members, document, menu_answers):
        menu_answers(profile_commands, EXIT_EMOJI)
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        context.channel.send.return_value.delete.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_force_sync_with_exclusion(self, temp_db, guild, members, document, menu_answers, collect):
        await user_service.create_profile(members.linked.id, "Knight")
        menu_answers(profile_commands, "🔄")
        collect.side_effect = [2, CONFIRM_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        created = await user_service.get_profile(members.verified.id)
        assert created.display_name == "Alchemist"
        assert [alt.display_name for alt in created.other_accounts] == ["Wizard"]
        assert await user_service.get_profile(members.suspended.id) is None

        finished = context.channel.send.return_value.edit.await_args.kwargs["embed"]
        assert finished.title == "Sync Completed"
        assert finished.description == "1/1 accounts were successfully synced."

    @pytest.mark.asyncio
    async def test_force_sync_cancelled(self, temp_db, guild, members, document, menu_answers, collect):
        menu_answers(profile_commands, "🔄")
        collect.side_effect = [EXIT_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        assert await user_service.count() == 0
        assert context.channel.send.return_value.edit.await_args.kwargs["embed"].title == "Sync Cancelled"

    @pytest.mark.asyncio
    async def test_force_sync_with_nothing_to_do(self, temp_db, members, document, menu_answers, collect):
        menu_answers(profile_commands, "🔄")
        context = make_context(members.admin, FakeGuild([members.admin, members.unverified]))

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        collect.assert_not_awaited()
        assert context.channel.send.return_value.edit.await_args.kwargs["embed"].title == "All Synced"

    @pytest.mark.asyncio
    async def test_add_profile(self, temp_db, guild, members, document, menu_answers, collect):
        menu_answers(profile_commands, "🔼")
        collect.side_effect = [members.verified, CONFIRM_EMOJI, "Alchemist", CONFIRM_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        assert (await user_service.get_profile(members.verified.id)).display_name == "Alchemist"
        assert context.channel.send.return_value.edit.await_args.kwargs["embed"].title == "Profile Created"

    @pytest.mark.asyncio
    async def test_add_profile_refuses_a_used_name(self, temp_db, guild, members, document, menu_answers, collect):
        await user_service.create_profile(members.linked.id, "Knight")
        menu_answers(profile_commands, "🔼")
        collect.side_effect = [members.verified, CONFIRM_EMOJI, "knight", CONFIRM_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        assert await user_service.get_profile(members.verified.id) is None
        assert context.channel.send.return_value.edit.await_args.kwargs["embed"].title == "Name Already Used"

    @pytest.mark.asyncio
    async def test_confirm_needs_a_selection(self, temp_db, guild, members, document, menu_answers, collect):
        menu_answers(profile_commands, "🔽")
        collect.side_effect = [CONFIRM_EMOJI, EXIT_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        assert collect.await_count == 2
        assert context.channel.send.return_value.edit.await_args.kwargs["embed"].title == "Process Canceled"

    @pytest.mark.asyncio
    async def test_remove_profile(self, temp_db, guild, members, document, menu_answers, collect):
        await user_service.create_profile(members.linked.id, "Knight")
        menu_answers(profile_commands, "🔽")
        collect.side_effect = [members.linked, CONFIRM_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        assert await user_service.get_profile(members.linked.id) is None
        assert context.channel.send.return_value.edit.await_args.kwargs["embed"].title == "Profile Removed"

    @pytest.mark.asyncio
    async def test_edit_main_name(self, temp_db, guild, members, document, menu_answers, collect):
        await user_service.create_profile(members.linked.id, "Knight", ["Paladin"])
        menu_answers(profile_commands, "📩", "✏️")
        collect.side_effect = [members.linked, CONFIRM_EMOJI, "Paladin", CONFIRM_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        profile = await user_service.get_profile(members.linked.id)
        assert profile.display_name == "Paladin"
        assert profile.other_accounts == []
        assert context.channel.send.return_value.edit.await_args.kwargs["embed"].title == "Profile Updated"

    @pytest.mark.asyncio
    async def test_edit_adds_alt_name(self, temp_db, guild, members, document, menu_answers, collect):
        await user_service.create_profile(members.linked.id, "Knight")
        menu_answers(profile_commands, "📩", "➕")
        collect.side_effect = [members.linked, CONFIRM_EMOJI, "Paladin", CONFIRM_EMOJI]
        context = make_context(members.admin, guild)

        await AdminProfileUpdaterCommand().execute_command(context, [], document)
        profile = await user_service.get_profile(members.linked.id)
        assert [alt.display_name for alt in profile.other_accounts] == ["Paladin"]
