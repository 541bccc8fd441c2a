"""Tests for the quota and moderation commands."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from zero.commands.command import CommandContext
from zero.commands.moderation import (
    BlacklistCommand,
    FindCommand,
    MuteCommand,
    SuspendCommand,
    UnblacklistCommand,
    UnmuteCommand,
    UnsuspendCommand,
    split_duration,
)
from zero.commands.quota import CheckQuotaCommand, LogRunCommand, ResetQuotasCommand, add_runs
from zero.datatypes.guild_document import BlacklistEntry, QuotaEntry, RunCounts, Section
from zero.scheduler import punishment_scheduler
from zero.services.guild_service import guild_service
from zero.services.user_service import user_service

RAIDER_ROLE = SimpleNamespace(id=10, name="Raider")
VETERAN_ROLE = SimpleNamespace(id=11, name="Veteran")
MUTED_ROLE = SimpleNamespace(id=40, name="Muted")
SUSPENDED_ROLE = SimpleNamespace(id=41, name="Suspended")


def make_member(member_id, display_name, *roles, guild=None):
    return SimpleNamespace(
        id=member_id,
        display_name=display_name,
        mention=f"<@{member_id}>",
        roles=list(roles),
        guild=guild,
        display_avatar=SimpleNamespace(url="https://example.invalid/a.png"),
        add_roles=AsyncMock(),
        remove_roles=AsyncMock(),
    )


class FakeGuild:
    def __init__(self, guild_id=1, members=()):
        self.id = guild_id
        self.name = "Guild"
        self.members = list(members)
        self.fetch_member = AsyncMock(return_value=None)
        roles = (RAIDER_ROLE, VETERAN_ROLE, MUTED_ROLE, SUSPENDED_ROLE)
        self._roles = {role.id: role for role in roles}
        for member in self.members:
            member.guild = self

    def get_member(self, member_id):
        return next((m for m in self.members if m.id == member_id), None)

    def get_role(self, role_id):
        return self._roles.get(role_id)

    def get_channel(self, channel_id):
        return None


def make_context(guild, author):
    channel = SimpleNamespace(id=3, send=AsyncMock())
    return CommandContext(
        bot=SimpleNamespace(),
        message=SimpleNamespace(author=author, channel=channel, guild=guild),
        guild=guild,
        author=author,
        channel=channel,
        prefix=";",
    )


def last_embed(context):
    return context.channel.send.await_args.kwargs["embed"]


async def configured_document(guild_id=1):
    def configure(doc):
        doc.roles.raider = RAIDER_ROLE.id
        doc.roles.muted = MUTED_ROLE.id
        doc.roles.suspended = SUSPENDED_ROLE.id
        doc.sections.append(Section(name="Veteran", verified_role=VETERAN_ROLE.id))

    return await guild_service.update(guild_id, configure)


def test_add_runs_never_goes_negative():
    counts = RunCounts(completed=2)
    add_runs(counts, "completed", 3)
    add_runs(counts, "failed", -4)
    assert counts == RunCounts(5, 0, 0)


def test_split_duration():
    assert split_duration(["30m", "Spamming", "links"]) == (1800, ["Spamming", "links"])
    assert split_duration(["Spamming"]) == (None, ["Spamming"])
    assert split_duration([]) == (None, [])
    assert split_duration(["0m", "Oops"]) == (0, ["Oops"])


class TestQuotaCommands:
    @pytest.mark.asyncio
    async def test_logrun_updates_quota_and_profile(self, temp_db):
        leader = make_member(5, "Leader")
        guild = FakeGuild(members=[leader])
        await user_service.create_profile(5, "Leader")
        context = make_context(guild, leader)

        await LogRunCommand().execute_command(context, ["rc", "completed", "3"], await configured_document())
        await LogRunCommand().execute_command(context, ["endgame", "failed"], await guild_service.get(1))

        entry = (await guild_service.get(1)).properties.quotas.entry_for(5)
        assert entry.realm_clearing == RunCounts(completed=3)
        assert entry.endgame == RunCounts(failed=1)
        assert entry.last_updated > 0
        profile = await user_service.get_profile(5)
        assert profile.leader_runs_for(1).realm_clearing.completed == 3
        assert last_embed(context).title == "Run Logged"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [["raids", "completed"], ["general", "won"], ["general", "completed", "500"]])
    async def test_logrun_rejects_bad_arguments(self, temp_db, args):
        leader = make_member(5, "Leader")
        context = make_context(FakeGuild(members=[leader]), leader)
        await LogRunCommand().execute_command(context, args, await configured_document())

        assert last_embed(context).title == "Error"
        assert (await guild_service.get(1)).properties.quotas.details == []

    @pytest.mark.asyncio
    async def test_resetquotas(self, temp_db):
        officer = make_member(5, "Officer")
        context = make_context(FakeGuild(members=[officer]), officer)
        await guild_service.update(1, lambda doc: doc.properties.quotas.details.append(QuotaEntry(member_id=5)))

        await ResetQuotasCommand().execute_command(context, [], await guild_service.get(1))
        quotas = (await guild_service.get(1)).properties.quotas
        assert quotas.details == []
        assert quotas.last_reset > 0

    @pytest.mark.asyncio
    async def test_checkquota_leaderboard(self, temp_db):
        first = make_member(5, "First")
        second = make_member(6, "Second")
        guild = FakeGuild(members=[first, second])

        def seed(doc):
            doc.properties.quotas.details.extend(
                [
                    QuotaEntry(member_id=5, general=RunCounts(completed=1)),
                    QuotaEntry(member_id=6, general=RunCounts(completed=4)),
                    QuotaEntry(member_id=99, general=RunCounts(completed=9)),
                ]
            )

        document = await guild_service.update(1, seed)
        context = make_context(guild, first)
        await CheckQuotaCommand().execute_command(context, [], document)

        embed = last_embed(context)
        assert "First" in embed.title
        assert embed.footer.text == "Completed / Failed / Assists"
        board = embed.fields[0].value
        assert board.index("<@6>") < board.index("<@5>")
        assert "<@99>" not in board
        assert "(First) ⭐" in board
        assert "**`[1]`** <@6>" in board


class TestBlacklist:
    @pytest.mark.asyncio
    async def test_blacklist_strips_verified_roles(self, temp_db):
        target = make_member(7, "Alchemist", RAIDER_ROLE, VETERAN_ROLE)
        moderator = make_member(8, "Mod")
        guild = FakeGuild(members=[target, moderator])
        context = make_context(guild, moderator)

        await BlacklistCommand().execute_command(context, ["Alchemist", "Crashing", "runs."], await configured_document())

        entry = (await guild_service.get(1)).moderation.is_blacklisted("alchemist")
        assert entry.reason == "Crashing runs."
        assert entry.in_game_name == "alchemist"
        target.remove_roles.assert_awaited_once()
        assert [role.id for role in target.remove_roles.await_args.args] == [RAIDER_ROLE.id, VETERAN_ROLE.id]

    @pytest.mark.asyncio
    async def test_unblacklist(self, temp_db):
        moderator = make_member(8, "Mod")
        context = make_context(FakeGuild(members=[moderator]), moderator)
        document = await configured_document()

        await UnblacklistCommand().execute_command(context, ["Alchemist"], document)
        assert last_embed(context).title == "Error"

        await BlacklistCommand().execute_command(context, ["Alchemist", "reason"], document)
        await UnblacklistCommand().execute_command(context, ["ALCHEMIST"], await guild_service.get(1))
        assert (await guild_service.get(1)).moderation.blacklisted_users == []


class TestPunishments:
    @pytest.fixture(autouse=True)
    def scheduler(self, monkeypatch):
        schedule = AsyncMock()
        cancel = AsyncMock(return_value=True)
        monkeypatch.setattr(punishment_scheduler.PUNISHMENT_SCHEDULER, "schedule", schedule)
        monkeypatch.setattr(punishment_scheduler.PUNISHMENT_SCHEDULER, "cancel", cancel)
        return SimpleNamespace(schedule=schedule, cancel=cancel)

    @pytest.mark.asyncio
    async def test_timed_mute_is_recorded_and_scheduled(self, temp_db, scheduler):
        target = make_member(7, "Alchemist", RAIDER_ROLE)
        moderator = make_member(8, "Mod")
        guild = FakeGuild(members=[target, moderator])
        await user_service.create_profile(7, "Alchemist")
        context = make_context(guild, moderator)

        await MuteCommand().execute_command(context, ["<@7>", "30m", "Spamming."], await configured_document())

        target.add_roles.assert_awaited_once()
        entry = (await guild_service.get(1)).moderation.muted_users[0]
        assert entry.reason == "Spamming."
        assert entry.expires_at - entry.issued_at == 1800 * 1000
        scheduler.schedule.assert_awaited_once()
        history = (await user_service.get_profile(7)).moderation_history
        assert [(record.kind, record.duration) for record in history] == [("mute", 1800 * 1000)]

    @pytest.mark.asyncio
    async def test_indefinite_mute_is_not_scheduled(self, temp_db, scheduler):
        target = make_member(7, "Alchemist")
        moderator = make_member(8, "Mod")
        context = make_context(FakeGuild(members=[target, moderator]), moderator)

        await MuteCommand().execute_command(context, ["7", "Being", "rude."], await configured_document())
        entry = (await guild_service.get(1)).moderation.muted_users[0]
        assert entry.expires_at is None
        assert entry.reason == "Being rude."
        scheduler.schedule.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_double_mute_is_refused(self, temp_db):
        target = make_member(7, "Alchemist")
        moderator = make_member(8, "Mod")
        context = make_context(FakeGuild(members=[target, moderator]), moderator)

        await MuteCommand().execute_command(context, ["7"], await configured_document())
        await MuteCommand().execute_command(context, ["7"], await guild_service.get(1))
        assert len((await guild_service.get(1)).moderation.muted_users) == 1
        assert "already" in last_embed(context).description

    @pytest.mark.asyncio
    async def test_suspension_saves_and_restores_section_roles(self, temp_db, scheduler):
        target = make_member(7, "Alchemist", RAIDER_ROLE, VETERAN_ROLE)
        moderator = make_member(8, "Leader")
        guild = FakeGuild(members=[target, moderator])
        context = make_context(guild, moderator)

        await SuspendCommand().execute_command(context, ["7", "3d", "Leeching."], await configured_document())
        entry = (await guild_service.get(1)).moderation.suspended_users[0]
        assert sorted(entry.roles) == [RAIDER_ROLE.id, VETERAN_ROLE.id]
        target.add_roles.assert_awaited_once_with(SUSPENDED_ROLE, reason="Leeching.")

        target.roles = [SUSPENDED_ROLE]
        target.add_roles.reset_mock()
        await UnsuspendCommand().execute_command(context, ["7"], await guild_service.get(1))
        scheduler.cancel.assert_awaited_once()
        target.remove_roles.assert_awaited_with(SUSPENDED_ROLE, reason="No reason provided.")
        assert sorted(role.id for role in target.add_roles.await_args.args) == [RAIDER_ROLE.id, VETERAN_ROLE.id]

    @pytest.mark.asyncio
    async def test_suspension_requires_duration(self, temp_db):
        target = make_member(7, "Alchemist")
        moderator = make_member(8, "Leader")
        context = make_context(FakeGuild(members=[target, moderator]), moderator)

        await SuspendCommand().execute_command(context, ["7", "forever", "reason"], await configured_document())
        assert (await guild_service.get(1)).moderation.suspended_users == []
        assert "duration" in last_embed(context).description

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command_type", [MuteCommand, SuspendCommand])
    async def test_zero_duration_is_refused(self, temp_db, scheduler, command_type):
        target = make_member(7, "Alchemist", RAIDER_ROLE)
        moderator = make_member(8, "Leader")
        context = make_context(FakeGuild(members=[target, moderator]), moderator)

        await command_type().execute_command(context, ["7", "0s", "Oops."], await configured_document())
        moderation = (await guild_service.get(1)).moderation
        assert moderation.muted_users == [] and moderation.suspended_users == []
        target.add_roles.assert_not_awaited()
        scheduler.schedule.assert_not_awaited()
        assert "longer than zero" in last_embed(context).description

    @pytest.mark.asyncio
    async def test_unmute_without_mute(self, temp_db):
        target = make_member(7, "Alchemist")
        moderator = make_member(8, "Mod")
        context = make_context(FakeGuild(members=[target, moderator]), moderator)

        await UnmuteCommand().execute_command(context, ["7"], await configured_document())
        assert "is not under a mute" in last_embed(context).description


@pytest.mark.asyncio
async def test_find_shows_profile_and_status(temp_db):
    target = make_member(7, "Alchemist", RAIDER_ROLE)
    staff = make_member(8, "Staff")
    context = make_context(FakeGuild(members=[target, staff]), staff)
    await user_service.create_profile(7, "Alchemist", ["Wizard"])
    await configured_document()
    document = await guild_service.update(
        1, lambda doc: doc.moderation.blacklisted_users.append(
            BlacklistEntry("wizard", "alt abuse")
        )
    )

    await FindCommand().execute_command(context, ["Alchemist"], document)

    fields = {field.name: field.value for field in last_embed(context).fields}
    assert fields["Profile Names"] == "Alchemist, Wizard"
    assert fields["Muted"] == "No"
    assert fields["Suspended"] == "No"
    assert "`wizard`: alt abuse" in fields["Blacklisted"]
