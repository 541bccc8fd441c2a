"""Tests for the countdown footer and reaction menus."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import discord
import pytest

from zero.datatypes.time_unit import TimeUnit
from zero.ui.auto_tick import MessageAutoTick, remaining_parts
from zero.ui.collectors import CollectorResult
from zero.ui.reaction_menu import FastReactionMenu


@pytest.fixture
def fast_ticks(monkeypatch):
    monkeypatch.setattr(MessageAutoTick, "TICK_SECONDS", 0.01)


def make_message(message_id=500, guild=None):
    return SimpleNamespace(id=message_id, guild=guild, edit=AsyncMock(), add_reaction=AsyncMock())


class TestMessageAutoTick:
    def test_remaining_parts(self):
        assert remaining_parts(125.7) == (2, 5)
        assert remaining_parts(-3) == (0, 0)

    def test_default_footer(self):
        ticker = MessageAutoTick(make_message(), discord.Embed(), 300)
        assert ticker.footer_text(125) == "⏳ Time Remaining: 2 Minutes and 5 Seconds."

    def test_custom_template(self):
        ticker = MessageAutoTick(make_message(), discord.Embed(), 300, template="{m}m {s}s left")
        assert ticker.footer_text(61) == "1m 1s left"

    @pytest.mark.asyncio
    async def test_counts_down_until_stopped(self, fast_ticks):
        message = make_message()
        embed = discord.Embed(title="Prompt")
        ticker = MessageAutoTick(message, embed, 300).start()

        await asyncio.sleep(0.035)
        await ticker.stop()
        edits = message.edit.await_count
        assert edits >= 2
        assert message.edit.await_args.kwargs["embed"] is embed
        assert embed.footer.text.startswith("⏳ Time Remaining: 4 Minutes")

        await asyncio.sleep(0.03)
        assert message.edit.await_count == edits
        assert not ticker.running

    @pytest.mark.asyncio
    async def test_stop_waits_for_an_edit_in_flight(self, fast_ticks):
        landed = []

        async def slow_edit(**kwargs):
            await asyncio.sleep(0.02)
            landed.append(kwargs["embed"])

        message = make_message()
        message.edit.side_effect = slow_edit
        ticker = MessageAutoTick(message, discord.Embed(), 300).start()
        await asyncio.sleep(0.005)

        await ticker.stop()
        await asyncio.sleep(0.04)
        assert landed == []

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        ticker = MessageAutoTick(make_message(), discord.Embed(), 300)
        await ticker.stop()
        assert not ticker.running

    @pytest.mark.asyncio
    async def test_failed_edit_ends_the_countdown(self, fast_ticks):
        message = make_message()
        message.edit.side_effect = discord.HTTPException(SimpleNamespace(status=404, reason="Not Found"), "gone")
        ticker = MessageAutoTick(message, discord.Embed(), 300).start()

        await asyncio.sleep(0.02)
        assert not ticker.running
        message.edit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ends_when_time_runs_out(self, fast_ticks):
        ticker = MessageAutoTick(make_message(), discord.Embed(), 0.02).start()
        await asyncio.sleep(0.05)
        assert not ticker.running


class TestFastReactionMenu:
    @pytest.mark.asyncio
    async def test_returns_pressed_emoji(self, fake_bot):
        message = make_message()
        user = SimpleNamespace(id=1)
        fake_bot.queue("reaction_add", SimpleNamespace(emoji="❌", message=message), user)

        menu = FastReactionMenu(fake_bot, message, user, ["✅", "❌"], 1)
        assert await menu.react() == "❌"

    @pytest.mark.asyncio
    async def test_ignores_other_users_and_emojis(self, fake_bot):
        message = make_message()
        user = SimpleNamespace(id=1)
        fake_bot.queue("reaction_add", SimpleNamespace(emoji="✅", message=message), SimpleNamespace(id=2))
        fake_bot.queue("reaction_add", SimpleNamespace(emoji="🔥", message=message), user)
        fake_bot.queue("reaction_add", SimpleNamespace(emoji="✅", message=make_message(501)), user)
        fake_bot.queue("reaction_add", SimpleNamespace(emoji="✅", message=message), user)

        menu = FastReactionMenu(fake_bot, message, user, ["✅", "❌"], 1)
        assert await menu.react() == "✅"

    @pytest.mark.asyncio
    async def test_guild_reactions_are_removed(self, fake_bot):
        message = make_message(guild=SimpleNamespace(id=9))
        user = SimpleNamespace(id=1)
        reaction = SimpleNamespace(emoji="✅", message=message, remove=AsyncMock())
        fake_bot.queue("reaction_add", reaction, user)

        assert await FastReactionMenu(fake_bot, message, user, ["✅"], 1).react() == "✅"
        reaction.remove.assert_awaited_once_with(user)

    @pytest.mark.asyncio
    async def test_timeout_after_adding_reactions(self, fake_bot):
        message = make_message()
        menu = FastReactionMenu(fake_bot, message, SimpleNamespace(id=1), ["✅", "❌"], 1, TimeUnit.SECOND)

        assert await menu.react() is CollectorResult.TIME
        assert [call.args[0] for call in message.add_reaction.await_args_list] == ["✅", "❌"]

    @pytest.mark.asyncio
    async def test_existing_reactions_are_kept(self, fake_bot):
        message = make_message()
        menu = FastReactionMenu(fake_bot, message, SimpleNamespace(id=1), ["✅"], 1, react_to_message=False)

        assert await menu.react() is CollectorResult.TIME
        message.add_reaction.assert_not_awaited()
