"""Tests for the operator console."""
import math
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from zero.services.user_service import user_service
from zero.ui import console


@pytest.fixture
def printed():
    with patch("zero.ui.console.print_formatted_text") as fake_print:
        yield fake_print


def output_of(fake_print) -> str:
    return "\n".join(str(call.args[0]) for call in fake_print.call_args_list)


def open_bot():
    bot = MagicMock()
    bot.is_closed.return_value = False
    bot.close = AsyncMock()
    return bot


def test_panel_lines_share_width():
    top, middle, bottom = console.panel("Zero")
    assert len(top) == len(middle) == len(bottom) == console.PANEL_WIDTH
    assert middle.strip("║").strip() == "Zero"


def test_plain_and_styled_printing(printed):
    console.console_print("plain")
    printed.assert_called_once_with("plain")

    console.console_print("green", "ansigreen")
    assert printed.call_count == 2
    assert printed.call_args.args[0] != "green"


def test_restart_implies_shutdown():
    control = console.ConsoleControl()
    assert not control.is_shutdown_requested()

    control.request_shutdown()
    assert control.is_shutdown_requested()
    assert not control.is_restart_requested()

    control.request_shutdown(restart=True)
    control.request_shutdown()
    assert control.is_restart_requested()


def test_command_names_and_aliases_are_unique():
    words = [word for command in console.CONSOLE_COMMANDS for word in (command.name, *command.aliases)]
    assert {"help", "status", "guilds", "clear", "restart", "shutdown"} <= set(words)
    assert len(words) == len(set(words))
    assert console.find_console_command("servers").name == "guilds"
    assert console.find_console_command("nope") is None


@pytest.mark.parametrize("latency, shown", [(None, "N/A"), (math.nan, "N/A"), (math.inf, "N/A"), (0.0423, "42ms")])
def test_format_latency(latency, shown):
    assert console.format_latency(latency) == shown


@pytest.mark.asyncio
async def test_closing_missing_or_closed_bot_does_nothing():
    await console.close_bot_instance(None, log_close=True)

    bot = open_bot()
    bot.is_closed.return_value = True
    await console.close_bot_instance(bot)
    bot.close.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_failure_is_swallowed():
    bot = open_bot()
    bot.close.side_effect = RuntimeError("gateway gone")
    await console.close_bot_instance(bot, log_close=True)
    bot.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_blank_lines_are_ignored(printed):
    control = console.ConsoleControl()
    await console.handle_console_command("", control)
    await console.handle_console_command("   ", control)
    printed.assert_not_called()
    assert not control.is_shutdown_requested()


@pytest.mark.asyncio
async def test_unknown_command(printed):
    await console.handle_console_command("Frobnicate now", console.ConsoleControl())
    assert "Unknown command 'frobnicate'" in output_of(printed)


@pytest.mark.asyncio
@pytest.mark.parametrize("line", ["shutdown", "QUIT", "exit now"])
async def test_shutdown_aliases_close_the_bot(printed, line):
    control = console.ConsoleControl()
    bot = open_bot()
    control.set_bot(bot)

    await console.handle_console_command(line, control)

    assert control.is_shutdown_requested()
    assert not control.is_restart_requested()
    bot.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_reboot_requests_restart(printed):
    control = console.ConsoleControl()
    await console.handle_console_command("reboot", control)
    assert control.is_restart_requested()
    assert control.is_shutdown_requested()


@pytest.mark.asyncio
async def test_status_lists_counts(printed, monkeypatch):
    monkeypatch.setattr(user_service, "count", AsyncMock(return_value=12))
    control = console.ConsoleControl()
    bot = open_bot()
    bot.latency = math.nan
    bot.guilds = [SimpleNamespace(id=1)]
    control.set_bot(bot)

    await console.handle_console_command("status", control)

    output = output_of(printed)
    assert "🟢 Connected" in output
    assert "Latency:      N/A" in output
    assert "Profiles:     12" in output


@pytest.mark.asyncio
async def test_failing_command_reports_error(printed, monkeypatch):
    monkeypatch.setattr(user_service, "count", AsyncMock(side_effect=RuntimeError("db down")))
    await console.handle_console_command("stat", console.ConsoleControl())
    assert "'status' failed: db down" in output_of(printed)


@pytest.mark.asyncio
async def test_guild_listing(printed):
    await console.handle_console_command("guilds", console.ConsoleControl())
    assert "No guilds found" in output_of(printed)

    control = console.ConsoleControl()
    bot = open_bot()
    bot.guilds = [
        SimpleNamespace(name="beta", id=2, member_count=5),
        SimpleNamespace(name="Alpha", id=1, member_count=9),
    ]
    control.set_bot(bot)
    printed.reset_mock()

    await console.handle_console_command("g", control)
    lines = [str(call.args[0]) for call in printed.call_args_list]
    assert "Alpha  id=1" in lines[-2]
    assert "beta  id=2" in lines[-1]
