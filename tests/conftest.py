"""
Pytest configuration and fixtures for Zero tests.
"""

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


@pytest_asyncio.fixture
async def temp_db(tmp_path):
    """Open a fresh database file for one test and close it afterwards."""
    from zero.database.database import Database
    from zero.services.guild_service import guild_service

    database = Database(tmp_path / "zero-test.db")
    assert await database.initialize()
    guild_service.clear_cache()

    yield database

    guild_service.clear_cache()
    await database.shutdown()


class FakeBot:
    """Stands in for ``discord.Client.wait_for`` with pre-queued events.

    Events are consumed in order; an event whose ``check`` fails is dropped.
    When the queue of an event runs dry the call times out like the real one.
    """

    def __init__(self):
        self.events = {}
        self.latency = 0.05
        self.guilds = []
        self.user = None

    def queue(self, event, *payload):
        self.events.setdefault(event, []).append(payload)

    async def wait_for(self, event, check=None, timeout=None):
        pending = self.events.get(event, [])
        while pending:
            payload = pending.pop(0)
            if check is None or check(*payload):
                return payload[0] if len(payload) == 1 else payload
        await asyncio.sleep(min(timeout or 0, 0.01))
        raise asyncio.TimeoutError


@pytest.fixture
def fake_bot():
    return FakeBot()


@pytest.fixture
def menu_answers(monkeypatch):
    """Replace ``FastReactionMenu`` in a module with menus answering from a list.

    Once the answers run out every menu times out.
    """
    from zero.ui.collectors import CollectorResult

    def install(module, *choices):
        pending = list(choices)

        class AnsweringMenu:
            def __init__(self, *args, **kwargs):
                pass

            async def react(self):
                return pending.pop(0) if pending else CollectorResult.TIME

        monkeypatch.setattr(module, "FastReactionMenu", AnsweringMenu)
        return pending

    return install
