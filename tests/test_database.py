"""Tests for the shared connection and schema."""

import pytest

from zero.database.database import Database
from zero.database.db_connection import DatabaseNotOpenError, SharedConnection, db_connection
from zero.database.db_schema import SCHEMA_VERSION


def test_closed_connection_refuses_access():
    connection = SharedConnection()
    assert not connection.is_open
    with pytest.raises(DatabaseNotOpenError):
        connection.connection


@pytest.mark.asyncio
async def test_schema_is_created(temp_db):
    async with db_connection.read() as conn:
        async with conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'") as cursor:
            tables = {row["name"] for row in await cursor.fetchall()}
        async with conn.execute("SELECT version FROM schema_version") as cursor:
            versions = [row["version"] for row in await cursor.fetchall()]

    assert {"guilds", "users", "schema_version"} <= tables
    assert versions == [SCHEMA_VERSION]


@pytest.mark.asyncio
async def test_transaction_commits(temp_db):
    async with db_connection.transaction() as conn:
        await conn.execute("INSERT INTO guilds (guild_id, document) VALUES (1, '{}')")

    async with db_connection.read() as conn:
        async with conn.execute("SELECT COUNT(*) FROM guilds") as cursor:
            assert (await cursor.fetchone())[0] == 1


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(temp_db):
    with pytest.raises(ValueError):
        async with db_connection.transaction() as conn:
            await conn.execute("INSERT INTO guilds (guild_id, document) VALUES (2, '{}')")
            raise ValueError("abort")

    async with db_connection.read() as conn:
        async with conn.execute("SELECT COUNT(*) FROM guilds WHERE guild_id = 2") as cursor:
            assert (await cursor.fetchone())[0] == 0
    assert not db_connection.write_lock.locked()


@pytest.mark.asyncio
async def test_initialize_is_idempotent_and_reopenable(tmp_path):
    database = Database(tmp_path / "nested" / "zero.db")
    assert await database.initialize()
    assert await database.initialize()
    assert (tmp_path / "nested" / "zero.db").exists()

    await database.shutdown()
    assert not db_connection.is_open
    await database.shutdown()

    assert await database.initialize()
    await database.shutdown()
