"""
Repository for the guilds table.

Each row holds one JSON-encoded :class:`GuildDocument`.
"""

from __future__ import annotations

import json
from typing import Dict

import aiosqlite

from zero.datatypes.guild_document import GuildDocument
from zero.util.logger import get_logger

logger = get_logger("guild_repo")


class GuildRepository:
    """CRUD for the guilds table only."""

    async def get(self, conn: aiosqlite.Connection, guild_id: int) -> GuildDocument | None:
        async with conn.execute(
            "SELECT document FROM guilds WHERE guild_id = ?",
            (int(guild_id),),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None
        return GuildDocument.from_dict(json.loads(row[0]))

    async def get_all(self, conn: aiosqlite.Connection) -> Dict[int, GuildDocument]:
        """Fetch every guild document keyed by guild ID."""
        async with conn.execute("SELECT guild_id, document FROM guilds") as cursor:
            rows = await cursor.fetchall()

        result: Dict[int, GuildDocument] = {}
        for row in rows:
            try:
                result[row[0]] = GuildDocument.from_dict(json.loads(row[1]))
            except (ValueError, KeyError, TypeError) as exc:
                logger.error("[GUILD REPO] Skipping unreadable document for guild %s: %s", row[0], exc)
        return result

    async def upsert(self, conn: aiosqlite.Connection, document: GuildDocument) -> None:
        await conn.execute(
            """
            INSERT INTO guilds (guild_id, document) VALUES (?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET document = excluded.document
            """,
            (int(document.guild_id), json.dumps(document.to_dict())),
        )

    async def delete(self, conn: aiosqlite.Connection, guild_id: int) -> None:
        await conn.execute("DELETE FROM guilds WHERE guild_id = ?", (int(guild_id),))
