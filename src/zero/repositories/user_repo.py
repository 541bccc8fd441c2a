"""
Repository for the users table.

A profile can be found by Discord ID, by its main in-game name, or by any of
its alternate names. Alternate names only live inside the JSON document, so
they are matched with SQLite's ``json_each``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, List

import aiosqlite

from zero.datatypes.user_document import UserDocument

_SELECT = "SELECT id, document FROM users"

_NAME_MATCH = """
    lowercase_name = :name
    OR EXISTS (
        SELECT 1 FROM json_each(users.document, '$.other_accounts') AS alt
        WHERE json_extract(alt.value, '$.lowercase') = :name
    )
"""


@dataclass
class UserRow:
    """A stored profile together with its row ID."""
    row_id: int
    document: UserDocument


def _to_row(row) -> UserRow:
    return UserRow(row_id=row[0], document=UserDocument.from_dict(json.loads(row[1])))


class UserRepository:
    """CRUD for the users table only."""

    async def get_by_discord_id(self, conn: aiosqlite.Connection, discord_user_id: int) -> UserRow | None:
        async with conn.execute(f"{_SELECT} WHERE discord_user_id = ?", (int(discord_user_id),)) as cursor:
            row = await cursor.fetchone()
        return _to_row(row) if row else None

    async def get_by_name(self, conn: aiosqlite.Connection, name: str) -> UserRow | None:
        """Fetch the profile whose main or alternate name equals ``name`` (case-insensitive)."""
        async with conn.execute(f"{_SELECT} WHERE {_NAME_MATCH} LIMIT 1", {"name": name.lower()}) as cursor:
            row = await cursor.fetchone()
        return _to_row(row) if row else None

    async def find_matching(
        self, conn: aiosqlite.Connection, names: Iterable[str], discord_user_id: int
    ) -> List[UserRow]:
        """Fetch every profile owned by ``discord_user_id`` or claiming one of ``names``."""
        found: dict[int, UserRow] = {}
        existing = await self.get_by_discord_id(conn, discord_user_id)
        if existing:
            found[existing.row_id] = existing

        for name in {name.lower() for name in names}:
            async with conn.execute(f"{_SELECT} WHERE {_NAME_MATCH}", {"name": name}) as cursor:
                for row in await cursor.fetchall():
                    found.setdefault(row[0], _to_row(row))
        return [found[key] for key in sorted(found)]

    async def get_all(self, conn: aiosqlite.Connection) -> List[UserRow]:
        async with conn.execute(_SELECT) as cursor:
            rows = await cursor.fetchall()
        return [_to_row(row) for row in rows]

    async def count(self, conn: aiosqlite.Connection) -> int:
        async with conn.execute("SELECT COUNT(*) FROM users") as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def insert(self, conn: aiosqlite.Connection, document: UserDocument) -> int:
        cursor = await conn.execute(
            "INSERT INTO users (discord_user_id, lowercase_name, document) VALUES (?, ?, ?)",
            (int(document.discord_user_id), document.lowercase_name, json.dumps(document.to_dict())),
        )
        return int(cursor.lastrowid)

    async def update(self, conn: aiosqlite.Connection, row: UserRow) -> None:
        document = row.document
        await conn.execute(
            "UPDATE users SET discord_user_id = ?, lowercase_name = ?, document = ? WHERE id = ?",
            (int(document.discord_user_id), document.lowercase_name, json.dumps(document.to_dict()), row.row_id),
        )

    async def delete(self, conn: aiosqlite.Connection, row_ids: Iterable[int]) -> None:
        await conn.executemany("DELETE FROM users WHERE id = ?", [(row_id,) for row_id in row_ids])
