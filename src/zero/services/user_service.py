"""
UserService: player profile lookups and single-profile updates.

Multi-profile operations (merging, renaming against name history) live in
:mod:`zero.verification.profile_service`.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Sequence

from zero.database.db_connection import db_connection
from zero.datatypes.user_document import AltName, UserDocument
from zero.repositories import UserRepository, UserRow
from zero.util.logger import get_logger

logger = get_logger("user_service")

ProfileMutator = Callable[[UserDocument], None]


def now_ms() -> int:
    return int(time.time() * 1000)


class UserService:
    def __init__(self) -> None:
        self._repo = UserRepository()

    @property
    def repository(self) -> UserRepository:
        return self._repo

    async def get_profile(self, discord_user_id: int) -> UserDocument | None:
        async with db_connection.read() as conn:
            row = await self._repo.get_by_discord_id(conn, discord_user_id)
        return row.document if row else None

    async def get_profile_by_name(self, name: str) -> UserDocument | None:
        async with db_connection.read() as conn:
            row = await self._repo.get_by_name(conn, name)
        return row.document if row else None

    async def create_profile(self, discord_user_id: int, name: str, alt_names: Sequence[str] = ()) -> UserDocument:
        document = UserDocument.new(discord_user_id, name, now_ms())
        for alt in alt_names:
            if not document.has_name(alt):
                document.other_accounts.append(AltName.of(alt))
        async with db_connection.transaction() as conn:
            await self._repo.insert(conn, document)
        logger.info("[USER SERVICE] Created profile %s for %s", name, discord_user_id)
        return document

    async def update_profile(self, discord_user_id: int, mutator: ProfileMutator) -> UserDocument | None:
        """Apply ``mutator`` to the member's profile atomically.

        Returns the updated profile, or None when the member has no profile.
        """
        async with db_connection.transaction() as conn:
            row: UserRow | None = await self._repo.get_by_discord_id(conn, discord_user_id)
            if row is None:
                return None
            mutator(row.document)
            row.document.last_modified = now_ms()
            await self._repo.update(conn, row)
        return row.document

    async def delete_profile(self, discord_user_id: int) -> bool:
        async with db_connection.transaction() as conn:
            row = await self._repo.get_by_discord_id(conn, discord_user_id)
            if row is None:
                return False
            await self._repo.delete(conn, [row.row_id])
        logger.info("[USER SERVICE] Deleted profile of %s", discord_user_id)
        return True

    async def name_index(self) -> Dict[str, int]:
        """Map every lowercase main and alternate name to its owner's Discord ID."""
        async with db_connection.read() as conn:
            rows = await self._repo.get_all(conn)

        index: Dict[str, int] = {}
        for row in rows:
            for name in row.document.all_names():
                index[name.lower()] = row.document.discord_user_id
        return index

    async def count(self) -> int:
        async with db_connection.read() as conn:
            return await self._repo.count(conn)


user_service = UserService()
