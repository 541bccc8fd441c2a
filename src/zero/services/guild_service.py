"""
GuildService: cached access to guild documents.

Documents are cached in memory after the first read. Every change goes through
:meth:`GuildService.update`, which re-reads the stored document inside a write
transaction, applies the change, persists it and refreshes the cache. This
makes each update atomic with respect to other updates of the same guild.
"""

from __future__ import annotations

import time
from typing import Callable, Dict

from zero.configuration.app_configuration import app_config
from zero.database.db_connection import db_connection
from zero.datatypes.guild_document import GuildDocument
from zero.repositories import GuildRepository
from zero.util.logger import get_logger

logger = get_logger("guild_service")

GuildMutator = Callable[[GuildDocument], None]


class GuildService:
    """Loads, creates and updates guild documents."""

    def __init__(self) -> None:
        self._repo = GuildRepository()
        self._cache: Dict[int, GuildDocument] = {}

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    def _new_document(self, guild_id: int) -> GuildDocument:
        document = GuildDocument.new(guild_id, app_config.default_prefix)
        document.properties.quotas.last_reset = int(time.time() * 1000)
        return document

    async def load_all(self) -> int:
        """Warm the cache with every stored guild. Returns the number loaded."""
        async with db_connection.read() as conn:
            documents = await self._repo.get_all(conn)
        self._cache.update(documents)
        logger.info("[GUILD SERVICE] Loaded %d guild documents", len(documents))
        return len(documents)

    async def get(self, guild_id: int) -> GuildDocument | None:
        if guild_id in self._cache:
            return self._cache[guild_id]

        async with db_connection.read() as conn:
            document = await self._repo.get(conn, guild_id)
        if document is not None:
            self._cache[guild_id] = document
        return document

    async def get_or_create(self, guild_id: int) -> GuildDocument:
        document = await self.get(guild_id)
        if document is not None:
            return document

        async with db_connection.transaction() as conn:
            document = await self._repo.get(conn, guild_id)
            if document is None:
                document = self._new_document(guild_id)
                await self._repo.upsert(conn, document)
                logger.info("[GUILD SERVICE] Created document for guild %s", guild_id)
        self._cache[guild_id] = document
        return document

    async def update(self, guild_id: int, mutator: GuildMutator) -> GuildDocument:
        """Apply ``mutator`` to the stored document and persist the result.

        The document is created first if the guild has none yet.
        """
        async with db_connection.transaction() as conn:
            document = await self._repo.get(conn, guild_id) or self._new_document(guild_id)
            mutator(document)
            await self._repo.upsert(conn, document)
        self._cache[guild_id] = document
        return document

    async def delete(self, guild_id: int) -> None:
        async with db_connection.transaction() as conn:
            await self._repo.delete(conn, guild_id)
        self._cache.pop(guild_id, None)
        logger.info("[GUILD SERVICE] Deleted document for guild %s", guild_id)

    def clear_cache(self) -> None:
        self._cache.clear()


guild_service = GuildService()
