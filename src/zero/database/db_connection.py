"""
The one aiosqlite connection Zero keeps open for its whole lifetime.

Guild documents and user profiles are small JSON rows, so a single connection
in WAL mode is enough. Writes take ``write_lock`` so that two commands saving
the same guild never interleave their statements inside one transaction.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from zero.util.logger import get_logger

logger = get_logger("db_connection")

STARTUP_PRAGMAS = (
    ("journal_mode", "WAL"),
    ("foreign_keys", "ON"),
    ("synchronous", "NORMAL"),
    ("busy_timeout", "5000"),
)


class DatabaseNotOpenError(RuntimeError):
    """Raised when the connection is used before ``open`` or after ``close``."""


class SharedConnection:
    def __init__(self) -> None:
        self._handle: aiosqlite.Connection | None = None
        self.write_lock = asyncio.Lock()
        self.path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._handle is None:
            raise DatabaseNotOpenError("the database has not been opened")
        return self._handle

    async def open(self, path: Path) -> None:
        """Connect to ``path``, creating its directory when missing."""
        if self._handle is not None:
            logger.warning("[DB] Connection to %s is already open", self.path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        handle = await aiosqlite.connect(path)
        handle.row_factory = aiosqlite.Row
        for name, value in STARTUP_PRAGMAS:
            await handle.execute(f"PRAGMA {name} = {value}")
        await handle.commit()

        self._handle = handle
        self.path = path
        logger.info("[DB] Connected to %s", path)

    async def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            # fold the WAL back into the main file so the db can be copied alone
            await handle.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error as error:
            logger.warning("[DB] WAL checkpoint failed on close: %s", error)
        finally:
            await handle.close()
        logger.info("[DB] Connection to %s closed", self.path)

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        yield self.connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Hold the write lock for the body of the block.

        The transaction is committed when the block exits normally and rolled
        back when it raises; the exception is re-raised either way.
        """
        handle = self.connection
        async with self.write_lock:
            try:
                yield handle
            except BaseException:
                await handle.rollback()
                raise
            await handle.commit()


db_connection = SharedConnection()
