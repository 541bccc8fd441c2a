"""Opening and closing of the Zero database."""

from __future__ import annotations

from pathlib import Path

from zero.database.db_connection import db_connection
from zero.database.db_schema import SchemaManager
from zero.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/zero.db").resolve()


class Database:
    """
    Startup and shutdown of the database file.

    Once ``initialize`` has succeeded the services talk to ``db_connection``
    directly; this class only owns the open/close lifecycle.
    """

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = db_path
        self.initialized = False

    async def initialize(self, db_path: Path | None = None) -> bool:
        """Open the file and create missing tables. Returns False when either step fails."""
        if self.initialized:
            return True
        self.db_path = db_path or self.db_path

        try:
            await db_connection.open(self.db_path)
            await SchemaManager.initialize_schema(db_connection.connection)
        except Exception:
            logger.exception("[DATABASE] Could not prepare %s", self.db_path)
            await db_connection.close()
            return False

        self.initialized = True
        return True

    async def shutdown(self) -> None:
        if self.initialized:
            await db_connection.close()
            self.initialized = False


database = Database()
