"""
Tables of the Zero database.

Guild configuration and player profiles are stored whole, as JSON text. The
few columns beside each document copy the fields records are looked up by.
"""

import aiosqlite

from zero.util.logger import get_logger

logger = get_logger("db_schema")

SCHEMA_VERSION = 1

TABLES = (
    """
    CREATE TABLE IF NOT EXISTS guilds (
        guild_id INTEGER PRIMARY KEY,
        document TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        discord_user_id INTEGER UNIQUE,
        lowercase_name TEXT NOT NULL,
        document TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
)

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_users_lowercase_name ON users(lowercase_name)",
)

# (table, key column) pairs whose updated_at is maintained by a trigger
TOUCHED_TABLES = (("guilds", "guild_id"), ("users", "id"))


def touch_trigger(table: str, key: str) -> str:
    return f"""
    CREATE TRIGGER IF NOT EXISTS touch_{table}
    AFTER UPDATE ON {table}
    FOR EACH ROW
    BEGIN
        UPDATE {table} SET updated_at = CURRENT_TIMESTAMP WHERE {key} = NEW.{key};
    END
    """


class SchemaManager:
    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """Create whatever is missing and record ``SCHEMA_VERSION``. Safe to run on every start."""
        for statement in TABLES + INDEXES:
            await db.execute(statement)
        for table, key in TOUCHED_TABLES:
            await db.execute(touch_trigger(table, key))
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        await db.commit()
        logger.info("[SCHEMA] Schema version %d ready", SCHEMA_VERSION)
