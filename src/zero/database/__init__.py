"""SQLite storage: the shared connection, the schema and the startup lifecycle."""
