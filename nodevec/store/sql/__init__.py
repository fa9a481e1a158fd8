"""SQLite side of the store: connection, schema and span registry."""
