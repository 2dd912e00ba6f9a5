"""Database factory - SQLite when USE_SQLITE is set, PostgreSQL otherwise."""

from __future__ import annotations

from contact_distribution.core.config import Settings


def create_database(settings: Settings | None = None):
    s = settings or Settings()
    if s.use_sqlite:
        from contact_distribution.core.database import Database
        return Database(s)
    from contact_distribution.core.database_pg import PostgresDatabase
    return PostgresDatabase(s)
