"""Initialize the distribution database by running the migration."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import asyncpg

from contact_distribution.core.config import Settings
from contact_distribution.core.database import Database

logger = logging.getLogger(__name__)

MIGRATION_PATH = (
    Path(__file__).parent.parent.parent.parent / "migrations" / "001_distribution_schema.sql"
)


async def init_sqlite(settings: Settings) -> None:
    """Create the SQLite schema. Connecting is enough, tables are auto-created."""
    db = Database(settings)
    await db.connect()
    await db.close()
    logger.info("SQLite schema ready at %s", settings.sqlite_path)


async def run_migration(settings: Settings | None = None) -> None:
    settings = settings or Settings()
    if settings.use_sqlite:
        await init_sqlite(settings)
        return

    if not MIGRATION_PATH.exists():
        logger.error("Migration file not found: %s", MIGRATION_PATH)
        return

    sql = MIGRATION_PATH.read_text(encoding="utf-8")

    # Connect to default database to create the target database if needed
    base_url = settings.database_url.rsplit("/", 1)[0]
    db_name = settings.database_url.rsplit("/", 1)[1]

    try:
        conn = await asyncpg.connect(f"{base_url}/postgres")
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", db_name
        )
        if not exists:
            await conn.execute(f'CREATE DATABASE "{db_name}"')
            logger.info("Created database: %s", db_name)
        else:
            logger.info("Database already exists: %s", db_name)
        await conn.close()
    except Exception as e:
        logger.warning("Could not create database (may already exist): %s", e)

    conn = await asyncpg.connect(settings.database_url)
    try:
        await conn.execute(sql)
        logger.info("Migration completed successfully.")
    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        await conn.close()


def main() -> None:
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(run_migration(settings))


if __name__ == "__main__":
    main()
