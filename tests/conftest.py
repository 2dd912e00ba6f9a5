"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from contact_distribution.core.config import Settings
from contact_distribution.core.database import Database
from contact_distribution.core.models import ContactRecord, Worker

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(use_sqlite=True, sqlite_path=str(tmp_path / "test.db"))


@pytest_asyncio.fixture
async def db(settings):
    database = Database(settings)
    await database.connect()
    try:
        yield database
    finally:
        await database.close()


@pytest.fixture
def make_worker():
    """Factory fixture for in-memory workers, created one minute apart."""

    def _make(index: int = 0, **kwargs) -> Worker:
        return Worker(
            id=kwargs.pop("id", f"worker-{index}"),
            name=kwargs.pop("name", f"Worker {index}"),
            email=kwargs.pop("email", f"worker{index}@example.com"),
            created_at=kwargs.pop("created_at", BASE_TIME + timedelta(minutes=index)),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_records():
    """Factory fixture for validated contact records."""

    def _make(count: int) -> list[ContactRecord]:
        return [
            ContactRecord(first_name=f"Contact {i}", phone=f"+1 555 {i:04d}", notes="")
            for i in range(count)
        ]

    return _make


@pytest.fixture
def make_rows():
    """Factory fixture for raw decoded rows."""

    def _make(count: int) -> list[dict[str, str]]:
        return [
            {"first name": f"Contact {i}", "phone": f"(555) 000-{i:04d}", "notes": f"note {i}"}
            for i in range(count)
        ]

    return _make


@pytest_asyncio.fixture
async def stored_workers(db):
    """Three active workers persisted oldest first."""
    return [
        await db.create_worker(
            name=f"Worker {i}",
            email=f"worker{i}@example.com",
            created_at=BASE_TIME + timedelta(minutes=i),
            worker_id=f"w{i}",
        )
        for i in range(3)
    ]
