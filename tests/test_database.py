"""Tests for backend selection and SQLite read isolation."""

from __future__ import annotations

import asyncio
import sqlite3

import pytest

from contact_distribution.core.config import Settings
from contact_distribution.core.database import Database
from contact_distribution.core.database_pg import PostgresDatabase
from contact_distribution.core.db_factory import create_database
from contact_distribution.core.models import ContactItem, ItemStatus, SubList
from contact_distribution.lifecycle import ItemLifecycleTracker


def _sub_list(list_id: str, batch_id: str, item_ids: list[str]) -> SubList:
    return SubList(
        id=list_id,
        batch_id=batch_id,
        worker_id="w0",
        items=[ContactItem(id=i, first_name="Ada", phone="5550100") for i in item_ids],
    )


class TestReadIsolation:
    @pytest.mark.asyncio
    async def test_rolled_back_insert_never_visible_to_sums(self, db):
        seen: list[int] = []

        async def failing_insert():
            # Duplicate item ids fail after the sub_lists row is inserted
            await db.create_sub_list(_sub_list("broken", "never-committed", ["dup", "dup"]))

        async def reader():
            for _ in range(50):
                sums = await db.sum_counters(batch_id="never-committed")
                seen.append(sums["total_lists"])
                await asyncio.sleep(0)

        results = await asyncio.gather(failing_insert(), reader(), return_exceptions=True)

        assert isinstance(results[0], sqlite3.IntegrityError)
        assert seen == [0] * 50
        assert await db.get_sub_list("broken") is None

    @pytest.mark.asyncio
    async def test_rolled_back_insert_never_listed(self, db):
        seen: list[int] = []

        async def reader():
            for _ in range(50):
                _rows, total = await db.list_batches()
                seen.append(total)
                await asyncio.sleep(0)

        await asyncio.gather(
            db.create_sub_list(_sub_list("broken", "never-committed", ["dup", "dup"])),
            reader(),
            return_exceptions=True,
        )
        assert seen == [0] * 50

    @pytest.mark.asyncio
    async def test_reads_during_updates_see_matching_counters(self, db, settings):
        await db.create_sub_list(_sub_list("list-1", "batch-1", [f"item-{i}" for i in range(20)]))
        tracker = ItemLifecycleTracker(db, settings)
        snapshots: list[SubList] = []

        async def reader():
            for _ in range(40):
                snapshots.append(await db.get_sub_list("list-1"))
                await asyncio.sleep(0)

        await asyncio.gather(
            reader(),
            *[
                tracker.update_item_status("list-1", f"item-{i}", "completed")
                for i in range(20)
            ],
        )

        for snapshot in snapshots:
            completed = sum(1 for i in snapshot.items if i.status == ItemStatus.COMPLETED)
            pending = sum(1 for i in snapshot.items if i.status == ItemStatus.PENDING)
            assert snapshot.completed_items == completed
            assert snapshot.pending_items == pending
            assert snapshot.total_items == len(snapshot.items)


class TestFactory:
    def test_sqlite_selected(self, settings):
        assert isinstance(create_database(settings), Database)

    def test_postgres_selected(self):
        backend = create_database(Settings(use_sqlite=False))
        assert isinstance(backend, PostgresDatabase)
