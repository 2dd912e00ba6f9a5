"""Tests for batch, worker and global reporting."""

from __future__ import annotations

import pytest

from contact_distribution.aggregation import AggregationEngine
from contact_distribution.core.errors import BatchNotFound, InvalidStatus, SubListNotFound
from contact_distribution.core.models import BatchMetadata, BatchStatus, ItemStatus
from contact_distribution.distribution import Distributor
from contact_distribution.lifecycle import ItemLifecycleTracker


async def _distribute(db, settings, workers, records, batch_id):
    return await Distributor(db, settings).distribute(
        records, workers, BatchMetadata(batch_id=batch_id, file_name=f"{batch_id}.csv")
    )


async def _complete(db, settings, sub_list_id, count):
    tracker = ItemLifecycleTracker(db, settings)
    sub_list = await db.get_sub_list(sub_list_id)
    for item in sub_list.items[:count]:
        await tracker.update_item_status(sub_list_id, item.id, ItemStatus.COMPLETED)


class TestBatchStats:
    @pytest.mark.asyncio
    async def test_in_progress_batch(self, db, settings, stored_workers, make_records):
        result = await _distribute(db, settings, stored_workers[:2], make_records(10), "batch-1")
        await _complete(db, settings, result.distributions[0].sub_list_id, 3)
        await _complete(db, settings, result.distributions[1].sub_list_id, 1)

        stats = await AggregationEngine(db, settings).get_batch_stats("batch-1")
        assert stats.total_items == 10
        assert stats.completed_items == 4
        assert stats.pending_items == 6
        assert stats.total_lists == 2
        assert stats.assigned_workers == 2
        assert stats.average_items_per_worker == 5.0
        assert stats.status == BatchStatus.IN_PROGRESS
        assert stats.completion_percentage == 40

    @pytest.mark.asyncio
    async def test_completed_batch(self, db, settings, stored_workers, make_records):
        result = await _distribute(db, settings, stored_workers[:1], make_records(2), "batch-1")
        await _complete(db, settings, result.distributions[0].sub_list_id, 2)

        stats = await AggregationEngine(db, settings).get_batch_stats("batch-1")
        assert stats.status == BatchStatus.COMPLETED
        assert stats.completion_percentage == 100

    @pytest.mark.asyncio
    async def test_pending_batch(self, db, settings, stored_workers, make_records):
        await _distribute(db, settings, stored_workers, make_records(3), "batch-1")
        stats = await AggregationEngine(db, settings).get_batch_stats("batch-1")
        assert stats.status == BatchStatus.PENDING
        assert stats.completion_percentage == 0

    @pytest.mark.asyncio
    async def test_unknown_batch(self, db, settings):
        with pytest.raises(BatchNotFound):
            await AggregationEngine(db, settings).get_batch_stats("nope")


class TestWorkerAndGlobalStats:
    @pytest.mark.asyncio
    async def test_worker_totals_span_batches(self, db, settings, stored_workers, make_records):
        first = await _distribute(db, settings, stored_workers[:1], make_records(4), "batch-1")
        await _distribute(db, settings, stored_workers[:1], make_records(2), "batch-2")
        await _complete(db, settings, first.distributions[0].sub_list_id, 1)

        stats = await AggregationEngine(db, settings).get_worker_stats("w0")
        assert (stats.total_items, stats.completed_items, stats.pending_items) == (6, 1, 5)
        assert stats.total_lists == 2

    @pytest.mark.asyncio
    async def test_worker_without_lists_is_zero(self, db, settings, stored_workers):
        stats = await AggregationEngine(db, settings).get_worker_stats("w2")
        assert (stats.total_items, stats.completed_items, stats.total_lists) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_global(self, db, settings, stored_workers, make_records):
        first = await _distribute(db, settings, stored_workers, make_records(6), "batch-1")
        await _distribute(db, settings, stored_workers[:1], make_records(2), "batch-2")
        await _complete(db, settings, first.distributions[0].sub_list_id, 2)

        stats = await AggregationEngine(db, settings).get_global_stats()
        assert stats.total_items == 8
        assert stats.completed_items == 2
        assert stats.pending_items == 6
        assert stats.total_lists == 4
        assert stats.active_distributions == 2
        assert stats.completion_rate == 25
        assert stats.last_upload is not None

    @pytest.mark.asyncio
    async def test_global_empty(self, db, settings):
        stats = await AggregationEngine(db, settings).get_global_stats()
        assert stats.total_items == 0
        assert stats.completion_rate == 0
        assert stats.last_upload is None


class TestListings:
    @pytest.mark.asyncio
    async def test_list_batches_filtered_by_status(self, db, settings, stored_workers, make_records):
        done = await _distribute(db, settings, stored_workers[:1], make_records(1), "batch-done")
        await _complete(db, settings, done.distributions[0].sub_list_id, 1)
        await _distribute(db, settings, stored_workers, make_records(3), "batch-new")

        engine = AggregationEngine(db, settings)
        everything = await engine.list_batches("all")
        assert everything.total == 2
        assert {b.batch_id for b in everything.items} == {"batch-done", "batch-new"}

        completed = await engine.list_batches(BatchStatus.COMPLETED)
        assert [b.batch_id for b in completed.items] == ["batch-done"]
        assert completed.items[0].status == BatchStatus.COMPLETED

        pending = await engine.list_batches("pending")
        assert [b.batch_id for b in pending.items] == ["batch-new"]
        assert pending.items[0].assigned_workers == 3
        assert pending.items[0].total_items == 3

        assert (await engine.list_batches("in_progress")).total == 0

    @pytest.mark.asyncio
    async def test_list_batches_rejects_unknown_status(self, db, settings):
        with pytest.raises(InvalidStatus):
            await AggregationEngine(db, settings).list_batches("archived")

    @pytest.mark.asyncio
    async def test_list_batches_pagination(self, db, settings, stored_workers, make_records):
        for i in range(3):
            await _distribute(db, settings, stored_workers[:1], make_records(1), f"batch-{i}")

        page = await AggregationEngine(db, settings).list_batches(limit=2, offset=2)
        assert page.total == 3
        assert len(page.items) == 1

    @pytest.mark.asyncio
    async def test_list_batch_sub_lists(self, db, settings, stored_workers, make_records):
        await _distribute(db, settings, stored_workers, make_records(5), "batch-1")
        engine = AggregationEngine(db, settings)

        lists = await engine.list_batch_sub_lists("batch-1")
        assert sorted(sl.worker_id for sl in lists) == ["w0", "w1", "w2"]
        with pytest.raises(BatchNotFound):
            await engine.list_batch_sub_lists("nope")

    @pytest.mark.asyncio
    async def test_list_worker_sub_lists(self, db, settings, stored_workers, make_records):
        for i in range(3):
            await _distribute(db, settings, stored_workers[:1], make_records(2), f"batch-{i}")

        page = await AggregationEngine(db, settings).list_worker_sub_lists("w0", limit=2)
        assert page.total == 3
        assert len(page.items) == 2
        assert all(sl.worker_id == "w0" for sl in page.items)


class TestSubListDetail:
    @pytest.mark.asyncio
    async def test_status_filter(self, db, settings, stored_workers, make_records):
        result = await _distribute(db, settings, stored_workers[:1], make_records(5), "batch-1")
        sub_list_id = result.distributions[0].sub_list_id
        await _complete(db, settings, sub_list_id, 2)

        detail = await AggregationEngine(db, settings).get_sub_list(sub_list_id, "completed")
        assert detail.matching_items == 2
        assert [i.status for i in detail.sub_list.items] == [ItemStatus.COMPLETED] * 2
        assert detail.completion_percentage == 40
        assert detail.sub_list.total_items == 5

    @pytest.mark.asyncio
    async def test_pagination_keeps_item_order(self, db, settings, stored_workers, make_records):
        result = await _distribute(db, settings, stored_workers[:1], make_records(5), "batch-1")
        sub_list_id = result.distributions[0].sub_list_id

        detail = await AggregationEngine(db, settings).get_sub_list(sub_list_id, limit=2, offset=1)
        assert detail.matching_items == 5
        assert [i.first_name for i in detail.sub_list.items] == ["Contact 1", "Contact 2"]

    @pytest.mark.asyncio
    async def test_unknown_sub_list(self, db, settings):
        with pytest.raises(SubListNotFound):
            await AggregationEngine(db, settings).get_sub_list("nope")

    @pytest.mark.asyncio
    async def test_invalid_item_status_filter(self, db, settings, stored_workers, make_records):
        result = await _distribute(db, settings, stored_workers[:1], make_records(1), "batch-1")
        with pytest.raises(InvalidStatus):
            await AggregationEngine(db, settings).get_sub_list(
                result.distributions[0].sub_list_id, "done"
            )
