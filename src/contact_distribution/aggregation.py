"""Aggregation - batch, worker and global statistics summed from per-list counters."""

from __future__ import annotations

from contact_distribution.core.config import Settings
from contact_distribution.core.database import Database
from contact_distribution.core.errors import BatchNotFound, InvalidStatus, SubListNotFound
from contact_distribution.core.models import (
    BatchStats,
    BatchStatus,
    BatchSummary,
    GlobalStats,
    ItemStatus,
    Page,
    SubList,
    SubListDetail,
    WorkerStats,
    completion_percentage,
    derive_batch_status,
)
from contact_distribution.lifecycle import parse_status


def _parse_batch_status(value: BatchStatus | str | None) -> BatchStatus | None:
    if value is None or value == "all":
        return None
    try:
        return BatchStatus(value)
    except ValueError:
        raise InvalidStatus(str(value), ["all"] + [s.value for s in BatchStatus]) from None


class AggregationEngine:
    """Read-only reporting over persisted Sub-Lists.

    Every figure comes from the counters stored on each Sub-List; item rows
    are only read when a caller asks for the items themselves.
    """

    def __init__(self, db: Database, settings: Settings | None = None):
        self.db = db
        self.settings = settings or Settings()

    async def get_batch_stats(self, batch_id: str) -> BatchStats:
        sums = await self.db.sum_counters(batch_id=batch_id)
        lists = sums.get("total_lists", 0)
        if not lists:
            raise BatchNotFound(batch_id)

        total = sums.get("total_items", 0)
        completed = sums.get("completed_items", 0)
        workers = sums.get("assigned_workers", 0)
        return BatchStats(
            batch_id=batch_id,
            total_items=total,
            completed_items=completed,
            pending_items=sums.get("pending_items", 0),
            total_lists=lists,
            assigned_workers=workers,
            average_items_per_worker=total / lists,
            status=derive_batch_status(completed, total),
            completion_percentage=completion_percentage(completed, total),
        )

    async def get_worker_stats(self, worker_id: str) -> WorkerStats:
        """Totals across every list a worker owns; zeros for a worker with none."""
        sums = await self.db.sum_counters(worker_id=worker_id)
        return WorkerStats(
            worker_id=worker_id,
            total_items=sums.get("total_items", 0),
            completed_items=sums.get("completed_items", 0),
            pending_items=sums.get("pending_items", 0),
            total_lists=sums.get("total_lists", 0),
        )

    async def get_global_stats(self) -> GlobalStats:
        sums = await self.db.sum_counters()
        total = sums.get("total_items", 0)
        completed = sums.get("completed_items", 0)
        return GlobalStats(
            total_items=total,
            completed_items=completed,
            pending_items=sums.get("pending_items", 0),
            total_lists=sums.get("total_lists", 0),
            active_distributions=sums.get("active_distributions", 0),
            last_upload=sums.get("last_upload"),
            completion_rate=completion_percentage(completed, total),
        )

    async def list_batches(
        self,
        status: BatchStatus | str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Page:
        """Batches newest first, optionally only those in one overall status."""
        status_filter = _parse_batch_status(status)
        rows, total = await self.db.list_batches(status_filter, limit, offset)
        items = [
            BatchSummary(
                **row,
                status=derive_batch_status(row["completed_items"], row["total_items"]),
            )
            for row in rows
        ]
        return Page(items=items, total=total, limit=limit, offset=offset)

    async def list_batch_sub_lists(self, batch_id: str) -> list[SubList]:
        lists = await self.db.list_sub_lists_by_batch(batch_id)
        if not lists:
            raise BatchNotFound(batch_id)
        return lists

    async def list_worker_sub_lists(
        self, worker_id: str, limit: int = 10, offset: int = 0
    ) -> Page:
        lists, total = await self.db.list_sub_lists_by_worker(worker_id, limit, offset)
        return Page(items=lists, total=total, limit=limit, offset=offset)

    async def get_sub_list(
        self,
        sub_list_id: str,
        status: ItemStatus | str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SubListDetail:
        """One Sub-List with a page of its items, optionally filtered by status."""
        sub_list = await self.db.get_sub_list(sub_list_id)
        if sub_list is None:
            raise SubListNotFound(sub_list_id)

        status_filter = parse_status(status) if status is not None else None
        items, matching = await self.db.list_sub_list_items(
            sub_list_id, status_filter, limit, offset
        )
        sub_list.items = items
        return SubListDetail(
            sub_list=sub_list,
            completion_percentage=sub_list.completion_percentage,
            status_filter=status_filter,
            matching_items=matching,
            limit=limit,
            offset=offset,
        )
