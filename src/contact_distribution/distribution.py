"""Distribution batches - persist one Sub-List per worker share and keep worker counters in step."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from contact_distribution.allocator import allocate, order_workers
from contact_distribution.core.config import Settings
from contact_distribution.core.database import Database
from contact_distribution.core.errors import (
    EmptyInput,
    InconsistentCounterUpdate,
    NoActiveWorkers,
    PartialDistributionError,
    SubListNotFound,
)
from contact_distribution.core.models import (
    BatchMetadata,
    ContactItem,
    ContactRecord,
    DeleteResult,
    InconsistencyReport,
    IngestResult,
    SubList,
    Worker,
    WorkerSummary,
)
from contact_distribution.validator import RowValidator

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class Distributor:
    """Validates rows, splits them across active workers and persists the batch."""

    def __init__(self, db: Database, settings: Settings | None = None):
        self.db = db
        self.settings = settings or Settings()
        self.validator = RowValidator(self.settings)

    async def ingest(
        self,
        rows: Sequence[Mapping[str, Any]],
        workers: Sequence[Worker] | None = None,
        metadata: BatchMetadata | None = None,
        header: Sequence[str] | None = None,
    ) -> IngestResult:
        """Validate every row, then distribute the batch.

        Nothing is written unless all rows pass validation. ``workers`` is
        used in the order given; when omitted the active workers are loaded.
        """
        records = self.validator.validate(rows, header=header)
        if workers is None:
            workers = await self.active_workers()
        return await self.distribute(records, workers, metadata)

    async def active_workers(self) -> list[Worker]:
        """Active workers in allocation order: oldest first, ties broken by id."""
        return order_workers(await self.db.list_active_workers())

    async def distribute(
        self,
        records: Sequence[ContactRecord],
        workers: Sequence[Worker],
        metadata: BatchMetadata | None = None,
    ) -> IngestResult:
        """Persist one Sub-List per non-empty share, in worker order.

        ``workers`` must already be in allocation order. Each Sub-List write is
        independent; if one fails, PartialDistributionError names the lists
        already written.
        """
        if not workers:
            raise NoActiveWorkers()
        if not records:
            raise EmptyInput()

        meta = metadata or BatchMetadata()
        batch_id = meta.batch_id or _new_id()
        distributed_at = datetime.now(timezone.utc)

        result = IngestResult(
            batch_id=batch_id,
            total_items=len(records),
            total_workers=len(workers),
        )
        persisted: list[str] = []

        for allocation in allocate(records, workers):
            if allocation.size == 0:
                continue

            worker = allocation.worker
            sub_list = SubList(
                id=_new_id(),
                batch_id=batch_id,
                worker_id=worker.id,
                file_name=meta.file_name,
                original_file_name=meta.original_file_name,
                uploaded_by=meta.uploaded_by,
                items=[
                    ContactItem(id=_new_id(), **record.model_dump())
                    for record in allocation.records
                ],
                distributed_at=distributed_at,
            )

            try:
                created = await self.db.create_sub_list(sub_list)
            except Exception as e:
                logger.exception(
                    "Batch %s: list write for worker %s failed after %d list(s)",
                    batch_id, worker.id, len(persisted),
                )
                raise PartialDistributionError(batch_id, persisted, str(e)) from e
            persisted.append(created.id)

            report = await self._adjust_worker(worker.id, created.id, created.total_items, 1)
            if report:
                result.inconsistencies.append(report)

            result.distributions.append(
                WorkerSummary(
                    worker_id=worker.id,
                    name=worker.name,
                    email=worker.email,
                    sub_list_id=created.id,
                    items_count=created.total_items,
                )
            )

        logger.info(
            "Batch %s distributed: %d items across %d list(s)",
            batch_id, result.total_items, len(result.distributions),
        )
        return result

    async def delete_sub_list(self, sub_list_id: str) -> DeleteResult:
        """Delete a Sub-List and release its counts from the owning worker."""
        removed = await self.db.delete_sub_list(sub_list_id)
        if removed is None:
            raise SubListNotFound(sub_list_id)

        result = DeleteResult(
            sub_list_id=removed.id,
            worker_id=removed.worker_id,
            removed_items=removed.total_items,
        )
        report = await self._adjust_worker(removed.worker_id, removed.id, removed.total_items, -1)
        if report:
            result.inconsistencies.append(report)

        logger.info("Deleted list %s (%d items) of worker %s", removed.id, removed.total_items, removed.worker_id)
        return result

    async def _adjust_worker(
        self, worker_id: str, sub_list_id: str, item_count: int, direction: int
    ) -> InconsistencyReport | None:
        """Apply the worker counter change paired with a Sub-List write.

        A failure here leaves the Sub-List in place; it is logged and returned
        as a report for manual reconciliation.
        """
        try:
            if direction > 0:
                ok = await self.db.increment_worker_assignment(worker_id, item_count)
            else:
                ok = await self.db.decrement_worker_assignment(worker_id, item_count)
            cause = None if ok else "worker not found"
        except Exception as e:
            cause = str(e) or type(e).__name__

        if cause is None:
            return None

        error = InconsistentCounterUpdate(
            worker_id=worker_id,
            sub_list_id=sub_list_id,
            lists_delta=direction,
            items_delta=direction * item_count,
            cause=cause,
        )
        logger.error("%s", error)
        return error.to_report()
