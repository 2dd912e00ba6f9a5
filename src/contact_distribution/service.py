"""Service facade - the public operations, each returning a success/failure response."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Mapping, Sequence

from contact_distribution.aggregation import AggregationEngine
from contact_distribution.core.config import Settings
from contact_distribution.core.database import Database
from contact_distribution.core.errors import DistributionError
from contact_distribution.core.models import (
    BatchMetadata,
    BatchStatus,
    Failure,
    ItemStatus,
    ServiceResponse,
    Worker,
)
from contact_distribution.distribution import Distributor
from contact_distribution.importer import read_file
from contact_distribution.lifecycle import ItemLifecycleTracker

logger = logging.getLogger(__name__)


class DistributionService:
    """Entry point for callers (HTTP handlers, CLI scripts, jobs).

    Domain failures come back as ``ServiceResponse(success=False, error=...)``
    with a stable ``error.kind``; unexpected exceptions are logged and reported
    as ``internal_error``.
    """

    def __init__(self, db: Database, settings: Settings | None = None):
        self.db = db
        self.settings = settings or Settings()
        self.distributor = Distributor(db, self.settings)
        self.tracker = ItemLifecycleTracker(db, self.settings)
        self.aggregation = AggregationEngine(db, self.settings)

    async def _run(self, operation: str, call: Awaitable[Any], message: str) -> ServiceResponse:
        try:
            data = await call
        except DistributionError as e:
            logger.warning("%s failed (%s): %s", operation, e.kind, e.message)
            return ServiceResponse(
                success=False,
                message=e.message,
                error=Failure(kind=e.kind, message=e.message, details=e.details),
            )
        except Exception as e:
            logger.exception("%s failed", operation)
            return ServiceResponse(
                success=False,
                message=f"Failed to {operation.replace('_', ' ')}",
                error=Failure(kind="internal_error", message=str(e)),
            )
        return ServiceResponse(success=True, message=message, data=data)

    # -----------------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------------

    async def ingest(
        self,
        rows: Sequence[Mapping[str, Any]],
        workers: Sequence[Worker] | None = None,
        metadata: BatchMetadata | None = None,
        header: Sequence[str] | None = None,
    ) -> ServiceResponse:
        """Validate and distribute decoded rows.

        ``workers`` is taken in the order given; when omitted, the active
        workers are loaded oldest first (ties broken by id).
        """
        return await self._run(
            "ingest",
            self.distributor.ingest(rows, workers, metadata, header),
            "File uploaded and distributed successfully",
        )

    async def ingest_file(
        self,
        file_path: str | Path,
        metadata: BatchMetadata | None = None,
        workers: Sequence[Worker] | None = None,
    ) -> ServiceResponse:
        """Decode a CSV/XLSX file from disk and ingest it."""
        path = Path(file_path)

        async def call():
            decoded = read_file(path)
            meta = metadata or BatchMetadata(file_name=path.name, original_file_name=path.name)
            return await self.distributor.ingest(decoded.rows, workers, meta, decoded.header)

        return await self._run("ingest_file", call(), "File uploaded and distributed successfully")

    # -----------------------------------------------------------------------
    # Item lifecycle
    # -----------------------------------------------------------------------

    async def update_item_status(
        self,
        sub_list_id: str,
        item_id: str,
        status: str | ItemStatus,
        extra: dict[str, Any] | None = None,
    ) -> ServiceResponse:
        return await self._run(
            "update_item_status",
            self.tracker.update_item_status(sub_list_id, item_id, status, extra),
            "Item status updated successfully",
        )

    async def delete_sub_list(self, sub_list_id: str) -> ServiceResponse:
        return await self._run(
            "delete_sub_list",
            self.distributor.delete_sub_list(sub_list_id),
            "List deleted successfully",
        )

    # -----------------------------------------------------------------------
    # Reporting
    # -----------------------------------------------------------------------

    async def get_batch_stats(self, batch_id: str) -> ServiceResponse:
        return await self._run(
            "get_batch_stats", self.aggregation.get_batch_stats(batch_id), "OK"
        )

    async def get_worker_stats(self, worker_id: str) -> ServiceResponse:
        return await self._run(
            "get_worker_stats", self.aggregation.get_worker_stats(worker_id), "OK"
        )

    async def get_global_stats(self) -> ServiceResponse:
        return await self._run("get_global_stats", self.aggregation.get_global_stats(), "OK")

    async def list_batches(
        self, status: BatchStatus | str | None = None, limit: int = 10, offset: int = 0
    ) -> ServiceResponse:
        return await self._run(
            "list_batches", self.aggregation.list_batches(status, limit, offset), "OK"
        )

    async def list_batch_sub_lists(self, batch_id: str) -> ServiceResponse:
        return await self._run(
            "list_batch_sub_lists", self.aggregation.list_batch_sub_lists(batch_id), "OK"
        )

    async def list_worker_sub_lists(
        self, worker_id: str, limit: int = 10, offset: int = 0
    ) -> ServiceResponse:
        return await self._run(
            "list_worker_sub_lists",
            self.aggregation.list_worker_sub_lists(worker_id, limit, offset),
            "OK",
        )

    async def get_sub_list(
        self,
        sub_list_id: str,
        status: ItemStatus | str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ServiceResponse:
        return await self._run(
            "get_sub_list",
            self.aggregation.get_sub_list(sub_list_id, status, limit, offset),
            "OK",
        )
