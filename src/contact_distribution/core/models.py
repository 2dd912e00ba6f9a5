"""Pydantic models for the distribution system."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ItemStatus(str, enum.Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def completion_percentage(completed: int, total: int) -> int:
    """Rounded completed/total percentage, 0 for an empty total."""
    if total <= 0:
        return 0
    # half-up, integer arithmetic
    return (completed * 200 + total) // (2 * total)


def derive_batch_status(completed: int, total: int) -> BatchStatus:
    if completed == total:
        return BatchStatus.COMPLETED
    if completed > 0:
        return BatchStatus.IN_PROGRESS
    return BatchStatus.PENDING


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------

class Worker(BaseModel):
    id: str
    name: str
    email: str
    is_active: bool = True
    assigned_lists_count: int = 0
    total_items_assigned: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContactRecord(BaseModel):
    """A validated contact row, not yet persisted."""

    first_name: str
    phone: str
    notes: str = ""


class ContactItem(BaseModel):
    id: str
    first_name: str
    phone: str
    notes: str = ""
    status: ItemStatus = ItemStatus.PENDING
    contacted_at: datetime | None = None
    completed_at: datetime | None = None


class SubList(BaseModel):
    id: str
    batch_id: str
    worker_id: str
    file_name: str = ""
    original_file_name: str = ""
    uploaded_by: str | None = None
    items: list[ContactItem] = Field(default_factory=list)
    total_items: int = 0
    completed_items: int = 0
    pending_items: int = 0
    distributed_at: datetime | None = None
    created_at: datetime | None = None
    last_updated: datetime | None = None

    def recompute_counters(self) -> None:
        """Rebuild the cached counters from the item sequence."""
        self.total_items = len(self.items)
        self.completed_items = sum(1 for i in self.items if i.status == ItemStatus.COMPLETED)
        self.pending_items = sum(1 for i in self.items if i.status == ItemStatus.PENDING)

    def find_item(self, item_id: str) -> ContactItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @property
    def completion_percentage(self) -> int:
        return completion_percentage(self.completed_items, self.total_items)


class BatchMetadata(BaseModel):
    """Descriptors attached to every Sub-List produced by one ingestion."""

    batch_id: str | None = None  # generated when omitted
    file_name: str = ""
    original_file_name: str = ""
    uploaded_by: str | None = None


class RowRejection(BaseModel):
    row_number: int
    reason: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.reason}"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class WorkerSummary(BaseModel):
    worker_id: str
    name: str
    email: str
    sub_list_id: str
    items_count: int


class InconsistencyReport(BaseModel):
    """A worker counter update that failed after its Sub-List write succeeded."""

    worker_id: str
    sub_list_id: str
    lists_delta: int
    items_delta: int
    reason: str


class IngestResult(BaseModel):
    batch_id: str
    total_items: int
    total_workers: int
    distributions: list[WorkerSummary] = Field(default_factory=list)
    inconsistencies: list[InconsistencyReport] = Field(default_factory=list)


class StatusUpdateResult(BaseModel):
    sub_list_id: str
    item_id: str
    status: ItemStatus
    completion_percentage: int


class DeleteResult(BaseModel):
    sub_list_id: str
    worker_id: str
    removed_items: int
    inconsistencies: list[InconsistencyReport] = Field(default_factory=list)


class BatchStats(BaseModel):
    batch_id: str
    total_items: int = 0
    completed_items: int = 0
    pending_items: int = 0
    total_lists: int = 0
    assigned_workers: int = 0
    average_items_per_worker: float = 0.0
    status: BatchStatus = BatchStatus.PENDING
    completion_percentage: int = 0


class BatchSummary(BaseModel):
    """One row of the batch listing."""

    batch_id: str
    file_name: str = ""
    original_file_name: str = ""
    uploaded_by: str | None = None
    upload_date: datetime | None = None
    total_items: int = 0
    completed_items: int = 0
    pending_items: int = 0
    assigned_workers: int = 0
    status: BatchStatus = BatchStatus.PENDING


class WorkerStats(BaseModel):
    worker_id: str
    total_items: int = 0
    completed_items: int = 0
    pending_items: int = 0
    total_lists: int = 0


class GlobalStats(BaseModel):
    total_items: int = 0
    completed_items: int = 0
    pending_items: int = 0
    total_lists: int = 0
    active_distributions: int = 0
    last_upload: datetime | None = None
    completion_rate: int = 0


class Page(BaseModel):
    items: list[Any] = Field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0


class Failure(BaseModel):
    kind: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ServiceResponse(BaseModel):
    """Discriminated outcome returned by every service operation."""

    success: bool
    message: str = ""
    data: Any = None
    error: Failure | None = None


class SubListDetail(BaseModel):
    """One Sub-List with a page of its items."""

    sub_list: SubList
    completion_percentage: int = 0
    status_filter: ItemStatus | None = None
    matching_items: int = 0
    limit: int = 20
    offset: int = 0
