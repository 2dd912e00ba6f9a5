"""Failure taxonomy for ingestion, status tracking and reporting."""

from __future__ import annotations

from typing import Any

from contact_distribution.core.models import InconsistencyReport, RowRejection


class DistributionError(Exception):
    """Base class. ``kind`` is a stable identifier callers can switch on."""

    kind = "distribution_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def details(self) -> dict[str, Any]:
        return {}


class SchemaError(DistributionError):
    """Required columns are missing from the header."""

    kind = "schema_error"

    def __init__(self, missing_columns: list[str]):
        self.missing_columns = missing_columns
        super().__init__(
            f"Missing required columns: {', '.join(missing_columns)}. "
            "Expected: First Name, Phone, Notes"
        )

    @property
    def details(self) -> dict[str, Any]:
        return {"missing_columns": self.missing_columns}


class RowValidationError(DistributionError):
    """One or more rows failed validation; nothing was distributed."""

    kind = "row_validation_error"

    def __init__(self, rejections: list[RowRejection]):
        self.rejections = rejections
        super().__init__(
            "Data validation failed:\n" + "\n".join(str(r) for r in rejections)
        )

    @property
    def details(self) -> dict[str, Any]:
        return {"rejections": [r.model_dump() for r in self.rejections]}


class EmptyInput(DistributionError):
    kind = "empty_input"

    def __init__(self, message: str = "No valid data rows found in the file"):
        super().__init__(message)


class NoActiveWorkers(DistributionError):
    kind = "no_active_workers"

    def __init__(self, message: str = "No active workers available for distribution"):
        super().__init__(message)


class SubListNotFound(DistributionError):
    kind = "sub_list_not_found"

    def __init__(self, sub_list_id: str):
        self.sub_list_id = sub_list_id
        super().__init__(f"List not found: {sub_list_id}")

    @property
    def details(self) -> dict[str, Any]:
        return {"sub_list_id": self.sub_list_id}


class ItemNotFound(DistributionError):
    kind = "item_not_found"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")

    @property
    def details(self) -> dict[str, Any]:
        return {"item_id": self.item_id}


class BatchNotFound(DistributionError):
    kind = "batch_not_found"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"No distributions found for batch {batch_id}")

    @property
    def details(self) -> dict[str, Any]:
        return {"batch_id": self.batch_id}


class InvalidStatus(DistributionError):
    kind = "invalid_status"

    def __init__(self, value: str, allowed: list[str]):
        self.value = value
        self.allowed = allowed
        super().__init__(f"Invalid status: {value}. Must be one of: {', '.join(allowed)}")

    @property
    def details(self) -> dict[str, Any]:
        return {"value": self.value, "allowed": self.allowed}


class TransitionError(DistributionError):
    """Raised when the forward-only status policy rejects a change."""

    kind = "illegal_transition"

    def __init__(self, current: str, target: str, allowed: list[str]):
        self.current = current
        self.target = target
        self.allowed = allowed
        super().__init__(
            f"Illegal transition: {current} -> {target}. Allowed from {current}: {allowed}"
        )

    @property
    def details(self) -> dict[str, Any]:
        return {"current": self.current, "target": self.target, "allowed": self.allowed}


class UnsupportedFileType(DistributionError):
    kind = "unsupported_file_type"

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(
            f"Unsupported file type: {extension or '(none)'}. Expected .csv or .xlsx"
        )


class FileDecodeError(DistributionError):
    kind = "file_decode_error"


class InconsistentCounterUpdate(DistributionError):
    """A worker counter update failed after its Sub-List write succeeded.

    Collected into results for manual reconciliation rather than raised.
    """

    kind = "inconsistent_counter_update"

    def __init__(
        self,
        worker_id: str,
        sub_list_id: str,
        lists_delta: int,
        items_delta: int,
        cause: str,
    ):
        self.worker_id = worker_id
        self.sub_list_id = sub_list_id
        self.lists_delta = lists_delta
        self.items_delta = items_delta
        self.cause = cause
        super().__init__(
            f"Worker {worker_id} counters not adjusted by "
            f"lists={lists_delta:+d} items={items_delta:+d} "
            f"for list {sub_list_id}: {cause}"
        )

    @property
    def details(self) -> dict[str, Any]:
        return {
            "worker_id": self.worker_id,
            "sub_list_id": self.sub_list_id,
            "lists_delta": self.lists_delta,
            "items_delta": self.items_delta,
            "cause": self.cause,
        }

    def to_report(self) -> InconsistencyReport:
        return InconsistencyReport(
            worker_id=self.worker_id,
            sub_list_id=self.sub_list_id,
            lists_delta=self.lists_delta,
            items_delta=self.items_delta,
            reason=self.cause,
        )


class PartialDistributionError(DistributionError):
    """A Sub-List write failed after earlier Sub-Lists of the batch were persisted."""

    kind = "partial_distribution"

    def __init__(self, batch_id: str, persisted_sub_list_ids: list[str], cause: str):
        self.batch_id = batch_id
        self.persisted_sub_list_ids = persisted_sub_list_ids
        self.cause = cause
        super().__init__(
            f"Distribution of batch {batch_id} stopped after "
            f"{len(persisted_sub_list_ids)} list(s) were written: {cause}"
        )

    @property
    def details(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "persisted_sub_list_ids": self.persisted_sub_list_ids,
            "cause": self.cause,
        }


class InvalidItemFields(DistributionError):
    kind = "invalid_item_fields"

    def __init__(self, fields: list[str], editable: list[str]):
        self.fields = fields
        self.editable = editable
        super().__init__(
            f"Fields cannot be updated: {', '.join(fields)}. Editable: {', '.join(editable)}"
        )

    @property
    def details(self) -> dict[str, Any]:
        return {"fields": self.fields, "editable": self.editable}
