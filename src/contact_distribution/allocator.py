"""Fair-share allocation - split an ordered contact sequence across ordered workers."""

from __future__ import annotations

from typing import Sequence

from contact_distribution.core.errors import NoActiveWorkers
from contact_distribution.core.models import ContactRecord, Worker


class Allocation:
    """One worker's contiguous slice of the input."""

    def __init__(self, worker: Worker, position: int, records: list[ContactRecord]):
        self.worker = worker
        self.position = position
        self.records = records

    @property
    def size(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"Allocation(worker={self.worker.id}, position={self.position}, size={self.size})"


def share_sizes(total: int, workers: int) -> list[int]:
    """Per-position group sizes: the first ``total % workers`` positions get one extra."""
    if workers <= 0:
        raise NoActiveWorkers()
    base, extra = divmod(total, workers)
    return [base + 1 if i < extra else base for i in range(workers)]


def order_workers(workers: Sequence[Worker]) -> list[Worker]:
    """Deterministic worker ordering: oldest first, ties broken by id.

    Workers without a creation time sort after those with one.
    """
    return sorted(
        workers,
        key=lambda w: (
            w.created_at is None,
            w.created_at.timestamp() if w.created_at else 0.0,
            w.id,
        ),
    )


def allocate(records: Sequence[ContactRecord], workers: Sequence[Worker]) -> list[Allocation]:
    """Partition ``records`` into one contiguous group per worker, in the given order.

    Returns exactly ``len(workers)`` allocations; some are empty when there are
    fewer records than workers.
    """
    sizes = share_sizes(len(records), len(workers))
    allocations: list[Allocation] = []
    start = 0
    for position, (worker, size) in enumerate(zip(workers, sizes)):
        allocations.append(Allocation(worker, position, list(records[start:start + size])))
        start += size
    return allocations
