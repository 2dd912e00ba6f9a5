"""Database connection and CRUD operations - SQLite backend.

Zero-install database backend using aiosqlite. Auto-creates schema on connect.
"""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

import aiosqlite

from contact_distribution.core.config import Settings
from contact_distribution.core.models import (
    BatchStatus,
    ContactItem,
    ItemStatus,
    SubList,
    Worker,
)


# ---------------------------------------------------------------------------
# SQLite schema (auto-created on first connect)
# ---------------------------------------------------------------------------

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS workers (
    id                    TEXT PRIMARY KEY,
    name                  TEXT NOT NULL,
    email                 TEXT NOT NULL UNIQUE,
    is_active             INTEGER NOT NULL DEFAULT 1,
    assigned_lists_count  INTEGER NOT NULL DEFAULT 0,
    total_items_assigned  INTEGER NOT NULL DEFAULT 0,
    created_at            TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at            TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS sub_lists (
    id                  TEXT PRIMARY KEY,
    batch_id            TEXT NOT NULL,
    worker_id           TEXT NOT NULL,
    file_name           TEXT NOT NULL DEFAULT '',
    original_file_name  TEXT NOT NULL DEFAULT '',
    uploaded_by         TEXT,
    total_items         INTEGER NOT NULL DEFAULT 0,
    completed_items     INTEGER NOT NULL DEFAULT 0,
    pending_items       INTEGER NOT NULL DEFAULT 0,
    distributed_at      TEXT NOT NULL DEFAULT (datetime('now')),
    created_at          TEXT NOT NULL DEFAULT (datetime('now')),
    last_updated        TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS contact_items (
    id              TEXT PRIMARY KEY,
    sub_list_id     TEXT NOT NULL REFERENCES sub_lists(id) ON DELETE CASCADE,
    position        INTEGER NOT NULL,
    first_name      TEXT NOT NULL,
    phone           TEXT NOT NULL,
    notes           TEXT NOT NULL DEFAULT '',
    status          TEXT NOT NULL DEFAULT 'pending',
    contacted_at    TEXT,
    completed_at    TEXT
);

CREATE INDEX IF NOT EXISTS idx_workers_active ON workers(is_active, created_at);
CREATE INDEX IF NOT EXISTS idx_sub_lists_batch ON sub_lists(batch_id, worker_id);
CREATE INDEX IF NOT EXISTS idx_sub_lists_worker ON sub_lists(worker_id, created_at);
CREATE INDEX IF NOT EXISTS idx_sub_lists_created ON sub_lists(created_at);
CREATE INDEX IF NOT EXISTS idx_items_sub_list ON contact_items(sub_list_id, position);
"""

# Overall batch status expressed over the summed Sub-List counters
BATCH_STATUS_HAVING: dict[BatchStatus, str] = {
    BatchStatus.COMPLETED: "HAVING SUM(completed_items) = SUM(total_items)",
    BatchStatus.IN_PROGRESS: (
        "HAVING SUM(completed_items) > 0 AND SUM(completed_items) < SUM(total_items)"
    ),
    BatchStatus.PENDING: (
        "HAVING SUM(completed_items) = 0 AND SUM(total_items) > 0"
    ),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_str() -> str:
    return _now().isoformat()


def _dt_str(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    """Convert sqlite3.Row to a plain dict."""
    return {k: row[k] for k in row.keys()}


def _row_to_worker(row: sqlite3.Row) -> Worker:
    d = _row_to_dict(row)
    d["is_active"] = bool(d["is_active"])
    return Worker(**d)


def _row_to_item(row: sqlite3.Row) -> ContactItem:
    d = _row_to_dict(row)
    d.pop("sub_list_id", None)
    d.pop("position", None)
    return ContactItem(**d)


def _row_to_sub_list(row: sqlite3.Row, items: list[ContactItem] | None = None) -> SubList:
    d = _row_to_dict(row)
    return SubList(**d, items=items or [])


def _sum_row(row: sqlite3.Row | None) -> dict[str, Any]:
    if not row:
        return {}
    return {
        "total_items": row["total_items"] or 0,
        "completed_items": row["completed_items"] or 0,
        "pending_items": row["pending_items"] or 0,
        "total_lists": row["total_lists"] or 0,
        "assigned_workers": row["assigned_workers"] or 0,
        "active_distributions": row["active_distributions"] or 0,
        "last_upload": row["last_upload"],
    }


SUM_COLUMNS_SQL = """
    SELECT
        SUM(total_items) AS total_items,
        SUM(completed_items) AS completed_items,
        SUM(pending_items) AS pending_items,
        COUNT(*) AS total_lists,
        COUNT(DISTINCT worker_id) AS assigned_workers,
        COUNT(DISTINCT batch_id) AS active_distributions,
        MAX(created_at) AS last_upload
    FROM sub_lists
"""


# ---------------------------------------------------------------------------
# Database class
# ---------------------------------------------------------------------------


class Database:
    """Async SQLite database connection manager and CRUD operations.

    Reads and writes share one connection, so every public method runs under one
    ``asyncio.Lock``. Reads never land inside an open write transaction and see
    only committed rows, and the read-modify-write in :meth:`mutate_sub_list`
    is atomic against other updates of the same list. The underscore ``_fetch``
    helpers expect the caller to hold the lock.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    def _resolve_path(self) -> str:
        url = self.settings.database_url
        if url.startswith("sqlite:///"):
            return url[len("sqlite:///"):]
        if url.startswith("sqlite://"):
            return url[len("sqlite://"):]
        return url

    async def connect(self) -> None:
        path = self._resolve_path()
        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = sqlite3.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._init_schema()

    async def _init_schema(self) -> None:
        """Auto-create tables if they don't exist."""
        await self.conn.executescript(SCHEMA_SQL)
        await self.conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    # -----------------------------------------------------------------------
    # Workers
    # -----------------------------------------------------------------------

    async def create_worker(
        self,
        name: str,
        email: str,
        is_active: bool = True,
        created_at: datetime | None = None,
        worker_id: str | None = None,
    ) -> Worker:
        wid = worker_id or str(uuid.uuid4())
        created = _dt_str(created_at) or _now_str()
        async with self._lock:
            try:
                await self.conn.execute(
                    """
                    INSERT INTO workers (id, name, email, is_active, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (wid, name, email.lower(), int(is_active), created, created),
                )
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise
            result = await self._fetch_worker(wid)
        assert result is not None
        return result

    async def _fetch_worker(self, worker_id: str) -> Worker | None:
        cursor = await self.conn.execute(
            "SELECT * FROM workers WHERE id = ?", (worker_id,)
        )
        row = await cursor.fetchone()
        return _row_to_worker(row) if row else None

    async def get_worker(self, worker_id: str) -> Worker | None:
        async with self._lock:
            return await self._fetch_worker(worker_id)

    async def set_worker_active(self, worker_id: str, is_active: bool) -> Worker | None:
        async with self._lock:
            await self.conn.execute(
                "UPDATE workers SET is_active = ?, updated_at = ? WHERE id = ?",
                (int(is_active), _now_str(), worker_id),
            )
            await self.conn.commit()
            return await self._fetch_worker(worker_id)

    async def list_active_workers(self) -> list[Worker]:
        """Active workers, oldest first, ties broken by id."""
        async with self._lock:
            cursor = await self.conn.execute(
                "SELECT * FROM workers WHERE is_active = 1 ORDER BY created_at ASC, id ASC"
            )
            rows = await cursor.fetchall()
        return [_row_to_worker(r) for r in rows]

    async def increment_worker_assignment(self, worker_id: str, item_count: int) -> bool:
        """Add one list and ``item_count`` items. Returns False if the worker is unknown."""
        async with self._lock:
            cursor = await self.conn.execute(
                """
                UPDATE workers
                SET assigned_lists_count = assigned_lists_count + 1,
                    total_items_assigned = total_items_assigned + ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (item_count, _now_str(), worker_id),
            )
            await self.conn.commit()
            return cursor.rowcount > 0

    async def decrement_worker_assignment(self, worker_id: str, item_count: int) -> bool:
        """Remove one list and ``item_count`` items, floored at zero."""
        async with self._lock:
            cursor = await self.conn.execute(
                """
                UPDATE workers
                SET assigned_lists_count = MAX(0, assigned_lists_count - 1),
                    total_items_assigned = MAX(0, total_items_assigned - ?),
                    updated_at = ?
                WHERE id = ?
                """,
                (item_count, _now_str(), worker_id),
            )
            await self.conn.commit()
            return cursor.rowcount > 0

    # -----------------------------------------------------------------------
    # Sub-lists
    # -----------------------------------------------------------------------

    async def create_sub_list(self, sub_list: SubList) -> SubList:
        """Insert a Sub-List and its items in one transaction."""
        sub_list.recompute_counters()
        now = _now_str()
        async with self._lock:
            try:
                await self.conn.execute(
                    """
                    INSERT INTO sub_lists (
                        id, batch_id, worker_id, file_name, original_file_name, uploaded_by,
                        total_items, completed_items, pending_items,
                        distributed_at, created_at, last_updated
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        sub_list.id, sub_list.batch_id, sub_list.worker_id,
                        sub_list.file_name, sub_list.original_file_name, sub_list.uploaded_by,
                        sub_list.total_items, sub_list.completed_items, sub_list.pending_items,
                        _dt_str(sub_list.distributed_at) or now, now, now,
                    ),
                )
                await self.conn.executemany(
                    """
                    INSERT INTO contact_items (
                        id, sub_list_id, position, first_name, phone, notes,
                        status, contacted_at, completed_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            item.id, sub_list.id, pos, item.first_name, item.phone,
                            item.notes, item.status.value,
                            _dt_str(item.contacted_at), _dt_str(item.completed_at),
                        )
                        for pos, item in enumerate(sub_list.items)
                    ],
                )
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise
            result = await self._fetch_sub_list(sub_list.id)
        assert result is not None
        return result

    async def _fetch_items(self, sub_list_id: str) -> list[ContactItem]:
        cursor = await self.conn.execute(
            "SELECT * FROM contact_items WHERE sub_list_id = ? ORDER BY position",
            (sub_list_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_item(r) for r in rows]

    async def _fetch_sub_list(self, sub_list_id: str) -> SubList | None:
        cursor = await self.conn.execute(
            "SELECT * FROM sub_lists WHERE id = ?", (sub_list_id,)
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return _row_to_sub_list(row, await self._fetch_items(sub_list_id))

    async def get_sub_list(self, sub_list_id: str) -> SubList | None:
        async with self._lock:
            return await self._fetch_sub_list(sub_list_id)

    async def mutate_sub_list(
        self, sub_list_id: str, mutate: Callable[[SubList], None]
    ) -> SubList | None:
        """Atomically load a Sub-List, apply ``mutate`` and write it back.

        Counters are recomputed from the items before the write. Returns None
        when the Sub-List does not exist; exceptions from ``mutate`` propagate
        with nothing written.
        """
        async with self._lock:
            sub_list = await self._fetch_sub_list(sub_list_id)
            if sub_list is None:
                return None

            mutate(sub_list)
            sub_list.recompute_counters()
            sub_list.last_updated = _now()

            try:
                await self.conn.executemany(
                    """
                    UPDATE contact_items
                    SET first_name = ?, phone = ?, notes = ?, status = ?,
                        contacted_at = ?, completed_at = ?
                    WHERE id = ? AND sub_list_id = ?
                    """,
                    [
                        (
                            item.first_name, item.phone, item.notes, item.status.value,
                            _dt_str(item.contacted_at), _dt_str(item.completed_at),
                            item.id, sub_list_id,
                        )
                        for item in sub_list.items
                    ],
                )
                await self.conn.execute(
                    """
                    UPDATE sub_lists
                    SET total_items = ?, completed_items = ?, pending_items = ?,
                        last_updated = ?
                    WHERE id = ?
                    """,
                    (
                        sub_list.total_items, sub_list.completed_items,
                        sub_list.pending_items, _dt_str(sub_list.last_updated),
                        sub_list_id,
                    ),
                )
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise
            return sub_list

    async def delete_sub_list(self, sub_list_id: str) -> SubList | None:
        """Delete a Sub-List and its items. Returns the removed list, or None."""
        async with self._lock:
            sub_list = await self._fetch_sub_list(sub_list_id)
            if sub_list is None:
                return None
            try:
                await self.conn.execute(
                    "DELETE FROM contact_items WHERE sub_list_id = ?", (sub_list_id,)
                )
                await self.conn.execute(
                    "DELETE FROM sub_lists WHERE id = ?", (sub_list_id,)
                )
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                raise
            return sub_list

    async def list_sub_lists_by_batch(self, batch_id: str) -> list[SubList]:
        async with self._lock:
            cursor = await self.conn.execute(
                "SELECT * FROM sub_lists WHERE batch_id = ? ORDER BY created_at, id",
                (batch_id,),
            )
            rows = await cursor.fetchall()
            return [_row_to_sub_list(r, await self._fetch_items(r["id"])) for r in rows]

    async def list_sub_lists_by_worker(
        self, worker_id: str, limit: int = 10, offset: int = 0
    ) -> tuple[list[SubList], int]:
        """Paginated Sub-Lists of one worker, newest first."""
        async with self._lock:
            cursor = await self.conn.execute(
                "SELECT COUNT(*) AS total FROM sub_lists WHERE worker_id = ?", (worker_id,)
            )
            count_row = await cursor.fetchone()
            total = count_row["total"] if count_row else 0

            cursor = await self.conn.execute(
                "SELECT * FROM sub_lists WHERE worker_id = ? "
                "ORDER BY created_at DESC, id LIMIT ? OFFSET ?",
                (worker_id, limit, offset),
            )
            rows = await cursor.fetchall()
            lists = [_row_to_sub_list(r, await self._fetch_items(r["id"])) for r in rows]
        return lists, total

    async def list_sub_list_items(
        self,
        sub_list_id: str,
        status: ItemStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ContactItem], int]:
        """Paginated items of one Sub-List, optionally filtered by status."""
        where = "WHERE sub_list_id = ?"
        params: list[Any] = [sub_list_id]
        if status is not None:
            where += " AND status = ?"
            params.append(status.value)

        async with self._lock:
            cursor = await self.conn.execute(
                f"SELECT COUNT(*) AS total FROM contact_items {where}", params
            )
            count_row = await cursor.fetchone()
            total = count_row["total"] if count_row else 0

            cursor = await self.conn.execute(
                f"SELECT * FROM contact_items {where} ORDER BY position LIMIT ? OFFSET ?",
                params + [limit, offset],
            )
            rows = await cursor.fetchall()
        return [_row_to_item(r) for r in rows], total

    # -----------------------------------------------------------------------
    # Aggregates (summed from the per-list counters, items are never scanned)
    # -----------------------------------------------------------------------

    async def sum_counters(
        self, batch_id: str | None = None, worker_id: str | None = None
    ) -> dict[str, Any]:
        where_clauses: list[str] = []
        params: list[Any] = []
        if batch_id is not None:
            where_clauses.append("batch_id = ?")
            params.append(batch_id)
        if worker_id is not None:
            where_clauses.append("worker_id = ?")
            params.append(worker_id)
        where = "WHERE " + " AND ".join(where_clauses) if where_clauses else ""

        async with self._lock:
            cursor = await self.conn.execute(f"{SUM_COLUMNS_SQL} {where}", params)
            row = await cursor.fetchone()
        return _sum_row(row)

    async def list_batches(
        self,
        status: BatchStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """Batches grouped from their Sub-Lists, newest first."""
        having = BATCH_STATUS_HAVING[status] if status is not None else ""

        async with self._lock:
            cursor = await self.conn.execute(
                f"""
                SELECT COUNT(*) AS total FROM (
                    SELECT batch_id FROM sub_lists GROUP BY batch_id {having}
                )
                """
            )
            count_row = await cursor.fetchone()
            total = count_row["total"] if count_row else 0

            cursor = await self.conn.execute(
                f"""
                SELECT
                    batch_id,
                    MIN(file_name) AS file_name,
                    MIN(original_file_name) AS original_file_name,
                    MIN(uploaded_by) AS uploaded_by,
                    MIN(created_at) AS upload_date,
                    SUM(total_items) AS total_items,
                    SUM(completed_items) AS completed_items,
                    SUM(pending_items) AS pending_items,
                    COUNT(DISTINCT worker_id) AS assigned_workers
                FROM sub_lists
                GROUP BY batch_id
                {having}
                ORDER BY upload_date DESC, batch_id
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            )
            rows = await cursor.fetchall()
        return [_row_to_dict(r) for r in rows], total
