"""Database connection and CRUD operations - PostgreSQL backend (asyncpg).

Production database backend using asyncpg connection pool.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable

import asyncpg

from contact_distribution.core.config import Settings
from contact_distribution.core.database import BATCH_STATUS_HAVING
from contact_distribution.core.models import (
    BatchStatus,
    ContactItem,
    ItemStatus,
    SubList,
    Worker,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
    return dict(row)


def _row_to_worker(row: asyncpg.Record) -> Worker:
    return Worker(**dict(row))


def _row_to_item(row: asyncpg.Record) -> ContactItem:
    d = dict(row)
    d.pop("sub_list_id", None)
    d.pop("position", None)
    return ContactItem(**d)


def _row_to_sub_list(row: asyncpg.Record, items: list[ContactItem] | None = None) -> SubList:
    return SubList(**dict(row), items=items or [])


SUM_COLUMNS_SQL = """
    SELECT
        COALESCE(SUM(total_items), 0) AS total_items,
        COALESCE(SUM(completed_items), 0) AS completed_items,
        COALESCE(SUM(pending_items), 0) AS pending_items,
        COUNT(*) AS total_lists,
        COUNT(DISTINCT worker_id) AS assigned_workers,
        COUNT(DISTINCT batch_id) AS active_distributions,
        MAX(created_at) AS last_upload
    FROM sub_lists
"""


class PostgresDatabase:
    """Async PostgreSQL database connection manager and CRUD operations.

    Sub-List updates lock the list row (``SELECT ... FOR UPDATE``) inside a
    transaction, so updates to one list serialize while different lists
    proceed concurrently.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        self._pool = await asyncpg.create_pool(
            self.settings.database_url, min_size=2, max_size=10,
            server_settings={"search_path": "distribution, public"},
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

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
        row = await self.pool.fetchrow(
            """
            INSERT INTO workers (id, name, email, is_active, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $5)
            RETURNING *
            """,
            worker_id or str(uuid.uuid4()), name, email.lower(), is_active,
            created_at or _now(),
        )
        return _row_to_worker(row)

    async def get_worker(self, worker_id: str) -> Worker | None:
        row = await self.pool.fetchrow("SELECT * FROM workers WHERE id = $1", worker_id)
        return _row_to_worker(row) if row else None

    async def set_worker_active(self, worker_id: str, is_active: bool) -> Worker | None:
        row = await self.pool.fetchrow(
            "UPDATE workers SET is_active = $1, updated_at = NOW() WHERE id = $2 RETURNING *",
            is_active, worker_id,
        )
        return _row_to_worker(row) if row else None

    async def list_active_workers(self) -> list[Worker]:
        """Active workers, oldest first, ties broken by id."""
        rows = await self.pool.fetch(
            "SELECT * FROM workers WHERE is_active = true ORDER BY created_at ASC, id ASC"
        )
        return [_row_to_worker(r) for r in rows]

    async def increment_worker_assignment(self, worker_id: str, item_count: int) -> bool:
        result = await self.pool.execute(
            """
            UPDATE workers
            SET assigned_lists_count = assigned_lists_count + 1,
                total_items_assigned = total_items_assigned + $1,
                updated_at = NOW()
            WHERE id = $2
            """,
            item_count, worker_id,
        )
        return result == "UPDATE 1"

    async def decrement_worker_assignment(self, worker_id: str, item_count: int) -> bool:
        result = await self.pool.execute(
            """
            UPDATE workers
            SET assigned_lists_count = GREATEST(0, assigned_lists_count - 1),
                total_items_assigned = GREATEST(0, total_items_assigned - $1),
                updated_at = NOW()
            WHERE id = $2
            """,
            item_count, worker_id,
        )
        return result == "UPDATE 1"

    # -----------------------------------------------------------------------
    # Sub-lists
    # -----------------------------------------------------------------------

    async def create_sub_list(self, sub_list: SubList) -> SubList:
        """Insert a Sub-List and its items in one transaction."""
        sub_list.recompute_counters()
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO sub_lists (
                        id, batch_id, worker_id, file_name, original_file_name, uploaded_by,
                        total_items, completed_items, pending_items, distributed_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, COALESCE($10, NOW()))
                    """,
                    sub_list.id, sub_list.batch_id, sub_list.worker_id,
                    sub_list.file_name, sub_list.original_file_name, sub_list.uploaded_by,
                    sub_list.total_items, sub_list.completed_items, sub_list.pending_items,
                    sub_list.distributed_at,
                )
                await conn.executemany(
                    """
                    INSERT INTO contact_items (
                        id, sub_list_id, position, first_name, phone, notes,
                        status, contacted_at, completed_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    [
                        (
                            item.id, sub_list.id, pos, item.first_name, item.phone,
                            item.notes, item.status.value,
                            item.contacted_at, item.completed_at,
                        )
                        for pos, item in enumerate(sub_list.items)
                    ],
                )
        result = await self.get_sub_list(sub_list.id)
        assert result is not None
        return result

    async def _get_items(self, conn: asyncpg.Connection | asyncpg.Pool, sub_list_id: str) -> list[ContactItem]:
        rows = await conn.fetch(
            "SELECT * FROM contact_items WHERE sub_list_id = $1 ORDER BY position",
            sub_list_id,
        )
        return [_row_to_item(r) for r in rows]

    async def get_sub_list(self, sub_list_id: str) -> SubList | None:
        row = await self.pool.fetchrow("SELECT * FROM sub_lists WHERE id = $1", sub_list_id)
        if not row:
            return None
        return _row_to_sub_list(row, await self._get_items(self.pool, sub_list_id))

    async def mutate_sub_list(
        self, sub_list_id: str, mutate: Callable[[SubList], None]
    ) -> SubList | None:
        """Atomically load a Sub-List, apply ``mutate`` and write it back."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT * FROM sub_lists WHERE id = $1 FOR UPDATE", sub_list_id
                )
                if not row:
                    return None
                sub_list = _row_to_sub_list(row, await self._get_items(conn, sub_list_id))

                mutate(sub_list)
                sub_list.recompute_counters()
                sub_list.last_updated = _now()

                await conn.executemany(
                    """
                    UPDATE contact_items
                    SET first_name = $1, phone = $2, notes = $3, status = $4,
                        contacted_at = $5, completed_at = $6
                    WHERE id = $7 AND sub_list_id = $8
                    """,
                    [
                        (
                            item.first_name, item.phone, item.notes, item.status.value,
                            item.contacted_at, item.completed_at, item.id, sub_list_id,
                        )
                        for item in sub_list.items
                    ],
                )
                await conn.execute(
                    """
                    UPDATE sub_lists
                    SET total_items = $1, completed_items = $2, pending_items = $3,
                        last_updated = $4
                    WHERE id = $5
                    """,
                    sub_list.total_items, sub_list.completed_items,
                    sub_list.pending_items, sub_list.last_updated, sub_list_id,
                )
                return sub_list

    async def delete_sub_list(self, sub_list_id: str) -> SubList | None:
        """Delete a Sub-List and its items. Returns the removed list, or None."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT * FROM sub_lists WHERE id = $1 FOR UPDATE", sub_list_id
                )
                if not row:
                    return None
                sub_list = _row_to_sub_list(row, await self._get_items(conn, sub_list_id))
                await conn.execute("DELETE FROM contact_items WHERE sub_list_id = $1", sub_list_id)
                await conn.execute("DELETE FROM sub_lists WHERE id = $1", sub_list_id)
                return sub_list

    async def list_sub_lists_by_batch(self, batch_id: str) -> list[SubList]:
        rows = await self.pool.fetch(
            "SELECT * FROM sub_lists WHERE batch_id = $1 ORDER BY created_at, id",
            batch_id,
        )
        return [_row_to_sub_list(r, await self._get_items(self.pool, r["id"])) for r in rows]

    async def list_sub_lists_by_worker(
        self, worker_id: str, limit: int = 10, offset: int = 0
    ) -> tuple[list[SubList], int]:
        total = await self.pool.fetchval(
            "SELECT COUNT(*) FROM sub_lists WHERE worker_id = $1", worker_id
        )
        rows = await self.pool.fetch(
            "SELECT * FROM sub_lists WHERE worker_id = $1 "
            "ORDER BY created_at DESC, id LIMIT $2 OFFSET $3",
            worker_id, limit, offset,
        )
        lists = [_row_to_sub_list(r, await self._get_items(self.pool, r["id"])) for r in rows]
        return lists, total or 0

    async def list_sub_list_items(
        self,
        sub_list_id: str,
        status: ItemStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ContactItem], int]:
        if status is not None:
            total = await self.pool.fetchval(
                "SELECT COUNT(*) FROM contact_items WHERE sub_list_id = $1 AND status = $2",
                sub_list_id, status.value,
            )
            rows = await self.pool.fetch(
                "SELECT * FROM contact_items WHERE sub_list_id = $1 AND status = $2 "
                "ORDER BY position LIMIT $3 OFFSET $4",
                sub_list_id, status.value, limit, offset,
            )
        else:
            total = await self.pool.fetchval(
                "SELECT COUNT(*) FROM contact_items WHERE sub_list_id = $1", sub_list_id
            )
            rows = await self.pool.fetch(
                "SELECT * FROM contact_items WHERE sub_list_id = $1 "
                "ORDER BY position LIMIT $2 OFFSET $3",
                sub_list_id, limit, offset,
            )
        return [_row_to_item(r) for r in rows], total or 0

    # -----------------------------------------------------------------------
    # Aggregates
    # -----------------------------------------------------------------------

    async def sum_counters(
        self, batch_id: str | None = None, worker_id: str | None = None
    ) -> dict[str, Any]:
        where_clauses: list[str] = []
        params: list[Any] = []
        if batch_id is not None:
            params.append(batch_id)
            where_clauses.append(f"batch_id = ${len(params)}")
        if worker_id is not None:
            params.append(worker_id)
            where_clauses.append(f"worker_id = ${len(params)}")
        where = "WHERE " + " AND ".join(where_clauses) if where_clauses else ""

        row = await self.pool.fetchrow(f"{SUM_COLUMNS_SQL} {where}", *params)
        return _row_to_dict(row) if row else {}

    async def list_batches(
        self,
        status: BatchStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        having = BATCH_STATUS_HAVING[status] if status is not None else ""

        total = await self.pool.fetchval(
            f"""
            SELECT COUNT(*) FROM (
                SELECT batch_id FROM sub_lists GROUP BY batch_id {having}
            ) AS grouped
            """
        )
        rows = await self.pool.fetch(
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
            LIMIT $1 OFFSET $2
            """,
            limit, offset,
        )
        return [_row_to_dict(r) for r in rows], total or 0
