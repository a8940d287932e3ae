"""
PostgreSQL employee store.

Batches are written with `COPY ... FROM STDIN` inside a single transaction. The
foreign key on `managed_by` is deferred to commit time, so rows may reference
managers that appear later in the same file. Each commit bumps the row in
`import_generation` only if it still holds the generation the batch was
validated against; a concurrent import that committed first makes the guard
fail and the whole transaction roll back.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from employee_importer.config import Settings, get_settings
from employee_importer.domain.hierarchy import build_tree, fold_self_join
from employee_importer.domain.models import (
    Employee,
    EmployeeNode,
    EmployeeWithChildren,
    StoreSnapshot,
)
from employee_importer.errors import ConcurrentImportError, StorageError
from employee_importer.infrastructure.db_factory import (
    build_dsn,
    create_async_pool,
    open_async_pool,
)
from employee_importer.stores.abstract import AbstractEmployeeStore
from employee_importer.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS public.employees (
    id          BIGINT PRIMARY KEY,
    name        TEXT NOT NULL,
    email       TEXT,
    username    TEXT,
    avatar      TEXT,
    managed_by  BIGINT REFERENCES public.employees (id) DEFERRABLE INITIALLY DEFERRED,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    CONSTRAINT employees_not_self_managed CHECK (managed_by IS NULL OR managed_by <> id)
);
CREATE INDEX IF NOT EXISTS employees_managed_by_idx ON public.employees (managed_by);
CREATE TABLE IF NOT EXISTS public.import_generation (
    singleton   BOOLEAN PRIMARY KEY DEFAULT TRUE CHECK (singleton),
    generation  BIGINT NOT NULL DEFAULT 0
);
INSERT INTO public.import_generation (singleton, generation)
VALUES (TRUE, 0) ON CONFLICT DO NOTHING;
"""

_COPY_SQL = (
    "COPY public.employees "
    "(id, name, email, username, avatar, managed_by, created_at, updated_at) FROM STDIN"
)

_BUMP_GENERATION_SQL = (
    "UPDATE public.import_generation SET generation = generation + 1 "
    "WHERE singleton AND generation = %s RETURNING generation"
)

_SELF_JOIN_SQL = """
SELECT p.id, p.name, p.email, p.username, p.avatar, p.created_at, p.updated_at,
       c.id, c.name, c.username, c.avatar
FROM public.employees p
{join} public.employees c ON c.managed_by = p.id
ORDER BY p.id, c.id
"""

_SUBTREE_SQL = """
WITH RECURSIVE tree AS (
    SELECT id, name, username, avatar, managed_by, 0 AS depth
    FROM public.employees
    WHERE id = %(root_id)s
    UNION ALL
    SELECT e.id, e.name, e.username, e.avatar, e.managed_by, t.depth + 1
    FROM public.employees e
    JOIN tree t ON e.managed_by = t.id
    WHERE %(max_depth)s::int IS NULL OR t.depth < %(max_depth)s::int
)
SELECT id, name, username, avatar, managed_by FROM tree
"""


class PostgresEmployeeStore(AbstractEmployeeStore):
    """
    Employee store backed by a psycopg AsyncConnectionPool.
    """

    name: str = "postgres"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        dsn_override: Optional[str] = None,
        create_schema: bool = True,
    ) -> None:
        self._settings = settings or get_settings()
        self._dsn_override = dsn_override
        self._create_schema = create_schema
        self._pool_instance: AsyncConnectionPool | None = None

    def _get_pool(self) -> AsyncConnectionPool:
        if self._pool_instance is None:
            raise StorageError("postgres store is not open")
        return self._pool_instance

    async def open(self) -> None:
        if self._pool_instance is not None:
            return
        settings = self._settings
        pool = create_async_pool(
            dsn=self._dsn_override or build_dsn(settings),
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )
        try:
            await open_async_pool(pool, attempts=settings.db_connect_retries)
        except Exception as exc:
            await pool.close()
            raise StorageError(f"cannot connect to database: {exc}") from exc
        self._pool_instance = pool
        log.info(
            "Postgres pool opened",
            extra={"min_size": settings.db_pool_min_size, "max_size": settings.db_pool_max_size},
        )
        if self._create_schema:
            await self.ensure_schema()

    async def close(self) -> None:
        if self._pool_instance is not None:
            try:
                await self._pool_instance.close()
            finally:
                self._pool_instance = None

    async def ensure_schema(self) -> None:
        """Create the tables and the generation row if they do not exist."""
        try:
            async with self._get_pool().connection() as conn:
                await conn.execute(SCHEMA_SQL)
        except psycopg.Error as exc:
            raise StorageError(f"schema creation failed: {exc}") from exc

    async def snapshot(self) -> StoreSnapshot:
        try:
            async with self._get_pool().connection() as conn:
                async with conn.transaction():
                    await conn.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ")
                    cur = await conn.execute(
                        "SELECT generation FROM public.import_generation WHERE singleton"
                    )
                    row = await cur.fetchone()
                    cur = await conn.execute("SELECT id, managed_by FROM public.employees")
                    parents = {employee_id: parent for employee_id, parent in await cur.fetchall()}
        except psycopg.Error as exc:
            raise StorageError(f"snapshot read failed: {exc}") from exc
        if row is None:
            raise StorageError("import_generation row is missing; run init-db")
        return StoreSnapshot(generation=row[0], parents=parents)

    async def commit(self, employees: Sequence[Employee], expected_generation: int) -> int:
        now = datetime.now(timezone.utc)
        try:
            async with self._get_pool().connection() as conn:
                async with conn.transaction():
                    cur = await conn.execute(_BUMP_GENERATION_SQL, (expected_generation,))
                    row = await cur.fetchone()
                    if row is None:
                        raise ConcurrentImportError(
                            f"store moved past generation {expected_generation}"
                        )
                    async with cur.copy(_COPY_SQL) as copy:
                        for e in employees:
                            await copy.write_row(
                                (
                                    e.id,
                                    e.name,
                                    e.email,
                                    e.username,
                                    e.avatar,
                                    e.managed_by,
                                    e.created_at or now,
                                    e.updated_at or now,
                                )
                            )
        except psycopg.Error as exc:
            raise StorageError(f"batch insert failed: {exc}") from exc
        return row[0]

    async def list_employees(self) -> List[Employee]:
        try:
            async with self._get_pool().connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(
                        "SELECT id, name, email, username, avatar, managed_by, "
                        "created_at, updated_at FROM public.employees ORDER BY id"
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise StorageError(f"employee read failed: {exc}") from exc
        return [Employee.model_validate(row) for row in rows]

    async def list_with_children(self, require_children: bool = False) -> List[EmployeeWithChildren]:
        sql = _SELF_JOIN_SQL.format(join="JOIN" if require_children else "LEFT JOIN")
        try:
            async with self._get_pool().connection() as conn:
                cur = await conn.execute(sql)
                rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise StorageError(f"hierarchy read failed: {exc}") from exc
        return fold_self_join(rows)

    async def subtree(self, root_id: int, max_depth: Optional[int] = None) -> Optional[EmployeeNode]:
        try:
            async with self._get_pool().connection() as conn:
                cur = await conn.execute(
                    _SUBTREE_SQL, {"root_id": root_id, "max_depth": max_depth}
                )
                rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise StorageError(f"subtree read failed: {exc}") from exc
        return build_tree(rows, root_id, max_depth=max_depth)


__all__ = ["PostgresEmployeeStore", "SCHEMA_SQL"]
