"""
Import service: ingest, hierarchical listing, export and subtree lookups.

Usage:
    from employee_importer.service import ImportService, build_store

    service = ImportService(build_store("memory"))
    await service.start()
    report = await service.ingest(open("people.csv", newline=""), filename="people.csv")
    employees = await service.list_hierarchy()

Ingest uses optimistic concurrency. The batch is validated against a snapshot
of the store and committed only if the store generation has not moved; when
another import won the race, validation re-runs against a fresh snapshot.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random

from employee_importer.config import Settings, get_settings
from employee_importer.csvio.reader import read_employees
from employee_importer.csvio.writer import EXPORT_MEDIA_TYPE, render_csv
from employee_importer.domain.hierarchy import validate_batch
from employee_importer.domain.models import (
    Employee,
    EmployeeNode,
    EmployeeWithChildren,
    ExportPayload,
    ImportReport,
    ParsedRow,
)
from employee_importer.errors import (
    ConcurrentImportError,
    ImporterError,
    ImportValidationError,
    QueryValidationError,
    RecordNotFoundError,
)
from employee_importer.stores.abstract import EmployeeStore
from employee_importer.stores.memory import MemoryEmployeeStore
from employee_importer.stores.postgres import PostgresEmployeeStore
from employee_importer.utils.logging import get_logger
from employee_importer.utils.profiler import profile_block

log = get_logger(__name__)


def _store_factories(settings: Settings) -> Dict[str, Callable[[], EmployeeStore]]:
    """Registry of available store backends."""
    return {
        "memory": lambda: MemoryEmployeeStore(),
        "postgres": lambda: PostgresEmployeeStore(settings=settings),
    }


def available_backends() -> List[str]:
    """List available store backend names."""
    return sorted(_store_factories(get_settings()).keys())


def build_store(name: Optional[str] = None, settings: Optional[Settings] = None) -> EmployeeStore:
    settings = settings or get_settings()
    backend = name or settings.store_backend
    factories = _store_factories(settings)
    if backend not in factories:
        raise ValueError(f"Unknown store backend '{backend}'. Available: {', '.join(factories)}")
    return factories[backend]()


def _stamp(rows: List[ParsedRow], now: datetime) -> List[Employee]:
    return [
        row.employee.model_copy(
            update={
                "created_at": row.employee.created_at or now,
                "updated_at": row.employee.updated_at or now,
            }
        )
        for row in rows
    ]


class ImportService:
    """
    Orchestrates the reader, the batch validator and a store.
    """

    def __init__(self, store: EmployeeStore, settings: Optional[Settings] = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    async def start(self) -> None:
        await self.store.open()
        log.info("Import service started", extra={"store": self.store.name})

    async def stop(self) -> None:
        await self.store.close()
        log.info("Import service stopped", extra={"store": self.store.name})

    async def ingest(self, lines: Iterable[str], filename: str = "upload.csv") -> ImportReport:
        """
        Parse `lines` as CSV and commit every row as one batch.

        Raises
        ------
        CsvParseError
            On malformed CSV syntax.
        ImportValidationError
            On schema or integrity issues; nothing is written.
        ConcurrentImportError
            If other imports kept winning the commit race for every attempt.
        StorageError
            If the store rejects the write.
        """
        settings = self.settings
        log.info(f"[IMPORT START] {filename}", extra={"source": filename})
        with profile_block(f"import:{filename}") as stats:
            try:
                rows = await asyncio.to_thread(
                    read_employees, lines, settings.import_max_errors
                )
                employees = _stamp(rows, datetime.now(timezone.utc))
                generation, attempts = await self._commit_validated(rows, employees)
            except ImporterError as exc:
                log.warning(
                    f"[IMPORT FAILED] {filename}: {exc.message}",
                    extra={
                        "source": filename,
                        "error_type": type(exc).__name__,
                        "issues": len(exc.issues),
                    },
                )
                raise

        report = ImportReport(
            filename=filename,
            rows=len(employees),
            generation=generation,
            attempts=attempts,
            duration_seconds=round(stats.duration_seconds, 4),
            rows_per_sec=round(len(employees) / stats.duration_seconds, 2)
            if stats.duration_seconds
            else 0.0,
            peak_rss_bytes=stats.peak_rss_bytes,
        )
        log.info(
            f"[IMPORT SUCCESS] {filename}",
            extra={"source": filename, "rows": report.rows, "generation": generation},
        )
        return report

    async def _commit_validated(
        self, rows: List[ParsedRow], employees: List[Employee]
    ) -> tuple[int, int]:
        attempts = 0
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ConcurrentImportError),
            stop=stop_after_attempt(max(self.settings.import_max_retries, 1)),
            wait=wait_random(0, 0.05),
            reraise=True,
        ):
            with attempt:
                attempts = attempt.retry_state.attempt_number
                snapshot = await self.store.snapshot()
                issues = validate_batch(rows, snapshot.parents, self.settings.import_max_errors)
                if issues:
                    raise ImportValidationError(
                        f"{len(issues)} integrity issue(s) in CSV file", issues
                    )
                try:
                    generation = await self.store.commit(employees, snapshot.generation)
                except ConcurrentImportError:
                    log.info(
                        "Concurrent import detected; revalidating",
                        extra={"attempt": attempts, "generation": snapshot.generation},
                    )
                    raise
        return generation, attempts

    async def list_hierarchy(self, require_children: bool = False) -> List[EmployeeWithChildren]:
        """All employees with direct reports; `require_children` drops leaves."""
        return await self.store.list_with_children(require_children=require_children)

    async def export_csv(self) -> ExportPayload:
        employees = await self.store.list_employees()
        log.info("Export rendered", extra={"rows": len(employees)})
        return ExportPayload(
            content=render_csv(employees),
            filename=self.settings.export_filename,
            media_type=EXPORT_MEDIA_TYPE,
        )

    async def subtree(self, root_id: int, max_depth: Optional[int] = None) -> EmployeeNode:
        """
        Reporting tree under `root_id`.

        `max_depth` defaults to `tree_max_depth`; deeper levels are cut off.
        """
        limit = self.settings.tree_max_depth
        if max_depth is None:
            max_depth = limit
        elif max_depth > limit:
            raise QueryValidationError(f"max_depth {max_depth} exceeds the limit of {limit}")
        node = await self.store.subtree(root_id, max_depth=max_depth)
        if node is None:
            raise RecordNotFoundError(f"employee {root_id} not found")
        return node


__all__ = [
    "ImportService",
    "available_backends",
    "build_store",
]
