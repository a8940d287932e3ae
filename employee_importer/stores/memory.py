"""
In-process employee store.

Keeps employees in a dict keyed by id. Commits are serialized by an
`asyncio.Lock` and guarded by the same generation check the Postgres store
uses, so both backends behave alike under concurrent imports. Used by the test
suite and by `STORE_BACKEND=memory` for local development.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

from employee_importer.domain.hierarchy import build_tree, fold_self_join
from employee_importer.domain.models import (
    Employee,
    EmployeeNode,
    EmployeeWithChildren,
    StoreSnapshot,
)
from employee_importer.errors import ConcurrentImportError, StorageError
from employee_importer.stores.abstract import AbstractEmployeeStore


class MemoryEmployeeStore(AbstractEmployeeStore):
    """Dict-backed store with optimistic generation checks."""

    name: str = "memory"

    def __init__(self) -> None:
        self._employees: Dict[int, Employee] = {}
        self._generation = 0
        self._lock = asyncio.Lock()

    async def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            generation=self._generation,
            parents={e.id: e.managed_by for e in self._employees.values()},
        )

    async def commit(self, employees: Sequence[Employee], expected_generation: int) -> int:
        async with self._lock:
            if self._generation != expected_generation:
                raise ConcurrentImportError(
                    f"store moved to generation {self._generation} "
                    f"(expected {expected_generation})"
                )
            clashes = [e.id for e in employees if e.id in self._employees]
            if clashes:
                raise StorageError(f"duplicate key: ids {clashes} already stored")
            self._employees.update((e.id, e) for e in employees)
            self._generation += 1
            return self._generation

    async def list_employees(self) -> List[Employee]:
        return [self._employees[key] for key in sorted(self._employees)]

    async def list_with_children(self, require_children: bool = False) -> List[EmployeeWithChildren]:
        reports: Dict[int, List[Employee]] = {}
        for employee in self._employees.values():
            if employee.managed_by is not None:
                reports.setdefault(employee.managed_by, []).append(employee)

        rows = []
        for parent in await self.list_employees():
            children = sorted(reports.get(parent.id, []), key=lambda e: e.id)
            head = (
                parent.id,
                parent.name,
                parent.email,
                parent.username,
                parent.avatar,
                parent.created_at,
                parent.updated_at,
            )
            if not children:
                if not require_children:
                    rows.append(head + (None, None, None, None))
                continue
            rows.extend(head + (c.id, c.name, c.username, c.avatar) for c in children)
        return fold_self_join(rows)

    async def subtree(self, root_id: int, max_depth: Optional[int] = None) -> Optional[EmployeeNode]:
        rows = (
            (e.id, e.name, e.username, e.avatar, e.managed_by)
            for e in self._employees.values()
        )
        return build_tree(rows, root_id, max_depth=max_depth)


__all__ = ["MemoryEmployeeStore"]
