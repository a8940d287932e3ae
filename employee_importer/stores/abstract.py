"""
Abstract store interfaces for the Employee CSV Importer.

Concrete stores (Postgres, in-memory) implement the EmployeeStore protocol so
the import service and the HTTP layer never depend on a particular backend.
"""

from __future__ import annotations

import abc
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from employee_importer.domain.models import (
    Employee,
    EmployeeNode,
    EmployeeWithChildren,
    StoreSnapshot,
)


@runtime_checkable
class EmployeeStore(Protocol):
    """
    Common interface all employee stores must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier (the `STORE_BACKEND` value).
    """

    name: str

    async def open(self) -> None:
        """Acquire resources (pools, schema). Idempotent."""
        ...

    async def close(self) -> None:
        """Release resources. Idempotent."""
        ...

    async def snapshot(self) -> StoreSnapshot:
        """Return the current generation with every id and its parent id."""
        ...

    async def commit(self, employees: Sequence[Employee], expected_generation: int) -> int:
        """
        Write a validated batch atomically and return the new generation.

        Raises
        ------
        ConcurrentImportError
            If the generation moved since `expected_generation`.
        StorageError
            If the backend rejects the write.
        """
        ...

    async def list_employees(self) -> List[Employee]:
        """Every stored employee, ordered by id."""
        ...

    async def list_with_children(self, require_children: bool = False) -> List[EmployeeWithChildren]:
        """Every employee with its direct reports; inner-join filtering when asked."""
        ...

    async def subtree(self, root_id: int, max_depth: Optional[int] = None) -> Optional[EmployeeNode]:
        """Full reporting tree below `root_id`, or None if it is not stored."""
        ...


class AbstractEmployeeStore(abc.ABC):
    """
    ABC helper for class-based stores.

    Subclasses set `name` and implement the data operations; `open` and `close`
    default to no-ops.
    """

    name: str

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @abc.abstractmethod
    async def snapshot(self) -> StoreSnapshot:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def commit(
        self, employees: Sequence[Employee], expected_generation: int
    ) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def list_employees(self) -> List[Employee]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def list_with_children(
        self, require_children: bool = False
    ) -> List[EmployeeWithChildren]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def subtree(
        self, root_id: int, max_depth: Optional[int] = None
    ) -> Optional[EmployeeNode]:  # pragma: no cover - interface only
        raise NotImplementedError


__all__ = [
    "EmployeeStore",
    "AbstractEmployeeStore",
]
