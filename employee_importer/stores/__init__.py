"""
Stores package for the Employee CSV Importer.

Re-exports the abstract interfaces and the concrete store classes so
downstream code can import from `employee_importer.stores` directly.
"""

from employee_importer.stores.abstract import AbstractEmployeeStore, EmployeeStore
from employee_importer.stores.memory import MemoryEmployeeStore
from employee_importer.stores.postgres import PostgresEmployeeStore

__all__ = [
    # Abstracts
    "AbstractEmployeeStore",
    "EmployeeStore",
    # Concrete stores
    "MemoryEmployeeStore",
    "PostgresEmployeeStore",
]
