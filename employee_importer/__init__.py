"""
Employee CSV Importer - CSV import/export for hierarchical employee records.

This package ingests uploaded CSV files into a shared store, lists employees
with their direct reports attached, and exports them back to CSV:

- Streaming CSV parsing with per-row schema validation
- Batch integrity checks (duplicate ids, dangling managers, reporting cycles)
- Atomic batch commits guarded by optimistic concurrency
- PostgreSQL (psycopg async pool + COPY) and in-memory stores
- FastAPI transport and a typer CLI
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from employee_importer.config import Settings, get_settings
from employee_importer.domain.models import (
    Employee,
    EmployeeNode,
    EmployeeWithChildren,
    ImportReport,
)
from employee_importer.errors import (
    ConcurrentImportError,
    CsvParseError,
    ImporterError,
    ImportValidationError,
    QueryValidationError,
    RecordNotFoundError,
    StorageError,
    UploadValidationError,
)
from employee_importer.service import ImportService, available_backends, build_store
from employee_importer.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Employee",
    "EmployeeNode",
    "EmployeeWithChildren",
    "ImportReport",
    # Errors
    "ImporterError",
    "UploadValidationError",
    "CsvParseError",
    "ImportValidationError",
    "QueryValidationError",
    "RecordNotFoundError",
    "StorageError",
    "ConcurrentImportError",
    # Service
    "ImportService",
    "available_backends",
    "build_store",
    # Logging
    "configure_logging",
    "get_logger",
]
