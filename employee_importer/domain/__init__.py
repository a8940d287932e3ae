"""
Domain package for the Employee CSV Importer.

Exports the core models and the hierarchy rules shared by the stores and the
import service. Keep this package focused on data definitions and validation.
"""

from employee_importer.domain.hierarchy import (
    build_tree,
    find_cycles,
    fold_self_join,
    validate_batch,
)
from employee_importer.domain.models import (
    EXPORT_FIELDS,
    REQUIRED_COLUMNS,
    ChildSummary,
    Employee,
    EmployeeNode,
    EmployeeWithChildren,
    ExportPayload,
    ImportReport,
    Issue,
    ParsedRow,
    StoreSnapshot,
)

__all__ = [
    "EXPORT_FIELDS",
    "REQUIRED_COLUMNS",
    "ChildSummary",
    "Employee",
    "EmployeeNode",
    "EmployeeWithChildren",
    "ExportPayload",
    "ImportReport",
    "Issue",
    "ParsedRow",
    "StoreSnapshot",
    "build_tree",
    "find_cycles",
    "fold_self_join",
    "validate_batch",
]
