"""
Domain models for the Employee CSV Importer.

Defines the employee record aligned with the `employees` table, the projections
returned by hierarchical queries, and the small value objects passed between
the reader, the validator and the stores.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, NamedTuple, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

# Column order of the exported CSV; also the header row.
EXPORT_FIELDS = ("id", "name", "email", "username", "managed_by")

# Columns a CSV header must name for the file to be importable.
REQUIRED_COLUMNS = ("id", "name")

# Upper bound of the BIGINT key columns.
MAX_EMPLOYEE_ID = 2**63 - 1


class Employee(BaseModel):
    """
    Representation of a single row in the `employees` table.
    """

    id: int = Field(
        ..., ge=1, le=MAX_EMPLOYEE_ID, description="Primary key supplied by the import file."
    )
    name: str = Field(..., min_length=1, max_length=255, description="Display name.")
    email: Optional[str] = Field(None, max_length=255)
    username: Optional[str] = Field(None, max_length=100, description="Handle.")
    avatar: Optional[str] = Field(None, max_length=2048, description="Avatar URL.")
    managed_by: Optional[int] = Field(
        None,
        ge=1,
        le=MAX_EMPLOYEE_ID,
        validation_alias=AliasChoices("managed_by", "managedBy"),
        description="Id of the manager; absent for roots.",
    )
    created_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("updated_at", "updatedAt")
    )

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
        "str_strip_whitespace": True,
    }

    @field_validator(
        "email", "username", "avatar", "managed_by", "created_at", "updated_at", mode="before"
    )
    @classmethod
    def _blank_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def export_row(self) -> List[str]:
        """Cells for the export CSV, in `EXPORT_FIELDS` order."""
        values = self.model_dump(include=set(EXPORT_FIELDS))
        return ["" if values[name] is None else str(values[name]) for name in EXPORT_FIELDS]


class ChildSummary(BaseModel):
    """Reduced projection of a direct report."""

    id: int
    name: str
    username: Optional[str] = None
    avatar: Optional[str] = None


class EmployeeWithChildren(BaseModel):
    """An employee with its direct reports attached; `managed_by` is omitted."""

    id: int
    name: str
    email: Optional[str] = None
    username: Optional[str] = None
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    children: List[ChildSummary] = Field(default_factory=list)


class EmployeeNode(BaseModel):
    """A node of a full-depth reporting tree."""

    id: int
    name: str
    username: Optional[str] = None
    avatar: Optional[str] = None
    depth: int = 0
    reports: List[EmployeeNode] = Field(default_factory=list)


EmployeeNode.model_rebuild()


class Issue(BaseModel):
    """One problem found while reading or validating an import file."""

    line: Optional[int] = None
    column: Optional[str] = None
    message: str


class ParsedRow(NamedTuple):
    """A typed employee together with the CSV line it came from."""

    line: int
    employee: Employee


class StoreSnapshot(NamedTuple):
    """Ids and parent links of a store at a given generation."""

    generation: int
    parents: Mapping[int, Optional[int]]


class ImportReport(BaseModel):
    """Outcome of a successful ingest."""

    filename: str
    rows: int
    generation: int
    attempts: int = 1
    duration_seconds: float = 0.0
    rows_per_sec: float = 0.0
    peak_rss_bytes: Optional[int] = None


class ExportPayload(NamedTuple):
    content: bytes
    filename: str
    media_type: str


__all__ = [
    "EXPORT_FIELDS",
    "REQUIRED_COLUMNS",
    "MAX_EMPLOYEE_ID",
    "Employee",
    "ChildSummary",
    "EmployeeWithChildren",
    "EmployeeNode",
    "Issue",
    "ParsedRow",
    "StoreSnapshot",
    "ImportReport",
    "ExportPayload",
]
