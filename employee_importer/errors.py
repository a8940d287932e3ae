"""
Error taxonomy for the Employee CSV Importer.

Every failure that crosses a component boundary is an `ImporterError`. Driver
and parser exceptions are wrapped at the boundary where they occur; the HTTP
layer maps these classes to status codes in one place.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from employee_importer.domain.models import Issue


class ImporterError(Exception):
    """Base class for all importer failures."""

    def __init__(self, message: str, issues: Optional[Sequence[Issue]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.issues: List[Issue] = list(issues or [])


class UploadValidationError(ImporterError):
    """The upload is missing or is not delimited text; nothing was parsed."""


class CsvParseError(ImporterError):
    """The CSV syntax is malformed; parsing stopped at `line`."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message, [Issue(line=line, message=message)])
        self.line = line


class ImportValidationError(ImporterError):
    """Rows parsed but failed schema or integrity checks; nothing was written."""


class RecordNotFoundError(ImporterError):
    """A lookup referenced an id that is not stored."""


class QueryValidationError(ImporterError):
    """A read request asked for more than the configured limits allow."""


class StorageError(ImporterError):
    """The backing store rejected a read or a write."""


class ConcurrentImportError(StorageError):
    """Another import committed between snapshot and commit."""


__all__ = [
    "ImporterError",
    "UploadValidationError",
    "CsvParseError",
    "ImportValidationError",
    "RecordNotFoundError",
    "QueryValidationError",
    "StorageError",
    "ConcurrentImportError",
]
