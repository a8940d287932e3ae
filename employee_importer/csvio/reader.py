"""
Streaming CSV reader for employee import files.

Rows are pulled lazily from any iterable of text lines, so an upload is decoded
and parsed as it is read rather than loaded whole. Syntax problems stop the
parse with `CsvParseError`; rows that parse but do not fit the `Employee`
schema are accumulated as issues and reported together.
"""

from __future__ import annotations

import codecs
import csv
from pathlib import PurePath
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from employee_importer.domain.models import REQUIRED_COLUMNS, Employee, Issue, ParsedRow
from employee_importer.errors import CsvParseError, ImportValidationError
from employee_importer.utils.logging import get_logger

log = get_logger(__name__)

# Media types browsers and HTTP clients send for .csv uploads.
DELIMITED_MEDIA_TYPES = frozenset(
    {
        "text/csv",
        "application/csv",
        "text/comma-separated-values",
        "application/vnd.ms-excel",
        "text/plain",
    }
)
_GENERIC_MEDIA_TYPES = frozenset({"", "application/octet-stream"})


def is_delimited_text(content_type: Optional[str], filename: Optional[str]) -> bool:
    """
    Decide whether an upload is delimited text before reading any of it.

    A `.csv` filename is always required; the declared media type must be a
    CSV-ish type, or generic when the client did not know better.
    """
    if not filename or PurePath(filename).suffix.lower() != ".csv":
        return False
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    return media_type in DELIMITED_MEDIA_TYPES or media_type in _GENERIC_MEDIA_TYPES


def decode_lines(chunks: Iterable[bytes], encoding: str = "utf-8-sig") -> Iterator[str]:
    """Incrementally decode a binary line stream; a leading BOM is dropped."""
    return codecs.iterdecode(chunks, encoding)


def iter_rows(lines: Iterable[str]) -> Iterator[Tuple[int, Dict[str, str]]]:
    """
    Yield `(line_number, {column: value})` for every data row.

    Raises
    ------
    ImportValidationError
        If the input is empty or the header lacks a required column.
    CsvParseError
        On malformed quoting, undecodable bytes, duplicate header names, or a
        row whose field count differs from the header.
    """
    reader = csv.reader(lines, strict=True)
    try:
        header = next(reader, None)
        if header is None:
            raise ImportValidationError("CSV file is empty")
        columns = [name.strip() for name in header]

        seen = set()
        for name in columns:
            if name in seen:
                raise CsvParseError(f"duplicate column '{name}' in header", line=reader.line_num)
            seen.add(name)
        missing = [name for name in REQUIRED_COLUMNS if name not in seen]
        if missing:
            raise ImportValidationError(
                "CSV header is missing required columns",
                [Issue(line=1, column=name, message="required column missing") for name in missing],
            )

        for fields in reader:
            if not fields:
                continue
            if len(fields) != len(columns):
                raise CsvParseError(
                    f"expected {len(columns)} fields, found {len(fields)}",
                    line=reader.line_num,
                )
            yield reader.line_num, dict(zip(columns, fields))
    except csv.Error as exc:
        raise CsvParseError(f"malformed CSV: {exc}", line=reader.line_num) from exc
    except UnicodeDecodeError as exc:
        raise CsvParseError(f"file is not valid UTF-8: {exc.reason}", line=reader.line_num + 1) from exc


def _issues_from(line: int, exc: ValidationError) -> List[Issue]:
    issues = []
    for error in exc.errors():
        column = str(error["loc"][0]) if error["loc"] else None
        issues.append(Issue(line=line, column=column, message=error["msg"]))
    return issues


def read_employees(lines: Iterable[str], max_errors: int = 50) -> List[ParsedRow]:
    """
    Parse and type every row, collecting schema issues up to `max_errors`.

    Raises
    ------
    CsvParseError
        On malformed CSV syntax.
    ImportValidationError
        If any row fails schema validation, or the file has no data rows.
    """
    parsed: List[ParsedRow] = []
    issues: List[Issue] = []

    for line, values in iter_rows(lines):
        try:
            parsed.append(ParsedRow(line, Employee.model_validate(values)))
        except ValidationError as exc:
            issues.extend(_issues_from(line, exc))
            if len(issues) >= max_errors:
                log.warning("Issue limit reached; stopping parse", extra={"line": line})
                break

    if issues:
        issues = issues[:max_errors]
        raise ImportValidationError(f"{len(issues)} invalid value(s) in CSV file", issues)
    if not parsed:
        raise ImportValidationError("CSV file contains no data rows")
    return parsed


__all__ = [
    "DELIMITED_MEDIA_TYPES",
    "is_delimited_text",
    "decode_lines",
    "iter_rows",
    "read_employees",
]
