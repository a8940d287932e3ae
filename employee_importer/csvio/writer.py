"""
CSV rendering for employee exports.
"""

from __future__ import annotations

import csv
import io
from typing import Iterable

from employee_importer.domain.models import EXPORT_FIELDS, Employee

EXPORT_MEDIA_TYPE = "text/csv; charset=utf-8"


def render_csv(employees: Iterable[Employee]) -> bytes:
    """Render employees as UTF-8 CSV with an `EXPORT_FIELDS` header row."""
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(EXPORT_FIELDS)
    writer.writerows(employee.export_row() for employee in employees)
    return buffer.getvalue().encode("utf-8")


__all__ = ["EXPORT_MEDIA_TYPE", "render_csv"]
