"""
CSV codec package: streaming import reader and export writer.
"""

from employee_importer.csvio.reader import (
    DELIMITED_MEDIA_TYPES,
    decode_lines,
    is_delimited_text,
    iter_rows,
    read_employees,
)
from employee_importer.csvio.writer import EXPORT_MEDIA_TYPE, render_csv

__all__ = [
    "DELIMITED_MEDIA_TYPES",
    "EXPORT_MEDIA_TYPE",
    "decode_lines",
    "is_delimited_text",
    "iter_rows",
    "read_employees",
    "render_csv",
]
