"""
Utilities package for the Employee CSV Importer.

Exports shared helpers for logging and profiling. Keep this package
lightweight and free of domain-specific logic.
"""

from employee_importer.utils.logging import configure_logging, get_logger
from employee_importer.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
