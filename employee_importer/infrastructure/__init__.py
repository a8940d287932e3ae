"""
Infrastructure package for the Employee CSV Importer.

Centralizes database connectivity concerns (DSN, async pools, retries). Keep
this layer focused on I/O and resource management, decoupled from the import
service and the HTTP layer.
"""

from employee_importer.infrastructure.db_factory import (
    build_dsn,
    create_async_pool,
    open_async_pool,
)

__all__ = [
    "build_dsn",
    "create_async_pool",
    "open_async_pool",
]
