"""
Database connection factory utilities for the Employee CSV Importer.

Builds the DSN from settings and creates psycopg async connection pools. Pools
are created closed and opened explicitly by their owner, with retry logic for
transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg_pool import AsyncConnectionPool, PoolTimeout
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from employee_importer.config import Settings, get_settings
from employee_importer.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def create_async_pool(
    dsn: Optional[str] = None,
    min_size: int = 1,
    max_size: int = 10,
    statement_timeout_ms: int = 0,
) -> AsyncConnectionPool:
    """
    Create an unopened asynchronous connection pool.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to the one built from settings.
    min_size : int
        Minimum number of idle connections to keep.
    max_size : int
        Maximum total connections in the pool.
    statement_timeout_ms : int
        Server-side statement timeout applied to every connection (0 = none).

    Returns
    -------
    AsyncConnectionPool
        A pool that must be opened with `open_async_pool` before use.
    """
    kwargs = {}
    if statement_timeout_ms > 0:
        kwargs["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"
    return AsyncConnectionPool(
        conninfo=dsn or build_dsn(),
        min_size=min_size,
        max_size=max_size,
        kwargs=kwargs,
        open=False,
    )


async def open_async_pool(
    pool: AsyncConnectionPool, attempts: int = 3, timeout: float = 10.0
) -> AsyncConnectionPool:
    """
    Open a pool and wait for its first connections, with automatic retry.

    The pool keeps connecting in the background once opened; each retry waits
    again, up to `attempts` times with exponential backoff.

    Raises
    ------
    psycopg.OperationalError | PoolTimeout
        If the database stays unreachable after all retry attempts.
    """
    await pool.open()
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((psycopg.OperationalError, PoolTimeout)),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                log.warning(
                    "Retrying database pool open",
                    extra={"attempt": attempt.retry_state.attempt_number},
                )
            await pool.wait(timeout=timeout)
    return pool


__all__ = [
    "build_dsn",
    "create_async_pool",
    "open_async_pool",
]
