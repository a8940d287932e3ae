"""
Pytest configuration for the Employee CSV Importer.

Provides fixtures for:
- Settings override for unit and integration tests
- In-memory service and FastAPI test client
- Database connection management and table cleanup for integration tests
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest
from fastapi.testclient import TestClient

from employee_importer.api import create_app
from employee_importer.config import Settings
from employee_importer.service import ImportService
from employee_importer.stores.memory import MemoryEmployeeStore
from employee_importer.stores.postgres import SCHEMA_SQL


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "employees"),
        log_level="DEBUG",
        store_backend="memory",
        import_max_errors=50,
        import_max_retries=3,
        export_filename="employees.csv",
        tree_max_depth=100,
    )


@pytest.fixture
def memory_store() -> MemoryEmployeeStore:
    return MemoryEmployeeStore()


@pytest.fixture
def service(memory_store: MemoryEmployeeStore, test_settings: Settings) -> ImportService:
    return ImportService(memory_store, settings=test_settings)


@pytest.fixture
def client(service: ImportService, test_settings: Settings) -> Generator[TestClient, None, None]:
    """
    FastAPI test client bound to an in-memory service.
    """
    with TestClient(create_app(service=service, settings=test_settings)) as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the employees schema exists.
    """
    with db_connection.cursor() as cur:
        cur.execute(SCHEMA_SQL)
    db_connection.commit()
    return True


@pytest.fixture(scope="function")
def clean_employees_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the employees table and reset the generation around each test.
    """

    def _reset() -> None:
        with db_connection.cursor() as cur:
            cur.execute("TRUNCATE TABLE public.employees;")
            cur.execute("UPDATE public.import_generation SET generation = 0;")
        db_connection.commit()

    _reset()
    yield
    _reset()
