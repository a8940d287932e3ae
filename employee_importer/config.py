"""
Configuration settings for the Employee CSV Importer.

Uses Pydantic Settings to load environment variables for database connections,
logging, the HTTP server, and import/export behaviour.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("employees", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")
    db_statement_timeout_ms: int = Field(30_000, alias="DB_STATEMENT_TIMEOUT_MS")
    db_connect_retries: int = Field(3, alias="DB_CONNECT_RETRIES")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    store_backend: str = Field("postgres", alias="STORE_BACKEND")

    # HTTP server
    api_host: str = Field("127.0.0.1", alias="API_HOST")
    api_port: int = Field(8000, alias="API_PORT")

    # Import / export
    import_max_errors: int = Field(50, alias="IMPORT_MAX_ERRORS")
    import_max_retries: int = Field(3, alias="IMPORT_MAX_RETRIES")
    export_filename: str = Field("employees.csv", alias="EXPORT_FILENAME")

    # Reporting trees
    tree_max_depth: int = Field(100, ge=1, le=200, alias="TREE_MAX_DEPTH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
