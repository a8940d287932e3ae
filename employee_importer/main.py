from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
import uvicorn

from employee_importer.api import create_app
from employee_importer.config import get_settings
from employee_importer.errors import ImporterError
from employee_importer.reporter import print_hierarchy, print_issues, print_report, print_tree
from employee_importer.service import ImportService, available_backends, build_store
from employee_importer.utils.logging import configure_logging

app = typer.Typer(help="Employee CSV Importer CLI.")

T = TypeVar("T")


def _run(action: Callable[[ImportService], Awaitable[T]], backend: Optional[str] = None) -> T:
    """Start a service on the configured store, run `action`, always stop it."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    async def _main() -> T:
        service = ImportService(build_store(backend, settings=settings), settings=settings)
        await service.start()
        try:
            return await action(service)
        finally:
            await service.stop()

    try:
        return asyncio.run(_main())
    except ImporterError as exc:
        print_issues(exc.message, exc.issues)
        raise typer.Exit(code=1) from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"store={settings.store_backend} (available: {', '.join(available_backends())}) | "
        f"api={settings.api_host}:{settings.api_port} | "
        f"max_errors={settings.import_max_errors} retries={settings.import_max_retries} "
        f"tree_max_depth={settings.tree_max_depth}"
    )


@app.command("init-db")
def init_db() -> None:
    """
    Create the employees schema in Postgres.
    """

    async def _noop(service: ImportService) -> None:
        return None

    # Opening the postgres store creates the schema.
    _run(_noop, backend="postgres")
    typer.echo("Schema ready.")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from settings)."),
) -> None:
    """
    Run the HTTP API with uvicorn.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    uvicorn.run(
        create_app(settings=settings),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_config=None,
    )


@app.command("import")
def import_csv(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    """
    Import employees from a CSV file into the configured store.
    """

    async def _ingest(service: ImportService):
        with path.open("r", newline="", encoding="utf-8-sig") as handle:
            return await service.ingest(handle, filename=path.name)

    report = _run(_ingest)
    print_report(report)


@app.command()
def export(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write to this file instead of stdout."
    ),
) -> None:
    """
    Export every employee as CSV.
    """

    async def _export(service: ImportService):
        return await service.export_csv()

    payload = _run(_export)
    if output is None:
        sys.stdout.write(payload.content.decode("utf-8"))
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(payload.content)
    typer.echo(f"Exported to {output}")


@app.command("list")
def list_employees(
    with_children_only: bool = typer.Option(
        False, "--with-children-only", help="Only employees that have direct reports."
    ),
) -> None:
    """
    List employees with their direct reports.
    """

    async def _list(service: ImportService):
        return await service.list_hierarchy(require_children=with_children_only)

    print_hierarchy(_run(_list))


@app.command()
def tree(
    employee_id: int = typer.Argument(..., help="Root employee id."),
    max_depth: Optional[int] = typer.Option(
        None, "--max-depth", min=0, help="Levels below the root (default TREE_MAX_DEPTH)."
    ),
) -> None:
    """
    Show the full reporting tree under an employee.
    """

    async def _tree(service: ImportService):
        return await service.subtree(employee_id, max_depth=max_depth)

    print_tree(_run(_tree))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
