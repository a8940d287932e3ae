"""
Sample data generation script for the Employee CSV Importer.

Implements deterministic pseudo-random employee forests, CSV emission, and an
optional import of the generated file into the configured store.
"""

from __future__ import annotations

import asyncio
import csv
import random
import sys
import tempfile
import time
from pathlib import Path

import typer

from employee_importer.config import get_settings
from employee_importer.service import ImportService, build_store

app = typer.Typer(help="Generate a synthetic employee hierarchy as CSV and optionally import it.")

HEADER = ["id", "name", "email", "username", "avatar", "managedBy"]

_FIRST_NAMES = ["Alice", "Bob", "Carol", "Dave", "Erin", "Frank", "Grace", "Heidi", "Ivan", "Judy"]
_LAST_NAMES = ["Smith", "Jones", "Nguyen", "Garcia", "Khan", "Rossi", "Muller", "Silva"]


def _generate_employees_csv(
    csv_path: Path, rows: int, batch_size: int, seed: int, roots: int = 1
) -> None:
    """
    Write `rows` employees forming `roots` trees.

    Every employee after the first `roots` reports to a random earlier one, so
    the file is always a valid forest.
    """
    rng = random.Random(seed)
    roots = max(1, min(roots, rows)) if rows else 0

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)

        buffer: list[list[str]] = []
        for employee_id in range(1, rows + 1):
            first = rng.choice(_FIRST_NAMES)
            last = rng.choice(_LAST_NAMES)
            username = f"{first.lower()}.{last.lower()}{employee_id}"
            manager = "" if employee_id <= roots else str(rng.randint(1, employee_id - 1))
            buffer.append(
                [
                    str(employee_id),
                    f"{first} {last}",
                    f"{username}@example.com",
                    username,
                    f"https://avatars.example.com/{username}.png",
                    manager,
                ]
            )
            if len(buffer) >= batch_size:
                writer.writerows(buffer)
                buffer.clear()
        if buffer:
            writer.writerows(buffer)


async def _import_file(csv_path: Path, backend: str | None) -> int:
    settings = get_settings()
    service = ImportService(build_store(backend, settings=settings), settings=settings)
    await service.start()
    try:
        with csv_path.open("r", newline="", encoding="utf-8") as handle:
            report = await service.ingest(handle, filename=csv_path.name)
    finally:
        await service.stop()
    return report.rows


@app.command()
def main(
    rows: int = typer.Option(
        1_000,
        "--rows",
        "-r",
        help="Number of employees to generate.",
    ),
    roots: int = typer.Option(
        1,
        "--roots",
        help="Number of top-level employees (trees in the forest).",
    ),
    batch_size: int = typer.Option(
        10_000,
        "--batch-size",
        "-b",
        help="Batch size for CSV buffering during generation.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    backend: str | None = typer.Option(
        None,
        "--backend",
        help="Store backend override (default from settings).",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only generate CSV; skip importing it.",
    ),
) -> None:
    """
    Generate synthetic employees and optionally import them.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        tmpdir = Path(tempfile.mkdtemp(prefix="employees_csv_"))
        csv_path = tmpdir / "employees.csv"

    typer.echo(f"Generating {rows:,} employees -> {csv_path} (roots={roots}, seed={seed})")
    _generate_employees_csv(csv_path, rows=rows, batch_size=batch_size, seed=seed, roots=roots)
    gen_duration = time.perf_counter() - start
    typer.echo(f"CSV generation completed in {gen_duration:.2f}s")

    if no_load:
        typer.echo("Skipping import (no-load flag set).")
        return

    load_start = time.perf_counter()
    typer.echo("Importing CSV...")
    imported = asyncio.run(_import_file(csv_path, backend))
    load_duration = time.perf_counter() - load_start
    typer.echo(f"Imported {imported:,} employees in {load_duration:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
