from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from employee_importer.domain.models import (
    EmployeeNode,
    EmployeeWithChildren,
    ImportReport,
    Issue,
)


def _label(name: str, username: Optional[str]) -> str:
    return f"{name} [dim]@{username}[/dim]" if username else name


def print_hierarchy(
    employees: List[EmployeeWithChildren], console: Optional[Console] = None
) -> None:
    """
    Render employees and their direct reports as a rich table.
    """
    console = console or Console()

    if not employees:
        console.print("[yellow]No employees stored.[/yellow]")
        return

    table = Table(
        title="Employees",
        box=box.ROUNDED,
        caption=f"{len(employees)} employee(s), sorted by id",
    )
    table.add_column("Id", justify="right", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Email", style="green")
    table.add_column("Direct reports", style="yellow")

    for employee in employees:
        reports = ", ".join(f"{child.name} ({child.id})" for child in employee.children)
        table.add_row(
            str(employee.id),
            _label(employee.name, employee.username),
            employee.email or "",
            reports or "[dim]none[/dim]",
        )

    console.print(table)


def print_tree(node: EmployeeNode, console: Optional[Console] = None) -> None:
    """Render a reporting tree with rich's Tree widget."""
    console = console or Console()
    root = Tree(f"[bold]{_label(node.name, node.username)}[/bold] ({node.id})")
    pending = [(root, node)]
    while pending:
        branch, current = pending.pop()
        for report in current.reports:
            child = branch.add(f"{_label(report.name, report.username)} ({report.id})")
            pending.append((child, report))
    console.print(root)


def print_report(report: ImportReport, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title=f"Import of {report.filename}", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="bold green")
    table.add_row("Rows", f"{report.rows:,}")
    table.add_row("Generation", str(report.generation))
    table.add_row("Attempts", str(report.attempts))
    table.add_row("Duration (s)", f"{report.duration_seconds:.3f}")
    table.add_row("Throughput (rows/s)", f"{report.rows_per_sec:,.2f}")
    if report.peak_rss_bytes:
        table.add_row("Peak Memory (MB)", f"{report.peak_rss_bytes / (1024 * 1024):.2f}")
    console.print(table)


def print_issues(message: str, issues: List[Issue], console: Optional[Console] = None) -> None:
    console = console or Console(stderr=True)
    console.print(f"[red]{message}[/red]")
    if not issues:
        return
    table = Table(box=box.SIMPLE)
    table.add_column("Line", justify="right", style="cyan")
    table.add_column("Column", style="magenta")
    table.add_column("Problem", style="red")
    for issue in issues:
        table.add_row(
            "" if issue.line is None else str(issue.line),
            issue.column or "",
            issue.message,
        )
    console.print(table)


__all__ = ["print_hierarchy", "print_tree", "print_report", "print_issues"]
