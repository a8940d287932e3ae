"""
Hierarchy rules for the self-referential `managed_by` link.

Employees form a forest stored as an adjacency list. This module holds the
pure functions both stores share: batch integrity checks run before a commit,
folding self-join rows into `EmployeeWithChildren`, and assembling a
full-depth `EmployeeNode` tree from flat rows.
"""

from __future__ import annotations

from itertools import groupby
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from employee_importer.domain.models import (
    ChildSummary,
    EmployeeNode,
    EmployeeWithChildren,
    Issue,
    ParsedRow,
)

# Parent half of a self-join row, then the child half.
PARENT_COLUMNS = ("id", "name", "email", "username", "avatar", "created_at", "updated_at")
CHILD_COLUMNS = ("id", "name", "username", "avatar")

# (id, name, username, avatar, managed_by)
TreeRow = Tuple[int, str, Optional[str], Optional[str], Optional[int]]


def find_cycles(parents: Mapping[int, Optional[int]]) -> List[List[int]]:
    """
    Return every cycle reachable through parent links, each listed once.

    Walks each unvisited id up its parent chain; a walk that reaches an id it
    already holds on its own path has closed a loop. Links to ids missing from
    `parents` end the walk.
    """
    state: Dict[int, int] = {}  # 1 = on current path, 2 = finished
    cycles: List[List[int]] = []

    for start in parents:
        if start in state:
            continue
        path: List[int] = []
        node: Optional[int] = start
        while node is not None and node in parents and node not in state:
            state[node] = 1
            path.append(node)
            node = parents[node]
        if node is not None and state.get(node) == 1:
            cycles.append(path[path.index(node):])
        for member in path:
            state[member] = 2

    return cycles


def validate_batch(
    rows: Sequence[ParsedRow],
    existing: Mapping[int, Optional[int]],
    max_issues: int = 50,
) -> List[Issue]:
    """
    Check a parsed batch against a store snapshot before anything is written.

    Returns the issues found; an empty list means the batch may be committed.
    """
    issues: List[Issue] = []
    first_seen: Dict[int, int] = {}
    batch_parents: Dict[int, Optional[int]] = {}
    lines: Dict[int, int] = {}

    for line, employee in rows:
        if employee.id in first_seen:
            issues.append(
                Issue(
                    line=line,
                    column="id",
                    message=f"duplicate id {employee.id} (first seen on line {first_seen[employee.id]})",
                )
            )
            continue
        first_seen[employee.id] = line
        if employee.id in existing:
            issues.append(
                Issue(line=line, column="id", message=f"id {employee.id} already exists")
            )
            continue
        batch_parents[employee.id] = employee.managed_by
        lines[employee.id] = line

    for employee_id, parent in batch_parents.items():
        if parent is None:
            continue
        if parent == employee_id:
            issues.append(
                Issue(line=lines[employee_id], column="managed_by", message="record manages itself")
            )
        elif parent not in batch_parents and parent not in existing:
            issues.append(
                Issue(
                    line=lines[employee_id],
                    column="managed_by",
                    message=f"manager {parent} does not exist",
                )
            )

    # Stored records never point at new ones, so any loop lies inside the batch.
    looping = {k: v for k, v in batch_parents.items() if v != k}
    for cycle in find_cycles(looping):
        chain = " -> ".join(str(member) for member in cycle + cycle[:1])
        issues.append(
            Issue(
                line=lines[cycle[0]],
                column="managed_by",
                message=f"reporting cycle {chain}",
            )
        )

    return issues[:max_issues]


def fold_self_join(rows: Iterable[Sequence]) -> List[EmployeeWithChildren]:
    """
    Fold rows of `employees p LEFT JOIN employees c ON c.managed_by = p.id`.

    Rows must be ordered by parent id. Each row is the `PARENT_COLUMNS` values
    followed by the `CHILD_COLUMNS` values; the child half is all NULL when the
    parent has no reports.
    """
    width = len(PARENT_COLUMNS)
    result: List[EmployeeWithChildren] = []
    for _, group in groupby(rows, key=lambda row: row[0]):
        group = list(group)
        parent = dict(zip(PARENT_COLUMNS, group[0][:width]))
        children = [
            ChildSummary(**dict(zip(CHILD_COLUMNS, row[width:])))
            for row in group
            if row[width] is not None
        ]
        result.append(EmployeeWithChildren(**parent, children=children))
    return result


def build_tree(
    rows: Iterable[TreeRow], root_id: int, max_depth: Optional[int] = None
) -> Optional[EmployeeNode]:
    """
    Assemble the reporting tree under `root_id` from flat rows.

    Rows outside the subtree are ignored. Returns None when `root_id` is not
    among the rows. Nodes are expanded from an explicit stack, so chain depth
    is not bounded by the interpreter recursion limit.
    """
    by_id: Dict[int, TreeRow] = {}
    reports: Dict[int, List[int]] = {}
    for row in rows:
        by_id[row[0]] = row
        if row[4] is not None:
            reports.setdefault(row[4], []).append(row[0])

    if root_id not in by_id:
        return None

    def _make(employee_id: int, depth: int) -> EmployeeNode:
        _, name, username, avatar, _ = by_id[employee_id]
        return EmployeeNode(id=employee_id, name=name, username=username, avatar=avatar, depth=depth)

    root = _make(root_id, 0)
    pending = [root]
    while pending:
        node = pending.pop()
        if max_depth is not None and node.depth >= max_depth:
            continue
        node.reports = [_make(child, node.depth + 1) for child in sorted(reports.get(node.id, []))]
        pending.extend(node.reports)
    return root


__all__ = [
    "PARENT_COLUMNS",
    "CHILD_COLUMNS",
    "find_cycles",
    "validate_batch",
    "fold_self_join",
    "build_tree",
]
