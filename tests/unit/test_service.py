from __future__ import annotations

import asyncio
import csv
import io
from typing import Sequence

import pytest

from employee_importer.config import Settings
from employee_importer.domain.models import EXPORT_FIELDS, Employee
from employee_importer.errors import (
    ConcurrentImportError,
    CsvParseError,
    ImportValidationError,
    QueryValidationError,
    RecordNotFoundError,
    StorageError,
)
from employee_importer.service import ImportService, available_backends, build_store
from employee_importer.stores.memory import MemoryEmployeeStore
from employee_importer.stores.postgres import PostgresEmployeeStore

SCENARIO_CSV = "id,name,managedBy\n1,Alice,\n2,Bob,1\n3,Carol,1\n"
FULL_CSV = (
    "id,name,email,username,avatar,managedBy\n"
    "1,Alice,alice@example.com,alice,https://a.example/alice.png,\n"
    "2,Bob,bob@example.com,bob,,1\n"
    "3,Carol,,carol,,1\n"
    "4,Dave,dave@example.com,,,2\n"
)
CHAIN_LENGTH = 3000
CHAIN_CSV = "id,name,managedBy\n1,E1,\n" + "".join(
    f"{i},E{i},{i - 1}\n" for i in range(2, CHAIN_LENGTH + 1)
)


def _lines(text: str) -> io.StringIO:
    return io.StringIO(text, newline="")


class _RacingStore(MemoryEmployeeStore):
    """Lets another import commit right before this store's first commit."""

    def __init__(self, intruders: Sequence[Employee]) -> None:
        super().__init__()
        self._intruders = list(intruders)
        self.commit_calls = 0

    async def commit(self, employees, expected_generation):
        self.commit_calls += 1
        if self._intruders:
            intruders, self._intruders = self._intruders, []
            await super().commit(intruders, expected_generation)
        return await super().commit(employees, expected_generation)


class _AlwaysConflictingStore(MemoryEmployeeStore):
    def __init__(self) -> None:
        super().__init__()
        self.commit_calls = 0

    async def commit(self, employees, expected_generation):
        self.commit_calls += 1
        raise ConcurrentImportError("someone else always wins")


class _BrokenStore(MemoryEmployeeStore):
    def __init__(self) -> None:
        super().__init__()
        self.commit_calls = 0

    async def commit(self, employees, expected_generation):
        self.commit_calls += 1
        raise StorageError("disk full")


@pytest.mark.asyncio
async def test_ingest_scenario_lists_every_employee(service: ImportService) -> None:
    report = await service.ingest(_lines(SCENARIO_CSV), filename="people.csv")

    assert report.filename == "people.csv"
    assert report.rows == 3
    assert report.generation == 1
    assert report.attempts == 1
    assert report.duration_seconds >= 0

    employees = await service.list_hierarchy()
    by_id = {employee.id: employee for employee in employees}
    assert len(employees) == 3
    assert [child.name for child in by_id[1].children] == ["Bob", "Carol"]
    assert by_id[2].children == []
    assert by_id[3].children == []


@pytest.mark.asyncio
async def test_require_children_drops_leaf_employees(service: ImportService) -> None:
    await service.ingest(_lines(SCENARIO_CSV))

    employees = await service.list_hierarchy(require_children=True)

    assert [employee.id for employee in employees] == [1]


@pytest.mark.asyncio
async def test_ingest_stamps_missing_timestamps(service: ImportService) -> None:
    await service.ingest(_lines(SCENARIO_CSV))

    stored = await service.store.list_employees()

    assert all(e.created_at is not None and e.updated_at is not None for e in stored)


@pytest.mark.asyncio
async def test_invalid_batch_writes_nothing(service: ImportService) -> None:
    text = "id,name,managedBy\n1,Alice,\n2,Bob,9\n"

    with pytest.raises(ImportValidationError) as excinfo:
        await service.ingest(_lines(text))

    assert excinfo.value.issues[0].message == "manager 9 does not exist"
    assert await service.store.list_employees() == []
    assert (await service.store.snapshot()).generation == 0


@pytest.mark.asyncio
async def test_duplicate_ids_reject_the_batch(service: ImportService) -> None:
    text = "id,name\n1,Alice\n1,Alicia\n"

    with pytest.raises(ImportValidationError):
        await service.ingest(_lines(text))

    assert await service.store.list_employees() == []


@pytest.mark.asyncio
async def test_parse_error_propagates(service: ImportService) -> None:
    with pytest.raises(CsvParseError):
        await service.ingest(_lines('id,name\n1,"Al"ice\n'))


@pytest.mark.asyncio
async def test_second_import_may_reference_stored_managers(service: ImportService) -> None:
    await service.ingest(_lines("id,name,managedBy\n1,Alice,\n"))

    report = await service.ingest(_lines("id,name,managedBy\n2,Bob,1\n"))

    assert report.generation == 2
    (alice,) = await service.list_hierarchy(require_children=True)
    assert [child.id for child in alice.children] == [2]


@pytest.mark.asyncio
async def test_reimporting_a_stored_id_is_rejected(service: ImportService) -> None:
    await service.ingest(_lines(SCENARIO_CSV))

    with pytest.raises(ImportValidationError) as excinfo:
        await service.ingest(_lines("id,name\n2,Robert\n"))

    assert excinfo.value.issues[0].message == "id 2 already exists"
    stored = {e.id: e.name for e in await service.store.list_employees()}
    assert stored[2] == "Bob"


@pytest.mark.asyncio
async def test_export_header_and_media_type(service: ImportService) -> None:
    await service.ingest(_lines(FULL_CSV))

    payload = await service.export_csv()

    assert payload.media_type.startswith("text/csv")
    assert payload.filename == "employees.csv"
    rows = list(csv.reader(io.StringIO(payload.content.decode("utf-8"))))
    assert tuple(rows[0]) == EXPORT_FIELDS
    assert rows[1] == ["1", "Alice", "alice@example.com", "alice", ""]
    assert rows[4] == ["4", "Dave", "dave@example.com", "", "2"]


@pytest.mark.asyncio
async def test_export_then_reimport_round_trips(
    service: ImportService, test_settings: Settings
) -> None:
    await service.ingest(_lines(FULL_CSV))
    payload = await service.export_csv()

    fresh = ImportService(MemoryEmployeeStore(), settings=test_settings)
    await fresh.ingest(_lines(payload.content.decode("utf-8")), filename=payload.filename)

    def _exported(employees):
        return [e.model_dump(include=set(EXPORT_FIELDS)) for e in employees]

    assert _exported(await fresh.store.list_employees()) == _exported(
        await service.store.list_employees()
    )


@pytest.mark.asyncio
async def test_concurrent_commit_is_revalidated_and_retried(test_settings: Settings) -> None:
    store = _RacingStore([Employee(id=100, name="Zed")])
    service = ImportService(store, settings=test_settings)

    report = await service.ingest(_lines(SCENARIO_CSV))

    assert report.attempts == 2
    assert report.generation == 2
    assert store.commit_calls == 2
    assert {e.id for e in await store.list_employees()} == {1, 2, 3, 100}


@pytest.mark.asyncio
async def test_concurrent_commit_that_invalidates_the_batch_rejects_it(
    test_settings: Settings,
) -> None:
    store = _RacingStore([Employee(id=2, name="Usurper")])
    service = ImportService(store, settings=test_settings)

    with pytest.raises(ImportValidationError) as excinfo:
        await service.ingest(_lines(SCENARIO_CSV))

    assert excinfo.value.issues[0].message == "id 2 already exists"
    assert [e.name for e in await store.list_employees()] == ["Usurper"]


@pytest.mark.asyncio
async def test_conflicts_exhaust_retries(test_settings: Settings) -> None:
    store = _AlwaysConflictingStore()
    service = ImportService(store, settings=test_settings)

    with pytest.raises(ConcurrentImportError):
        await service.ingest(_lines(SCENARIO_CSV))

    assert store.commit_calls == test_settings.import_max_retries


@pytest.mark.asyncio
async def test_storage_errors_are_not_retried(test_settings: Settings) -> None:
    store = _BrokenStore()
    service = ImportService(store, settings=test_settings)

    with pytest.raises(StorageError, match="disk full"):
        await service.ingest(_lines(SCENARIO_CSV))

    assert store.commit_calls == 1


@pytest.mark.asyncio
async def test_parallel_imports_both_commit(service: ImportService) -> None:
    first = "id,name,managedBy\n1,Alice,\n2,Bob,1\n"
    second = "id,name,managedBy\n10,Erin,\n11,Frank,10\n"

    reports = await asyncio.gather(
        service.ingest(_lines(first), filename="a.csv"),
        service.ingest(_lines(second), filename="b.csv"),
    )

    assert sorted(report.generation for report in reports) == [1, 2]
    assert len(await service.list_hierarchy()) == 4


@pytest.mark.asyncio
async def test_subtree_returns_full_depth(service: ImportService) -> None:
    await service.ingest(_lines(FULL_CSV))

    root = await service.subtree(1)

    assert [node.id for node in root.reports] == [2, 3]
    assert root.reports[0].reports[0].id == 4


@pytest.mark.asyncio
async def test_subtree_of_unknown_employee_raises(service: ImportService) -> None:
    with pytest.raises(RecordNotFoundError):
        await service.subtree(404)


def test_build_store_registry(test_settings: Settings) -> None:
    assert available_backends() == ["memory", "postgres"]
    assert isinstance(build_store("memory", settings=test_settings), MemoryEmployeeStore)
    assert isinstance(build_store("postgres", settings=test_settings), PostgresEmployeeStore)
    assert isinstance(build_store(settings=test_settings), MemoryEmployeeStore)
    with pytest.raises(ValueError, match="Unknown store backend"):
        build_store("sqlite", settings=test_settings)


@pytest.mark.asyncio
async def test_subtree_of_a_long_chain_is_cut_at_the_depth_limit(
    service: ImportService, test_settings: Settings
) -> None:
    report = await service.ingest(_lines(CHAIN_CSV))
    assert report.rows == CHAIN_LENGTH

    node = await service.subtree(1)
    while node.reports:
        (node,) = node.reports

    assert node.depth == test_settings.tree_max_depth
    assert node.id == test_settings.tree_max_depth + 1


@pytest.mark.asyncio
async def test_subtree_rejects_depth_above_the_limit(
    service: ImportService, test_settings: Settings
) -> None:
    await service.ingest(_lines(SCENARIO_CSV))

    with pytest.raises(QueryValidationError, match="exceeds the limit"):
        await service.subtree(1, max_depth=test_settings.tree_max_depth + 1)

    explicit = await service.subtree(1, max_depth=test_settings.tree_max_depth)
    assert [node.id for node in explicit.reports] == [2, 3]
