"""Snapshot persistence tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

import pytest
from sqlalchemy import delete, event, func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from filecollector.storage import (
    BATCH_SIZE,
    CollectedFile,
    Database,
    FileCollection,
    PersistError,
    SnapshotPersister,
    SnapshotUnitOfWork,
)
from filecollector.storage.persister import normalize_timestamp

STARTED_AT = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)


def _names(count: int) -> list[str]:
    return [f"file-{index:04d}.dat" for index in range(count)]


def _row_counts(database: Database) -> tuple[int, int]:
    """Return the number of snapshot rows and file rows in the store.

    Args:
        database: Store under test.

    Returns:
        tuple[int, int]: Snapshot count and collected file count.
    """
    with database.session_factory() as session:
        snapshots = session.scalar(select(func.count()).select_from(FileCollection))
        files = session.scalar(select(func.count()).select_from(CollectedFile))
    return int(snapshots or 0), int(files or 0)


@pytest.fixture
def file_inserts(database: Database) -> Iterator[list[str]]:
    """Record every INSERT statement issued against ``collected_files``."""
    statements: list[str] = []

    def _record(conn: Any, cursor: Any, statement: str, *args: Any) -> None:
        if statement.startswith("INSERT INTO collected_files"):
            statements.append(statement)

    event.listen(database.engine, "before_cursor_execute", _record)
    yield statements
    event.remove(database.engine, "before_cursor_execute", _record)


@pytest.mark.parametrize("count", [0, 1, 5, BATCH_SIZE - 1, BATCH_SIZE, BATCH_SIZE + 1, 250])
def test_file_count_matches_child_rows(database: Database, count: int) -> None:
    """The summary row always agrees with the number of child rows.

    Args:
        database: Migrated SQLite store.
        count: Number of file names to persist.
    """
    names = _names(count)

    collection_id = SnapshotPersister(database.session_factory).persist(
        "node-a", "/mnt/harman", STARTED_AT, names
    )

    with database.session_factory() as session:
        snapshot = session.get(FileCollection, collection_id)
        assert snapshot is not None
        stored = session.scalars(
            select(CollectedFile.file_name).where(CollectedFile.collection_id == collection_id)
        ).all()

    assert snapshot.file_count == count
    assert sorted(stored) == sorted(names)
    assert snapshot.node_name == "node-a"
    assert snapshot.mount_path == "/mnt/harman"


def test_snapshot_ids_increase(database: Database) -> None:
    persister = SnapshotPersister(database.session_factory)

    first = persister.persist("node-a", "/mnt/harman", STARTED_AT, ["a"])
    second = persister.persist("node-a", "/mnt/harman", STARTED_AT + timedelta(minutes=1), [])

    assert second > first


def test_collected_at_is_naive_utc_millis(database: Database) -> None:
    local = STARTED_AT.astimezone(timezone(timedelta(hours=9)))

    collection_id = SnapshotPersister(database.session_factory).persist("node-a", "/m", local, [])

    with database.session_factory() as session:
        snapshot = session.get(FileCollection, collection_id)
        assert snapshot is not None
    assert snapshot.collected_at == datetime(2024, 5, 1, 12, 30, 15, 123000)


def test_normalize_timestamp_keeps_naive_values() -> None:
    assert normalize_timestamp(datetime(2024, 1, 1, 0, 0, 0, 999999)) == datetime(2024, 1, 1, 0, 0, 0, 999000)


def test_files_are_written_in_chunks(database: Database, file_inserts: list[str]) -> None:
    """250 names need three statements of at most 100 rows each.

    Args:
        database: Migrated SQLite store.
        file_inserts: Recorded INSERT statements for collected_files.
    """
    SnapshotPersister(database.session_factory).persist("node-a", "/m", STARTED_AT, _names(250))

    assert len(file_inserts) == 3
    assert _row_counts(database) == (1, 250)


def test_empty_scan_issues_no_file_insert(database: Database, file_inserts: list[str]) -> None:
    SnapshotPersister(database.session_factory).persist("node-a", "/m", STARTED_AT, [])

    assert file_inserts == []
    assert _row_counts(database) == (1, 0)


def test_failure_mid_batch_rolls_back_everything(database: Database) -> None:
    """A failure on the second chunk leaves neither the snapshot nor any file rows.

    Args:
        database: Migrated SQLite store.
    """
    calls: list[str] = []

    def _fail_second_chunk(conn: Any, cursor: Any, statement: str, *args: Any) -> None:
        if statement.startswith("INSERT INTO collected_files"):
            calls.append(statement)
            if len(calls) == 2:
                raise OperationalError(statement, None, Exception("injected failure"))

    event.listen(database.engine, "before_cursor_execute", _fail_second_chunk)
    try:
        with pytest.raises(PersistError) as excinfo:
            SnapshotPersister(database.session_factory).persist("node-a", "/m", STARTED_AT, _names(250))
    finally:
        event.remove(database.engine, "before_cursor_execute", _fail_second_chunk)

    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert len(calls) == 2
    assert _row_counts(database) == (0, 0)


def test_snapshot_insert_failure_raises_persist_error(database: Database) -> None:
    with pytest.raises(PersistError) as excinfo:
        SnapshotPersister(database.session_factory).persist(None, "/m", STARTED_AT, ["a"])  # type: ignore[arg-type]

    assert isinstance(excinfo.value.__cause__, IntegrityError)
    assert _row_counts(database) == (0, 0)


def test_store_stays_usable_after_failure(database: Database) -> None:
    persister = SnapshotPersister(database.session_factory)
    with pytest.raises(PersistError):
        persister.persist(None, "/m", STARTED_AT, ["a"])  # type: ignore[arg-type]

    persister.persist("node-a", "/m", STARTED_AT, ["a", "b"])

    assert _row_counts(database) == (1, 2)


def test_deleting_snapshot_cascades_to_files(database: Database) -> None:
    collection_id = SnapshotPersister(database.session_factory).persist(
        "node-a", "/m", STARTED_AT, _names(3)
    )

    with database.session_factory.begin() as session:
        session.execute(delete(FileCollection).where(FileCollection.id == collection_id))

    assert _row_counts(database) == (0, 0)


def test_unit_of_work_commits_on_clean_exit(database: Database) -> None:
    with SnapshotUnitOfWork(database.session_factory, batch_size=2) as unit:
        snapshot = unit.insert_snapshot(
            node_name="node-a", mount_path="/m", collected_at=STARTED_AT, file_count=5
        )
        written = unit.insert_files(snapshot.id, _names(5))

    assert written == 5
    assert _row_counts(database) == (1, 5)


def test_unit_of_work_rolls_back_on_error(database: Database) -> None:
    with pytest.raises(RuntimeError, match="abort"):
        with SnapshotUnitOfWork(database.session_factory) as unit:
            snapshot = unit.insert_snapshot(
                node_name="node-a", mount_path="/m", collected_at=STARTED_AT, file_count=1
            )
            unit.insert_files(snapshot.id, ["a"])
            raise RuntimeError("abort")

    assert _row_counts(database) == (0, 0)


def test_unit_of_work_requires_context(database: Database) -> None:
    unit = SnapshotUnitOfWork(database.session_factory)

    with pytest.raises(RuntimeError):
        unit.insert_files(1, ["a"])


def test_unencodable_name_raises_persist_error(database: Database) -> None:
    with pytest.raises(PersistError) as excinfo:
        SnapshotPersister(database.session_factory).persist("node-a", "/m", STARTED_AT, ["ok", "bad\udcff.txt"])

    assert isinstance(excinfo.value.__cause__, UnicodeError)
    assert _row_counts(database) == (0, 0)
