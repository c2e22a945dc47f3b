"""Transactional snapshot persistence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import TracebackType
from typing import Iterator, Optional, Sequence

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .errors import PersistError
from .models import CollectedFile, FileCollection

LOGGER = logging.getLogger(__name__)

BATCH_SIZE = 100


class SnapshotUnitOfWork:
    """Scope one transaction around a snapshot and its file rows.

    Entering the context opens a session and begins a transaction. A clean
    exit commits; any exception rolls back. The session is always closed.
    """

    def __init__(self, session_factory: sessionmaker[Session], *, batch_size: int = BATCH_SIZE) -> None:
        self._session_factory = session_factory
        self._batch_size = max(1, batch_size)
        self._session: Optional[Session] = None

    def __enter__(self) -> "SnapshotUnitOfWork":
        self._session = self._session_factory()
        self._session.begin()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session = self._require_session()
        try:
            if exc_type is None:
                session.commit()
            else:
                session.rollback()
        finally:
            session.close()
            self._session = None

    def insert_snapshot(
        self,
        *,
        node_name: str,
        mount_path: str,
        collected_at: datetime,
        file_count: int,
    ) -> FileCollection:
        """Insert the snapshot row and flush so its key is assigned."""
        session = self._require_session()
        snapshot = FileCollection(
            node_name=node_name,
            mount_path=mount_path,
            collected_at=collected_at,
            file_count=file_count,
        )
        session.add(snapshot)
        session.flush()
        return snapshot

    def insert_files(self, collection_id: int, file_names: Sequence[str]) -> int:
        """Insert child rows in chunks of at most ``batch_size`` per statement.

        Returns:
            int: Number of rows written.
        """
        session = self._require_session()
        statement = insert(CollectedFile.__table__)
        written = 0
        for chunk in _chunked(file_names, self._batch_size):
            session.execute(
                statement,
                [{"collection_id": collection_id, "file_name": name} for name in chunk],
            )
            written += len(chunk)
        return written

    def _require_session(self) -> Session:
        if self._session is None:
            raise RuntimeError("SnapshotUnitOfWork used outside of its context.")
        return self._session


class SnapshotPersister:
    """Write collection snapshots atomically."""

    def __init__(self, session_factory: sessionmaker[Session], *, batch_size: int = BATCH_SIZE) -> None:
        self._session_factory = session_factory
        self._batch_size = batch_size

    def persist(
        self,
        node_name: str,
        mount_path: str,
        collected_at: datetime,
        file_names: Sequence[str],
    ) -> int:
        """Persist one snapshot with its file rows as a single transaction.

        Args:
            node_name: Owning node identity.
            mount_path: Directory that was scanned.
            collected_at: Start time of the cycle.
            file_names: Base names observed during the scan.

        Returns:
            int: Identifier assigned to the snapshot row.

        Raises:
            PersistError: If any insert fails or a name cannot be encoded; no rows
                are committed.
        """
        try:
            with SnapshotUnitOfWork(self._session_factory, batch_size=self._batch_size) as unit:
                snapshot = unit.insert_snapshot(
                    node_name=node_name,
                    mount_path=mount_path,
                    collected_at=normalize_timestamp(collected_at),
                    file_count=len(file_names),
                )
                collection_id = snapshot.id
                if file_names:
                    unit.insert_files(collection_id, file_names)
        except (SQLAlchemyError, UnicodeError) as exc:
            raise PersistError(f"Failed to persist snapshot: {exc}") from exc

        LOGGER.debug(
            "Snapshot persisted",
            extra={"collection_id": collection_id, "file_count": len(file_names)},
        )
        return collection_id


def normalize_timestamp(value: datetime) -> datetime:
    """Return ``value`` as naive UTC truncated to millisecond precision."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def _chunked(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


__all__ = ["BATCH_SIZE", "SnapshotPersister", "SnapshotUnitOfWork", "normalize_timestamp"]
