"""Relational persistence for collection snapshots."""

from .database import Database, build_url
from .errors import ConnectError, MigrationError, PersistError, StorageError
from .models import Base, CollectedFile, FileCollection
from .persister import BATCH_SIZE, SnapshotPersister, SnapshotUnitOfWork

__all__ = [
    "BATCH_SIZE",
    "Base",
    "CollectedFile",
    "ConnectError",
    "Database",
    "FileCollection",
    "MigrationError",
    "PersistError",
    "SnapshotPersister",
    "SnapshotUnitOfWork",
    "StorageError",
    "build_url",
]
