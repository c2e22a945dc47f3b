"""Storage errors."""


class StorageError(Exception):
    """Base exception for relational store operations."""


class ConnectError(StorageError):
    """Raised when the store cannot be reached at startup."""


class MigrationError(StorageError):
    """Raised when the schema cannot be created."""


class PersistError(StorageError):
    """Raised when a snapshot could not be written; nothing was committed."""
