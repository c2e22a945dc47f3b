"""Relational store lifecycle: connect, migrate, close."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from filecollector.config.models import DatabaseSettings

from .errors import ConnectError, MigrationError
from .models import Base

LOGGER = logging.getLogger(__name__)


def build_url(settings: DatabaseSettings) -> URL:
    """Return the SQLAlchemy URL described by ``settings``.

    An explicit ``url`` wins; otherwise a MySQL URL is assembled from the
    individual connection fields.
    """
    if settings.url:
        return make_url(settings.url)
    return URL.create(
        "mysql+pymysql",
        username=settings.user,
        password=settings.password or None,
        host=settings.host,
        port=settings.port,
        database=settings.name,
        query={"charset": settings.charset},
    )


class Database:
    """Own the engine (connection pool) and session factory for the process.

    The handle is opened once at startup and closed once after the collector
    has stopped.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._closed = False

    @classmethod
    def connect(cls, settings: DatabaseSettings) -> "Database":
        """Create the engine and verify the store answers.

        Raises:
            ConnectError: If the URL is invalid or the store is unreachable.
        """
        try:
            url = build_url(settings)
            engine = create_engine(url, **_engine_options(url, settings))
        except (SQLAlchemyError, ValueError, ImportError) as exc:
            raise ConnectError(f"Failed to configure database engine: {exc}") from exc

        if url.get_backend_name() == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            engine.dispose()
            raise ConnectError(f"Failed to connect to database: {exc}") from exc

        LOGGER.info(
            "Database connection established",
            extra={"host": url.host, "database": url.database, "backend": url.get_backend_name()},
        )
        return cls(engine)

    @property
    def engine(self) -> Engine:
        """Return the underlying SQLAlchemy engine."""
        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        """Return the session factory bound to the engine."""
        return self._session_factory

    @property
    def closed(self) -> bool:
        """Return whether :meth:`close` has already run."""
        return self._closed

    def migrate(self) -> None:
        """Create the snapshot tables and indexes when they are missing.

        Raises:
            MigrationError: If the schema cannot be created.
        """
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise MigrationError(f"Schema migration failed: {exc}") from exc
        LOGGER.info("Database schema is up to date")

    def close(self) -> None:
        """Dispose of the connection pool. Subsequent calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._engine.dispose()
        LOGGER.info("Database connection closed")


def _engine_options(url: URL, settings: DatabaseSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.echo}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_recycle=settings.pool_recycle_seconds,
            pool_pre_ping=True,
        )
    return options


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


__all__ = ["Database", "build_url"]
