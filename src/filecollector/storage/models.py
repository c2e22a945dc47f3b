"""SQLAlchemy models for persisted collection snapshots."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only autoincrements an INTEGER PRIMARY KEY.
_Identifier = BigInteger().with_variant(Integer, "sqlite")
_Millis = DateTime().with_variant(mysql.DATETIME(fsp=3), "mysql")


class Base(DeclarativeBase):
    """Declarative base for collector tables."""


class FileCollection(Base):
    """One snapshot row per successful collection cycle."""

    __tablename__ = "file_collections"
    __table_args__ = (
        Index("idx_node_name", "node_name"),
        Index("idx_collected_at", "collected_at"),
    )

    id: Mapped[int] = mapped_column(_Identifier, primary_key=True, autoincrement=True)
    node_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mount_path: Mapped[str] = mapped_column(String(500), nullable=False)
    collected_at: Mapped[datetime] = mapped_column(_Millis, nullable=False)
    file_count: Mapped[int] = mapped_column(Integer, nullable=False)

    files: Mapped[list["CollectedFile"]] = relationship(
        back_populates="collection",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<FileCollection(id={self.id}, node_name={self.node_name!r}, "
            f"file_count={self.file_count})>"
        )


class CollectedFile(Base):
    """One row per plain file observed during a cycle."""

    __tablename__ = "collected_files"
    __table_args__ = (Index("idx_collection_id", "collection_id"),)

    id: Mapped[int] = mapped_column(_Identifier, primary_key=True, autoincrement=True)
    collection_id: Mapped[int] = mapped_column(
        _Identifier,
        ForeignKey("file_collections.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(String(1000), nullable=False)

    collection: Mapped[FileCollection] = relationship(back_populates="files")

    def __repr__(self) -> str:
        return f"<CollectedFile(id={self.id}, file_name={self.file_name!r})>"


__all__ = ["Base", "FileCollection", "CollectedFile"]
