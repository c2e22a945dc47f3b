"""Collector state and cycle outcome models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

SCAN_ERROR = "scan_error"
DB_ERROR = "db_error"


class CollectorState(str, Enum):
    """Lifecycle of a collector service."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(slots=True)
class CycleResult:
    """Outcome of one scan-then-persist cycle.

    Attributes:
        started_at: Wall-clock time the cycle began (UTC).
        file_count: Entries returned by the scan.
        duration_ms: Full cycle duration in milliseconds.
        store_duration_ms: Store write duration; ``None`` unless the write succeeded.
        collection_id: Snapshot identifier assigned by the store.
        error_type: ``scan_error`` or ``db_error`` when the cycle failed.
        error: Exception that aborted the cycle.
    """

    started_at: datetime
    file_count: int = 0
    duration_ms: float = 0.0
    store_duration_ms: Optional[float] = None
    collection_id: Optional[int] = None
    error_type: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        """Return whether the snapshot was committed."""
        return self.error_type is None


__all__ = ["CollectorState", "CycleResult", "DB_ERROR", "SCAN_ERROR"]
