"""Periodic collection service: scan, persist, account."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from opentelemetry.trace import Span, Status, StatusCode

from filecollector.config import CollectorConfig
from filecollector.scanning import DirectoryScanner, ScanError
from filecollector.storage import PersistError, SnapshotPersister
from filecollector.telemetry import CollectorInstruments

from .models import DB_ERROR, SCAN_ERROR, CollectorState, CycleResult

LOGGER = logging.getLogger(__name__)

CYCLE_SPAN = "file_collection"
SCAN_SPAN = "scan_directory"
PERSIST_SPAN = "save_to_database"


class CollectorService:
    """Drive collection cycles on a fixed period until told to stop.

    Cycles run strictly one at a time on the calling thread. Scan and persist
    failures are accounted for and logged; they never end the loop.
    """

    def __init__(
        self,
        config: CollectorConfig,
        *,
        scanner: DirectoryScanner,
        persister: SnapshotPersister,
        instruments: CollectorInstruments,
        interval: Optional[float] = None,
    ) -> None:
        """Initialize the collector service.

        Args:
            config: Loaded collector configuration.
            scanner: Directory scanner for the mount path.
            persister: Snapshot persister bound to the store.
            instruments: Tracer and metric instruments (possibly no-op).
            interval: Optional period override in seconds.
        """
        self._config = config
        self._scanner = scanner
        self._persister = persister
        self._instruments = instruments
        self._node_name = config.node_name
        self._mount_path = config.collector.mount_path
        self._interval_seconds = (
            interval if interval and interval > 0 else config.collector.interval.total_seconds()
        )
        self._stop_event = threading.Event()
        self._state = CollectorState.IDLE
        self._cycles_run = 0

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> CollectorState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def cycles_run(self) -> int:
        """Return how many cycles have been started, successful or not."""
        return self._cycles_run

    @property
    def interval_seconds(self) -> float:
        """Return the period between cycle starts."""
        return self._interval_seconds

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        callback: Optional[Callable[[CycleResult], None]] = None,
    ) -> None:
        """Run one cycle immediately, then one per period, until stopped.

        Cancellation is observed only between cycles; a cycle in flight always
        finishes. Ticks missed while a cycle overran are dropped.

        Args:
            stop_event: Cancellation token; defaults to the service's own event.
            callback: Callable invoked with each cycle result.

        Raises:
            RuntimeError: If the service has already been started.
        """
        if self._state is not CollectorState.IDLE:
            raise RuntimeError("CollectorService has already been started.")
        if stop_event is not None:
            self._stop_event = stop_event

        self._state = CollectorState.RUNNING
        LOGGER.info(
            "File collector started",
            extra={
                "node_name": self._node_name,
                "mount_path": self._mount_path,
                "interval_seconds": self._interval_seconds,
            },
        )
        try:
            anchor = time.monotonic()
            if not self._stop_event.is_set():
                self._dispatch(callback)
            while not self._stop_event.wait(self._until_next_tick(anchor)):
                self._dispatch(callback)
            self._state = CollectorState.STOPPING
            LOGGER.info("File collector received stop signal", extra={"node_name": self._node_name})
        finally:
            self._state = CollectorState.STOPPED

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        self._stop_event.set()

    def run_cycle(self) -> CycleResult:
        """Execute one scan-then-persist cycle and record its telemetry.

        Returns:
            CycleResult: Outcome of the cycle; failures are reported, not raised.
        """
        self._cycles_run += 1
        tracer = self._instruments.tracer
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()

        with tracer.start_as_current_span(
            CYCLE_SPAN,
            attributes={"node_name": self._node_name, "mount_path": self._mount_path},
        ) as span:
            try:
                with tracer.start_as_current_span(SCAN_SPAN) as scan_span:
                    file_names = self._scanner.scan(self._mount_path)
                    scan_span.set_attribute("file_count", len(file_names))
            except ScanError as exc:
                return self._fail(span, started_at, started, SCAN_ERROR, exc)

            file_count = len(file_names)
            LOGGER.info(
                "File scan completed",
                extra={
                    "node_name": self._node_name,
                    "mount_path": self._mount_path,
                    "file_count": file_count,
                },
            )

            store_started = time.monotonic()
            try:
                with tracer.start_as_current_span(PERSIST_SPAN) as persist_span:
                    collection_id = self._persister.persist(
                        self._node_name, self._mount_path, started_at, file_names
                    )
                    store_ms = _elapsed_ms(store_started)
                    persist_span.set_attribute("file_count", file_count)
                    persist_span.set_attribute("db_duration_ms", store_ms)
            except PersistError as exc:
                return self._fail(span, started_at, started, DB_ERROR, exc, file_count=file_count)

            duration_ms = _elapsed_ms(started)
            attributes = {"node_name": self._node_name}
            self._instruments.collection_count.add(1, attributes)
            self._instruments.collection_files.add(file_count, attributes)
            self._instruments.collection_duration.record(duration_ms, attributes)
            self._instruments.db_operation_duration.record(store_ms, attributes)
            span.set_attribute("file_count", file_count)
            span.set_attribute("duration_ms", duration_ms)

        LOGGER.info(
            "File collection completed",
            extra={
                "node_name": self._node_name,
                "file_count": file_count,
                "duration_ms": round(duration_ms, 3),
                "collection_id": collection_id,
            },
        )
        return CycleResult(
            started_at=started_at,
            file_count=file_count,
            duration_ms=duration_ms,
            store_duration_ms=store_ms,
            collection_id=collection_id,
        )

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _dispatch(self, callback: Optional[Callable[[CycleResult], None]]) -> None:
        result = self.run_cycle()
        if callback is not None:
            callback(result)

    def _until_next_tick(self, anchor: float) -> float:
        """Return seconds until the next period boundary after now."""
        elapsed = time.monotonic() - anchor
        ticks = int(elapsed // self._interval_seconds) + 1
        return max(0.0, anchor + ticks * self._interval_seconds - time.monotonic())

    def _fail(
        self,
        span: Span,
        started_at: datetime,
        started: float,
        error_type: str,
        exc: Exception,
        *,
        file_count: int = 0,
    ) -> CycleResult:
        self._instruments.collection_errors.add(
            1, {"error_type": error_type, "node_name": self._node_name}
        )
        span.record_exception(exc)
        span.set_status(Status(StatusCode.ERROR, str(exc)))
        LOGGER.error(
            "File collection failed",
            extra={
                "node_name": self._node_name,
                "mount_path": self._mount_path,
                "error_type": error_type,
                "error": str(exc),
            },
        )
        return CycleResult(
            started_at=started_at,
            file_count=file_count,
            duration_ms=_elapsed_ms(started),
            error_type=error_type,
            error=exc,
        )


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000.0


__all__ = ["CollectorService", "CYCLE_SPAN", "SCAN_SPAN", "PERSIST_SPAN"]
