"""Instrument bundle handed to the collector."""

from __future__ import annotations

from dataclasses import dataclass

from opentelemetry.metrics import Counter, Histogram, Meter, NoOpMeter, UpDownCounter
from opentelemetry.trace import NoOpTracer, Tracer

INSTRUMENTATION_NAME = "filecollector"

COLLECTION_COUNT = "file_collection_count"
COLLECTION_FILES = "file_collection_files"
COLLECTION_DURATION = "file_collection_duration_ms"
DB_OPERATION_DURATION = "db_operation_duration_ms"
COLLECTION_ERRORS = "file_collection_errors"


@dataclass(frozen=True, slots=True)
class CollectorInstruments:
    """Tracer and metric instruments used to account for collection cycles.

    Built once at startup and shared read-only afterwards. The no-op variant
    exposes the same interface, so the collector never branches on whether
    telemetry is configured.

    Attributes:
        tracer: Tracer used for cycle, scan and persist spans.
        collection_count: Counter of successful cycles.
        collection_files: Up/down counter of files observed.
        collection_duration: Histogram of full-cycle durations in milliseconds.
        db_operation_duration: Histogram of store-write durations in milliseconds.
        collection_errors: Counter of failed cycles tagged by ``error_type``.
    """

    tracer: Tracer
    collection_count: Counter
    collection_files: UpDownCounter
    collection_duration: Histogram
    db_operation_duration: Histogram
    collection_errors: Counter

    @classmethod
    def from_meter(cls, meter: Meter, tracer: Tracer) -> "CollectorInstruments":
        """Create every instrument from ``meter`` and pair them with ``tracer``."""
        return cls(
            tracer=tracer,
            collection_count=meter.create_counter(
                COLLECTION_COUNT,
                description="Number of completed file collection cycles",
            ),
            collection_files=meter.create_up_down_counter(
                COLLECTION_FILES,
                description="Number of files collected",
            ),
            collection_duration=meter.create_histogram(
                COLLECTION_DURATION,
                unit="ms",
                description="File collection cycle duration in milliseconds",
            ),
            db_operation_duration=meter.create_histogram(
                DB_OPERATION_DURATION,
                unit="ms",
                description="Database write duration in milliseconds",
            ),
            collection_errors=meter.create_counter(
                COLLECTION_ERRORS,
                description="Number of failed file collection cycles",
            ),
        )

    @classmethod
    def noop(cls) -> "CollectorInstruments":
        """Return instruments that record nothing."""
        return cls.from_meter(NoOpMeter(INSTRUMENTATION_NAME), NoOpTracer())


__all__ = [
    "COLLECTION_COUNT",
    "COLLECTION_DURATION",
    "COLLECTION_ERRORS",
    "COLLECTION_FILES",
    "DB_OPERATION_DURATION",
    "INSTRUMENTATION_NAME",
    "CollectorInstruments",
]
