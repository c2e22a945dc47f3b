"""Shared fixtures for collector tests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from filecollector.config import CollectorConfig, CollectorSettings, DatabaseSettings
from filecollector.storage import Database
from filecollector.telemetry import CollectorInstruments


@dataclass
class RecordedTelemetry:
    """Instruments backed by in-memory SDK exporters.

    Attributes:
        instruments: Bundle handed to the collector under test.
        reader: Metric reader collecting every recorded point.
        exporter: Span exporter holding finished spans.
    """

    instruments: CollectorInstruments
    reader: InMemoryMetricReader
    exporter: InMemorySpanExporter

    def metrics(self) -> dict[str, list[Any]]:
        """Return data points keyed by metric name."""
        points: dict[str, list[Any]] = {}
        data = self.reader.get_metrics_data()
        if data is None:
            return points
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    points.setdefault(metric.name, []).extend(metric.data.data_points)
        return points

    def spans(self) -> dict[str, ReadableSpan]:
        """Return finished spans keyed by name (last one wins)."""
        return {span.name: span for span in self.exporter.get_finished_spans()}


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop JSON handlers installed by ``configure_logging`` during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if getattr(handler, "_filecollector", False):
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return a SQLite URL inside the test's temporary directory."""
    return f"sqlite:///{(tmp_path / 'collector.db').as_posix()}"


@pytest.fixture
def database(database_url: str) -> Iterator[Database]:
    """Yield a connected, migrated store backed by a SQLite file."""
    db = Database.connect(DatabaseSettings(url=database_url))
    db.migrate()
    yield db
    db.close()


@pytest.fixture
def telemetry() -> Iterator[RecordedTelemetry]:
    """Yield instruments whose output can be inspected."""
    exporter = InMemorySpanExporter()
    tracer_provider = TracerProvider()
    tracer_provider.add_span_processor(SimpleSpanProcessor(exporter))
    reader = InMemoryMetricReader()
    meter_provider = MeterProvider(metric_readers=[reader])

    instruments = CollectorInstruments.from_meter(
        meter_provider.get_meter("tests"), tracer_provider.get_tracer("tests")
    )
    yield RecordedTelemetry(instruments=instruments, reader=reader, exporter=exporter)

    tracer_provider.shutdown()
    meter_provider.shutdown()


@pytest.fixture
def mount(tmp_path: Path) -> Path:
    """Return a mount directory holding two files and one subdirectory."""
    root = tmp_path / "mount"
    root.mkdir()
    (root / "a.txt").write_text("alpha", encoding="utf-8")
    (root / "b.log").write_text("beta", encoding="utf-8")
    (root / "sub").mkdir()
    (root / "sub" / "nested.txt").write_text("hidden from the scan", encoding="utf-8")
    return root


def make_config(mount_path: Path | str, database_url: str | None = None, **collector: Any) -> CollectorConfig:
    """Build a collector configuration for tests."""
    return CollectorConfig(
        node_name="node-a",
        database=DatabaseSettings(url=database_url),
        collector=CollectorSettings(mount_path=str(mount_path), **collector),
    )
