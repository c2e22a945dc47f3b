"""OpenTelemetry provider bootstrap and shutdown."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from opentelemetry.metrics import Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.trace import Tracer

from filecollector.config.models import TelemetrySettings

from .errors import TelemetryError
from .instruments import INSTRUMENTATION_NAME, CollectorInstruments

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TelemetryHandle:
    """SDK providers owned by the process.

    Attributes:
        tracer_provider: Provider backing the collector tracer.
        meter_provider: Provider backing the collector meter.
    """

    tracer_provider: TracerProvider
    meter_provider: MeterProvider

    def tracer(self) -> Tracer:
        """Return the collector tracer."""
        return self.tracer_provider.get_tracer(INSTRUMENTATION_NAME)

    def meter(self) -> Meter:
        """Return the collector meter."""
        return self.meter_provider.get_meter(INSTRUMENTATION_NAME)

    def instruments(self) -> CollectorInstruments:
        """Build the collector instrument bundle from these providers."""
        return CollectorInstruments.from_meter(self.meter(), self.tracer())

    def shutdown(self, timeout_seconds: float) -> None:
        """Flush pending spans and metrics, then stop both providers.

        Both providers are always shut down; failures are collected. Each step
        runs on a daemon thread so the whole call returns once the deadline
        passes, even if an exporter is still blocked.

        Raises:
            TelemetryError: If either provider failed to flush or stop in time.
        """
        deadline = time.monotonic() + timeout_seconds
        errors: list[str] = []

        def _stop_tracing() -> None:
            if not self.tracer_provider.force_flush(timeout_millis=_remaining_millis(deadline)):
                errors.append("trace provider flush timed out")
            self.tracer_provider.shutdown()

        def _stop_metrics() -> None:
            self.meter_provider.shutdown(timeout_millis=_remaining_millis(deadline))

        for name, step in (("trace provider", _stop_tracing), ("meter provider", _stop_metrics)):
            error = _run_until(step, deadline)
            if error is not None:
                errors.append(f"{name} shutdown {error}")

        if errors:
            raise TelemetryError("; ".join(errors))


def init_telemetry(
    settings: TelemetrySettings,
    node_name: str,
    *,
    span_exporter: SpanExporter | None = None,
    metric_exporter: MetricExporter | None = None,
) -> Optional[TelemetryHandle]:
    """Build tracer and meter providers exporting over OTLP gRPC.

    Args:
        settings: Telemetry settings.
        node_name: Node identity recorded on the resource.
        span_exporter: Exporter replacing the OTLP span exporter.
        metric_exporter: Exporter replacing the OTLP metric exporter.

    Returns:
        Optional[TelemetryHandle]: Providers, or ``None`` when telemetry is disabled.

    Raises:
        TelemetryError: If any part of the SDK pipeline cannot be built.
    """
    if not settings.enabled:
        LOGGER.info("OpenTelemetry disabled by configuration")
        return None

    try:
        resource = Resource.create(
            {
                "service.name": settings.service_name,
                "service.namespace": settings.service_namespace,
                "k8s.node.name": node_name,
            }
        )
        if span_exporter is None:
            span_exporter = _otlp_span_exporter(settings)
        if metric_exporter is None:
            metric_exporter = _otlp_metric_exporter(settings)

        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))

        reader = PeriodicExportingMetricReader(
            metric_exporter,
            export_interval_millis=settings.export_interval_seconds * 1000,
        )
        meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    except Exception as exc:
        raise TelemetryError(f"Failed to initialize OpenTelemetry: {exc}") from exc

    LOGGER.info(
        "OpenTelemetry initialized",
        extra={
            "service_name": settings.service_name,
            "node_name": node_name,
            "otlp_endpoint": settings.endpoint,
        },
    )
    return TelemetryHandle(tracer_provider=tracer_provider, meter_provider=meter_provider)


def _otlp_span_exporter(settings: TelemetrySettings) -> SpanExporter:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    return OTLPSpanExporter(endpoint=settings.endpoint, insecure=settings.insecure)


def _otlp_metric_exporter(settings: TelemetrySettings) -> MetricExporter:
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

    return OTLPMetricExporter(endpoint=settings.endpoint, insecure=settings.insecure)


def _run_until(step: Callable[[], None], deadline: float) -> Optional[str]:
    """Run ``step`` on a daemon thread; describe how it failed, or return ``None``."""
    failures: list[BaseException] = []

    def _target() -> None:
        try:
            step()
        except Exception as exc:
            failures.append(exc)

    worker = threading.Thread(target=_target, name="telemetry-shutdown", daemon=True)
    worker.start()
    worker.join(_remaining_millis(deadline) / 1000)
    if worker.is_alive():
        return "timed out"
    if failures:
        return f"failed: {failures[0]}"
    return None


def _remaining_millis(deadline: float) -> int:
    return max(0, int((deadline - time.monotonic()) * 1000))


__all__ = ["TelemetryHandle", "init_telemetry"]
