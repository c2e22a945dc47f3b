"""Metrics and tracing for collection cycles."""

from .errors import TelemetryError
from .instruments import CollectorInstruments
from .provider import TelemetryHandle, init_telemetry

__all__ = ["CollectorInstruments", "TelemetryError", "TelemetryHandle", "init_telemetry"]
