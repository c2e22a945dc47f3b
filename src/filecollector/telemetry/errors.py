"""Telemetry errors."""


class TelemetryError(Exception):
    """Raised when OpenTelemetry providers cannot be built or shut down cleanly."""
