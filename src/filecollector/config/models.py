"""Configuration models describing collector settings."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CollectorBaseModel(BaseModel):
    """Shared configuration for collector Pydantic models.

    Settings are frozen once validated; the process builds them once at startup.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)


class DatabaseSettings(CollectorBaseModel):
    """Relational store connection options.

    Attributes:
        host: Database server hostname.
        port: Database server port.
        user: Account used to connect.
        password: Password for ``user``; empty when the account has none.
        name: Database (schema) name.
        charset: Connection character set.
        url: Full SQLAlchemy URL; when set it replaces the host/port/user fields.
        echo: Whether SQLAlchemy should log every statement.
        pool_size: Connections kept open in the pool.
        max_overflow: Extra connections allowed above ``pool_size``.
        pool_recycle_seconds: Maximum connection lifetime before it is recycled.
    """

    host: str = "localhost"
    port: int = Field(default=3306, ge=1, le=65535)
    user: str = "root"
    password: str = ""
    name: str = "harman"
    charset: str = "utf8mb4"
    url: Optional[str] = None
    echo: bool = False
    pool_size: int = Field(default=10, ge=1)
    max_overflow: int = Field(default=90, ge=0)
    pool_recycle_seconds: int = Field(default=3600, ge=1)


class CollectorSettings(CollectorBaseModel):
    """Collection loop options.

    Attributes:
        mount_path: Directory scanned on every cycle.
        interval_minutes: Whole minutes between the start of consecutive cycles.
    """

    mount_path: str = "/mnt/harman"
    interval_minutes: int = Field(default=1, ge=1)

    @property
    def interval(self) -> timedelta:
        """Return the collection interval as a ``timedelta``."""
        return timedelta(minutes=self.interval_minutes)


class TelemetrySettings(CollectorBaseModel):
    """OpenTelemetry export options.

    Attributes:
        enabled: Whether to build SDK providers at all.
        endpoint: OTLP gRPC collector address.
        insecure: Whether to skip TLS on the exporter channel.
        service_name: ``service.name`` resource attribute.
        service_namespace: ``service.namespace`` resource attribute.
        export_interval_seconds: Period of the metric reader.
        shutdown_timeout_seconds: Deadline for flushing telemetry on shutdown.
    """

    enabled: bool = True
    endpoint: str = "opentelemetry-collector.monitoring.svc.cluster.local:4317"
    insecure: bool = True
    service_name: str = "file-collector"
    service_namespace: str = "harman-system"
    export_interval_seconds: float = Field(default=30.0, gt=0)
    shutdown_timeout_seconds: float = Field(default=5.0, gt=0)


class LoggingSettings(CollectorBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level (debug, info, warn, error).
    """

    level: str = "info"


class CollectorConfig(CollectorBaseModel):
    """Top-level configuration for one collector instance.

    Attributes:
        node_name: Identity of the node; tags every row and metric.
        database: Relational store settings.
        collector: Collection loop settings.
        telemetry: OpenTelemetry settings.
        logging: Logging configuration.
    """

    node_name: str = Field(min_length=1)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    collector: CollectorSettings = Field(default_factory=CollectorSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "CollectorBaseModel",
    "DatabaseSettings",
    "CollectorSettings",
    "TelemetrySettings",
    "LoggingSettings",
    "CollectorConfig",
]
