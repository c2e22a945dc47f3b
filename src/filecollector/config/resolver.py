"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from .exceptions import ConfigError
from .models import CollectorConfig

# Environment keys understood by the collector and the dotted field they set.
ENV_KEYS: Dict[str, str] = {
    "DB_HOST": "database.host",
    "DB_PORT": "database.port",
    "DB_USER": "database.user",
    "DB_PASSWORD": "database.password",
    "DB_NAME": "database.name",
    "DB_URL": "database.url",
    "DB_ECHO": "database.echo",
    "MOUNT_PATH": "collector.mount_path",
    "COLLECT_INTERVAL_MINUTES": "collector.interval_minutes",
    "NODE_NAME": "node_name",
    "LOG_LEVEL": "logging.level",
    "OTEL_EXPORTER_OTLP_ENDPOINT": "telemetry.endpoint",
}

# Inverted flag following the OpenTelemetry SDK convention.
SDK_DISABLED_KEY = "OTEL_SDK_DISABLED"


def resolve_with_precedence(
    *,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> CollectorConfig:
    """Layer file, environment and CLI values (in that order) over model defaults.

    Raises:
        ConfigError: If the node name is missing or any value fails validation.
    """
    layers = {"File": file_overrides, "Environment": env_overrides, "CLI": cli_overrides}
    merged: dict[str, Any] = {}
    for source_name, layer in layers.items():
        if layer is not None:
            merged = _overlay(merged, _expand(layer, source_name=source_name))

    if not merged.get("node_name"):
        raise ConfigError("NODE_NAME is not set; every collector needs a node identity.")

    try:
        return CollectorConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: CollectorConfig) -> Dict[str, str]:
    """Render ``config`` as the environment variables that would reproduce it."""
    dumped = config.model_dump(mode="python")
    env: Dict[str, str] = {SDK_DISABLED_KEY: "false" if config.telemetry.enabled else "true"}
    for env_key, dotted in ENV_KEYS.items():
        section, _, field = dotted.rpartition(".")
        value = dumped[section][field] if section else dumped[field]
        if value is None:
            continue
        env[env_key] = str(value).lower() if isinstance(value, bool) else str(value)
    return env


def _expand(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Turn dotted keys such as ``database.host`` into nested dictionaries."""
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name} overrides must be a mapping.")

    tree: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name} override keys must be strings.")
        *parents, leaf = key.split(".")
        section = tree
        for part in parents:
            section = section.setdefault(part, {})
            if not isinstance(section, dict):
                raise ConfigError(f"{source_name} override {key} conflicts with a scalar value.")
        if isinstance(value, MappingABC):
            value = _expand(value, source_name=source_name)
            if isinstance(section.get(leaf), dict):
                value = _overlay(section[leaf], value)
        section[leaf] = value
    return tree


def _overlay(base: dict[str, Any], top: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in top.items():
        current = result.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            value = _overlay(current, value)
        result[key] = value
    return result


__all__ = ["ENV_KEYS", "SDK_DISABLED_KEY", "resolve_with_precedence", "flatten_for_env"]
