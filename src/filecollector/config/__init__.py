"""Configuration management for the file collector."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import (
    CollectorConfig,
    CollectorSettings,
    DatabaseSettings,
    LoggingSettings,
    TelemetrySettings,
)
from .resolver import ENV_KEYS, SDK_DISABLED_KEY, flatten_for_env, resolve_with_precedence

CONFIG_FILE_ENV = "COLLECTOR_CONFIG_FILE"


class ConfigManager:
    """Load collector configuration, applying precedence rules.

    Sources are layered as model defaults, then an optional YAML file, then the
    process environment, then explicit CLI overrides.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._env = env if env is not None else os.environ
        if config_path is None and self._env.get(CONFIG_FILE_ENV):
            config_path = Path(self._env[CONFIG_FILE_ENV])
        self._config_path = config_path.expanduser() if config_path is not None else None

    @property
    def config_path(self) -> Path | None:
        """Return the resolved configuration file path, if one is in use."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
    ) -> CollectorConfig:
        """Load and validate configuration.

        Raises:
            ConfigError: If the file is unreadable, a value is invalid, or
                ``NODE_NAME`` is missing.
        """
        file_data = self._read_file()
        env_data = self._extract_env(self._env) if include_env else None

        return resolve_with_precedence(
            file_overrides=file_data,
            env_overrides=env_data,
            cli_overrides=cli_overrides,
        )

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if self._config_path is None:
            return {}
        if not self._config_path.exists():
            raise ConfigError(f"Configuration file not found: {self._config_path}")

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")

        return raw

    def _extract_env(self, env: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for key, dotted in ENV_KEYS.items():
            raw_value = env.get(key)
            if not raw_value:
                continue
            overrides[dotted] = raw_value

        disabled = env.get(SDK_DISABLED_KEY)
        if disabled:
            overrides["telemetry.enabled"] = disabled.strip().lower() != "true"

        return overrides


__all__ = [
    "CONFIG_FILE_ENV",
    "ConfigManager",
    "ConfigError",
    "CollectorConfig",
    "CollectorSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "TelemetrySettings",
    "ENV_KEYS",
    "resolve_with_precedence",
    "flatten_for_env",
]
