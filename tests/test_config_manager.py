"""Unit tests for configuration management."""

from datetime import timedelta
from pathlib import Path

import pytest

from filecollector.config import (
    CONFIG_FILE_ENV,
    CollectorConfig,
    ConfigError,
    ConfigManager,
    flatten_for_env,
    resolve_with_precedence,
)


def _write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "collector.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_apply_when_only_node_name_is_set() -> None:
    config = ConfigManager(env={"NODE_NAME": "node-a"}).load()

    assert isinstance(config, CollectorConfig)
    assert config.node_name == "node-a"
    assert config.database.host == "localhost"
    assert config.database.port == 3306
    assert config.database.user == "root"
    assert config.database.password == ""
    assert config.database.name == "harman"
    assert config.collector.mount_path == "/mnt/harman"
    assert config.collector.interval == timedelta(minutes=1)
    assert config.telemetry.enabled is True
    assert config.telemetry.endpoint == "opentelemetry-collector.monitoring.svc.cluster.local:4317"
    assert config.logging.level == "info"


def test_missing_node_name_is_rejected() -> None:
    with pytest.raises(ConfigError, match="NODE_NAME"):
        ConfigManager(env={"DB_HOST": "db"}).load()


def test_empty_node_name_is_rejected() -> None:
    with pytest.raises(ConfigError):
        ConfigManager(env={"NODE_NAME": ""}).load()


def test_environment_values_are_parsed() -> None:
    env = {
        "NODE_NAME": "worker-7",
        "DB_HOST": "mysql.internal",
        "DB_PORT": "3307",
        "DB_USER": "collector",
        "DB_PASSWORD": "s3cret",
        "DB_NAME": "inventory",
        "MOUNT_PATH": "/data/share",
        "COLLECT_INTERVAL_MINUTES": "5",
        "LOG_LEVEL": "debug",
        "OTEL_EXPORTER_OTLP_ENDPOINT": "otel:4317",
    }

    config = ConfigManager(env=env).load()

    assert config.database.host == "mysql.internal"
    assert config.database.port == 3307
    assert config.database.user == "collector"
    assert config.database.password == "s3cret"
    assert config.database.name == "inventory"
    assert config.collector.mount_path == "/data/share"
    assert config.collector.interval_minutes == 5
    assert config.logging.level == "debug"
    assert config.telemetry.endpoint == "otel:4317"


def test_empty_environment_values_fall_back_to_defaults() -> None:
    config = ConfigManager(env={"NODE_NAME": "node-a", "DB_HOST": "", "MOUNT_PATH": ""}).load()

    assert config.database.host == "localhost"
    assert config.collector.mount_path == "/mnt/harman"


@pytest.mark.parametrize("value", ["0", "-3", "soon"])
def test_invalid_interval_is_rejected(value: str) -> None:
    with pytest.raises(ConfigError):
        ConfigManager(env={"NODE_NAME": "node-a", "COLLECT_INTERVAL_MINUTES": value}).load()


@pytest.mark.parametrize(("raw", "enabled"), [("true", False), ("TRUE", False), ("false", True)])
def test_sdk_disabled_flag_controls_telemetry(raw: str, enabled: bool) -> None:
    config = ConfigManager(env={"NODE_NAME": "node-a", "OTEL_SDK_DISABLED": raw}).load()

    assert config.telemetry.enabled is enabled


def test_file_environment_and_cli_precedence(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        "node_name: from-file\n"
        "database:\n  host: file-db\n  name: file-name\n"
        "collector:\n  mount_path: /file/mount\n  interval_minutes: 3\n",
    )
    env = {"DB_HOST": "env-db", "MOUNT_PATH": "/env/mount"}

    config = ConfigManager(path, env=env).load(cli_overrides={"collector.mount_path": "/cli/mount"})

    assert config.node_name == "from-file"
    assert config.database.name == "file-name"
    # Environment beats the file; CLI beats both.
    assert config.database.host == "env-db"
    assert config.collector.mount_path == "/cli/mount"
    assert config.collector.interval_minutes == 3


def test_include_env_false_ignores_environment(tmp_path: Path) -> None:
    path = _write_config(tmp_path, "node_name: from-file\n")

    config = ConfigManager(path, env={"NODE_NAME": "from-env", "DB_HOST": "env-db"}).load(
        include_env=False
    )

    assert config.node_name == "from-file"
    assert config.database.host == "localhost"


def test_config_file_from_environment_variable(tmp_path: Path) -> None:
    path = _write_config(tmp_path, "node_name: via-env-file\n")

    manager = ConfigManager(env={CONFIG_FILE_ENV: str(path)})

    assert manager.config_path == path
    assert manager.load().node_name == "via-env-file"


def test_missing_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        ConfigManager(tmp_path / "absent.yaml", env={}).load()


def test_invalid_yaml_raises_config_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path, "node_name: [unterminated\n")

    with pytest.raises(ConfigError):
        ConfigManager(path, env={}).load()


def test_non_mapping_yaml_raises_config_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path, "- not-a-mapping\n")

    with pytest.raises(ConfigError, match="mapping"):
        ConfigManager(path, env={}).load()


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path, "node_name: node-a\ncollector:\n  recursive: true\n")

    with pytest.raises(ConfigError):
        ConfigManager(path, env={}).load()


def test_resolve_with_precedence_merges_nested_mappings() -> None:
    config = resolve_with_precedence(
        file_overrides={"node_name": "node-a", "database": {"host": "file-db", "port": 3310}},
        env_overrides={"database.host": "env-db"},
        cli_overrides=None,
    )

    assert config.database.host == "env-db"
    assert config.database.port == 3310


def test_resolve_with_precedence_rejects_conflicting_paths() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(cli_overrides={"node_name": "node-a", "database": "mysql", "database.host": "x"})


def test_flatten_for_env_round_trips_through_environment() -> None:
    original = resolve_with_precedence(
        env_overrides={
            "node_name": "node-a",
            "database.host": "db",
            "collector.interval_minutes": 4,
            "telemetry.enabled": False,
        }
    )

    flat = flatten_for_env(original)

    assert flat["NODE_NAME"] == "node-a"
    assert flat["COLLECT_INTERVAL_MINUTES"] == "4"
    assert flat["OTEL_SDK_DISABLED"] == "true"
    assert "DB_URL" not in flat
    assert ConfigManager(env=flat).load() == original
