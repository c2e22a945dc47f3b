"""Custom exceptions for configuration management."""


class ConfigError(Exception):
    """Raised when configuration data is missing or cannot be processed."""
