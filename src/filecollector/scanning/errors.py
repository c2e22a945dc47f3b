"""Scanning errors."""


class ScanError(Exception):
    """Raised when the mount path cannot be inspected or listed."""


class NotADirectory(ScanError):
    """Raised when the mount path exists but is not a directory."""
