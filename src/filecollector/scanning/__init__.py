"""Mount path scanning."""

from .discovery import DirectoryScanner
from .errors import NotADirectory, ScanError

__all__ = ["DirectoryScanner", "NotADirectory", "ScanError"]
