"""Mount path discovery."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import NotADirectory, ScanError

LOGGER = logging.getLogger(__name__)


class DirectoryScanner:
    """List the plain entries found directly under a directory.

    Only one level is read. Real subdirectories are skipped; every other entry,
    symlinks included, is reported by base name without being followed.
    """

    def scan(self, root: Path | str) -> list[str]:
        """Return base names of the non-directory entries under ``root``.

        Names are returned in the order the operating system yields them.

        Args:
            root: Directory to read.

        Returns:
            list[str]: Entry names, empty when ``root`` does not exist.

        Raises:
            NotADirectory: If ``root`` exists but is not a directory.
            ScanError: If ``root`` cannot be inspected or listed.
        """
        path = Path(root)
        try:
            is_dir = path.is_dir()
            exists = is_dir or path.exists()
        except OSError as exc:
            raise ScanError(f"Failed to inspect {path}: {exc}") from exc

        if not exists:
            LOGGER.warning("Mount path does not exist", extra={"path": str(path)})
            return []
        if not is_dir:
            raise NotADirectory(f"Mount path is not a directory: {path}")

        try:
            with os.scandir(path) as entries:
                return [_display_name(entry.name) for entry in entries if not _is_directory(entry)]
        except OSError as exc:
            raise ScanError(f"Failed to read directory {path}: {exc}") from exc


def _is_directory(entry: os.DirEntry[str]) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def _display_name(name: str) -> str:
    """Replace undecodable bytes in ``name`` with U+FFFD so it can be stored as UTF-8."""
    return name.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
