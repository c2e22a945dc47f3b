"""Node-resident agent that snapshots a mounted directory into a relational store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("filecollector")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
