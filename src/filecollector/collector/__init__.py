"""Periodic collection loop."""

from .models import DB_ERROR, SCAN_ERROR, CollectorState, CycleResult
from .service import CollectorService

__all__ = ["CollectorService", "CollectorState", "CycleResult", "DB_ERROR", "SCAN_ERROR"]
