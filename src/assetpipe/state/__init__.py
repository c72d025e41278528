"""Catalog persistence and change coordination."""

from __future__ import annotations

from .catalog import MEMORY_DATABASE, CatalogRepository
from .coordinator import ChangeCoordinator, ReconcileAction, ReconcileOutcome
from .errors import CatalogError, StateError
from .models import (
    AssetRecord,
    CatalogSummary,
    CategoryBreakdown,
    EventKind,
    EventLogEntry,
    format_size,
)

__all__ = [
    "AssetRecord",
    "CatalogError",
    "CatalogRepository",
    "CatalogSummary",
    "CategoryBreakdown",
    "ChangeCoordinator",
    "EventKind",
    "EventLogEntry",
    "MEMORY_DATABASE",
    "ReconcileAction",
    "ReconcileOutcome",
    "StateError",
    "format_size",
]
