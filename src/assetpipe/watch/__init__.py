"""Live filesystem watching."""

from .locks import PathLockRegistry
from .service import (
    NotificationKind,
    ScanReport,
    UpdateKind,
    WatchCallback,
    WatchService,
    WatchUpdate,
)

__all__ = [
    "NotificationKind",
    "PathLockRegistry",
    "ScanReport",
    "UpdateKind",
    "WatchCallback",
    "WatchService",
    "WatchUpdate",
]
