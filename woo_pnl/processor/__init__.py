"""
Sync processor module.
"""

from .sync import (
    SyncError,
    SyncInProgress,
    SyncOrchestrator,
    SyncReport,
    build_inventory,
    merge_orders,
)
from .runner import SyncResult, run_sync, sync_store

__all__ = [
    "SyncError",
    "SyncInProgress",
    "SyncOrchestrator",
    "SyncReport",
    "build_inventory",
    "merge_orders",
    "SyncResult",
    "run_sync",
    "sync_store",
]
