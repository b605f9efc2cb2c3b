"""
Backup synchronization engine: folder discovery, snapshot read/write.
"""

from cloudsync.sync.exceptions import ContainerResolutionError, SyncError
from cloudsync.sync.locator import ContainerLocator
from cloudsync.sync.orchestrator import (
    ContainerReport,
    SyncOrchestrator,
    get_orchestrator,
    reset_orchestrators,
)
from cloudsync.sync.reader import SnapshotReader
from cloudsync.sync.writer import SnapshotWriter, WriteResult

__all__ = [
    "SyncOrchestrator",
    "ContainerReport",
    "ContainerLocator",
    "SnapshotReader",
    "SnapshotWriter",
    "WriteResult",
    "get_orchestrator",
    "reset_orchestrators",
    "SyncError",
    "ContainerResolutionError",
]
