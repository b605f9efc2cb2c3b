"""
Exceptions for sync operations.
"""


class SyncError(Exception):
    """Base exception for sync operations."""

    pass


class ContainerResolutionError(SyncError):
    """The backup folder could neither be found nor created."""

    pass
