"""
Deadlines and cancellation for Drive operations.

A Deadline is threaded through every request made on behalf of one
public operation so that a stuck network call cannot hold a worker
forever, and so that another thread can cancel the operation.
"""

from __future__ import annotations

import threading
import time

from cloudsync.providers.exceptions import DeadlineExceededError, OperationCancelledError


class Deadline:
    """Monotonic expiry time plus a cancellation flag."""

    def __init__(self, timeout: float | None = None, cancel_event: threading.Event | None = None):
        self.expires_at = time.monotonic() + timeout if timeout is not None else None
        self.cancel_event = cancel_event or threading.Event()

    @classmethod
    def coerce(cls, value: "Deadline | float | int | None") -> "Deadline":
        """Accept a Deadline, a number of seconds, or None (no expiry)."""
        if isinstance(value, Deadline):
            return value
        return cls(timeout=value)

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def remaining(self) -> float | None:
        """Seconds left, or None when there is no expiry."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        """
        Raise if the operation must stop.

        Raises:
            OperationCancelledError: If cancel() was called
            DeadlineExceededError: If the expiry time has passed
        """
        if self.cancelled:
            raise OperationCancelledError("Operation cancelled")
        if self.expired:
            raise DeadlineExceededError("Deadline exceeded")

    def timeout_for(self, default: float | None) -> float | None:
        """Per-request timeout: the smaller of default and the time left."""
        remaining = self.remaining()
        if remaining is None:
            return default
        if default is None:
            return remaining
        return min(default, remaining)
