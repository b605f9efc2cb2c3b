"""
Public entry point for backing up and restoring application state.

SyncOrchestrator owns the cached id of the active backup folder. The
cache is shared by every thread using the orchestrator, so it is guarded
by a lock, discovery is single-flight, and each invalidation bumps a
generation counter: a caller that succeeded with a stale id cannot put
that id back after another caller invalidated it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from cloudsync import secrets
from cloudsync.deadline import Deadline
from cloudsync.models import WriteState
from cloudsync.providers.exceptions import GoogleDriveError, NotFoundError
from cloudsync.providers.google_drive import GoogleDriveClient
from cloudsync.sync.exceptions import SyncError
from cloudsync.sync.locator import ContainerLocator, select_candidate
from cloudsync.sync.reader import SnapshotReader
from cloudsync.sync.writer import SnapshotWriter, WriteResult

if TYPE_CHECKING:
    from cloudsync.models import Account
    from cloudsync.providers.google_drive import DriveFile

logger = logging.getLogger(__name__)


@dataclass
class ContainerReport:
    """One candidate backup folder and its snapshots."""

    container: DriveFile
    snapshots: list[DriveFile]
    active: bool


class SyncOrchestrator:
    """
    Reads and writes the application's backup snapshot on Drive.

    read() is best effort and never raises for remote failures. write()
    recovers from a stale folder reference by rediscovering the folder
    and retrying, at most max_stale_retries times; every other error is
    raised to the caller.
    """

    def __init__(
        self,
        client: GoogleDriveClient,
        locator: ContainerLocator | None = None,
        reader: SnapshotReader | None = None,
        writer: SnapshotWriter | None = None,
        max_stale_retries: int = 1,
    ):
        self.client = client
        self.reader = reader or SnapshotReader(client)
        self.locator = locator or ContainerLocator(client, reader=self.reader)
        self.writer = writer or SnapshotWriter(client)
        self.max_stale_retries = max_stale_retries

        self._cache_lock = threading.Lock()
        self._resolve_lock = threading.Lock()
        self._container_id: str | None = None
        self._generation = 0

    # --- Cached folder reference ---

    @property
    def container_id(self) -> str | None:
        with self._cache_lock:
            return self._container_id

    def invalidate(self, container_id: str | None = None) -> bool:
        """
        Forget the cached folder id.

        Args:
            container_id: Only forget the cache if it still holds this id

        Returns:
            True if the cache was cleared
        """
        with self._cache_lock:
            if self._container_id is None:
                return False
            if container_id is not None and self._container_id != container_id:
                return False
            logger.info(f"Invalidating cached folder id {self._container_id}")
            self._container_id = None
            self._generation += 1
            return True

    def _remember(self, container_id: str, generation: int) -> None:
        with self._cache_lock:
            if generation == self._generation:
                self._container_id = container_id

    def _resolve(self, deadline: Deadline) -> tuple[str, int]:
        """Return the folder id to use and the cache generation it belongs to."""
        with self._cache_lock:
            if self._container_id:
                return self._container_id, self._generation

        with self._resolve_lock:
            # Another thread may have finished discovery while we waited.
            with self._cache_lock:
                if self._container_id:
                    return self._container_id, self._generation
                generation = self._generation

            container_id = self.locator.locate(deadline=deadline)
            self._remember(container_id, generation)
            return container_id, generation

    # --- Operations ---

    def read(self, deadline: Deadline | float | None = None) -> dict[str, Any] | None:
        """
        Restore the latest backed up state.

        A stale folder reference is rediscovered, at most max_stale_retries
        times, so a surviving duplicate folder can still serve the backup.

        Returns:
            The stored state, or None if there is none or it is unreachable
        """
        deadline = Deadline.coerce(deadline)

        rediscoveries = 0
        while True:
            container_id = None
            try:
                container_id, generation = self._resolve(deadline)
                state = self.reader.read(container_id, deadline=deadline)
            except NotFoundError as e:
                if container_id:
                    self.invalidate(container_id)
                if rediscoveries >= self.max_stale_retries:
                    logger.warning(f"Backup folder still stale after rediscovery: {e}")
                    return None
                rediscoveries += 1
                logger.warning(f"Backup folder reference went stale during read ({e}), rediscovering")
                continue
            except (GoogleDriveError, SyncError) as e:
                logger.error(f"Reading backup failed: {e}")
                return None

            self._remember(container_id, generation)
            return state

    def write(
        self,
        state: Any,
        deadline: Deadline | float | None = None,
        on_state: Callable[[WriteState], None] | None = None,
    ) -> WriteResult:
        """
        Back up the state as today's snapshot.

        Args:
            state: JSON-serializable application state
            deadline: Deadline, or seconds allowed for the whole write
            on_state: Called on each state transition

        Returns:
            WriteResult describing the stored snapshot

        Raises:
            NotFoundError: If the folder reference is still stale after rediscovery
            AuthError: If the credential is rejected (never retried)
            ApiError, NetworkError, SyncError: On any other failure
        """
        deadline = Deadline.coerce(deadline)
        current = WriteState.IDLE

        def transition(new_state: WriteState):
            nonlocal current
            logger.debug(f"Write state {current} -> {new_state}")
            current = new_state
            if on_state:
                on_state(new_state)

        rediscoveries = 0
        while True:
            container_id = None
            try:
                transition(WriteState.RESOLVING_CONTAINER)
                container_id, generation = self._resolve(deadline)
                result = self.writer.write(
                    container_id, state, deadline=deadline, on_state=transition
                )
            except NotFoundError as e:
                if container_id:
                    self.invalidate(container_id)
                if rediscoveries >= self.max_stale_retries:
                    transition(WriteState.FAILED)
                    logger.error(f"Backup failed after {rediscoveries} rediscovery: {e}")
                    raise
                rediscoveries += 1
                logger.warning(f"Backup folder reference went stale ({e}), rediscovering")
                continue
            except Exception:
                transition(WriteState.FAILED)
                raise

            self._remember(container_id, generation)
            result.rediscoveries = rediscoveries
            return result

    def restore(
        self, file_id: str, deadline: Deadline | float | None = None
    ) -> dict[str, Any] | None:
        """
        Load one specific snapshot by file id.

        Unlike read(), transport errors are raised: this is an explicit
        operator action, not a best-effort background restore.
        """
        return self.reader.download_snapshot(file_id, deadline=Deadline.coerce(deadline))

    def describe(self, deadline: Deadline | float | None = None) -> list[ContainerReport]:
        """List every candidate folder with its snapshots, marking the active one."""
        deadline = Deadline.coerce(deadline)
        candidates = self.locator.list_candidates(deadline=deadline)
        if not candidates:
            return []

        active_id = self.container_id
        if active_id not in {c.id for c in candidates}:
            active_id = select_candidate(
                self.locator.probe(candidates, deadline=deadline)
            ).container.id

        return [
            ContainerReport(
                container=candidate,
                snapshots=self.reader.list_snapshots(candidate.id, deadline=deadline),
                active=candidate.id == active_id,
            )
            for candidate in candidates
        ]


_orchestrators: dict[int, SyncOrchestrator] = {}
_orchestrators_lock = threading.Lock()


def get_orchestrator(account: "Account") -> SyncOrchestrator:
    """
    Return the process-wide orchestrator for an account.

    The stored access token is re-read on every call so that tokens
    renewed by the external auth flow are picked up.

    Raises:
        TokenNotFoundError: If no tokens are stored for the account
    """
    access_token = secrets.get_access_token(account)

    with _orchestrators_lock:
        orchestrator = _orchestrators.get(account.id)
        if orchestrator is None:
            orchestrator = SyncOrchestrator(GoogleDriveClient(access_token))
            _orchestrators[account.id] = orchestrator
        else:
            orchestrator.client.update_token(access_token)
        return orchestrator


def reset_orchestrators() -> None:
    """Drop every cached orchestrator (used when accounts change and in tests)."""
    with _orchestrators_lock:
        _orchestrators.clear()
