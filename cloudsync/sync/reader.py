"""
Reads backup snapshots back from a Drive folder.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from cloudsync.providers.google_drive import JSON_MIME_TYPE, query_literal

if TYPE_CHECKING:
    from cloudsync.deadline import Deadline
    from cloudsync.providers.google_drive import DriveFile, GoogleDriveClient

logger = logging.getLogger(__name__)


class SnapshotReader:
    """
    Finds the most recently modified snapshot in a folder and loads it.

    A missing, empty or corrupt snapshot yields None instead of an
    exception: local data stays authoritative when the backup is unusable.
    """

    def __init__(self, client: GoogleDriveClient):
        self.client = client

    @staticmethod
    def _snapshots_query(container_id: str) -> str:
        return (
            f"{query_literal(container_id)} in parents"
            f" and mimeType={query_literal(JSON_MIME_TYPE)}"
            " and trashed=false"
        )

    def find_latest(
        self, container_id: str, deadline: Deadline | float | None = None
    ) -> DriveFile | None:
        """Return the newest snapshot in the folder, or None if it has none."""
        files = self.client.search_files(
            self._snapshots_query(container_id),
            order_by="modifiedTime desc",
            limit=1,
            deadline=deadline,
        )
        return files[0] if files else None

    def list_snapshots(
        self, container_id: str, deadline: Deadline | float | None = None
    ) -> list[DriveFile]:
        """All snapshots in the folder, newest first."""
        return self.client.search_files(
            self._snapshots_query(container_id),
            order_by="modifiedTime desc",
            deadline=deadline,
        )

    def read(
        self, container_id: str, deadline: Deadline | float | None = None
    ) -> dict[str, Any] | None:
        """
        Load the newest snapshot in a folder.

        Returns:
            The stored state, or None if there is no usable snapshot

        Raises:
            ApiError, NetworkError: On transport failures
        """
        latest = self.find_latest(container_id, deadline=deadline)
        if latest is None:
            logger.info(f"No snapshots found in folder {container_id}")
            return None

        logger.info(f"Found snapshot {latest.name} ({latest.id})")
        return self.download_snapshot(latest.id, deadline=deadline)

    def download_snapshot(
        self, file_id: str, deadline: Deadline | float | None = None
    ) -> dict[str, Any] | None:
        """Download one snapshot by id and decode it."""
        content = self.client.download(file_id, deadline=deadline)
        return self.decode(content, source=file_id)

    @staticmethod
    def decode(content: bytes, source: str = "snapshot") -> dict[str, Any] | None:
        if not content or not content.strip():
            logger.warning(f"Snapshot {source} is empty")
            return None

        try:
            state = json.loads(content)
        except ValueError as e:
            logger.error(f"Snapshot {source} is not valid JSON: {e}")
            return None

        if not isinstance(state, dict):
            logger.error(
                f"Snapshot {source} holds a {type(state).__name__}, expected an object"
            )
            return None

        return state
