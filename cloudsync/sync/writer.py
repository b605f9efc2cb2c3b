"""
Writes dated backup snapshots into a Drive folder.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Callable

from cloudsync.models import WriteState
from cloudsync.providers.google_drive import JSON_MIME_TYPE, query_literal
from cloudsync.sync import naming

if TYPE_CHECKING:
    from cloudsync.deadline import Deadline
    from cloudsync.providers.google_drive import DriveFile, GoogleDriveClient

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Result of a snapshot write."""

    container_id: str
    snapshot_name: str
    snapshot: DriveFile | None
    created: bool
    bytes_written: int
    rediscoveries: int = 0


def serialize_state(state: Any) -> bytes:
    """Compact JSON encoding of the caller's state, structure untouched."""
    return json.dumps(state, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class SnapshotWriter:
    """
    Uploads the state as today's snapshot using a resumable upload.

    One snapshot per folder per calendar date: a second write on the
    same day updates the existing file in place instead of adding one.
    The content is committed by the final PUT, so readers never see a
    partially written snapshot.
    """

    def __init__(
        self,
        client: GoogleDriveClient,
        today: Callable[[], date] = date.today,
        prefix: str | None = None,
    ):
        self.client = client
        self.today = today
        self.prefix = prefix

    def snapshot_name(self) -> str:
        return naming.snapshot_name(self.today(), prefix=self.prefix)

    def find_existing(
        self, container_id: str, name: str, deadline: Deadline | float | None = None
    ) -> DriveFile | None:
        query = (
            f"name={query_literal(name)}"
            f" and {query_literal(container_id)} in parents"
            " and trashed=false"
        )
        files = self.client.search_files(
            query, order_by="modifiedTime desc", limit=1, deadline=deadline
        )
        return files[0] if files else None

    def write(
        self,
        container_id: str,
        state: Any,
        deadline: Deadline | float | None = None,
        on_state: Callable[[WriteState], None] | None = None,
    ) -> WriteResult:
        """
        Write the state as today's snapshot in the folder.

        Args:
            container_id: Target folder id
            state: JSON-serializable application state
            deadline: Deadline for the whole write
            on_state: Called on each state transition

        Returns:
            WriteResult describing the snapshot

        Raises:
            ApiError, NetworkError: On transport failures
            UploadSessionError: If the upload session could not be opened
        """

        def advance(new_state: WriteState):
            if on_state:
                on_state(new_state)

        name = self.snapshot_name()
        body = serialize_state(state)

        advance(WriteState.CHECKING_EXISTING_SNAPSHOT)
        existing = self.find_existing(container_id, name, deadline=deadline)

        advance(WriteState.INITIATING_UPLOAD)
        if existing:
            logger.info(f"Updating existing snapshot {name} ({existing.id})")
            session_uri = self.client.start_resumable_upload(
                {"name": name, "mimeType": JSON_MIME_TYPE},
                file_id=existing.id,
                deadline=deadline,
            )
        else:
            logger.info(f"Creating new snapshot {name} in folder {container_id}")
            session_uri = self.client.start_resumable_upload(
                {"name": name, "mimeType": JSON_MIME_TYPE, "parents": [container_id]},
                deadline=deadline,
            )

        advance(WriteState.UPLOADING_BYTES)
        snapshot = self.client.upload_to_session(session_uri, body, deadline=deadline)

        advance(WriteState.DONE)
        logger.info(f"Uploaded {len(body)} bytes to {name}")

        return WriteResult(
            container_id=container_id,
            snapshot_name=name,
            snapshot=snapshot,
            created=existing is None,
            bytes_written=len(body),
        )
