"""
Locates the backup folder among duplicates created by other devices.

Two devices that both find no folder will both create one, so several
folders with the same name can exist. Picking the newest by creation time
would orphan the folder that actually holds the latest backup; instead the
most recently created candidates are probed and the one whose newest
snapshot was modified last wins. Nothing is merged or deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from cloudsync.providers.exceptions import NotFoundError
from cloudsync.providers.google_drive import FOLDER_MIME_TYPE, query_literal
from cloudsync.sync import naming
from cloudsync.sync.exceptions import ContainerResolutionError
from cloudsync.sync.reader import SnapshotReader

if TYPE_CHECKING:
    from cloudsync.deadline import Deadline
    from cloudsync.providers.google_drive import DriveFile, GoogleDriveClient

logger = logging.getLogger(__name__)

DEFAULT_PROBE_LIMIT = 5


@dataclass
class Probe:
    """Latest snapshot found in one candidate folder."""

    rank: int  # position in createdTime-descending order
    container: DriveFile
    snapshot: DriveFile | None


def select_candidate(probes: list[Probe]) -> Probe:
    """
    Pick the active folder from a set of probe results.

    The folder whose snapshot has the greatest modified time wins; ties go
    to the more recently created folder. Without any snapshot the most
    recently created folder (rank 0) wins. Input order does not matter.
    """
    with_snapshots = [
        p for p in probes if p.snapshot is not None and p.snapshot.modified_time is not None
    ]
    if with_snapshots:
        return max(with_snapshots, key=lambda p: (p.snapshot.modified_time, -p.rank))
    return min(probes, key=lambda p: p.rank)


class ContainerLocator:
    """Finds or creates the single active backup folder."""

    def __init__(
        self,
        client: GoogleDriveClient,
        reader: SnapshotReader | None = None,
        probe_limit: int | None = None,
        prefix: str | None = None,
    ):
        self.client = client
        self.reader = reader or SnapshotReader(client)
        if probe_limit is None:
            probe_limit = getattr(settings, "CLOUDSYNC_PROBE_LIMIT", DEFAULT_PROBE_LIMIT)
        self.probe_limit = max(1, probe_limit)
        self.container_name = naming.container_name(prefix)

    def list_candidates(self, deadline: Deadline | float | None = None) -> list[DriveFile]:
        """All live folders with the backup folder name, newest first."""
        query = (
            f"mimeType={query_literal(FOLDER_MIME_TYPE)}"
            f" and name={query_literal(self.container_name)}"
            " and trashed=false"
        )
        return self.client.search_files(
            query, order_by="createdTime desc", deadline=deadline
        )

    def probe(
        self, candidates: list[DriveFile], deadline: Deadline | float | None = None
    ) -> list[Probe]:
        probes = []
        for rank, candidate in enumerate(candidates[: self.probe_limit]):
            try:
                snapshot = self.reader.find_latest(candidate.id, deadline=deadline)
            except NotFoundError:
                logger.warning(f"Candidate folder {candidate.id} vanished while probing")
                snapshot = None
            probes.append(Probe(rank=rank, container=candidate, snapshot=snapshot))
        return probes

    def create(self, deadline: Deadline | float | None = None) -> str:
        folder = self.client.create_folder(self.container_name, deadline=deadline)
        if folder is None or not folder.id:
            raise ContainerResolutionError(
                f"Could not create Drive folder {self.container_name}"
            )
        logger.info(f"Created folder {self.container_name} ({folder.id})")
        return folder.id

    def locate(self, deadline: Deadline | float | None = None) -> str:
        """
        Return the id of the active backup folder, creating it if needed.

        Raises:
            ApiError, NetworkError: On transport failures
            ContainerResolutionError: If the folder could not be created
        """
        logger.info(f"Locating folder {self.container_name}")
        candidates = self.list_candidates(deadline=deadline)

        if not candidates:
            logger.info("No backup folder found, creating one")
            return self.create(deadline=deadline)

        if len(candidates) > self.probe_limit:
            logger.warning(
                f"Found {len(candidates)} folders named {self.container_name}, "
                f"probing only the {self.probe_limit} most recent"
            )

        selected = select_candidate(self.probe(candidates, deadline=deadline))
        logger.info(
            f"Selected folder {selected.container.name} ({selected.container.id}) "
            f"out of {len(candidates)} candidate(s)"
        )
        return selected.container.id
