"""
Django management command to restore one specific snapshot by file id.
"""

from django.core.management.base import CommandError

from cloudsync.management.base import AccountCommand
from cloudsync.management.commands.pull_snapshot import write_state
from cloudsync.models import SyncOperation
from cloudsync.providers.exceptions import GoogleDriveError
from cloudsync.sync.models import SyncSession


class Command(AccountCommand):
    help = "Download a specific backup snapshot by its Drive file id"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("file_id", help="Drive file id of the snapshot")
        parser.add_argument(
            "--output",
            help="Write the snapshot to this file instead of stdout",
        )

    def handle(self, *args, **options):
        account = self.get_account(options["account_id"])
        orchestrator = self.get_orchestrator(account)
        file_id = options["file_id"]

        session = SyncSession.objects.create(
            account=account, operation=SyncOperation.RESTORE, snapshot_id=file_id
        )

        try:
            state = orchestrator.restore(file_id, deadline=options["timeout"])
        except GoogleDriveError as e:
            session.fail(e)
            raise CommandError(f"Restore failed: {e}")

        if state is None:
            session.complete(status="empty")
            raise CommandError(f"Snapshot {file_id} is empty or corrupt")

        session.complete()
        write_state(self, state, options["output"])
