"""
Django management command to delete a snapshot from Drive.
"""

from django.core.management.base import CommandError

from cloudsync.management.base import AccountCommand
from cloudsync.providers.exceptions import GoogleDriveError


class Command(AccountCommand):
    help = "Permanently delete a backup snapshot"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("file_id", help="Drive file id of the snapshot")
        parser.add_argument(
            "--yes",
            action="store_true",
            help="Do not ask for confirmation",
        )

    def handle(self, *args, **options):
        account = self.get_account(options["account_id"])
        file_id = options["file_id"]

        if not options["yes"]:
            answer = input(f"Delete snapshot {file_id} from {account.email}? [y/N] ")
            if answer.strip().lower() != "y":
                self.stdout.write("Aborted.")
                return

        orchestrator = self.get_orchestrator(account)
        try:
            orchestrator.client.delete_file(file_id, deadline=options["timeout"])
        except GoogleDriveError as e:
            raise CommandError(f"Delete failed: {e}")

        self.stdout.write(self.style.SUCCESS(f"✓ Deleted {file_id}"))
