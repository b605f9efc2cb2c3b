"""
Django management command to rename a snapshot on Drive.
"""

from django.core.management.base import CommandError

from cloudsync.management.base import AccountCommand
from cloudsync.providers.exceptions import GoogleDriveError


class Command(AccountCommand):
    help = "Rename a backup snapshot (e.g. to keep it out of daily overwrites)"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("file_id", help="Drive file id of the snapshot")
        parser.add_argument("name", help="New file name")

    def handle(self, *args, **options):
        account = self.get_account(options["account_id"])
        orchestrator = self.get_orchestrator(account)

        try:
            orchestrator.client.rename_file(
                options["file_id"], options["name"], deadline=options["timeout"]
            )
        except GoogleDriveError as e:
            raise CommandError(f"Rename failed: {e}")

        self.stdout.write(self.style.SUCCESS(f"✓ Renamed {options['file_id']} to {options['name']}"))
