"""
Django management command to back up a JSON state file to Drive.
"""

import json
import sys

from django.core.management.base import CommandError

from cloudsync.management.base import AccountCommand
from cloudsync.providers.exceptions import AuthError, GoogleDriveError
from cloudsync.sync.exceptions import SyncError


class Command(AccountCommand):
    help = "Write a JSON state file as today's backup snapshot"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument(
            "path",
            help="Path to the JSON state file ('-' reads stdin)",
        )

    def handle(self, *args, **options):
        account = self.get_account(options["account_id"])

        try:
            if options["path"] == "-":
                state = json.load(sys.stdin)
            else:
                with open(options["path"], "r", encoding="utf-8") as f:
                    state = json.load(f)
        except (OSError, ValueError) as e:
            raise CommandError(f"Could not read state file: {e}")

        orchestrator = self.get_orchestrator(account)
        self.stdout.write(f"Backing up to: {account.name} ({account.email})")

        try:
            result = orchestrator.write(state, deadline=options["timeout"])
        except AuthError as e:
            self.stdout.write(self.style.ERROR(f"\n✗ Authentication rejected: {e}"))
            raise CommandError("Sign in again to renew the access token")
        except (GoogleDriveError, SyncError) as e:
            self.stdout.write(self.style.ERROR(f"\n✗ Backup failed: {e}"))
            raise CommandError(f"Backup failed: {e}")

        action = "Created" if result.created else "Updated"
        self.stdout.write(
            self.style.SUCCESS(
                f"\n✓ {action} {result.snapshot_name}\n"
                f"  - Folder: {result.container_id}\n"
                f"  - Bytes written: {result.bytes_written:,}\n"
                f"  - Rediscoveries: {result.rediscoveries}"
            )
        )
