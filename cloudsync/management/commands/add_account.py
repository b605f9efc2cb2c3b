"""
Django management command to register an account and its access token.
"""

from datetime import datetime

from django.core.management.base import BaseCommand, CommandError

from cloudsync import secrets
from cloudsync.models import Account, Provider


class Command(BaseCommand):
    help = "Register a Google Drive account with a token from the sign-in flow"

    def add_arguments(self, parser):
        parser.add_argument("email", help="Google account email")
        parser.add_argument(
            "--name",
            help="Display name (default: the email)",
        )
        parser.add_argument(
            "--access-token",
            required=True,
            help="OAuth access token obtained by the sign-in flow",
        )
        parser.add_argument(
            "--refresh-token",
            help="OAuth refresh token, kept for the sign-in flow",
        )
        parser.add_argument(
            "--expires-at",
            help="Token expiry as ISO 8601, e.g. 2025-01-01T12:00:00+00:00 (no offset means TIME_ZONE)",
        )

    def handle(self, *args, **options):
        expires_at = None
        if options["expires_at"]:
            try:
                expires_at = datetime.fromisoformat(options["expires_at"])
            except ValueError:
                raise CommandError(f"Invalid --expires-at: {options['expires_at']}")

        account, created = Account.objects.update_or_create(
            provider=Provider.GOOGLE_DRIVE,
            email=options["email"],
            defaults={
                "name": options["name"] or options["email"],
                "is_active": True,
            },
        )

        secrets.set_tokens(
            account,
            access_token=options["access_token"],
            refresh_token=options["refresh_token"],
            expires_at=expires_at,
        )

        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(f"✓ {verb} account {account.id} ({account.email})"))
