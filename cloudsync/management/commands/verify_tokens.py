"""
Django management command to verify token validity for accounts.
"""

from django.core.management.base import BaseCommand

from cloudsync import secrets
from cloudsync.models import Account
from cloudsync.providers.exceptions import AuthError, GoogleDriveError
from cloudsync.providers.google_drive import GoogleDriveClient


class Command(BaseCommand):
    help = "Verify access token validity by fetching the user profile"

    def add_arguments(self, parser):
        parser.add_argument(
            "account_id",
            nargs="?",
            type=int,
            help="Account ID to verify (optional, verifies all if not specified)",
        )

    def handle(self, *args, **options):
        account_id = options.get("account_id")

        if account_id:
            try:
                accounts = [Account.objects.get(id=account_id, is_active=True)]
            except Account.DoesNotExist:
                self.stderr.write(self.style.ERROR(f"Account {account_id} not found or inactive"))
                return
        else:
            accounts = list(Account.objects.filter(is_active=True).order_by("id"))

        if not accounts:
            self.stdout.write(self.style.WARNING("No active accounts found."))
            return

        self.stdout.write(f"\nVerifying {len(accounts)} account(s)...\n")

        results = {"valid": 0, "failed": 0, "no_tokens": 0}

        for account in accounts:
            self._verify_account(account, results)

        self.stdout.write("\n" + "-" * 40)
        self.stdout.write(
            f"Valid: {results['valid']}  "
            f"Failed: {results['failed']}  "
            f"No tokens: {results['no_tokens']}"
        )

    def _verify_account(self, account: Account, results: dict):
        """Verify a single account's token."""
        prefix = f"[{account.id}] {account.email}"

        if not secrets.has_tokens(account):
            self.stdout.write(f"{prefix}: " + self.style.ERROR("NO TOKENS"))
            results["no_tokens"] += 1
            return

        try:
            client = GoogleDriveClient.for_account(account)
            user_info = client.get_user_info(strict=True)
            self.stdout.write(
                f"{prefix}: " + self.style.SUCCESS(f"VALID (verified as {user_info.email})")
            )
            results["valid"] += 1

        except (AuthError, secrets.TokenNotFoundError) as e:
            self.stdout.write(f"{prefix}: " + self.style.ERROR(f"EXPIRED - {e}"))
            results["failed"] += 1

        except GoogleDriveError as e:
            self.stdout.write(f"{prefix}: " + self.style.ERROR(f"ERROR - {e}"))
            results["failed"] += 1
