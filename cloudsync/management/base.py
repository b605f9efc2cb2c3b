"""
Shared plumbing for account-scoped management commands.
"""

from django.core.management.base import BaseCommand, CommandError

from cloudsync.models import Account
from cloudsync.secrets import TokenNotFoundError
from cloudsync.sync import SyncOrchestrator, get_orchestrator


class AccountCommand(BaseCommand):
    """Base class for commands that act on one account's Drive."""

    def add_arguments(self, parser):
        parser.add_argument(
            "account_id",
            type=int,
            help="Account ID",
        )
        parser.add_argument(
            "--timeout",
            type=float,
            default=None,
            help="Deadline in seconds for the whole operation",
        )

    def get_account(self, account_id: int) -> Account:
        try:
            return Account.objects.get(id=account_id, is_active=True)
        except Account.DoesNotExist:
            raise CommandError(f"Account {account_id} not found or inactive")

    def get_orchestrator(self, account: Account) -> SyncOrchestrator:
        try:
            return get_orchestrator(account)
        except TokenNotFoundError as e:
            raise CommandError(str(e))
