"""
Django management command to summarize accounts from the backup audit trail.
"""

import json
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db.models import Count, Q, Sum
from django.utils import timezone

from cloudsync import secrets
from cloudsync.models import Account, SyncOperation
from cloudsync.sync.models import SyncSession

EXPIRING_SOON = timedelta(hours=1)


def token_status(account: Account) -> tuple[str, str]:
    """Classify the stored token as missing, unknown, expired, expiring or valid."""
    tokens = secrets.get_tokens(account)
    if tokens is None or not tokens.access_token:
        return "missing", ""

    remaining = tokens.expires_in()
    if remaining is None:
        return "unknown", ""

    expiry = timezone.localtime(tokens.expires_at).strftime("%Y-%m-%d %H:%M")
    if tokens.is_expired():
        return "expired", expiry
    if remaining < EXPIRING_SOON:
        return "expiring", expiry
    return "valid", expiry


def backup_summary(account: Account) -> dict:
    """Latest completed backup plus write outcomes over the last 24 hours."""
    writes = account.sessions.filter(operation=SyncOperation.WRITE)
    last: SyncSession | None = (
        writes.filter(status="completed").order_by("-completed_at").first()
    )
    recent = writes.filter(started_at__gte=timezone.now() - timedelta(hours=24)).aggregate(
        failures=Count("id", filter=Q(status="failed")),
        rediscoveries=Sum("rediscoveries"),
    )

    return {
        "last_backup": last.completed_at.isoformat() if last else None,
        "folder_id": last.container_id if last else "",
        "snapshot_name": last.snapshot_name if last else "",
        "failures_24h": recent["failures"],
        "rediscoveries_24h": recent["rediscoveries"] or 0,
    }


class Command(BaseCommand):
    help = "List accounts with token state, active backup folder and recent write outcomes"

    def add_arguments(self, parser):
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        accounts = list(Account.objects.filter(is_active=True).order_by("email"))

        if not accounts:
            self.stdout.write(self.style.WARNING("No accounts found."))
            self.stdout.write("\nRun 'python manage.py add_account' to register one")
            return

        rows = []
        for account in accounts:
            status, expiry = token_status(account)
            rows.append({
                "id": account.id,
                "email": account.email,
                "name": account.name,
                "provider": account.provider,
                "token_status": status,
                "token_expires_at": expiry,
                **backup_summary(account),
            })

        if options["json"]:
            self.stdout.write(json.dumps(rows, indent=2))
            return

        for row in rows:
            self.stdout.write(self._format_row(row))
        self.stdout.write(f"\nTotal: {len(rows)} account(s)")

    def _format_row(self, row: dict) -> str:
        styles = {
            "valid": self.style.SUCCESS,
            "expiring": self.style.WARNING,
        }
        token = styles.get(row["token_status"], self.style.ERROR)(row["token_status"])

        if row["last_backup"]:
            backup = f"{row['snapshot_name']} in folder {row['folder_id']}"
        else:
            backup = "never backed up"

        line = f"[{row['id']}] {row['email']} ({row['provider']}) token: {token}, {backup}"
        if row["failures_24h"]:
            line += self.style.ERROR(f", {row['failures_24h']} failed write(s) in 24h")
        if row["rediscoveries_24h"]:
            line += self.style.WARNING(f", {row['rediscoveries_24h']} folder rediscovery(ies) in 24h")
        return line
