"""
Django management command to inspect backup folders and snapshots on Drive.
"""

import json

from django.core.management.base import CommandError

from cloudsync.management.base import AccountCommand
from cloudsync.providers.exceptions import GoogleDriveError
from cloudsync.sync.naming import parse_snapshot_date


def _format_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _backup_date(snapshot) -> str | None:
    # Renamed snapshots carry no date and are never overwritten by daily writes
    day = parse_snapshot_date(snapshot.name)
    return day.isoformat() if day else None


class Command(AccountCommand):
    help = "List every backup folder candidate and the snapshots it holds"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        account = self.get_account(options["account_id"])
        orchestrator = self.get_orchestrator(account)

        try:
            reports = orchestrator.describe(deadline=options["timeout"])
        except GoogleDriveError as e:
            raise CommandError(f"Could not list snapshots: {e}")

        if not reports:
            self.stdout.write(self.style.WARNING("No backup folders found."))
            return

        if options["json"]:
            self._output_json(reports)
        else:
            self._output_table(reports)

    def _output_table(self, reports):
        if len(reports) > 1:
            self.stdout.write(
                self.style.WARNING(f"Found {len(reports)} duplicate backup folders")
            )

        for report in reports:
            folder = report.container
            marker = self.style.SUCCESS(" [active]") if report.active else ""
            self.stdout.write("\n" + "=" * 80)
            self.stdout.write(
                f"{folder.name} ({folder.id}) created {_format_time(folder.created_time)}{marker}"
            )
            self.stdout.write("=" * 80)

            if not report.snapshots:
                self.stdout.write("  (empty)")
                continue

            for snapshot in report.snapshots:
                size = f"{snapshot.size:,}" if snapshot.size is not None else "?"
                day = _backup_date(snapshot) or "pinned"
                self.stdout.write(
                    f"  {snapshot.name:<45} {day:<10} {_format_time(snapshot.modified_time):<16} "
                    f"{size:>12}  {snapshot.id}"
                )

    def _output_json(self, reports):
        data = []
        for report in reports:
            data.append({
                "id": report.container.id,
                "name": report.container.name,
                "created_time": report.container.created_time.isoformat()
                if report.container.created_time
                else None,
                "active": report.active,
                "snapshots": [
                    {
                        "id": s.id,
                        "name": s.name,
                        "backup_date": _backup_date(s),
                        "size": s.size,
                        "modified_time": s.modified_time.isoformat() if s.modified_time else None,
                    }
                    for s in report.snapshots
                ],
            })

        self.stdout.write(json.dumps(data, indent=2))
