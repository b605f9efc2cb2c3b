"""
Django management command to restore the latest backup snapshot.
"""

import json

from django.core.management.base import CommandError

from cloudsync.management.base import AccountCommand


class Command(AccountCommand):
    help = "Print or save the most recent backup snapshot"

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument(
            "--output",
            help="Write the snapshot to this file instead of stdout",
        )

    def handle(self, *args, **options):
        account = self.get_account(options["account_id"])
        orchestrator = self.get_orchestrator(account)

        state = orchestrator.read(deadline=options["timeout"])
        if state is None:
            raise CommandError("No usable backup found")

        write_state(self, state, options["output"])


def write_state(command, state: dict, output: str | None) -> None:
    """Write a restored state to a file, or pretty-print it."""
    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(state, f, ensure_ascii=False)
        command.stdout.write(command.style.SUCCESS(f"✓ Snapshot written to {output}"))
    else:
        command.stdout.write(json.dumps(state, indent=2, ensure_ascii=False))
