"""Tests for management commands."""

import json
import shutil
import tempfile
from datetime import date
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings

from cloudsync import secrets
from cloudsync.models import Account, Provider, SyncOperation
from cloudsync.providers.exceptions import AuthError
from cloudsync.providers.google_drive import GoogleDriveClient, UserInfo
from cloudsync.sync.models import SyncSession
from cloudsync.sync.orchestrator import SyncOrchestrator
from cloudsync.sync.writer import SnapshotWriter
from cloudsync.tasks import check_account_health
from cloudsync.tests.fake_drive import FakeDrive

FOLDER_NAME = "BusinessManager_AppData"


class SecretsFileMixin:
    def setUp(self):
        super().setUp()
        self.temp_dir = tempfile.mkdtemp()
        self.secrets_file = Path(self.temp_dir) / ".secrets.json"
        self.secrets_file.write_text("{}")
        settings_override = override_settings(SECRETS_FILE=self.secrets_file)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        super().tearDown()

    def create_account(self, email="test@example.com", with_tokens=True):
        account = Account.objects.create(
            provider=Provider.GOOGLE_DRIVE,
            name="Test User",
            email=email,
            is_active=True,
        )
        if with_tokens:
            secrets.set_tokens(account, access_token="test_access", refresh_token="test_refresh")
        return account


class DriveCommandTestCase(SecretsFileMixin, TestCase):
    """Runs account commands against an in-memory Drive."""

    def setUp(self):
        super().setUp()
        self.account = self.create_account()
        self.fake = FakeDrive()
        client = GoogleDriveClient("test_access", session=self.fake)
        self.orchestrator = SyncOrchestrator(
            client, writer=SnapshotWriter(client, today=lambda: date(2024, 3, 9))
        )
        patcher = patch(
            "cloudsync.management.base.get_orchestrator", return_value=self.orchestrator
        )
        self.mock_get_orchestrator = patcher.start()
        self.addCleanup(patcher.stop)

    def state_file(self, state):
        path = Path(self.temp_dir) / "state.json"
        path.write_text(json.dumps(state), encoding="utf-8")
        return str(path)


class ListAccountsCommandTests(SecretsFileMixin, TestCase):
    def test_list_accounts_empty(self):
        out = StringIO()
        call_command("list_accounts", stdout=out)
        self.assertIn("No accounts found", out.getvalue())

    def test_list_accounts_table(self):
        self.create_account()

        out = StringIO()
        call_command("list_accounts", stdout=out)
        output = out.getvalue()

        self.assertIn("test@example.com", output)
        self.assertIn("google_drive", output)
        self.assertIn("never", output)

    def test_list_accounts_json(self):
        account = self.create_account(with_tokens=False)
        session = SyncSession.objects.create(account=account, operation=SyncOperation.WRITE)
        session.complete()

        out = StringIO()
        call_command("list_accounts", "--json", stdout=out)
        data = json.loads(out.getvalue())

        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["email"], "test@example.com")
        self.assertEqual(data[0]["token_status"], "missing")
        self.assertIsNotNone(data[0]["last_backup"])

    def test_list_accounts_reports_folder_and_recent_trouble(self):
        account = self.create_account()
        SyncSession.objects.create(account=account, operation=SyncOperation.WRITE).complete(
            container_id="folder-1",
            snapshot_name="BusinessManager_Backup_2024-03-09.json",
            rediscoveries=1,
        )
        SyncSession.objects.create(account=account, operation=SyncOperation.WRITE).fail(
            Exception("boom")
        )

        out = StringIO()
        call_command("list_accounts", "--json", stdout=out)
        row = json.loads(out.getvalue())[0]

        self.assertEqual(row["token_status"], "unknown")
        self.assertEqual(row["folder_id"], "folder-1")
        self.assertEqual(row["snapshot_name"], "BusinessManager_Backup_2024-03-09.json")
        self.assertEqual(row["failures_24h"], 1)
        self.assertEqual(row["rediscoveries_24h"], 1)

        out = StringIO()
        call_command("list_accounts", stdout=out)
        self.assertIn("BusinessManager_Backup_2024-03-09.json in folder folder-1", out.getvalue())
        self.assertIn("1 failed write(s)", out.getvalue())


class VerifyTokensCommandTests(SecretsFileMixin, TestCase):
    def test_verify_tokens_no_accounts(self):
        out = StringIO()
        call_command("verify_tokens", stdout=out)
        self.assertIn("No active accounts found", out.getvalue())

    def test_verify_tokens_no_tokens(self):
        self.create_account(with_tokens=False)

        out = StringIO()
        call_command("verify_tokens", stdout=out)
        self.assertIn("NO TOKENS", out.getvalue())

    @patch("cloudsync.management.commands.verify_tokens.GoogleDriveClient")
    def test_verify_tokens_valid(self, mock_client_class):
        self.create_account()
        mock_client_class.for_account.return_value.get_user_info.return_value = UserInfo(
            email="test@example.com", name="Test User"
        )

        out = StringIO()
        call_command("verify_tokens", stdout=out)

        self.assertIn("VALID (verified as test@example.com)", out.getvalue())
        mock_client_class.for_account.return_value.get_user_info.assert_called_once_with(strict=True)

    @patch("cloudsync.management.commands.verify_tokens.GoogleDriveClient")
    def test_verify_tokens_rejected(self, mock_client_class):
        self.create_account()
        mock_client_class.for_account.return_value.get_user_info.side_effect = AuthError(
            401, "Invalid Credentials"
        )

        out = StringIO()
        call_command("verify_tokens", stdout=out)

        self.assertIn("EXPIRED", out.getvalue())
        self.assertIn("Failed: 1", out.getvalue())

    def test_verify_tokens_invalid_account_id(self):
        out = StringIO()
        err = StringIO()
        call_command("verify_tokens", 99999, stdout=out, stderr=err)
        self.assertIn("not found", err.getvalue())


class AddAccountCommandTests(SecretsFileMixin, TestCase):
    def test_add_account(self):
        out = StringIO()
        call_command(
            "add_account",
            "new@example.com",
            access_token="tok",
            expires_at="2030-01-01T00:00:00+00:00",
            stdout=out,
        )

        account = Account.objects.get(email="new@example.com")
        self.assertEqual(account.name, "new@example.com")
        self.assertEqual(secrets.get_access_token(account), "tok")
        self.assertIn("Created account", out.getvalue())

    def test_add_account_twice_updates(self):
        call_command("add_account", "new@example.com", access_token="one", stdout=StringIO())
        out = StringIO()
        call_command(
            "add_account", "new@example.com", access_token="two", name="Shop", stdout=out
        )

        account = Account.objects.get(email="new@example.com")
        self.assertEqual(Account.objects.count(), 1)
        self.assertEqual(account.name, "Shop")
        self.assertEqual(secrets.get_access_token(account), "two")
        self.assertIn("Updated account", out.getvalue())

    @override_settings(TIME_ZONE="UTC")
    def test_expiry_without_offset_is_usable_by_health_check(self):
        call_command(
            "add_account",
            "new@example.com",
            access_token="tok",
            expires_at="2020-01-01T12:00:00",
            stdout=StringIO(),
        )

        result = check_account_health()

        self.assertEqual(result["issues"][0]["issues"], ["expired_token", "never_backed_up"])

    def test_invalid_expiry(self):
        with self.assertRaises(CommandError):
            call_command(
                "add_account", "new@example.com", access_token="tok", expires_at="tomorrow"
            )


class PushSnapshotCommandTests(DriveCommandTestCase):
    def test_push_creates_then_updates(self):
        path = self.state_file({"orders": [1, 2]})

        out = StringIO()
        call_command("push_snapshot", self.account.id, path, stdout=out)
        self.assertIn("Created BusinessManager_Backup_2024-03-09.json", out.getvalue())

        out = StringIO()
        call_command("push_snapshot", self.account.id, path, stdout=out)
        self.assertIn("Updated BusinessManager_Backup_2024-03-09.json", out.getvalue())

        folder = self.fake.folders(FOLDER_NAME)[0]
        self.assertEqual(self.fake.children(folder["id"])[0]["content"], b'{"orders":[1,2]}')

    def test_push_unreadable_file(self):
        with self.assertRaises(CommandError):
            call_command("push_snapshot", self.account.id, "/nonexistent/state.json")

    def test_push_auth_rejected(self):
        self.fake.fail("GET", "/files", status=401, reason="authError")

        with self.assertRaisesMessage(CommandError, "Sign in again"):
            call_command(
                "push_snapshot", self.account.id, self.state_file({}), stdout=StringIO()
            )

    def test_push_server_error(self):
        self.fake.fail("GET", "/files", status=500, reason="backendError")

        with self.assertRaisesMessage(CommandError, "Backup failed"):
            call_command(
                "push_snapshot", self.account.id, self.state_file({}), stdout=StringIO()
            )

    def test_unknown_account(self):
        with self.assertRaisesMessage(CommandError, "not found"):
            call_command("push_snapshot", 99999, self.state_file({}))

    def test_account_without_tokens(self):
        self.mock_get_orchestrator.side_effect = secrets.TokenNotFoundError("No tokens")

        with self.assertRaisesMessage(CommandError, "No tokens"):
            call_command("push_snapshot", self.account.id, self.state_file({}))


class PullSnapshotCommandTests(DriveCommandTestCase):
    def test_pull_latest(self):
        self.orchestrator.write({"name": "Zoë"})

        out = StringIO()
        call_command("pull_snapshot", self.account.id, stdout=out)

        self.assertEqual(json.loads(out.getvalue()), {"name": "Zoë"})

    def test_pull_to_file(self):
        self.orchestrator.write({"a": 1})
        output = Path(self.temp_dir) / "restored.json"

        call_command("pull_snapshot", self.account.id, output=str(output), stdout=StringIO())

        self.assertEqual(json.loads(output.read_text(encoding="utf-8")), {"a": 1})

    def test_pull_without_backup(self):
        with self.assertRaisesMessage(CommandError, "No usable backup found"):
            call_command("pull_snapshot", self.account.id)


class SnapshotFileCommandTests(DriveCommandTestCase):
    def setUp(self):
        super().setUp()
        self.folder = self.fake.add_folder(FOLDER_NAME)
        self.snapshot = self.fake.add_file(
            "BusinessManager_Backup_2024-01-01.json", self.folder, b'{"v": 1}'
        )

    def test_restore_snapshot(self):
        out = StringIO()
        call_command("restore_snapshot", self.account.id, self.snapshot, stdout=out)

        self.assertEqual(json.loads(out.getvalue()), {"v": 1})

        session = SyncSession.objects.get(operation=SyncOperation.RESTORE)
        self.assertEqual(session.status, "completed")
        self.assertEqual(session.snapshot_id, self.snapshot)

    def test_restore_missing_snapshot(self):
        with self.assertRaisesMessage(CommandError, "Restore failed"):
            call_command("restore_snapshot", self.account.id, "nope")

        session = SyncSession.objects.get(operation=SyncOperation.RESTORE)
        self.assertEqual(session.status, "failed")
        self.assertIn("404", session.error_message)

    def test_restore_corrupt_snapshot(self):
        broken = self.fake.add_file("broken.json", self.folder, b"{")

        with self.assertRaisesMessage(CommandError, "empty or corrupt"):
            call_command("restore_snapshot", self.account.id, broken)

    def test_rename_snapshot(self):
        call_command(
            "rename_snapshot", self.account.id, self.snapshot, "keep.json", stdout=StringIO()
        )

        self.assertEqual(self.fake.files[self.snapshot]["name"], "keep.json")

    def test_delete_snapshot(self):
        call_command("delete_snapshot", self.account.id, self.snapshot, "--yes", stdout=StringIO())

        self.assertNotIn(self.snapshot, self.fake.files)

    @patch("builtins.input", return_value="n")
    def test_delete_snapshot_aborted(self, mock_input):
        out = StringIO()
        call_command("delete_snapshot", self.account.id, self.snapshot, stdout=out)

        self.assertIn("Aborted", out.getvalue())
        self.assertIn(self.snapshot, self.fake.files)

    def test_list_snapshots(self):
        duplicate = self.fake.add_folder(FOLDER_NAME)

        out = StringIO()
        call_command("list_snapshots", self.account.id, stdout=out)
        output = out.getvalue()

        self.assertIn("duplicate backup folders", output)
        self.assertIn(self.snapshot, output)
        self.assertIn(duplicate, output)
        self.assertIn("[active]", output)

    def test_list_snapshots_json(self):
        out = StringIO()
        call_command("list_snapshots", self.account.id, "--json", stdout=out)
        data = json.loads(out.getvalue())

        self.assertEqual(len(data), 1)
        self.assertTrue(data[0]["active"])
        self.assertEqual(data[0]["snapshots"][0]["id"], self.snapshot)
        self.assertEqual(data[0]["snapshots"][0]["backup_date"], "2024-01-01")

    def test_renamed_snapshot_is_pinned(self):
        call_command(
            "rename_snapshot", self.account.id, self.snapshot, "keep.json", stdout=StringIO()
        )

        out = StringIO()
        call_command("list_snapshots", self.account.id, stdout=out)
        self.assertIn("pinned", out.getvalue())

        out = StringIO()
        call_command("list_snapshots", self.account.id, "--json", stdout=out)
        self.assertIsNone(json.loads(out.getvalue())[0]["snapshots"][0]["backup_date"])


class ListSnapshotsEmptyTests(DriveCommandTestCase):
    def test_no_folders(self):
        out = StringIO()
        call_command("list_snapshots", self.account.id, stdout=out)

        self.assertIn("No backup folders found", out.getvalue())
