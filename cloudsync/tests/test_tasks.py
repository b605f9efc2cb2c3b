"""Tests for Celery tasks."""

import shutil
import tempfile
from datetime import date, timedelta
from pathlib import Path
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone

from cloudsync import secrets
from cloudsync.models import Account, Provider, SyncOperation, WriteState
from cloudsync.providers.exceptions import AuthError
from cloudsync.providers.google_drive import GoogleDriveClient
from cloudsync.sync.models import SyncSession
from cloudsync.sync.orchestrator import SyncOrchestrator
from cloudsync.sync.writer import SnapshotWriter
from cloudsync.tasks import backup_state_task, check_account_health, restore_state_task
from cloudsync.tests.fake_drive import FakeDrive


class TaskTestCase(TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.secrets_file = Path(self.temp_dir) / ".secrets.json"
        settings_override = override_settings(SECRETS_FILE=self.secrets_file)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.account = Account.objects.create(
            provider=Provider.GOOGLE_DRIVE,
            name="Test User",
            email="test@example.com",
        )
        secrets.set_tokens(self.account, access_token="test_access")

        self.fake = FakeDrive()
        client = GoogleDriveClient("test_access", session=self.fake)
        self.orchestrator = SyncOrchestrator(
            client, writer=SnapshotWriter(client, today=lambda: date(2024, 3, 9))
        )

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def use_fake_drive(self):
        patcher = patch("cloudsync.sync.get_orchestrator", return_value=self.orchestrator)
        patcher.start()
        self.addCleanup(patcher.stop)


class BackupStateTaskTests(TaskTestCase):
    def test_backup_records_session(self):
        self.use_fake_drive()

        result = backup_state_task(self.account.id, {"a": 1})

        self.assertEqual(result["status"], "completed")
        self.assertTrue(result["created"])
        self.assertEqual(result["rediscoveries"], 0)

        session = SyncSession.objects.get(account=self.account)
        self.assertEqual(session.operation, SyncOperation.WRITE)
        self.assertEqual(session.status, "completed")
        self.assertEqual(session.state, WriteState.DONE)
        self.assertEqual(session.snapshot_name, "BusinessManager_Backup_2024-03-09.json")
        self.assertEqual(session.bytes_transferred, 7)
        self.assertEqual(session.container_id, self.fake.folders()[0]["id"])
        self.assertIsNotNone(session.completed_at)

    def test_backup_records_rediscovery(self):
        self.use_fake_drive()
        first = self.orchestrator.write({"a": 1})
        self.fake.remove(first.container_id)

        backup_state_task(self.account.id, {"a": 2})

        self.assertEqual(SyncSession.objects.get(account=self.account).rediscoveries, 1)

    def test_backup_inactive_account(self):
        self.account.is_active = False
        self.account.save()

        result = backup_state_task(self.account.id, {"a": 1})

        self.assertEqual(result["status"], "skipped")
        self.assertFalse(SyncSession.objects.exists())

    def test_backup_auth_failure_marks_session(self):
        self.use_fake_drive()
        self.fake.fail("GET", "/files", status=401, reason="authError")

        with self.assertRaises(AuthError):
            backup_state_task(self.account.id, {"a": 1})

        session = SyncSession.objects.get(account=self.account)
        self.assertEqual(session.status, "failed")
        self.assertEqual(session.state, WriteState.FAILED)
        self.assertIn("401", session.error_message)


class RestoreStateTaskTests(TaskTestCase):
    def test_restore_latest(self):
        self.use_fake_drive()
        self.orchestrator.write({"a": 1})

        self.assertEqual(restore_state_task(self.account.id), {"a": 1})

        session = SyncSession.objects.get(operation=SyncOperation.READ)
        self.assertEqual(session.status, "completed")
        self.assertEqual(session.container_id, self.orchestrator.container_id)

    def test_restore_nothing_stored(self):
        self.use_fake_drive()

        self.assertIsNone(restore_state_task(self.account.id))
        self.assertEqual(SyncSession.objects.get().status, "empty")

    def test_restore_unreachable_drive(self):
        self.use_fake_drive()
        self.fake.fail("GET", "/files", status=503, reason="backendError")

        self.assertIsNone(restore_state_task(self.account.id))
        self.assertEqual(SyncSession.objects.get().status, "empty")

    def test_restore_without_tokens(self):
        self.secrets_file.write_text("{}")

        self.assertIsNone(restore_state_task(self.account.id))
        self.assertEqual(SyncSession.objects.get().status, "failed")


class CheckAccountHealthTests(TaskTestCase):
    def record_backup(self, status="completed", age=timedelta(0)):
        session = SyncSession.objects.create(account=self.account, operation=SyncOperation.WRITE)
        session.complete(status=status)
        SyncSession.objects.filter(pk=session.pk).update(
            started_at=timezone.now() - age, completed_at=timezone.now() - age
        )

    def issues_for(self, result):
        for entry in result["issues"]:
            if entry["account_id"] == self.account.id:
                return entry["issues"]
        return []

    def test_healthy_account(self):
        self.record_backup()

        result = check_account_health()

        self.assertEqual(result["checked"], 1)
        self.assertEqual(result["issues"], [])

    def test_never_backed_up_and_missing_tokens(self):
        self.secrets_file.write_text("{}")

        issues = self.issues_for(check_account_health())

        self.assertEqual(issues, ["missing_tokens", "never_backed_up"])

    def test_expired_token(self):
        secrets.set_tokens(
            self.account,
            access_token="test_access",
            expires_at=timezone.now() - timedelta(hours=1),
        )
        self.record_backup()

        self.assertEqual(self.issues_for(check_account_health()), ["expired_token"])

    def test_stale_backup(self):
        self.record_backup(age=timedelta(days=2))

        self.assertEqual(self.issues_for(check_account_health()), ["stale_backup"])

    def test_repeated_failures(self):
        self.record_backup()
        for _ in range(3):
            self.record_backup(status="failed")

        self.assertEqual(self.issues_for(check_account_health()), ["repeated_failures"])

    @override_settings(TIME_ZONE="UTC")
    def test_naive_expiry_does_not_break_health_check(self):
        self.secrets_file.write_text(
            '{"google_drive:test@example.com": {"access_token": "a", "expires_at": "2020-01-01T12:00:00"}}'
        )
        self.record_backup()
        healthy = Account.objects.create(name="Other", email="other@example.com")
        secrets.set_tokens(healthy, access_token="b")

        result = check_account_health()

        self.assertEqual(result["checked"], 2)
        self.assertEqual(self.issues_for(result), ["expired_token"])
