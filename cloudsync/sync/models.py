"""
Models for tracking backup and restore operations.
"""

from django.db import models
from django.utils import timezone

from cloudsync.models import Account, SyncOperation, WriteState


class SyncSession(models.Model):
    """
    Records each backup/restore operation for audit and debugging.

    Tracks which folder and snapshot were used, how many bytes moved,
    how many stale-folder rediscoveries happened, and any error.
    """

    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="sessions"
    )
    operation = models.CharField(max_length=20, choices=SyncOperation.choices)
    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=[
            ("running", "Running"),
            ("completed", "Completed"),
            ("empty", "No Backup Found"),
            ("failed", "Failed"),
        ],
        default="running",
    )
    # Last write state reached; tells where a failed write stopped
    state = models.CharField(
        max_length=40, choices=WriteState.choices, default=WriteState.IDLE
    )

    container_id = models.CharField(max_length=255, blank=True)
    snapshot_name = models.CharField(max_length=255, blank=True)
    snapshot_id = models.CharField(max_length=255, blank=True)
    bytes_transferred = models.BigIntegerField(default=0)
    rediscoveries = models.PositiveIntegerField(default=0)

    error_message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["account", "-started_at"], name="cloudsync_s_account_8c1f2e_idx"),
            models.Index(fields=["status"], name="cloudsync_s_status_4b7d3a_idx"),
        ]
        ordering = ["-started_at"]

    def __str__(self):
        return f"{self.get_operation_display()} for {self.account.email} - {self.get_status_display()}"

    def complete(self, status: str = "completed", **fields) -> None:
        for name, value in fields.items():
            setattr(self, name, value)
        self.status = status
        self.completed_at = timezone.now()
        self.save()

    def fail(self, error: Exception) -> None:
        self.status = "failed"
        self.error_message = str(error)
        self.completed_at = timezone.now()
        self.save()
