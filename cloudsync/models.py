from django.db import models


class Provider(models.TextChoices):
    GOOGLE_DRIVE = "google_drive", "Google Drive"


class SyncOperation(models.TextChoices):
    READ = "read", "Read"
    WRITE = "write", "Write"
    RESTORE = "restore", "Restore"


class WriteState(models.TextChoices):
    IDLE = "idle", "Idle"
    RESOLVING_CONTAINER = "resolving_container", "Resolving Container"
    CHECKING_EXISTING_SNAPSHOT = "checking_existing_snapshot", "Checking Existing Snapshot"
    INITIATING_UPLOAD = "initiating_upload", "Initiating Upload"
    UPLOADING_BYTES = "uploading_bytes", "Uploading Bytes"
    DONE = "done", "Done"
    FAILED = "failed", "Failed"


class Account(models.Model):
    """
    Represents a cloud storage account that receives backups.

    OAuth tokens are stored externally in the secrets file,
    not in the database. See cloudsync/secrets.py.
    """

    provider = models.CharField(
        max_length=20, choices=Provider.choices, default=Provider.GOOGLE_DRIVE
    )
    name = models.CharField(max_length=255)
    email = models.EmailField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [["provider", "email"]]

    def __str__(self):
        return f"{self.name} ({self.get_provider_display()})"


from cloudsync.sync.models import SyncSession  # noqa: E402,F401
