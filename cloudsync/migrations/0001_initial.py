import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("provider", models.CharField(choices=[("google_drive", "Google Drive")], default="google_drive", max_length=20)),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=254)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "unique_together": {("provider", "email")},
            },
        ),
        migrations.CreateModel(
            name="SyncSession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("operation", models.CharField(choices=[("read", "Read"), ("write", "Write"), ("restore", "Restore")], max_length=20)),
                ("started_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("running", "Running"), ("completed", "Completed"), ("empty", "No Backup Found"), ("failed", "Failed")], default="running", max_length=20)),
                ("state", models.CharField(choices=[("idle", "Idle"), ("resolving_container", "Resolving Container"), ("checking_existing_snapshot", "Checking Existing Snapshot"), ("initiating_upload", "Initiating Upload"), ("uploading_bytes", "Uploading Bytes"), ("done", "Done"), ("failed", "Failed")], default="idle", max_length=40)),
                ("container_id", models.CharField(blank=True, max_length=255)),
                ("snapshot_name", models.CharField(blank=True, max_length=255)),
                ("snapshot_id", models.CharField(blank=True, max_length=255)),
                ("bytes_transferred", models.BigIntegerField(default=0)),
                ("rediscoveries", models.PositiveIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sessions", to="cloudsync.account")),
            ],
            options={
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["account", "-started_at"], name="cloudsync_s_account_8c1f2e_idx"),
                    models.Index(fields=["status"], name="cloudsync_s_status_4b7d3a_idx"),
                ],
            },
        ),
    ]
