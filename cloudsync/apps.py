import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class CloudSyncConfig(AppConfig):
    name = "cloudsync"
    verbose_name = "Cloud Backup Sync"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        """Warn early about settings the engine cannot run without."""
        from django.conf import settings

        if not getattr(settings, "SECRETS_FILE", None):
            logger.warning("SECRETS_FILE is not configured; backups cannot authenticate")
