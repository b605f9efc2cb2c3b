"""
Celery tasks for backup operations.

Provides asynchronous tasks for writing and restoring state snapshots
and for health monitoring of backup accounts.
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from cloudsync.providers.exceptions import NetworkError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(NetworkError,),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=3,
)
def backup_state_task(self, account_id: int, state: dict, timeout: float | None = None):
    """
    Back up application state to the account's Drive.

    Only transport failures are retried. Auth failures and stale
    folders that survive rediscovery fail the task immediately.

    Args:
        account_id: Account ID to back up to
        state: JSON-serializable application state
        timeout: Optional deadline in seconds for the whole write
    """
    from cloudsync.models import Account, SyncOperation
    from cloudsync.sync import get_orchestrator
    from cloudsync.sync.models import SyncSession

    try:
        account = Account.objects.get(id=account_id, is_active=True)
    except Account.DoesNotExist:
        logger.warning(f"Account {account_id} not found or inactive")
        return {"status": "skipped", "reason": "account_not_found"}

    logger.info(f"Starting backup for account {account.id} ({account.email})")

    session = SyncSession.objects.create(account=account, operation=SyncOperation.WRITE)

    def record_state(new_state):
        session.state = new_state

    try:
        orchestrator = get_orchestrator(account)
        result = orchestrator.write(state, deadline=timeout, on_state=record_state)
    except Exception as e:
        session.fail(e)
        logger.error(f"Backup failed for account {account.id}: {e}", exc_info=True)
        raise

    session.complete(
        container_id=result.container_id,
        snapshot_name=result.snapshot_name,
        snapshot_id=result.snapshot.id if result.snapshot else "",
        bytes_transferred=result.bytes_written,
        rediscoveries=result.rediscoveries,
    )

    return {
        "status": "completed",
        "account_id": account_id,
        "snapshot_name": result.snapshot_name,
        "created": result.created,
        "bytes_written": result.bytes_written,
        "rediscoveries": result.rediscoveries,
    }


@shared_task
def restore_state_task(account_id: int, timeout: float | None = None):
    """
    Restore the latest backed up state for an account.

    Returns:
        The stored state, or None if there is no usable backup
    """
    from cloudsync.models import Account, SyncOperation
    from cloudsync.secrets import TokenNotFoundError
    from cloudsync.sync import get_orchestrator
    from cloudsync.sync.models import SyncSession

    try:
        account = Account.objects.get(id=account_id, is_active=True)
    except Account.DoesNotExist:
        logger.warning(f"Account {account_id} not found or inactive")
        return None

    session = SyncSession.objects.create(account=account, operation=SyncOperation.READ)

    try:
        orchestrator = get_orchestrator(account)
    except TokenNotFoundError as e:
        session.fail(e)
        logger.warning(f"Cannot restore account {account.id}: {e}")
        return None

    state = orchestrator.read(deadline=timeout)

    if state is None:
        session.complete(status="empty", container_id=orchestrator.container_id or "")
        logger.info(f"No backup restored for account {account.id}")
    else:
        session.complete(container_id=orchestrator.container_id or "")
        logger.info(f"Restored backup for account {account.id}")

    return state


@shared_task
def check_account_health():
    """Check health of all accounts and log issues."""
    from cloudsync import secrets
    from cloudsync.models import Account, SyncOperation
    from cloudsync.sync.models import SyncSession

    now = timezone.now()
    issues = []

    for account in Account.objects.filter(is_active=True):
        account_issues = []

        tokens = secrets.get_tokens(account)
        if tokens is None:
            account_issues.append("missing_tokens")
        elif tokens.is_expired(now):
            account_issues.append("expired_token")

        writes = SyncSession.objects.filter(account=account, operation=SyncOperation.WRITE)

        last_backup = writes.filter(status="completed").order_by("-completed_at").first()
        if last_backup:
            if last_backup.completed_at < now - timedelta(hours=24):
                account_issues.append("stale_backup")
        else:
            account_issues.append("never_backed_up")

        recent_failures = writes.filter(
            status="failed",
            started_at__gte=now - timedelta(hours=24),
        ).count()

        if recent_failures >= 3:
            account_issues.append("repeated_failures")

        if account_issues:
            issues.append({
                "account_id": account.id,
                "email": account.email,
                "issues": account_issues,
            })
            logger.warning(f"Health issues for {account.email}: {account_issues}")

    checked = Account.objects.filter(is_active=True).count()
    logger.info(f"Health check complete: {checked} accounts checked, {len(issues)} with issues")

    return {
        "checked": checked,
        "issues": issues,
    }
