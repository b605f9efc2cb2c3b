"""
Naming contract for backup containers and snapshots on Drive.

Container: <AppPrefix>_AppData
Snapshot:  <AppPrefix>_Backup_<YYYY>-<MM>-<DD>.json

Month and day are zero-padded so that sorting names lexically also
sorts them chronologically.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from django.conf import settings

DEFAULT_APP_PREFIX = "BusinessManager"

_DATE_RE = re.compile(r"_(\d{4}-\d{2}-\d{2})\.json$")


def get_app_prefix() -> str:
    return getattr(settings, "CLOUDSYNC_APP_PREFIX", DEFAULT_APP_PREFIX)


def container_name(prefix: str | None = None) -> str:
    return f"{prefix or get_app_prefix()}_AppData"


def snapshot_prefix(prefix: str | None = None) -> str:
    return f"{prefix or get_app_prefix()}_Backup_"


def snapshot_name(day: date, prefix: str | None = None) -> str:
    """Deterministic snapshot name for a calendar date."""
    return f"{snapshot_prefix(prefix)}{day.year:04d}-{day.month:02d}-{day.day:02d}.json"


def parse_snapshot_date(name: str) -> date | None:
    """Recover the calendar date from a snapshot name, if it has one."""
    match = _DATE_RE.search(name)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%Y-%m-%d").date()
    except ValueError:
        return None
