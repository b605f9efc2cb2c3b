"""
Token file written by the external sign-in flow and read by the engine.

The file maps "<provider>:<email>" to the account's bearer token, the
refresh token the sign-in flow keeps for itself, and the expiry. The
engine never renews a token; it only reads the current one.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

if TYPE_CHECKING:
    from cloudsync.models import Account

logger = logging.getLogger(__name__)


class SecretsError(Exception):
    """Base exception for secrets operations."""

    pass


class SecretsFileError(SecretsError):
    """The token file cannot be read, parsed or written."""

    pass


class TokenNotFoundError(SecretsError):
    """No usable access token is stored for the account."""

    pass


def _aware(value: datetime | None) -> datetime | None:
    # Naive expiries (e.g. typed by an operator) are taken as the project's time zone
    if value is not None and timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


def _parse_expiry(raw) -> datetime | None:
    if not raw:
        return None
    try:
        return _aware(datetime.fromisoformat(raw))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unreadable token expiry {raw!r}")
        return None


@dataclass(frozen=True)
class StoredTokens:
    """Tokens stored for one account. expires_at is always aware or None."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_entry(cls, entry: dict) -> "StoredTokens":
        return cls(
            access_token=entry.get("access_token") or "",
            refresh_token=entry.get("refresh_token"),
            expires_at=_parse_expiry(entry.get("expires_at")),
        )

    def to_entry(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    def expires_in(self, now: datetime | None = None) -> timedelta | None:
        """Time left before expiry (negative once expired), None if unknown."""
        if self.expires_at is None:
            return None
        return self.expires_at - (now or timezone.now())

    def is_expired(self, now: datetime | None = None) -> bool:
        remaining = self.expires_in(now)
        return remaining is not None and remaining.total_seconds() <= 0


def account_key(account: "Account") -> str:
    return f"{account.provider}:{account.email}"


def _secrets_path() -> Path:
    return Path(settings.SECRETS_FILE)


def _read_file() -> dict:
    path = _secrets_path()
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as e:
        raise SecretsFileError(f"Token file {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise SecretsFileError(f"Cannot read token file {path}: {e}") from e

    if not isinstance(data, dict):
        raise SecretsFileError(f"Token file {path} must hold a JSON object")
    return data


def _write_file(data: dict) -> None:
    """Replace the token file atomically, readable by the owner only."""
    path = _secrets_path()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".secrets_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise SecretsFileError(f"Cannot write token file {path}: {e}") from e


def get_tokens(account: "Account") -> StoredTokens | None:
    entry = _read_file().get(account_key(account))
    if not isinstance(entry, dict):
        return None
    return StoredTokens.from_entry(entry)


def get_access_token(account: "Account") -> str:
    """
    Bearer token for an account.

    Raises:
        TokenNotFoundError: If no non-empty access token is stored
    """
    tokens = get_tokens(account)
    if tokens is None or not tokens.access_token:
        raise TokenNotFoundError(f"No access token stored for {account_key(account)}")
    return tokens.access_token


def has_tokens(account: "Account") -> bool:
    return get_tokens(account) is not None


def set_tokens(
    account: "Account",
    access_token: str,
    refresh_token: str | None = None,
    expires_at: datetime | None = None,
) -> StoredTokens:
    """Store the tokens handed over by the sign-in flow."""
    tokens = StoredTokens(access_token, refresh_token, _aware(expires_at))

    data = _read_file()
    data[account_key(account)] = tokens.to_entry()
    _write_file(data)

    logger.info(f"Stored tokens for {account_key(account)}")
    return tokens
