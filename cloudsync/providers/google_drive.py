"""
Google Drive REST client for backup snapshots.

Thin transport over the Drive v3 REST API: authenticated requests,
typed errors for non-2xx responses, safe JSON parsing, and the
resumable upload handshake. Retry policy belongs to the callers.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterator

import requests
from django.conf import settings
from google.auth.exceptions import GoogleAuthError, RefreshError, TransportError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

if TYPE_CHECKING:
    from cloudsync.models import Account

from cloudsync import secrets
from cloudsync.deadline import Deadline
from cloudsync.providers.exceptions import (
    ApiError,
    AuthError,
    DeadlineExceededError,
    NetworkError,
    NotFoundError,
    ParseError,
    UploadSessionError,
)

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
DEFAULT_REQUEST_TIMEOUT = 60

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"

FILE_FIELDS = "id,name,mimeType,size,createdTime,modifiedTime,parents,trashed"

# Error reasons that mean the credential itself is bad, as opposed to
# rate limiting or per-file permission problems that share status 403.
AUTH_ERROR_REASONS = {
    "authError",
    "insufficientPermissions",
    "invalid_grant",
    "invalid_token",
    "unauthorized_client",
    "UNAUTHENTICATED",
}


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def query_literal(value: str) -> str:
    """Quote a value for use inside a Drive search query."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


@dataclass
class DriveFile:
    """Represents a file or folder from Google Drive."""

    id: str
    name: str
    mime_type: str
    size: int | None
    created_time: datetime | None
    modified_time: datetime | None
    parents: list[str]
    trashed: bool = False

    @classmethod
    def from_api_response(cls, data: dict) -> "DriveFile":
        """Create DriveFile from Google API response."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            size=int(data["size"]) if "size" in data else None,
            created_time=_parse_time(data.get("createdTime")),
            modified_time=_parse_time(data.get("modifiedTime")),
            parents=data.get("parents", []),
            trashed=data.get("trashed", False),
        )

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_json(self) -> bool:
        return self.mime_type == JSON_MIME_TYPE


@dataclass(frozen=True)
class UserInfo:
    """Profile of the signed-in Google user."""

    email: str
    name: str
    picture: str = ""

    DEFAULT_NAME = "Google User"
    DEFAULT_EMAIL = "User"

    @classmethod
    def anonymous(cls) -> "UserInfo":
        return cls(email=cls.DEFAULT_EMAIL, name=cls.DEFAULT_NAME, picture="")

    @classmethod
    def from_api_response(cls, data: dict | None) -> "UserInfo":
        if not data:
            return cls.anonymous()
        email = data.get("email") or cls.DEFAULT_EMAIL
        return cls(
            email=email,
            name=data.get("name") or data.get("email") or cls.DEFAULT_NAME,
            picture=data.get("picture") or "",
        )

    @property
    def is_anonymous(self) -> bool:
        return self == self.anonymous()


def _error_details(response: requests.Response) -> tuple[str, tuple[str, ...]]:
    """Extract a human readable message and machine reasons from an error body."""
    message = response.reason or f"HTTP {response.status_code}"
    reasons: list[str] = []

    text = response.text.strip() if response.content else ""
    if not text:
        return message, ()

    try:
        body = json.loads(text)
    except ValueError:
        return text, ()

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or json.dumps(error)
        reasons = [e["reason"] for e in error.get("errors", []) if e.get("reason")]
        if error.get("status"):
            reasons.append(error["status"])
    elif error:
        # OAuth endpoints answer {"error": "invalid_grant", "error_description": ...}
        reasons.append(str(error))
        message = body.get("error_description") or str(error)
    else:
        message = text

    return message, tuple(reasons)


def error_for_response(response: requests.Response) -> ApiError:
    """Map a non-2xx response to the matching ApiError subclass."""
    status = response.status_code
    message, reasons = _error_details(response)

    if status == 401 or "invalid_grant" in reasons:
        return AuthError(status, message, reasons)
    if status == 403 and AUTH_ERROR_REASONS.intersection(reasons):
        return AuthError(status, message, reasons)
    if status == 404:
        return NotFoundError(status, message, reasons)
    return ApiError(status, message, reasons)


class GoogleDriveClient:
    """
    Client for the Google Drive REST API.

    Every request carries the bearer token of the wrapped credential.
    The token is supplied from outside and is never refreshed here:
    a 401 surfaces as AuthError so the caller can re-authenticate.
    """

    def __init__(
        self,
        access_token: str,
        session: Any = None,
        api_url: str | None = None,
        upload_url: str | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the client.

        Args:
            access_token: OAuth bearer token
            session: Optional requests-compatible session (tests inject fakes)
            api_url: Base URL for metadata endpoints
            upload_url: Base URL for upload endpoints
            timeout: Per-request timeout in seconds
        """
        self.credentials = Credentials(token=access_token)
        self._session = session or AuthorizedSession(
            self.credentials, refresh_status_codes=()
        )
        self.api_url = (
            api_url or getattr(settings, "CLOUDSYNC_DRIVE_API_URL", DRIVE_API_URL)
        ).rstrip("/")
        self.upload_url = (
            upload_url or getattr(settings, "CLOUDSYNC_DRIVE_UPLOAD_URL", DRIVE_UPLOAD_URL)
        ).rstrip("/")
        self.timeout = (
            timeout
            if timeout is not None
            else getattr(settings, "CLOUDSYNC_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)
        )

    @classmethod
    def for_account(cls, account: "Account", **kwargs) -> "GoogleDriveClient":
        """
        Build a client from the tokens stored for an account.

        Raises:
            TokenNotFoundError: If no tokens are stored for the account
        """
        return cls(secrets.get_access_token(account), **kwargs)

    def update_token(self, access_token: str) -> None:
        """Swap in a token that was renewed by the external auth flow."""
        self.credentials.token = access_token

    # --- Transport ---

    def request(
        self,
        method: str,
        url: str,
        *,
        params: dict | None = None,
        json: Any = None,
        data: bytes | None = None,
        headers: dict | None = None,
        deadline: Deadline | float | None = None,
    ) -> requests.Response:
        """
        Send one authenticated request.

        Args:
            method: HTTP method
            url: Absolute URL, or a path relative to the API base URL
            params: Query parameters
            json: JSON body
            data: Raw body
            headers: Extra headers
            deadline: Deadline or seconds left for the whole operation

        Returns:
            The 2xx response

        Raises:
            ApiError: On any non-2xx response (AuthError, NotFoundError subclasses)
            NetworkError: When no response was received
        """
        deadline = Deadline.coerce(deadline)
        deadline.check()

        if not url.startswith(("http://", "https://")):
            url = f"{self.api_url}/{url.lstrip('/')}"

        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                headers=headers,
                timeout=deadline.timeout_for(self.timeout),
            )
        except requests.exceptions.Timeout as e:
            if deadline.expired:
                raise DeadlineExceededError(f"{method} {url}: deadline exceeded") from e
            raise NetworkError(f"{method} {url} timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e
        except RefreshError as e:
            raise AuthError(401, f"Credential unusable: {e}") from e
        except TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            error = error_for_response(response)
            logger.warning(f"{method} {url} -> {error}")
            raise error

        return response

    @staticmethod
    def parse_json(response: requests.Response) -> Any:
        """
        Parse a response body as JSON.

        Returns:
            The decoded value, or None when the body is empty

        Raises:
            ParseError: If the body is not valid JSON
        """
        content = response.content
        if not content or not content.strip():
            return None
        try:
            return json.loads(content)
        except ValueError as e:
            raise ParseError(f"Invalid JSON in response: {e}") from e

    @classmethod
    def parse_object(cls, response: requests.Response) -> dict | None:
        """
        Parse a metadata response, which Drive always sends as a JSON object.

        Returns:
            The decoded object, or None when the body is empty

        Raises:
            ParseError: If the body is not valid JSON or not an object
        """
        data = cls.parse_json(response)
        if data is not None and not isinstance(data, dict):
            raise ParseError(f"Expected a JSON object in response, got {type(data).__name__}")
        return data

    # --- Files ---

    def iter_files(
        self,
        query: str,
        order_by: str | None = None,
        page_size: int = 100,
        deadline: Deadline | float | None = None,
    ) -> Iterator[DriveFile]:
        """
        Iterate over files matching a Drive search query.

        Args:
            query: Drive query, e.g. "name='x' and trashed=false"
            order_by: Sort order, e.g. "modifiedTime desc"
            page_size: Number of files per page

        Yields:
            DriveFile objects
        """
        page_token = None

        while True:
            params = {
                "q": query,
                "pageSize": page_size,
                "fields": f"nextPageToken,files({FILE_FIELDS})",
                "spaces": "drive",
            }
            if order_by:
                params["orderBy"] = order_by
            if page_token:
                params["pageToken"] = page_token

            response = self.request("GET", "files", params=params, deadline=deadline)
            data = self.parse_object(response) or {}

            files = data.get("files", [])
            if not isinstance(files, list):
                raise ParseError("Search response has no list of files")

            for file_data in files:
                if not isinstance(file_data, dict) or "id" not in file_data:
                    raise ParseError(f"Malformed file entry in search response: {file_data!r}")
                yield DriveFile.from_api_response(file_data)

            page_token = data.get("nextPageToken")
            if not page_token:
                break

    def search_files(
        self,
        query: str,
        order_by: str | None = None,
        limit: int | None = None,
        deadline: Deadline | float | None = None,
    ) -> list[DriveFile]:
        """Return up to limit files matching a query."""
        page_size = min(limit, 1000) if limit else 100
        files = []
        for drive_file in self.iter_files(query, order_by, page_size, deadline):
            files.append(drive_file)
            if limit is not None and len(files) >= limit:
                break
        return files

    def create_folder(
        self, name: str, deadline: Deadline | float | None = None
    ) -> DriveFile | None:
        """
        Create a folder in the Drive root.

        Returns:
            The created folder, or None if the response carried no metadata
        """
        logger.info(f"Creating folder {name}")
        response = self.request(
            "POST",
            "files",
            params={"fields": FILE_FIELDS},
            json={"name": name, "mimeType": FOLDER_MIME_TYPE},
            deadline=deadline,
        )
        data = self.parse_object(response)
        if not data or "id" not in data:
            return None
        return DriveFile.from_api_response(data)

    def rename_file(
        self, file_id: str, name: str, deadline: Deadline | float | None = None
    ) -> DriveFile | None:
        response = self.request(
            "PATCH",
            f"files/{file_id}",
            params={"fields": FILE_FIELDS},
            json={"name": name},
            deadline=deadline,
        )
        data = self.parse_object(response)
        return DriveFile.from_api_response(data) if data else None

    def delete_file(self, file_id: str, deadline: Deadline | float | None = None) -> None:
        self.request("DELETE", f"files/{file_id}", deadline=deadline)
        logger.info(f"Deleted file {file_id}")

    def download(self, file_id: str, deadline: Deadline | float | None = None) -> bytes:
        """Download a file's raw content."""
        logger.debug(f"Downloading file content for {file_id}")
        response = self.request(
            "GET", f"files/{file_id}", params={"alt": "media"}, deadline=deadline
        )
        return response.content

    # --- Resumable upload ---

    def start_resumable_upload(
        self,
        metadata: dict,
        file_id: str | None = None,
        deadline: Deadline | float | None = None,
    ) -> str:
        """
        Initiate a resumable upload session.

        Args:
            metadata: File metadata (name, mimeType, parents on create)
            file_id: Existing file to update; None creates a new file

        Returns:
            The session URI to PUT the content to

        Raises:
            UploadSessionError: If the response has no Location header
        """
        if file_id:
            method, url = "PATCH", f"{self.upload_url}/files/{file_id}"
        else:
            method, url = "POST", f"{self.upload_url}/files"

        response = self.request(
            method,
            url,
            params={"uploadType": "resumable", "fields": FILE_FIELDS},
            json=metadata,
            headers={"X-Upload-Content-Type": metadata.get("mimeType", JSON_MIME_TYPE)},
            deadline=deadline,
        )

        session_uri = response.headers.get("Location")
        if not session_uri:
            raise UploadSessionError("Resumable upload initiation returned no Location header")
        return session_uri

    def upload_to_session(
        self,
        session_uri: str,
        body: bytes,
        content_type: str = JSON_MIME_TYPE,
        deadline: Deadline | float | None = None,
    ) -> DriveFile | None:
        """PUT the whole payload to a resumable session and return the committed file."""
        response = self.request(
            "PUT",
            session_uri,
            data=body,
            headers={"Content-Type": content_type},
            deadline=deadline,
        )
        data = self.parse_object(response)
        if not data or "id" not in data:
            return None
        return DriveFile.from_api_response(data)

    # --- Profile ---

    def get_user_info(self, strict: bool = False) -> UserInfo:
        """
        Fetch the signed-in user's profile.

        Args:
            strict: Raise on failure instead of returning UserInfo.anonymous()

        Raises:
            AuthError, ApiError: Only when strict is True
        """
        try:
            service = build(
                "oauth2", "v2", credentials=self.credentials, cache_discovery=False
            )
            data = service.userinfo().get().execute()
        except HttpError as e:
            status = int(e.resp.status)
            if strict:
                error_cls = AuthError if status in (401, 403) else ApiError
                raise error_cls(status, str(e)) from e
            logger.warning(f"Failed to fetch user info: {status}")
            return UserInfo.anonymous()
        except GoogleAuthError as e:
            if strict:
                raise AuthError(401, str(e)) from e
            logger.warning(f"Failed to fetch user info: {e}")
            return UserInfo.anonymous()

        return UserInfo.from_api_response(data)
