"""
Exceptions for Google Drive transport operations.
"""


class GoogleDriveError(Exception):
    """Base exception for Google Drive operations."""

    pass


class NetworkError(GoogleDriveError):
    """The request never produced a response (connection, DNS, timeout)."""

    pass


class DeadlineExceededError(NetworkError):
    """The caller's deadline ran out before the operation finished."""

    pass


class OperationCancelledError(NetworkError):
    """The caller cancelled the operation."""

    pass


class ApiError(GoogleDriveError):
    """The API answered with a non-2xx status."""

    def __init__(self, status: int, message: str, reasons: tuple[str, ...] = ()):
        super().__init__(f"{status} ({message})")
        self.status = status
        self.message = message
        self.reasons = reasons


class AuthError(ApiError):
    """Credential is missing, expired, revoked or lacks the needed scope."""

    pass


class NotFoundError(ApiError):
    """The referenced file or folder no longer exists."""

    pass


class ParseError(GoogleDriveError):
    """Response body is present but is not valid JSON."""

    pass


class UploadSessionError(GoogleDriveError):
    """Resumable upload initiation did not return a session URI."""

    pass
