"""
Custom exceptions for LeagueMail.

Provides the error taxonomy surfaced by directory-service requests, with a
technical message for logs and a derived message that is safe to show users.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Kinds of directory-service failures."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    AUTHENTICATION_REQUIRED = "authentication_required"
    AUTHORIZATION_DENIED = "authorization_denied"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    SERVICE_UNAVAILABLE = "service_unavailable"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.NETWORK_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.SERVICE_UNAVAILABLE,
        ErrorKind.RATE_LIMITED,
    }
)

RECOVERABLE_KINDS = frozenset(
    {
        ErrorKind.NETWORK_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.SERVICE_UNAVAILABLE,
        ErrorKind.RATE_LIMITED,
        ErrorKind.NOT_FOUND,
    }
)

USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK_ERROR: "Unable to connect to the server. Please check your internet connection.",
    ErrorKind.TIMEOUT: "The request took too long to complete. Please try again.",
    ErrorKind.AUTHENTICATION_REQUIRED: "Please log in to continue.",
    ErrorKind.AUTHORIZATION_DENIED: "You do not have permission to access this resource.",
    ErrorKind.NOT_FOUND: "The requested contact could not be found.",
    ErrorKind.VALIDATION_FAILED: "Please check your input and try again.",
    ErrorKind.SERVICE_UNAVAILABLE: "This service is temporarily unavailable. Please try again later.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment before trying again.",
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again or contact support.",
}

MAX_SERVER_MESSAGE_LENGTH = 200

_TECHNICAL_PATTERNS: List[re.Pattern] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^Error:",
        r"^TypeError:",
        r"^ValueError:",
        r"^KeyError:",
        r"^NetworkError:",
        r"^TimeoutError:",
        r"^Traceback",
        r"at\s+.*\s+\(.*\)",
        r"File \".*\", line \d+",
        r"\.(js|py):\d+",
        r"node_modules",
        r"site-packages",
    )
]


def is_server_message(message: Optional[str]) -> bool:
    """
    Check whether a message reads like a user-facing server message.

    Short messages without stack-trace or exception-name patterns are passed
    through to users verbatim; anything else is replaced by a generic message.
    """
    if not message or not message.strip():
        return False

    if any(pattern.search(message) for pattern in _TECHNICAL_PATTERNS):
        return False

    if len(message) > MAX_SERVER_MESSAGE_LENGTH:
        return False

    if "error:" in message.lower():
        return False

    words = message.lower().split()
    return not any(token in words for token in ("none", "null", "undefined"))


def derive_user_message(kind: ErrorKind, message: Optional[str]) -> str:
    """Return the message to show users for an error of the given kind."""
    if is_server_message(message):
        return message.strip()
    return USER_MESSAGES.get(kind, USER_MESSAGES[ErrorKind.UNKNOWN])


class LeagueMailError(Exception):
    """Base exception for all LeagueMail errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(LeagueMailError):
    """Raised when there are configuration issues."""

    pass


class DirectoryServiceError(LeagueMailError):
    """Base class for failures talking to the contact directory service."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, details=details)
        self.status_code = status_code
        self.user_message = user_message or derive_user_message(self.kind, message)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def recoverable(self) -> bool:
        return self.kind in RECOVERABLE_KINDS

    def to_dict(self) -> Dict[str, Any]:
        """Export error as dictionary for logging and display."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "user_message": self.user_message,
            "retryable": self.retryable,
            "recoverable": self.recoverable,
            "status_code": self.status_code,
            "details": self.details,
        }


class NetworkError(DirectoryServiceError):
    """The directory service could not be reached."""

    kind = ErrorKind.NETWORK_ERROR


class TimeoutError(DirectoryServiceError):
    """The directory service did not answer in time."""

    kind = ErrorKind.TIMEOUT


class AuthenticationRequired(DirectoryServiceError):
    """No valid session token was supplied."""

    kind = ErrorKind.AUTHENTICATION_REQUIRED


class AuthorizationDenied(DirectoryServiceError):
    """The session is not allowed to read this account's contacts."""

    kind = ErrorKind.AUTHORIZATION_DENIED


class NotFound(DirectoryServiceError):
    """The account or contact does not exist."""

    kind = ErrorKind.NOT_FOUND


class ValidationFailed(DirectoryServiceError):
    """The request parameters were rejected."""

    kind = ErrorKind.VALIDATION_FAILED


class ServiceUnavailable(DirectoryServiceError):
    """The directory service is up but failing."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class RateLimited(DirectoryServiceError):
    """Rate limiting errors."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class UnknownError(DirectoryServiceError):
    """Any failure that does not fit the other kinds."""

    kind = ErrorKind.UNKNOWN


ERROR_CLASSES: Dict[ErrorKind, type] = {
    cls.kind: cls
    for cls in (
        NetworkError,
        TimeoutError,
        AuthenticationRequired,
        AuthorizationDenied,
        NotFound,
        ValidationFailed,
        ServiceUnavailable,
        RateLimited,
        UnknownError,
    )
}
