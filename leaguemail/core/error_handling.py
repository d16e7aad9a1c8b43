"""
Centralized error handling for directory-service requests.

Maps HTTP responses and arbitrary exceptions onto the LeagueMail error
taxonomy, and provides recovery hints and severity-aware logging.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
import structlog

from leaguemail.core.exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    DirectoryServiceError,
    ErrorKind,
    NetworkError,
    NotFound,
    RateLimited,
    ServiceUnavailable,
    TimeoutError,
    UnknownError,
    ValidationFailed,
)

logger = structlog.get_logger(__name__)

GENERIC_API_MESSAGE = "An unexpected error occurred"


class ErrorSeverity(str, Enum):
    """How loudly an error should be logged."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def parse_api_error(payload: Any) -> Dict[str, Any]:
    """
    Extract a readable message from an API error body.

    Understands ``{"message"}``, ``{"error"}``, field-detail arrays and
    ``{"errors": {...}}`` / ``{"errors": [...]}`` validation formats.

    Returns:
        Dict with ``message`` and ``has_validation_errors``
    """
    if not payload:
        return {"message": GENERIC_API_MESSAGE, "has_validation_errors": False}

    if isinstance(payload, str):
        return {"message": payload, "has_validation_errors": False}

    if not isinstance(payload, dict):
        return {"message": GENERIC_API_MESSAGE, "has_validation_errors": False}

    message = payload.get("message") or payload.get("error") or GENERIC_API_MESSAGE

    details = payload.get("details")
    if isinstance(details, list):
        field_errors = "; ".join(
            f"{d['path']}: {d['msg']}"
            for d in details
            if isinstance(d, dict) and d.get("type") == "field" and d.get("msg") and d.get("path")
        )
        return {"message": field_errors or message, "has_validation_errors": True}

    errors = payload.get("errors")
    if isinstance(errors, dict) and errors:
        joined = "; ".join(
            f"{field}: {', '.join(msgs) if isinstance(msgs, list) else msgs}"
            for field, msgs in errors.items()
        )
        return {"message": joined or message, "has_validation_errors": True}

    if isinstance(errors, list) and errors:
        return {"message": "; ".join(str(e) for e in errors), "has_validation_errors": True}

    return {"message": message, "has_validation_errors": False}


def _retry_after(headers: Optional[Dict[str, str]]) -> Optional[float]:
    if not headers:
        return None
    value = headers.get("retry-after") or headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def error_from_status(
    status_code: int,
    payload: Any = None,
    endpoint: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> DirectoryServiceError:
    """
    Build a taxonomy error for a failed HTTP response.

    Args:
        status_code: HTTP status of the response
        payload: Decoded JSON body, if any
        endpoint: Request URL for diagnostics
        headers: Response headers (used for Retry-After)

    Returns:
        The matching DirectoryServiceError subclass instance
    """
    details = {"status_code": status_code, "endpoint": endpoint}
    server_message = parse_api_error(payload)["message"]
    has_server_message = bool(payload) and server_message != GENERIC_API_MESSAGE

    if status_code in (400, 422):
        return ValidationFailed(
            server_message if has_server_message else "Request validation failed",
            details=details,
            status_code=status_code,
        )

    if status_code == 401:
        return AuthenticationRequired(
            "Authentication required",
            user_message="Please log in again to continue",
            details=details,
            status_code=status_code,
        )

    if status_code == 403:
        return AuthorizationDenied(
            "Access denied",
            user_message="You do not have permission to access this resource",
            details=details,
            status_code=status_code,
        )

    if status_code == 404:
        return NotFound(
            "Resource not found",
            user_message="The requested resource could not be found",
            details=details,
            status_code=status_code,
        )

    if status_code in (408, 504):
        return TimeoutError("Request timeout", details=details, status_code=status_code)

    if status_code == 429:
        return RateLimited(
            "Too many requests",
            retry_after=_retry_after(headers),
            details=details,
            status_code=status_code,
        )

    if status_code >= 500:
        # Server-supplied text reaches the user when it is presentable
        message = server_message if has_server_message else "Service temporarily unavailable"
        return ServiceUnavailable(message, details=details, status_code=status_code)

    return UnknownError(
        server_message if has_server_message else f"HTTP {status_code}",
        details=details,
        status_code=status_code,
    )


def _infer_from_message(message: str, details: Dict[str, Any]) -> DirectoryServiceError:
    lowered = message.lower()

    if "timeout" in lowered or "timed out" in lowered:
        return TimeoutError(message, details=details)
    if "network" in lowered or "connection" in lowered:
        return NetworkError(message, details=details)
    if "unauthorized" in lowered or "authentication" in lowered:
        return AuthenticationRequired(message, details=details)
    if "forbidden" in lowered or "permission" in lowered:
        return AuthorizationDenied(message, details=details)
    if "not found" in lowered:
        return NotFound(message, details=details)
    if "validation" in lowered or "invalid" in lowered:
        return ValidationFailed(message, details=details)
    return UnknownError(message, details=details)


def normalize_error(
    error: BaseException, context: Optional[Dict[str, Any]] = None
) -> DirectoryServiceError:
    """
    Convert any failure into a DirectoryServiceError.

    Args:
        error: Exception raised by a fetch
        context: Extra diagnostics merged into the error details

    Returns:
        A taxonomy error (the same object when already one)
    """
    context = context or {}

    if isinstance(error, DirectoryServiceError):
        error.details = {**error.details, **context}
        return error

    details = {**context, "original_error": type(error).__name__}

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return TimeoutError(f"Request timed out: {error}", details=details)

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            payload = response.json()
        except ValueError:
            payload = response.text or None
        return error_from_status(
            response.status_code,
            payload,
            endpoint=str(error.request.url),
            headers=dict(response.headers),
        )

    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return NetworkError(f"Network failure: {error}", details=details)

    message = str(error) or type(error).__name__
    return _infer_from_message(message, details)


def get_error_severity(error: DirectoryServiceError) -> ErrorSeverity:
    """Determine error severity based on error kind."""
    if error.kind in (ErrorKind.AUTHENTICATION_REQUIRED, ErrorKind.SERVICE_UNAVAILABLE):
        return ErrorSeverity.HIGH
    if error.kind in (ErrorKind.VALIDATION_FAILED, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED):
        return ErrorSeverity.LOW
    return ErrorSeverity.MEDIUM


def get_recovery_actions(error: DirectoryServiceError) -> List[str]:
    """Suggest next steps a user can take for an error."""
    kind = error.kind

    if kind == ErrorKind.AUTHENTICATION_REQUIRED:
        return ["Please log in again"]
    if kind in (ErrorKind.NETWORK_ERROR, ErrorKind.TIMEOUT):
        return ["Check your internet connection", "Try again"]
    if kind == ErrorKind.SERVICE_UNAVAILABLE:
        return ["Wait a few minutes and try again", "Contact support if the problem persists"]
    if kind == ErrorKind.RATE_LIMITED:
        return ["Wait a moment and try again"]
    if kind == ErrorKind.AUTHORIZATION_DENIED:
        return ["Contact your administrator for access"]
    if kind == ErrorKind.VALIDATION_FAILED:
        return ["Check your input and try again"]

    actions = ["Try again"] if error.retryable else []
    actions.append("Refresh the contact list")
    return actions


def log_error(error: DirectoryServiceError, operation: Optional[str] = None) -> None:
    """Log an error at a level matching its severity."""
    severity = get_error_severity(error)
    log = {
        ErrorSeverity.HIGH: logger.error,
        ErrorSeverity.MEDIUM: logger.warning,
        ErrorSeverity.LOW: logger.info,
    }[severity]

    log(
        "Directory request failed",
        operation=operation,
        kind=error.kind.value,
        error=error.message,
        user_message=error.user_message,
        retryable=error.retryable,
        severity=severity.value,
        status_code=error.status_code,
    )
