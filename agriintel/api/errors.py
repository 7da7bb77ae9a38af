"""
Service Error Taxonomy

Typed failures raised inside the request pipeline. Each carries a closed
error code, an optional HTTP status and a retryability flag consulted by the
retry executor.
"""

import asyncio
from enum import Enum
from typing import Any, Mapping, Optional

import aiohttp


class ErrorCode(str, Enum):
    """Closed set of error codes surfaced by the service layer."""
    BAD_REQUEST = "BAD_REQUEST"
    AUTH_ERROR = "AUTH_ERROR"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_CODES = frozenset({
    ErrorCode.NETWORK_ERROR,
    ErrorCode.TIMEOUT_ERROR,
    ErrorCode.RATE_LIMIT_ERROR,
    ErrorCode.SERVER_ERROR,
})


class ServiceError(Exception):
    """Base class for every failure produced by a service request."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status_code: Optional[int] = None,
        is_retryable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.status_code = status_code
        self.is_retryable = is_retryable

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, code={self.code.value}, "
            f"status_code={self.status_code}, is_retryable={self.is_retryable})"
        )


class NetworkError(ServiceError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message, ErrorCode.NETWORK_ERROR, None, True)
        self.original_error = original_error


class ServiceTimeoutError(ServiceError):
    """The request exceeded the configured timeout."""

    def __init__(self, message: str = "Request timeout"):
        super().__init__(message, ErrorCode.TIMEOUT_ERROR, 408, True)


class RateLimitError(ServiceError):
    """Too many requests, locally or as reported by the server."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message, ErrorCode.RATE_LIMIT_ERROR, 429, True)
        self.retry_after = retry_after


class AuthenticationError(ServiceError):
    """Credentials were missing or rejected."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, ErrorCode.AUTH_ERROR, 401, False)


# status -> (code, default message)
_STATUS_MAP = {
    400: (ErrorCode.BAD_REQUEST, "Bad request"),
    403: (ErrorCode.FORBIDDEN, "Access forbidden"),
    404: (ErrorCode.NOT_FOUND, "Resource not found"),
    500: (ErrorCode.SERVER_ERROR, "Server error"),
    502: (ErrorCode.SERVER_ERROR, "Server error"),
    503: (ErrorCode.SERVER_ERROR, "Server error"),
    504: (ErrorCode.SERVER_ERROR, "Server error"),
}


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a ``Retry-After`` header given in seconds.

    Args:
        value: Raw header value

    Returns:
        Wait time in seconds, or None if absent or not numeric
    """
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _body_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        for field_name in ("message", "error"):
            value = body.get(field_name)
            if isinstance(value, str) and value:
                return value
    return None


def error_from_response(
    status: int,
    headers: Optional[Mapping[str, str]] = None,
    body: Any = None
) -> ServiceError:
    """
    Map a non-2xx HTTP response onto the error taxonomy.

    A JSON body ``message`` (or ``error``) string replaces the default
    message for the status. Rate-limit errors keep "Rate limit exceeded"
    as a prefix so callers can always recognise them.

    Args:
        status: HTTP status code
        headers: Response headers
        body: Parsed JSON body, if any

    Returns:
        ServiceError subclass instance describing the failure
    """
    headers = headers or {}
    override = _body_message(body)

    if status == 401:
        return AuthenticationError(override or "Authentication required")

    if status == 429:
        return RateLimitError(
            f"Rate limit exceeded: {override}" if override else "Rate limit exceeded",
            retry_after=parse_retry_after(headers.get("Retry-After")),
        )

    if status in _STATUS_MAP:
        code, default_message = _STATUS_MAP[status]
        return ServiceError(
            override or default_message,
            code,
            status,
            is_retryable=code in RETRYABLE_CODES,
        )

    return ServiceError(
        override or f"HTTP {status}",
        ErrorCode.HTTP_ERROR,
        status,
        is_retryable=status >= 500,
    )


def normalize_error(error: BaseException) -> ServiceError:
    """
    Convert any exception raised during a request into a ServiceError.

    Args:
        error: Exception caught at the request boundary

    Returns:
        The error itself if already a ServiceError, otherwise its
        closest taxonomy equivalent
    """
    if isinstance(error, ServiceError):
        return error
    if isinstance(error, asyncio.TimeoutError):
        return ServiceTimeoutError()
    if isinstance(error, (aiohttp.ClientError, OSError)):
        return NetworkError(str(error) or type(error).__name__, error)
    return ServiceError(str(error) or "An unknown error occurred", ErrorCode.UNKNOWN_ERROR)
