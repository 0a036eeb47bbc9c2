"""
Shared error handling for the crate registry client.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Canonical error codes surfaced to collaborators."""
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"
    RATE_LIMIT_TIMEOUT = "RATE_LIMIT_TIMEOUT"
    TIMEOUT = "TIMEOUT"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    UPSTREAM_STATUS = "UPSTREAM_STATUS"
    DECODE_ERROR = "DECODE_ERROR"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class RegistryClientError(Exception):
    """Base exception for registry client failures."""

    retryable = False

    def __init__(self, code: ErrorKind, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        return self.code

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code.value,
            message=self.message,
            details=self.details
        )


class NotFoundError(RegistryClientError):
    """Crate or version does not exist on the registry."""

    def __init__(self, crate_name: str, version: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.crate_name = crate_name
        self.version = version
        if version is None:
            message = f"Crate '{crate_name}' not found"
        else:
            message = f"Version '{version}' not found for crate '{crate_name}'"
        merged = {"crate": crate_name, "version": version}
        merged.update(details or {})
        super().__init__(ErrorKind.NOT_FOUND, message, merged)


class InvalidRequestError(RegistryClientError):
    """Malformed input such as a bad crate name or batch directive."""

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.INVALID_REQUEST, message, details)


class RateLimitTimeoutError(RegistryClientError):
    """Rate limiter admission was not granted in time."""

    def __init__(self, timeout: float, details: Optional[Dict[str, Any]] = None):
        self.timeout = timeout
        super().__init__(
            ErrorKind.RATE_LIMIT_TIMEOUT,
            f"Rate limit admission not granted within {timeout:g}s",
            details
        )


class OperationTimeoutError(RegistryClientError):
    """Overall deadline for a logical operation was exceeded."""

    def __init__(self, timeout: float, details: Optional[Dict[str, Any]] = None):
        self.timeout = timeout
        super().__init__(ErrorKind.TIMEOUT, f"Operation timed out after {timeout:g}s", details)


class TransportError(RegistryClientError):
    """Connection-level failure talking to the registry."""

    retryable = True

    def __init__(self, message: str = "Transport error", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.TRANSPORT_ERROR, message, details)


class UpstreamStatusError(RegistryClientError):
    """Registry answered with a non-2xx status other than 404."""

    def __init__(self, status_code: int, message: str = "", details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        merged = {"status_code": status_code}
        merged.update(details or {})
        super().__init__(
            ErrorKind.UPSTREAM_STATUS,
            f"Registry returned {status_code}" + (f": {message}" if message else ""),
            merged
        )

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code == 429 or 500 <= self.status_code <= 599


class DecodeError(RegistryClientError):
    """Response body did not match the expected registry contract."""

    def __init__(self, message: str = "Malformed registry response", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.DECODE_ERROR, message, details)


class RetriesExhaustedError(RegistryClientError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, last_error: RegistryClientError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            ErrorKind.RETRIES_EXHAUSTED,
            f"Gave up after {attempts} attempts: {last_error.message}",
            {"attempts": attempts, "last_error": last_error.code.value}
        )


class InternalError(RegistryClientError):
    """Unexpected non-registry failure captured for a single batch item."""

    def __init__(self, cause: Exception, details: Optional[Dict[str, Any]] = None):
        self.cause = cause
        merged = {"error_type": type(cause).__name__}
        merged.update(details or {})
        super().__init__(ErrorKind.INTERNAL_ERROR, f"Unexpected {type(cause).__name__}: {cause}", merged)
