"""
Service layer exceptions and error classification.
"""

from enum import Enum

import httpx


class ErrorClass(str, Enum):
    """Classes of fetch failures, each negatively cached with its own TTL."""

    NOT_FOUND = "NOT_FOUND"  # Resource confirmed absent upstream
    RATE_LIMITED = "RATE_LIMITED"  # Caller exceeded quota
    SERVER_ERROR = "SERVER_ERROR"  # Upstream 5xx
    NETWORK_ERROR = "NETWORK_ERROR"  # Transport failure, no response
    UNKNOWN = "UNKNOWN"


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class FetchError(ServiceError):
    """Fetcher call failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        network: bool = False,
        service_id: str | None = None,
    ):
        self.status_code = status_code
        self.network = network
        super().__init__(message, service_id=service_id)


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class RateLimitError(ServiceError):
    """Rate limit exceeded."""

    def __init__(self, service_id: str, retry_after: float | None = None):
        self.retry_after = retry_after
        msg = f"Rate limit exceeded for service '{service_id}'"
        if retry_after:
            msg += f", retry after {retry_after}s"
        super().__init__(msg, service_id=service_id)


class ServiceUnavailableError(ServiceError):
    """Service is temporarily unavailable."""

    pass


class RetryExhaustedError(ServiceError):
    """Operation was called again after using up all of its attempts."""

    def __init__(self, key: str, operation: str, attempts: int):
        self.key = key
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Retries exhausted for '{operation}' on '{key}' after {attempts} attempts"
        )


def _status_of(exc: BaseException) -> int | None:
    """Extract an HTTP-like status code from an exception, if it carries one."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code

    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value

    return None


def classify_error(exc: BaseException) -> ErrorClass:
    """Map a Fetcher failure onto an ErrorClass."""
    if isinstance(exc, RateLimitError):
        return ErrorClass.RATE_LIMITED
    if isinstance(exc, RequestTimeoutError):
        return ErrorClass.NETWORK_ERROR
    if isinstance(exc, ServiceUnavailableError):
        return ErrorClass.SERVER_ERROR

    status = _status_of(exc)
    if status is not None:
        if status in (404, 410):
            return ErrorClass.NOT_FOUND
        if status == 429:
            return ErrorClass.RATE_LIMITED
        if 500 <= status < 600:
            return ErrorClass.SERVER_ERROR
        return ErrorClass.UNKNOWN

    if isinstance(exc, FetchError) and exc.network:
        return ErrorClass.NETWORK_ERROR
    if isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError)):
        return ErrorClass.NETWORK_ERROR

    return ErrorClass.UNKNOWN
