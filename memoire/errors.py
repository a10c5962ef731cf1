# FILE: memoire/errors.py
"""
Error taxonomy for the memoire engine.

Every failure raised by the version lifecycle manager, the context store,
the batch planner and the job queue maps to exactly one ErrorType.
Detectors (staleness, sync) never raise: "stale" and "desynced" are normal
states reported through their result objects.

HTTP mapping (see to_http_exception):
    VALIDATION_ERROR        400  caller-correctable input
    UNAUTHORIZED            403  caller lacks scope over the entity
    NOT_FOUND               404
    FROZEN_VERSION          409  mutation of an immutable version
    JOB_IN_FLIGHT           409  a job for the same key is already running
    INSUFFICIENT_CONTEXT    422  not enough source material, user can fix it
    RATE_LIMIT_EXCEEDED     429
    SERVICE_UNAVAILABLE     503  generation provider unreachable / quota
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from fastapi import HTTPException


class ErrorType(str, Enum):
    """Canonical error kinds surfaced to callers."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    FROZEN_VERSION = "FROZEN_VERSION"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INSUFFICIENT_CONTEXT = "INSUFFICIENT_CONTEXT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    JOB_IN_FLIGHT = "JOB_IN_FLIGHT"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class MemoireError(Exception):
    """Base exception for memoire engine operations."""
    error_type: ErrorType = ErrorType.VALIDATION_ERROR
    status_code: int = 400


class ValidationError(MemoireError):
    """Malformed request."""
    error_type = ErrorType.VALIDATION_ERROR
    status_code = 400


class NotFoundError(MemoireError):
    """Referenced entity does not exist."""
    error_type = ErrorType.NOT_FOUND
    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        suffix = f" with id {resource_id}" if resource_id else ""
        super().__init__(f"{resource}{suffix} not found")


class UnauthorizedError(MemoireError):
    """Caller has no access to the entity."""
    error_type = ErrorType.UNAUTHORIZED
    status_code = 403

    def __init__(self, message: str = "You do not have access to this resource"):
        super().__init__(message)


class FrozenVersionError(MemoireError):
    """Attempted write on a frozen version."""
    error_type = ErrorType.FROZEN_VERSION
    status_code = 409

    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(
            f"Version {version_id} is frozen and cannot be modified. "
            f"Create a new version to continue."
        )


class RateLimitExceeded(MemoireError):
    """Admission control rejected the request."""
    error_type = ErrorType.RATE_LIMIT_EXCEEDED
    status_code = 429

    def __init__(self, user_id: str, retry_after_ms: int = 0):
        self.user_id = user_id
        self.retry_after_ms = retry_after_ms
        super().__init__("Rate limit exceeded. Please try again in a minute.")


class InsufficientContext(MemoireError):
    """Planning found too little source material to answer the questions."""
    error_type = ErrorType.INSUFFICIENT_CONTEXT
    status_code = 422

    def __init__(self, reason: str = ""):
        self.reason = reason
        message = (
            "Insufficient context to generate answers. Upload reference documents "
            "or complete the company profile."
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ServiceUnavailable(MemoireError):
    """External generation provider failed (unreachable, timeout, quota)."""
    error_type = ErrorType.SERVICE_UNAVAILABLE
    status_code = 503


class JobInFlightError(MemoireError):
    """A background job for the same key is already being processed."""
    error_type = ErrorType.JOB_IN_FLIGHT
    status_code = 409

    def __init__(self, job_key: str):
        self.job_key = job_key
        super().__init__(f"A generation job is already running for {job_key}")


# =============================================================================
# HTTP MAPPING
# =============================================================================

def to_http_exception(exc: MemoireError) -> HTTPException:
    """Translate a taxonomy error into the matching HTTPException."""
    headers = None
    if isinstance(exc, RateLimitExceeded) and exc.retry_after_ms:
        # Retry-After is in whole seconds, round up
        headers = {"Retry-After": str(max(1, -(-exc.retry_after_ms // 1000)))}

    return HTTPException(
        status_code=exc.status_code,
        detail={"error_type": exc.error_type.value, "message": str(exc)},
        headers=headers,
    )


__all__ = [
    "ErrorType",
    "MemoireError",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "FrozenVersionError",
    "RateLimitExceeded",
    "InsufficientContext",
    "ServiceUnavailable",
    "JobInFlightError",
    "to_http_exception",
]
