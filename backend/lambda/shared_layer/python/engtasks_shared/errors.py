"""engtasks_shared.errors — Exception taxonomy for the tasks API.

Each exception carries the HTTP status, envelope code and retryability the
router needs to build an error response. Handlers raise; the router converts.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "AuthError",
    "ConflictError",
    "NotFoundError",
    "PayloadTooLarge",
    "RateLimitExceeded",
    "TaskApiError",
    "UpstreamUnavailable",
    "ValidationError",
]


class TaskApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        **details: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = dict(headers or {})
        self.details = details


class AuthError(TaskApiError):
    """Missing or mismatched API key (401), or an unconfigured secret (500)."""

    status_code = 401
    code = "PERMISSION_DENIED"


class ValidationError(TaskApiError):
    status_code = 400
    code = "INVALID_INPUT"

    def __init__(self, errors, **kwargs: Any) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(", ".join(self.errors), **kwargs)


class NotFoundError(TaskApiError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(TaskApiError):
    status_code = 409
    code = "CONFLICT"


class PayloadTooLarge(TaskApiError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"


class RateLimitExceeded(TaskApiError):
    status_code = 429
    code = "RATE_LIMITED"
    retryable = True


class UpstreamUnavailable(TaskApiError):
    """DynamoDB failed; the message is always generic."""

    status_code = 503
    code = "UPSTREAM_ERROR"
    retryable = True
