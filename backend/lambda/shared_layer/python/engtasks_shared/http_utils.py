"""engtasks_shared.http_utils — HTTP response helpers with CORS.

Standard response envelope, error formatting and API Gateway event
extraction used by the tasks API Lambda.
"""

from __future__ import annotations

import base64
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from engtasks_shared.config import CORS_ORIGIN
from engtasks_shared.errors import TaskApiError

__all__ = [
    "_cors_headers",
    "_error",
    "_error_from_exception",
    "_header",
    "_no_content",
    "_path_method",
    "_raw_body",
    "_response",
]

logger = logging.getLogger(__name__)

_DEFAULT_CODES = {
    400: "INVALID_INPUT",
    401: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    429: "RATE_LIMITED",
}


def _cors_headers() -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": CORS_ORIGIN,
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, X-Api-Key",
    }


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _response(
    status_code: int,
    payload: Any,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build a standard API Gateway proxy response with CORS headers."""
    return {
        "statusCode": status_code,
        "headers": {**_cors_headers(), "Content-Type": "application/json", **(headers or {})},
        "body": json.dumps(payload, default=_json_default),
    }


def _no_content(headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    return {
        "statusCode": 204,
        "headers": {**_cors_headers(), "Content-Type": "application/json", **(headers or {})},
        "body": "",
    }


def _error(
    status_code: int,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a standard error response.

    Args:
        status_code: HTTP status code.
        message: Client-safe error message.
        headers: Extra response headers (e.g. Retry-After).
        **extra: ``code`` / ``retryable`` overrides; anything else lands in
            ``error_envelope.details``.
    """
    code = str(extra.pop("code", "") or "").strip().upper()
    if not code:
        code = _DEFAULT_CODES.get(status_code, "INTERNAL_ERROR")
    retryable = bool(extra.pop("retryable", status_code >= 500 or status_code == 429))
    details = dict(extra)
    body: Dict[str, Any] = {
        "success": False,
        "error": message,
        "error_envelope": {
            "code": code,
            "message": message,
            "retryable": retryable,
            "details": details,
        },
    }
    return _response(status_code, body, headers=headers)


def _error_from_exception(exc: TaskApiError) -> Dict[str, Any]:
    return _error(
        exc.status_code,
        exc.message,
        headers=exc.headers,
        code=exc.code,
        retryable=exc.retryable,
        **exc.details,
    )


def _header(event: Dict[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup (API Gateway v1 keeps client casing)."""
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == wanted:
            return value
    return None


def _raw_body(event: Dict[str, Any]) -> Optional[str]:
    """Return the request body as text, decoding base64 payloads."""
    raw = event.get("body")
    if raw is None:
        return None
    if event.get("isBase64Encoded") and isinstance(raw, str):
        raw = base64.b64decode(raw).decode("utf-8")
    return raw


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    """Extract HTTP method and path from an API Gateway v1 or v2 event."""
    rc = event.get("requestContext") or {}
    http = rc.get("http") or {}
    method = (http.get("method") or event.get("httpMethod") or "GET").upper()
    path = event.get("rawPath") or http.get("path") or event.get("path") or "/"
    return method, path
