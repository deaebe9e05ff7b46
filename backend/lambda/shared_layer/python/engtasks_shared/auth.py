"""engtasks_shared.auth — Static API key authentication.

Clients send the key in the ``x-api-key`` header (name matched
case-insensitively). A rotation key and a comma-separated allowlist are
accepted alongside the active key.

Environment variables:
    API_KEY           — active key; with no key configured every request gets 500
    API_KEY_PREVIOUS  — optional rollover key accepted during rotation
    API_KEYS          — optional comma-separated allowlist (active + rollover)
"""

from __future__ import annotations

import hmac
import logging
import os
from typing import Any, Dict, Optional, Tuple

from engtasks_shared.errors import AuthError
from engtasks_shared.http_utils import _error, _header

__all__ = ["API_KEYS", "API_KEY_HEADER", "_authenticate", "_normalize_api_keys", "_verify_api_key"]

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def _normalize_api_keys(*raw_values: str) -> Tuple[str, ...]:
    """Return deduplicated, non-empty key values from scalar/csv env sources."""
    keys: list[str] = []
    seen: set[str] = set()
    for raw in raw_values:
        if not raw:
            continue
        for part in str(raw).split(","):
            key = part.strip()
            if not key or key in seen:
                continue
            seen.add(key)
            keys.append(key)
    return tuple(keys)


# ---------------------------------------------------------------------------
# Configuration (read from env; tests override the module attribute)
# ---------------------------------------------------------------------------

API_KEYS: Tuple[str, ...] = _normalize_api_keys(
    os.environ.get("API_KEY", ""),
    os.environ.get("API_KEY_PREVIOUS", ""),
    os.environ.get("API_KEYS", ""),
)


def _verify_api_key(event: Dict[str, Any]) -> str:
    """Return the presented key when it matches a configured key.

    Raises AuthError: 500 when no key is configured, 401 when the header is
    missing or matches nothing.
    """
    if not API_KEYS:
        logger.error("[ERROR] API_KEY is not configured")
        raise AuthError("Internal server error", status_code=500)

    presented = _header(event, API_KEY_HEADER)
    if not presented:
        raise AuthError("Missing API key")

    # compare against every key so timing does not reveal which one matched
    matched = False
    for key in API_KEYS:
        if hmac.compare_digest(presented.encode("utf-8"), key.encode("utf-8")):
            matched = True
    if not matched:
        raise AuthError("Invalid API key")
    return presented


def _authenticate(
    event: Dict[str, Any],
    *,
    error_fn=None,
) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """Authenticate a request by API key.

    Returns (principal, None) on success or (None, error_response) on failure.

    Args:
        event: API Gateway event dict.
        error_fn: Optional callable(status_code, message) -> response dict.
                  Defaults to the standard error envelope.
    """
    if error_fn is None:
        error_fn = _error
    try:
        api_key = _verify_api_key(event)
    except AuthError as exc:
        return None, error_fn(exc.status_code, exc.message)
    return {"auth_mode": "api-key", "api_key": api_key}, None
