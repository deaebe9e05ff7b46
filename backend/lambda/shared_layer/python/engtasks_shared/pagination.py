"""engtasks_shared.pagination — Opaque continuation tokens.

A token is base64 of the JSON-encoded DynamoDB ``LastEvaluatedKey``. Clients
treat it as opaque; only the task store decodes it back into an
``ExclusiveStartKey``.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict

__all__ = ["decode_token", "encode_token", "is_well_formed"]


def encode_token(store_key: Dict[str, Any]) -> str:
    payload = json.dumps(store_key, separators=(",", ":"), sort_keys=True)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_token(token: str) -> Any:
    """Inverse of encode_token. Raises ValueError on a malformed token."""
    try:
        raw = base64.b64decode(token, validate=True)
        return json.loads(raw.decode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise ValueError("Invalid pagination token") from exc


def is_well_formed(token: Any) -> bool:
    """True when the token is canonical base64 whose payload parses as JSON.

    Canonical means decode-then-encode reproduces the input exactly, which
    rejects missing padding, URL-safe alphabets and embedded whitespace. The
    decoded key's shape is not checked here; DynamoDB rejects bad keys itself.
    """
    if not isinstance(token, str) or not token.strip():
        return False
    try:
        raw = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError):
        # non-ASCII input raises a bare ValueError
        return False
    if base64.b64encode(raw).decode("ascii") != token:
        return False
    try:
        json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return False
    return True
