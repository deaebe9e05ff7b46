"""engtasks_shared.serialization — DynamoDB serialization/deserialization.

TypeSerializer/TypeDeserializer wrappers and timestamp helpers.
"""

from __future__ import annotations

import datetime as dt
import time
from decimal import Decimal
from typing import Any, Dict

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

__all__ = [
    "_deserialize",
    "_now_iso",
    "_serialize",
    "_serialize_item",
    "_unix_now",
]

_SER = TypeSerializer()
_DESER = TypeDeserializer()


def _serialize(value: Any) -> Dict[str, Any]:
    """Serialize a Python value for DynamoDB."""
    if isinstance(value, float):
        value = Decimal(str(value))
    return _SER.serialize(value)


def _serialize_item(item: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Serialize a whole item, dropping None values.

    Index key attributes (assignee, status, priority) must be absent rather
    than NULL, otherwise DynamoDB rejects the write.
    """
    return {k: _serialize(v) for k, v in item.items() if v is not None}


def _deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Deserialize a DynamoDB item to a plain Python dict."""
    out: Dict[str, Any] = {}
    for k, v in item.items():
        val = _DESER.deserialize(v)
        if isinstance(val, Decimal):
            val = int(val) if val == int(val) else float(val)
        out[k] = val
    return out


def _now_iso() -> str:
    """Current UTC timestamp, ISO 8601 with millisecond precision and Z suffix."""
    now = dt.datetime.now(dt.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _unix_now() -> int:
    return int(time.time())
