"""engtasks_shared.observability — Structured log lines for CloudWatch.

Every invocation ends with one ``[OBSERVABILITY]`` JSON line so request
volume, latency and error codes can be queried with Logs Insights.
"""

from __future__ import annotations

import functools
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from engtasks_shared.http_utils import _path_method
from engtasks_shared.serialization import _now_iso

__all__ = ["_emit_structured_observability", "with_request_logging"]

logger = logging.getLogger(__name__)


def _emit_structured_observability(
    *,
    component: str,
    event: str,
    request_id: Optional[str] = None,
    latency_ms: Optional[int] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "timestamp": _now_iso(),
        "component": component,
        "event": event,
        "request_id": str(request_id or ""),
        "latency_ms": int(max(0, latency_ms or 0)),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str))


def _error_code_of(response: Dict[str, Any]) -> str:
    if int(response.get("statusCode") or 0) < 400:
        return ""
    try:
        body = json.loads(response.get("body") or "{}")
    except (TypeError, ValueError):
        return ""
    envelope = body.get("error_envelope") if isinstance(body, dict) else None
    return str((envelope or {}).get("code") or "")


def with_request_logging(component: str) -> Callable:
    """Decorate a Lambda handler so each call logs method, path, status and latency."""

    def decorator(handler: Callable[[Dict[str, Any], Any], Dict[str, Any]]):
        @functools.wraps(handler)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            started = time.monotonic()
            method, path = _path_method(event or {})
            response = handler(event, context)
            _emit_structured_observability(
                component=component,
                event="request_completed",
                request_id=getattr(context, "aws_request_id", ""),
                latency_ms=int((time.monotonic() - started) * 1000),
                error_code=_error_code_of(response),
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.get("statusCode"),
                },
            )
            return response

        return wrapper

    return decorator
