"""tasks_api/lambda_function.py — Engineering Tasks CRUD API

Single Lambda behind API Gateway serving the engineering task tracker.

Routes (optionally prefixed with /api/v1):
  GET    /health                   — liveness probe (no auth, not rate limited)
  POST   /tasks                    — create task
  GET    /tasks                    — list tasks (assignee, status, priority,
                                     dueDateBefore, tag, limit, nextToken)
  GET    /tasks/stats              — task counts by status (optional assignee)
  POST   /tasks/batch-status       — set status on up to 25 tasks
  GET    /tasks/{id}               — get task
  PUT    /tasks/{id}               — update task
  DELETE /tasks/{id}               — delete task
  POST   /tasks/{id}/archive       — archive task
  POST   /tasks/{id}/restore       — restore archived task
  OPTIONS *                        — CORS preflight

Auth:
  x-api-key header, checked against API_KEY / API_KEY_PREVIOUS / API_KEYS.

Environment variables:
  TASKS_TABLE                default: engineering-tasks
  DYNAMODB_REGION            default: us-west-2
  API_KEY                    (required)
  RATE_LIMIT_ENABLED         default: true
  RATE_LIMIT_MAX_REQUESTS    default: 100
  RATE_LIMIT_WINDOW_SECONDS  default: 60
  LOG_LEVEL                  default: INFO
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import unquote

from engtasks_shared import task_store
from engtasks_shared.auth import _authenticate
from engtasks_shared.config import (
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
)
from engtasks_shared.errors import (
    ConflictError,
    NotFoundError,
    PayloadTooLarge,
    TaskApiError,
    UpstreamUnavailable,
    ValidationError,
)
from engtasks_shared.http_utils import (
    _error,
    _error_from_exception,
    _no_content,
    _path_method,
    _raw_body,
    _response,
)
from engtasks_shared.observability import with_request_logging
from engtasks_shared.query_planner import TaskFilters, list_tasks
from engtasks_shared.rate_limiter import SlidingWindowRateLimiter
from engtasks_shared.sanitize import (
    contains_prototype_pollution_keys,
    has_prototype_pollution,
    sanitize_string_fields,
    strip_html_tags,
    validate_request_body_size,
)
from engtasks_shared.serialization import _now_iso
from engtasks_shared.validation import (
    ARCHIVED_STATUS,
    DEFAULT_PRIORITY,
    DEFAULT_STATUS,
    parse_limit,
    validate_batch_status,
    validate_list_params,
    validate_task_ids,
    validate_task_input,
)

logger = logging.getLogger(__name__)

COMPONENT = "tasks_api"
UNAVAILABLE_MESSAGE = "Service temporarily unavailable"
FORBIDDEN_KEYS_MESSAGE = "Request body contains forbidden keys"
INVALID_JSON_MESSAGE = "Invalid JSON in request body"

# Fields a client may set on create/update. Everything else in a body is ignored.
_MUTABLE_FIELDS = ("description", "assignee", "priority", "status", "dueDate", "tags")
# Optional fields an explicit null clears. A null priority or status is ignored.
_CLEARABLE_FIELDS = {"assignee": None, "dueDate": None, "tags": []}

# Per-API-key request windows, kept for the life of the execution environment.
_rate_limiter = SlidingWindowRateLimiter(
    max_requests=RATE_LIMIT_MAX_REQUESTS,
    window_seconds=RATE_LIMIT_WINDOW_SECONDS,
)


# ---------------------------------------------------------------------------
# Request body handling
# ---------------------------------------------------------------------------


def _parse_json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Size check, raw pollution scan, parse, shape check, then sanitize."""
    try:
        raw = _raw_body(event)
    except ValueError:
        raise ValidationError(INVALID_JSON_MESSAGE)

    size_err = validate_request_body_size(raw)
    if size_err:
        raise PayloadTooLarge(size_err)
    if contains_prototype_pollution_keys(raw):
        raise ValidationError(FORBIDDEN_KEYS_MESSAGE)

    try:
        body = json.loads(raw or "{}")
    except (ValueError, RecursionError):
        raise ValidationError(INVALID_JSON_MESSAGE)
    if not isinstance(body, dict):
        raise ValidationError("Invalid request body format")
    # the walks below recurse per nesting level, like the decoder
    try:
        if has_prototype_pollution(body):
            raise ValidationError(FORBIDDEN_KEYS_MESSAGE)
        return sanitize_string_fields(body)
    except RecursionError:
        raise ValidationError(INVALID_JSON_MESSAGE)


def _clean_task_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    """Keep client-settable fields, strip markup from the description."""
    fields = {name: body[name] for name in _MUTABLE_FIELDS if name in body}
    if isinstance(fields.get("description"), str):
        fields["description"] = strip_html_tags(fields["description"])
    if fields.get("assignee") == "":
        fields["assignee"] = None
    return fields


def _require_task(task_id: str) -> Dict[str, Any]:
    task = task_store.get_task(task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_health() -> Dict:
    return _response(200, {"status": "healthy", "timestamp": _now_iso()})


def _handle_create(event: Dict[str, Any]) -> Dict:
    fields = _clean_task_fields(_parse_json_body(event))
    result = validate_task_input(fields)
    if not result.valid:
        raise ValidationError(result.errors)

    now = _now_iso()
    task = {
        "id": str(uuid.uuid4()),
        "description": fields["description"],
        "assignee": fields.get("assignee"),
        "priority": fields.get("priority") or DEFAULT_PRIORITY,
        "status": fields.get("status") or DEFAULT_STATUS,
        "dueDate": fields.get("dueDate"),
        "tags": list(fields.get("tags") or []),
        "createdAt": now,
        "updatedAt": now,
    }
    task_store.put_task(task)
    logger.info("[INFO] Created task %s", task["id"])
    return _response(201, task_store.format_task(task))


def _handle_get(task_id: str) -> Dict:
    return _response(200, task_store.format_task(_require_task(task_id)))


def _handle_update(task_id: str, event: Dict[str, Any]) -> Dict:
    body = _parse_json_body(event)
    existing = _require_task(task_id)
    fields = _clean_task_fields(body)

    merged = {"description": existing.get("description"), **fields}
    result = validate_task_input(merged)
    if not result.valid:
        raise ValidationError(result.errors)

    if fields.get("status") is not None and existing.get("status") == ARCHIVED_STATUS:
        raise ConflictError("Task is archived; restore it before changing status")

    updated = dict(existing)
    for name, value in fields.items():
        if value is None:
            if name in _CLEARABLE_FIELDS:
                updated[name] = _CLEARABLE_FIELDS[name]
            continue
        updated[name] = value
    updated["id"] = existing["id"]
    updated["createdAt"] = existing.get("createdAt")
    updated["updatedAt"] = _now_iso()

    task_store.put_task(task_store.format_task(updated))
    return _response(200, task_store.format_task(updated))


def _handle_delete(task_id: str) -> Dict:
    _require_task(task_id)
    task_store.delete_task(task_id)
    logger.info("[INFO] Deleted task %s", task_id)
    return _no_content()


def _set_status(task: Dict[str, Any], status: str, now: Optional[str] = None) -> Dict[str, Any]:
    updated = task_store.format_task(task)
    updated["status"] = status
    updated["updatedAt"] = now or _now_iso()
    task_store.put_task(updated)
    return updated


def _handle_archive(task_id: str) -> Dict:
    task = _require_task(task_id)
    if task.get("status") == ARCHIVED_STATUS:
        raise ConflictError("Task is already archived")
    return _response(200, _set_status(task, ARCHIVED_STATUS))


def _handle_restore(task_id: str) -> Dict:
    task = _require_task(task_id)
    if task.get("status") != ARCHIVED_STATUS:
        raise ConflictError("Task is not archived")
    return _response(200, _set_status(task, DEFAULT_STATUS))


def _handle_batch_status(event: Dict[str, Any]) -> Dict:
    body = _parse_json_body(event)
    task_ids = body.get("taskIds")
    status = body.get("status")

    err = validate_task_ids(task_ids) or validate_batch_status(status)
    if err:
        raise ValidationError(err)

    # Every task must exist (and be active) before the first write.
    existing = []
    for task_id in task_ids:
        task = task_store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        if task.get("status") == ARCHIVED_STATUS:
            raise ConflictError(f"Task is archived: {task_id}")
        existing.append(task)

    now = _now_iso()
    updated = [_set_status(task, status, now) for task in existing]
    logger.info("[INFO] Batch status=%s applied to %d tasks", status, len(updated))
    return _response(200, {"updated": len(updated), "tasks": updated})


def _handle_list(query_params: Dict[str, Any]) -> Dict:
    result = validate_list_params(query_params)
    if not result.valid:
        raise ValidationError(result.errors)

    listing = list_tasks(
        TaskFilters.from_params(query_params),
        limit=parse_limit(query_params.get("limit")),
        next_token=query_params.get("nextToken") or None,
    )
    payload: Dict[str, Any] = {"tasks": [task_store.format_task(t) for t in listing.tasks]}
    if listing.next_token:
        payload["nextToken"] = listing.next_token
    return _response(200, payload)


def _handle_stats(query_params: Dict[str, Any]) -> Dict:
    assignee = query_params.get("assignee") or None
    return _response(200, task_store.get_task_stats(assignee))


# ---------------------------------------------------------------------------
# Failure mapping
# ---------------------------------------------------------------------------

# Read routes report a retryable 503; everything else a labelled 500.
_READ_OPERATIONS = frozenset({"get", "list"})
_FAILURE_LABELS = {
    "create": "creating task",
    "update": "updating task",
    "delete": "deleting task",
    "archive": "archiving task",
    "restore": "restoring task",
    "batch_status": "batch updating tasks",
    "stats": "getting task stats",
}


def _failure_response(operation: str) -> Dict:
    if operation in _READ_OPERATIONS:
        return _error(503, UNAVAILABLE_MESSAGE)
    return _error(500, f"Internal server error: {_FAILURE_LABELS[operation]}")


def _run(operation: str, handler: Callable[[], Dict]) -> Dict:
    try:
        return handler()
    except UpstreamUnavailable:
        return _failure_response(operation)
    except TaskApiError as exc:
        return _error_from_exception(exc)
    except Exception:
        logger.exception("[ERROR] Unhandled error during %s", operation)
        return _failure_response(operation)


# ---------------------------------------------------------------------------
# Path parsing & routing
# ---------------------------------------------------------------------------

# Route patterns, most specific first
_RE_HEALTH = re.compile(r"^(?:/api/v1)?/health/?$")
_RE_STATS = re.compile(r"^(?:/api/v1)?/tasks/stats/?$")
_RE_BATCH = re.compile(r"^(?:/api/v1)?/tasks/batch-status/?$")
_RE_TASK_ACTION = re.compile(r"^(?:/api/v1)?/tasks/(?P<id>[^/]*)/(?P<action>archive|restore)/?$")
_RE_TASK = re.compile(r"^(?:/api/v1)?/tasks/(?P<id>[^/]*)$")
_RE_COLLECTION = re.compile(r"^(?:/api/v1)?/tasks/?$")

_TASK_METHODS = {"GET": "get", "PUT": "update", "DELETE": "delete"}


def _task_id(event: Dict[str, Any], match: "re.Match") -> str:
    path_params = event.get("pathParameters") or {}
    raw = path_params.get("id")
    if raw is None:
        raw = match.group("id")
    return unquote(str(raw)).strip()


def _resolve_route(
    method: str, path: str, event: Dict[str, Any]
) -> Tuple[Optional[str], Optional[str], Optional[Dict]]:
    """Return (operation, task_id, None) or (None, None, error_response)."""
    if _RE_COLLECTION.match(path):
        if method == "POST":
            return "create", None, None
        if method == "GET":
            return "list", None, None
        return None, None, _error(405, f"Method {method} not allowed. Use GET or POST.")

    if _RE_STATS.match(path):
        if method == "GET":
            return "stats", None, None
        return None, None, _error(405, f"Method {method} not allowed. Use GET.")

    if _RE_BATCH.match(path):
        if method == "POST":
            return "batch_status", None, None
        return None, None, _error(405, f"Method {method} not allowed. Use POST.")

    m_action = _RE_TASK_ACTION.match(path)
    if m_action:
        if method == "POST":
            return m_action.group("action"), _task_id(event, m_action), None
        return None, None, _error(405, f"Method {method} not allowed. Use POST.")

    m_task = _RE_TASK.match(path)
    if m_task:
        operation = _TASK_METHODS.get(method)
        if operation:
            return operation, _task_id(event, m_task), None
        return None, None, _error(405, f"Method {method} not allowed. Use GET, PUT or DELETE.")

    return None, None, _error(404, "Route not found")


def _check_rate_limit(api_key: str) -> Tuple[Dict[str, str], Optional[Dict]]:
    """Return (headers for the response, 429 response when over the limit)."""
    if not RATE_LIMIT_ENABLED:
        return {}, None
    decision = _rate_limiter.check(api_key)
    if decision.allowed:
        return decision.headers(), None
    logger.warning("[WARNING] Rate limit exceeded; retry after %ss", decision.retry_after)
    return {}, _error(
        429,
        "Rate limit exceeded",
        headers=decision.headers(),
        retry_after=decision.retry_after,
    )


def _dispatch(operation: str, task_id: Optional[str], event: Dict[str, Any]) -> Dict:
    query_params = event.get("queryStringParameters") or {}
    handlers: Dict[str, Callable[[], Dict]] = {
        "create": lambda: _handle_create(event),
        "list": lambda: _handle_list(query_params),
        "stats": lambda: _handle_stats(query_params),
        "batch_status": lambda: _handle_batch_status(event),
        "get": lambda: _handle_get(task_id),
        "update": lambda: _handle_update(task_id, event),
        "delete": lambda: _handle_delete(task_id),
        "archive": lambda: _handle_archive(task_id),
        "restore": lambda: _handle_restore(task_id),
    }
    return _run(operation, handlers[operation])


@with_request_logging(COMPONENT)
def lambda_handler(event: Dict, context: Any) -> Dict:
    method, path = _path_method(event)

    # CORS preflight
    if method == "OPTIONS":
        return _no_content()

    if _RE_HEALTH.match(path):
        if method != "GET":
            return _error(405, f"Method {method} not allowed. Use GET.")
        return _handle_health()

    operation, task_id, route_err = _resolve_route(method, path, event)
    if route_err:
        return route_err

    principal, auth_err = _authenticate(event)
    if auth_err:
        return auth_err

    limit_headers, limited = _check_rate_limit(principal["api_key"])
    if limited:
        return limited

    if task_id is not None and not task_id:
        response = _error(400, "Task ID is required")
    else:
        response = _dispatch(operation, task_id, event)
    response["headers"].update(limit_headers)
    return response
