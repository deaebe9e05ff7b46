"""engtasks_shared.task_store — DynamoDB adapter for engineering tasks.

Single-table layout: every task lives at ``PK = SK = "TASK#<id>"``. Secondary
indexes key on ``assignee`` (GSI1), ``status`` (GSI2) and ``priority`` (GSI3).
Paginated reads return a :class:`TaskPage` whose ``next_token`` is the opaque
encoding of DynamoDB's ``LastEvaluatedKey``.

Every botocore failure is logged with the operation name and re-raised as
UpstreamUnavailable carrying a generic message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from engtasks_shared import config
from engtasks_shared.aws_clients import _get_ddb
from engtasks_shared.errors import UpstreamUnavailable
from engtasks_shared.pagination import decode_token, encode_token
from engtasks_shared.serialization import _deserialize, _serialize_item
from engtasks_shared.validation import ALL_STATUSES

__all__ = [
    "TASK_FIELDS",
    "TaskPage",
    "delete_task",
    "format_task",
    "get_task",
    "get_task_stats",
    "iter_tasks",
    "put_task",
    "query_tasks_by_assignee",
    "query_tasks_by_priority",
    "query_tasks_by_status",
    "scan_tasks",
    "task_key",
]

logger = logging.getLogger(__name__)

KEY_PREFIX = "TASK#"
UNAVAILABLE_MESSAGE = "Service temporarily unavailable"

TASK_FIELDS = (
    "id",
    "description",
    "assignee",
    "priority",
    "status",
    "dueDate",
    "tags",
    "createdAt",
    "updatedAt",
)


@dataclass
class TaskPage:
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_token: Optional[str] = None


def task_key(task_id: str) -> Dict[str, Dict[str, str]]:
    pk = f"{KEY_PREFIX}{task_id}"
    return {"PK": {"S": pk}, "SK": {"S": pk}}


def _upstream(operation: str, exc: Exception) -> UpstreamUnavailable:
    logger.error("[ERROR] DynamoDB %s failed: %s", operation, exc)
    return UpstreamUnavailable(UNAVAILABLE_MESSAGE, operation=operation)


def _start_key(next_token: Optional[str], operation: str) -> Optional[Dict[str, Any]]:
    if not next_token:
        return None
    try:
        return decode_token(next_token)
    except ValueError as exc:
        raise _upstream(operation, exc) from exc


def _page_from(resp: Dict[str, Any]) -> TaskPage:
    last_key = resp.get("LastEvaluatedKey")
    return TaskPage(
        items=[_deserialize(item) for item in resp.get("Items", [])],
        next_token=encode_token(last_key) if last_key else None,
    )


# ---------------------------------------------------------------------------
# Item operations
# ---------------------------------------------------------------------------


def get_task(task_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a task by id, or None when it does not exist."""
    try:
        resp = _get_ddb().get_item(
            TableName=config.TASKS_TABLE,
            Key=task_key(task_id),
            ConsistentRead=True,
        )
    except (BotoCoreError, ClientError) as exc:
        raise _upstream("get_task", exc) from exc
    item = resp.get("Item")
    return _deserialize(item) if item else None


def put_task(task: Dict[str, Any]) -> Dict[str, Any]:
    """Write the full task (create or overwrite) and return it."""
    pk = f"{KEY_PREFIX}{task['id']}"
    item = {"PK": pk, "SK": pk, **task}
    try:
        _get_ddb().put_item(TableName=config.TASKS_TABLE, Item=_serialize_item(item))
    except (BotoCoreError, ClientError) as exc:
        raise _upstream("put_task", exc) from exc
    return task


def delete_task(task_id: str) -> None:
    try:
        _get_ddb().delete_item(TableName=config.TASKS_TABLE, Key=task_key(task_id))
    except (BotoCoreError, ClientError) as exc:
        raise _upstream("delete_task", exc) from exc


# ---------------------------------------------------------------------------
# Paginated reads
# ---------------------------------------------------------------------------


def scan_tasks(limit: Optional[int] = None, next_token: Optional[str] = None) -> TaskPage:
    kwargs: Dict[str, Any] = {
        "TableName": config.TASKS_TABLE,
        "FilterExpression": "begins_with(PK, :prefix)",
        "ExpressionAttributeValues": {":prefix": {"S": KEY_PREFIX}},
    }
    if limit:
        kwargs["Limit"] = int(limit)
    start_key = _start_key(next_token, "scan_tasks")
    if start_key:
        kwargs["ExclusiveStartKey"] = start_key
    try:
        resp = _get_ddb().scan(**kwargs)
    except (BotoCoreError, ClientError) as exc:
        raise _upstream("scan_tasks", exc) from exc
    return _page_from(resp)


def _query_index(
    operation: str,
    index_name: str,
    attribute: str,
    value: str,
    limit: Optional[int],
    next_token: Optional[str],
) -> TaskPage:
    kwargs: Dict[str, Any] = {
        "TableName": config.TASKS_TABLE,
        "IndexName": index_name,
        "KeyConditionExpression": "#k = :v",
        "ExpressionAttributeNames": {"#k": attribute},
        "ExpressionAttributeValues": {":v": {"S": value}},
    }
    if limit:
        kwargs["Limit"] = int(limit)
    start_key = _start_key(next_token, operation)
    if start_key:
        kwargs["ExclusiveStartKey"] = start_key
    try:
        resp = _get_ddb().query(**kwargs)
    except (BotoCoreError, ClientError) as exc:
        raise _upstream(operation, exc) from exc
    return _page_from(resp)


def query_tasks_by_assignee(
    assignee: str, limit: Optional[int] = None, next_token: Optional[str] = None
) -> TaskPage:
    return _query_index(
        "query_tasks_by_assignee", config.ASSIGNEE_INDEX, "assignee", assignee, limit, next_token
    )


def query_tasks_by_status(
    status: str, limit: Optional[int] = None, next_token: Optional[str] = None
) -> TaskPage:
    return _query_index(
        "query_tasks_by_status", config.STATUS_INDEX, "status", status, limit, next_token
    )


def query_tasks_by_priority(
    priority: str, limit: Optional[int] = None, next_token: Optional[str] = None
) -> TaskPage:
    return _query_index(
        "query_tasks_by_priority", config.PRIORITY_INDEX, "priority", priority, limit, next_token
    )


def iter_tasks(assignee: Optional[str] = None) -> Iterator[Dict[str, Any]]:
    """Yield every task, following pagination to the end of the source."""
    next_token: Optional[str] = None
    while True:
        if assignee:
            page = query_tasks_by_assignee(assignee, next_token=next_token)
        else:
            page = scan_tasks(next_token=next_token)
        yield from page.items
        if not page.next_token:
            return
        next_token = page.next_token


def get_task_stats(assignee: Optional[str] = None) -> Dict[str, Any]:
    """Count tasks by status across the whole table, or one assignee's tasks."""
    by_status = {status: 0 for status in ALL_STATUSES}
    total = 0
    for task in iter_tasks(assignee):
        total += 1
        status = task.get("status")
        if status:
            by_status[status] = by_status.get(status, 0) + 1
    return {"total": total, "byStatus": by_status}


def format_task(item: Dict[str, Any]) -> Dict[str, Any]:
    """Project a stored item onto the public task shape (no storage keys)."""
    task = {name: item.get(name) for name in TASK_FIELDS}
    task["tags"] = list(task["tags"] or [])
    return task
