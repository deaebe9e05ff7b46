"""engtasks_shared.validation — Task schema and request parameter validation.

Field validators each return an error message or None. Composite validators
run every field rule unconditionally and collect the failures, so a client
sees every problem with a request in one response.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from engtasks_shared.pagination import is_well_formed

__all__ = [
    "ALL_STATUSES",
    "ARCHIVED_STATUS",
    "DEFAULT_LIMIT",
    "DEFAULT_PRIORITY",
    "DEFAULT_STATUS",
    "MAX_ASSIGNEE_LENGTH",
    "MAX_BATCH_SIZE",
    "MAX_DESCRIPTION_LENGTH",
    "MAX_LIMIT",
    "MAX_TAGS_PER_TASK",
    "MAX_TAG_LENGTH",
    "TAG_PATTERN",
    "VALID_PRIORITIES",
    "VALID_STATUSES",
    "ValidationResult",
    "parse_limit",
    "validate_assignee",
    "validate_batch_status",
    "validate_date_format",
    "validate_description",
    "validate_limit",
    "validate_list_params",
    "validate_next_token",
    "validate_priority",
    "validate_status",
    "validate_status_filter",
    "validate_tag_filter",
    "validate_tags",
    "validate_task_ids",
    "validate_task_input",
]

VALID_PRIORITIES = ("P0", "P1", "P2", "P3", "P4")
# Input-settable statuses. "archived" is only reachable via archive/restore.
VALID_STATUSES = ("open", "in-progress", "blocked", "done")
ARCHIVED_STATUS = "archived"
ALL_STATUSES = VALID_STATUSES + (ARCHIVED_STATUS,)
DEFAULT_PRIORITY = "P2"
DEFAULT_STATUS = "open"

MAX_DESCRIPTION_LENGTH = 1000
MAX_ASSIGNEE_LENGTH = 255
MAX_TAGS_PER_TASK = 5
MAX_TAG_LENGTH = 50
MAX_BATCH_SIZE = 25
DEFAULT_LIMIT = 20
MIN_LIMIT = 1
MAX_LIMIT = 100

TAG_PATTERN = re.compile(r"[a-z0-9-]+")
_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_ISO8601_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})"
    r"(?:T([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.[0-9]{3})?Z?)?"
)

_DATE_FORMAT_ERROR = "Date must be in ISO 8601 format (YYYY-MM-DD or YYYY-MM-DDTHH:mm:ss.sssZ)"
_INVALID_DATE_ERROR = "Invalid date value"
_TAG_PATTERN_ERROR = "Tag must contain only lowercase letters, numbers, and hyphens"
_NEXT_TOKEN_ERROR = "Invalid nextToken parameter"


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------


def validate_description(description: Any) -> Optional[str]:
    if description is None:
        return "Description is required"
    if not isinstance(description, str):
        return "Description must be a string"
    if not description.strip():
        return "Description cannot be empty or whitespace only"
    if len(description) > MAX_DESCRIPTION_LENGTH:
        return f"Description must not exceed {MAX_DESCRIPTION_LENGTH} characters"
    return None


def validate_priority(priority: Any) -> Optional[str]:
    if priority not in VALID_PRIORITIES:
        return f"Priority must be one of: {', '.join(VALID_PRIORITIES)}"
    return None


def validate_status(status: Any) -> Optional[str]:
    if status not in VALID_STATUSES:
        return f"Status must be one of: {', '.join(VALID_STATUSES)}"
    return None


def validate_status_filter(status: Any) -> Optional[str]:
    """Status as a list filter: archived tasks can be listed, not set."""
    if status not in ALL_STATUSES:
        return f"Status must be one of: {', '.join(ALL_STATUSES)}"
    return None


def validate_date_format(value: Any) -> Optional[str]:
    """Check ISO 8601 shape, then that the date actually exists.

    Calendar overflow such as 2024-02-30 or 2023-02-29 is rejected rather
    than rolled forward into the next month.
    """
    if not isinstance(value, str):
        return "Date must be a string"
    match = _ISO8601_RE.fullmatch(value)
    if match is None:
        return _DATE_FORMAT_ERROR

    year, month, day = (int(part) for part in match.group(1, 2, 3))
    try:
        dt.date(year, month, day)
    except ValueError:
        return _INVALID_DATE_ERROR

    if match.group(4) is not None:
        hour, minute, second = (int(part) for part in match.group(4, 5, 6))
        if hour > 23 or minute > 59 or second > 59:
            return _INVALID_DATE_ERROR
    return None


def validate_assignee(assignee: Any) -> Optional[str]:
    if not isinstance(assignee, str):
        return "Assignee must be a string"
    if len(assignee) > MAX_ASSIGNEE_LENGTH:
        return f"Assignee must not exceed {MAX_ASSIGNEE_LENGTH} characters"
    if _EMAIL_RE.fullmatch(assignee) is None:
        return "Assignee must be a valid email address"
    return None


def _validate_tag(tag: Any) -> Optional[str]:
    if not isinstance(tag, str):
        return "Each tag must be a string"
    if not tag:
        return "Tag cannot be empty"
    if len(tag) > MAX_TAG_LENGTH:
        return f"Tag must not exceed {MAX_TAG_LENGTH} characters"
    if TAG_PATTERN.fullmatch(tag) is None:
        return _TAG_PATTERN_ERROR
    return None


def validate_tags(tags: Any) -> Optional[str]:
    if not isinstance(tags, list):
        return "Tags must be an array"
    if len(tags) > MAX_TAGS_PER_TASK:
        return f"Maximum {MAX_TAGS_PER_TASK} tags allowed per task"
    for tag in tags:
        err = _validate_tag(tag)
        if err:
            return err
    return None


def validate_tag_filter(tag: Any) -> Optional[str]:
    if not isinstance(tag, str) or not tag.strip():
        return "Tag filter must be a non-empty string"
    return _validate_tag(tag)


# ---------------------------------------------------------------------------
# Composite validators
# ---------------------------------------------------------------------------

_OPTIONAL_FIELD_RULES = (
    ("priority", validate_priority),
    ("status", validate_status),
    ("dueDate", validate_date_format),
    ("assignee", validate_assignee),
    ("tags", validate_tags),
)


def validate_task_input(data: Mapping[str, Any]) -> ValidationResult:
    """Validate a create payload or the merged view of an update.

    Description is always required; the other fields are checked only when
    present and non-null.
    """
    result = ValidationResult()
    err = validate_description(data.get("description"))
    if err:
        result.errors.append(err)
    for name, rule in _OPTIONAL_FIELD_RULES:
        value = data.get(name)
        if value is None:
            continue
        err = rule(value)
        if err:
            result.errors.append(err)
    return result


def validate_limit(limit: Any) -> Optional[str]:
    if isinstance(limit, bool):
        return "Limit must be a number"
    try:
        number = float(limit.strip() if isinstance(limit, str) else limit)
    except (TypeError, ValueError):
        return "Limit must be a number"
    if math.isnan(number):
        return "Limit must be a number"
    if not number.is_integer():
        return "Limit must be an integer"
    if number < MIN_LIMIT:
        return f"Limit must be at least {MIN_LIMIT}"
    if number > MAX_LIMIT:
        return f"Limit must not exceed {MAX_LIMIT}"
    return None


def parse_limit(raw: Any, default: int = DEFAULT_LIMIT) -> int:
    """Coerce an already-validated limit; absent or blank means the default."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    return int(float(raw))


def validate_next_token(next_token: Any) -> Optional[str]:
    if not is_well_formed(next_token):
        return _NEXT_TOKEN_ERROR
    return None


def validate_list_params(params: Mapping[str, Any]) -> ValidationResult:
    """Validate list-tasks query parameters (filters plus pagination).

    An empty value means the parameter is unset, except for nextToken where an
    empty token is malformed.
    """
    result = ValidationResult()
    checks = (
        ("priority", validate_priority),
        ("status", validate_status_filter),
        ("dueDateBefore", validate_date_format),
        ("tag", validate_tag_filter),
        ("limit", validate_limit),
        ("nextToken", validate_next_token),
    )
    for name, rule in checks:
        value = params.get(name)
        if value is None or value == "":
            if name == "nextToken" and value == "":
                result.errors.append(_NEXT_TOKEN_ERROR)
            continue
        err = rule(value)
        if err:
            result.errors.append(err)
    return result


def validate_task_ids(task_ids: Any) -> Optional[str]:
    if not isinstance(task_ids, list):
        return "taskIds must be an array"
    if not task_ids:
        return "taskIds array cannot be empty"
    if len(task_ids) > MAX_BATCH_SIZE:
        return f"taskIds array cannot exceed {MAX_BATCH_SIZE} items"
    for task_id in task_ids:
        if not isinstance(task_id, str) or not task_id.strip():
            return "Each taskId must be a non-empty string"
    return None


def validate_batch_status(status: Any) -> Optional[str]:
    if status is None:
        return "status is required"
    if not isinstance(status, str):
        return "status must be a string"
    if status not in VALID_STATUSES:
        return f"status must be one of: {', '.join(VALID_STATUSES)}"
    return None


