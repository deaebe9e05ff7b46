"""engtasks_shared.query_planner — Strategy selection for filtered task listing.

Three strategies:

    scan         no index filter and no dueDateBefore; one paginated scan page
    index_query  exactly one of assignee/status/priority; the index applies Limit
    filtered     anything else; pull pages from the preferred index (or a scan
                 when only dueDateBefore is set), apply the remaining
                 predicates and accumulate until ``limit`` matches or the
                 source runs dry

The tag filter never has an index and is always applied after the fetch.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from engtasks_shared import task_store
from engtasks_shared.task_store import TaskPage

__all__ = [
    "FILTERED",
    "INDEX_QUERY",
    "SCAN",
    "ListResult",
    "QueryPlan",
    "TaskFilters",
    "list_tasks",
    "matches_due_date",
    "matches_tag",
    "plan_query",
]

logger = logging.getLogger(__name__)

SCAN = "scan"
INDEX_QUERY = "index_query"
FILTERED = "filtered"

# Index preference for the filtered strategy.
_INDEX_PREFERENCE = ("assignee", "status", "priority")


@dataclass
class TaskFilters:
    assignee: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date_before: Optional[str] = None
    tag: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "TaskFilters":
        """Build filters from query string parameters; blank values mean unset."""

        def _get(name: str) -> Optional[str]:
            value = params.get(name)
            return value if value else None

        return cls(
            assignee=_get("assignee"),
            status=_get("status"),
            priority=_get("priority"),
            due_date_before=_get("dueDateBefore"),
            tag=_get("tag"),
        )

    def index_filters(self) -> Dict[str, str]:
        return {
            name: getattr(self, name)
            for name in _INDEX_PREFERENCE
            if getattr(self, name) is not None
        }


@dataclass
class QueryPlan:
    strategy: str
    index: Optional[str] = None
    value: Optional[str] = None
    # index-attribute equality checks still owed after the fetch
    residual: Dict[str, str] = field(default_factory=dict)


@dataclass
class ListResult:
    tasks: List[Dict[str, Any]]
    next_token: Optional[str] = None


def plan_query(filters: TaskFilters) -> QueryPlan:
    index_filters = filters.index_filters()
    if not index_filters and filters.due_date_before is None:
        return QueryPlan(strategy=SCAN)
    if len(index_filters) == 1 and filters.due_date_before is None:
        (index, value), = index_filters.items()
        return QueryPlan(strategy=INDEX_QUERY, index=index, value=value)

    index = next((name for name in _INDEX_PREFERENCE if name in index_filters), None)
    residual = {name: value for name, value in index_filters.items() if name != index}
    return QueryPlan(
        strategy=FILTERED,
        index=index,
        value=index_filters.get(index) if index else None,
        residual=residual,
    )


def _fetcher(plan: QueryPlan) -> Callable[[int, Optional[str]], TaskPage]:
    if plan.index is None:
        return lambda limit, token: task_store.scan_tasks(limit, token)
    query = {
        "assignee": task_store.query_tasks_by_assignee,
        "status": task_store.query_tasks_by_status,
        "priority": task_store.query_tasks_by_priority,
    }[plan.index]
    return lambda limit, token: query(plan.value, limit, token)


def _parse_instant(value: Any) -> Optional[dt.datetime]:
    """Parse a validated ISO 8601 date or date-time as UTC; date-only means midnight."""
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] if value.endswith("Z") else value
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def matches_due_date(task: Mapping[str, Any], due_date_before: Optional[str]) -> bool:
    """True when the task is due at or before the cutoff. No dueDate never matches."""
    if due_date_before is None:
        return True
    due = _parse_instant(task.get("dueDate"))
    cutoff = _parse_instant(due_date_before)
    if due is None or cutoff is None:
        return False
    return due <= cutoff


def matches_tag(task: Mapping[str, Any], tag: Optional[str]) -> bool:
    if tag is None:
        return True
    return tag in (task.get("tags") or [])


def _matches(task: Mapping[str, Any], plan: QueryPlan, filters: TaskFilters) -> bool:
    for name, value in plan.residual.items():
        if task.get(name) != value:
            return False
    return matches_due_date(task, filters.due_date_before) and matches_tag(task, filters.tag)


def list_tasks(
    filters: TaskFilters,
    limit: int,
    next_token: Optional[str] = None,
) -> ListResult:
    """Run the planned strategy and return at most ``limit`` tasks.

    Pages are fetched one after another; the filtered strategy stops as soon
    as ``limit`` matches are in hand. Its ``next_token`` is the store token of
    the last page consumed and is only returned when the page filled up, so
    remaining matches on that final page are not revisited.
    """
    plan = plan_query(filters)
    fetch = _fetcher(plan)
    logger.debug("list_tasks strategy=%s index=%s limit=%s", plan.strategy, plan.index, limit)

    if plan.strategy != FILTERED:
        page = fetch(limit, next_token)
        tasks = [task for task in page.items if matches_tag(task, filters.tag)]
        return ListResult(tasks=tasks, next_token=page.next_token)

    matched: List[Dict[str, Any]] = []
    token = next_token
    while True:
        page = fetch(limit, token)
        matched.extend(task for task in page.items if _matches(task, plan, filters))
        token = page.next_token
        if len(matched) >= limit or not token:
            break

    if len(matched) < limit:
        token = None
    return ListResult(tasks=matched[:limit], next_token=token)
