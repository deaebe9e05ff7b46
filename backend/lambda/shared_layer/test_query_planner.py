"""test_query_planner.py — Strategy selection and accumulation for task listing.

Store reads are replaced with scripted pages so each test controls exactly
what DynamoDB would return.

Run from shared_layer directory:
    PYTHONPATH=python python3 -m pytest test_query_planner.py -v
"""

from __future__ import annotations

import os
import sys
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from engtasks_shared import task_store
from engtasks_shared.query_planner import (
    FILTERED,
    INDEX_QUERY,
    SCAN,
    TaskFilters,
    list_tasks,
    matches_due_date,
    matches_tag,
    plan_query,
)
from engtasks_shared.task_store import TaskPage


def _t(task_id, **fields):
    return {"id": task_id, "status": "open", "priority": "P2", "tags": [], **fields}


class PlanQueryTests(unittest.TestCase):
    def test_no_filters_scans(self):
        self.assertEqual(plan_query(TaskFilters()).strategy, SCAN)

    def test_tag_alone_still_scans(self):
        self.assertEqual(plan_query(TaskFilters(tag="api")).strategy, SCAN)

    def test_single_index_filter_queries_directly(self):
        plan = plan_query(TaskFilters(priority="P0"))
        self.assertEqual(plan.strategy, INDEX_QUERY)
        self.assertEqual((plan.index, plan.value), ("priority", "P0"))

    def test_index_preference(self):
        plan = plan_query(TaskFilters(assignee="a@b.co", status="open", priority="P1"))
        self.assertEqual(plan.strategy, FILTERED)
        self.assertEqual(plan.index, "assignee")
        self.assertEqual(plan.residual, {"status": "open", "priority": "P1"})

        plan = plan_query(TaskFilters(status="open", priority="P1"))
        self.assertEqual(plan.index, "status")
        self.assertEqual(plan.residual, {"priority": "P1"})

    def test_due_date_alone_filters_a_scan(self):
        plan = plan_query(TaskFilters(due_date_before="2024-06-01"))
        self.assertEqual(plan.strategy, FILTERED)
        self.assertIsNone(plan.index)

    def test_index_plus_due_date_is_filtered(self):
        plan = plan_query(TaskFilters(status="blocked", due_date_before="2024-06-01"))
        self.assertEqual(plan.strategy, FILTERED)
        self.assertEqual(plan.index, "status")
        self.assertEqual(plan.residual, {})

    def test_from_params_treats_blank_as_unset(self):
        filters = TaskFilters.from_params({"status": "", "dueDateBefore": "2024-01-01", "tag": None})
        self.assertIsNone(filters.status)
        self.assertIsNone(filters.tag)
        self.assertEqual(filters.due_date_before, "2024-01-01")


class PredicateTests(unittest.TestCase):
    def test_due_date_inclusive_and_missing_never_matches(self):
        self.assertTrue(matches_due_date({"dueDate": "2024-03-01"}, "2024-03-01"))
        self.assertTrue(matches_due_date({"dueDate": "2024-02-28T23:59:59Z"}, "2024-03-01"))
        self.assertTrue(matches_due_date({"dueDate": "2024-03-01T00:00:00.000Z"}, "2024-03-01"))
        self.assertFalse(matches_due_date({"dueDate": "2024-03-01T00:00:01Z"}, "2024-03-01"))
        self.assertFalse(matches_due_date({"dueDate": None}, "2024-03-01"))
        self.assertFalse(matches_due_date({}, "2024-03-01"))

    def test_due_date_without_cutoff_matches_everything(self):
        self.assertTrue(matches_due_date({}, None))

    def test_tag(self):
        self.assertTrue(matches_tag({"tags": ["api", "db"]}, "db"))
        self.assertFalse(matches_tag({"tags": ["api"]}, "ap"))
        self.assertFalse(matches_tag({}, "api"))
        self.assertTrue(matches_tag({}, None))


class ListTasksTests(unittest.TestCase):
    def test_scan_passes_token_through_and_post_filters_tag(self):
        page = TaskPage(items=[_t("a", tags=["api"]), _t("b")], next_token="tok-2")
        with patch.object(task_store, "scan_tasks", return_value=page) as scan:
            result = list_tasks(TaskFilters(tag="api"), limit=2, next_token="tok-1")
        scan.assert_called_once_with(2, "tok-1")
        self.assertEqual([t["id"] for t in result.tasks], ["a"])
        self.assertEqual(result.next_token, "tok-2")

    def test_single_index_query_uses_limit(self):
        page = TaskPage(items=[_t("a", priority="P0")], next_token=None)
        with patch.object(task_store, "query_tasks_by_priority", return_value=page) as query:
            result = list_tasks(TaskFilters(priority="P0"), limit=5)
        query.assert_called_once_with("P0", 5, None)
        self.assertEqual(len(result.tasks), 1)
        self.assertIsNone(result.next_token)

    def test_two_filters_accumulate_across_pages(self):
        pages = [
            TaskPage(items=[_t("a", priority="P1"), _t("b", priority="P2")], next_token="t1"),
            TaskPage(items=[_t("c", priority="P1"), _t("d", priority="P1")], next_token="t2"),
        ]
        with patch.object(task_store, "query_tasks_by_status", side_effect=pages) as query:
            result = list_tasks(TaskFilters(status="open", priority="P1"), limit=2)

        self.assertEqual([t["id"] for t in result.tasks], ["a", "c"])
        self.assertTrue(all(t["status"] == "open" and t["priority"] == "P1" for t in result.tasks))
        self.assertEqual(result.next_token, "t2")
        self.assertEqual(
            [c.args for c in query.call_args_list],
            [("open", 2, None), ("open", 2, "t1")],
        )

    def test_exhausted_source_suppresses_token(self):
        pages = [
            TaskPage(items=[_t("a", priority="P1")], next_token="t1"),
            TaskPage(items=[_t("b", priority="P3")], next_token=None),
        ]
        with patch.object(task_store, "query_tasks_by_status", side_effect=pages):
            result = list_tasks(TaskFilters(status="open", priority="P1"), limit=5)
        self.assertEqual([t["id"] for t in result.tasks], ["a"])
        self.assertIsNone(result.next_token)

    def test_due_date_only_filters_scan_pages(self):
        pages = [
            TaskPage(items=[_t("a", dueDate="2024-01-10"), _t("b")], next_token="t1"),
            TaskPage(items=[_t("c", dueDate="2024-12-01")], next_token=None),
        ]
        with patch.object(task_store, "scan_tasks", side_effect=pages) as scan:
            result = list_tasks(TaskFilters(due_date_before="2024-06-01"), limit=10)
        self.assertEqual([t["id"] for t in result.tasks], ["a"])
        self.assertIsNone(result.next_token)
        self.assertEqual(scan.call_count, 2)

    def test_filtered_tag_joins_accumulation(self):
        pages = [
            TaskPage(items=[_t("a", assignee="x@y.io", tags=["ui"])], next_token="t1"),
            TaskPage(items=[_t("b", assignee="x@y.io", status="done", tags=["ui"])], next_token=None),
        ]
        with patch.object(task_store, "query_tasks_by_assignee", side_effect=pages):
            result = list_tasks(
                TaskFilters(assignee="x@y.io", status="done", tag="ui"), limit=1
            )
        self.assertEqual([t["id"] for t in result.tasks], ["b"])
        self.assertIsNone(result.next_token)


if __name__ == "__main__":
    unittest.main()
