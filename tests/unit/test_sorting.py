"""Tests for sort order resolution and multi-criteria sorting."""

from datetime import date

from taskrank.core.sorting import resolve_sort_order, sort_tasks
from taskrank.models import ParsedQuery, ScoredTask, Task


def _scored(task_id, relevance=0.0, priority=None, due=None, status="open") -> ScoredTask:
    task = Task(id=task_id, text=task_id, priority=priority, due_date=due, status_category=status)
    return ScoredTask(task=task, relevance_score=relevance)


class TestResolveSortOrder:
    """Tests for replacing "auto" by a concrete criterion."""

    def test_keywords_use_relevance(self):
        parsed = ParsedQuery(keywords=["bug"])
        assert resolve_sort_order(["auto"], "keywords-only", parsed) == ["relevance"]
        assert resolve_sort_order(["auto"], "mixed", parsed) == ["relevance"]

    def test_properties_prefer_due_date_then_priority(self):
        due = ParsedQuery(priority=[1], due_date_filter="today")
        assert resolve_sort_order(["auto"], "properties-only", due) == ["dueDate"]
        prio = ParsedQuery(priority=[1])
        assert resolve_sort_order(["auto"], "properties-only", prio) == ["priority"]
        status = ParsedQuery(status=["open"])
        assert resolve_sort_order(["auto"], "properties-only", status) == ["dueDate"]

    def test_empty_query_uses_due_date(self):
        assert resolve_sort_order(["auto"], "empty", ParsedQuery()) == ["dueDate"]

    def test_repeats_dropped(self):
        parsed = ParsedQuery(priority=[1])
        order = resolve_sort_order(["priority", "auto", "dueDate"], "properties-only", parsed)
        assert order == ["priority", "dueDate"]

    def test_status_kept(self):
        order = resolve_sort_order(["status", "auto"], "empty", ParsedQuery())
        assert order == ["status", "dueDate"]


class TestSortTasks:
    """Tests for the stable multi-key sort."""

    def test_relevance_descending(self):
        ranked = sort_tasks([_scored("a", 0.2), _scored("b", 1.2), _scored("c", 0.6)], ["relevance"])
        assert [t.task.id for t in ranked] == ["b", "c", "a"]

    def test_due_date_undated_last(self):
        items = [
            _scored("undated"),
            _scored("late", due=date(2025, 2, 1)),
            _scored("soon", due=date(2025, 1, 16)),
        ]
        assert [t.task.id for t in sort_tasks(items, ["dueDate"])] == ["soon", "late", "undated"]

    def test_priority_missing_last(self):
        items = [_scored("none"), _scored("p3", priority=3), _scored("p1", priority=1)]
        assert [t.task.id for t in sort_tasks(items, ["priority"])] == ["p1", "p3", "none"]

    def test_status_active_work_first(self):
        """Open, then in progress, then finished work; unknown categories last."""
        items = [
            _scored(name, status=name)
            for name in ("waiting", "cancelled", "completed", "in-progress", "open")
        ]
        ranked = sort_tasks(items, ["status"])
        assert [t.task.id for t in ranked] == [
            "open",
            "in-progress",
            "completed",
            "cancelled",
            "waiting",
        ]

    def test_secondary_criteria_break_ties(self):
        items = [
            _scored("a", 1.0, priority=3),
            _scored("b", 1.0, priority=1),
            _scored("c", 0.5, priority=1),
        ]
        ranked = sort_tasks(items, ["relevance", "priority"])
        assert [t.task.id for t in ranked] == ["b", "a", "c"]

    def test_full_ties_keep_input_order(self):
        items = [_scored(name, 1.0, priority=2) for name in ("x", "y", "z")]
        ranked = sort_tasks(items, ["relevance", "dueDate", "priority"])
        assert [t.task.id for t in ranked] == ["x", "y", "z"]

    def test_no_criteria_is_identity(self):
        items = [_scored("b"), _scored("a")]
        assert sort_tasks(items, []) == items
