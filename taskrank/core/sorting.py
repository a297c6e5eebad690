"""Multi-criteria sorting of scored tasks."""

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any, Callable

from taskrank.models import ParsedQuery, QueryType, ResolvedCriterion, ScoredTask, SortCriterion

from .scoring import normalize_status

logger = logging.getLogger(__name__)

# Priority used for tasks without one: sorts after P4
_NO_PRIORITY = 5

# Active work first, finished work last; unknown categories sort after these
_STATUS_ORDER = {"open": 1, "inprogress": 2, "completed": 3, "cancelled": 4}
_UNKNOWN_STATUS = 999


def _status_rank(status_category: str) -> int:
    return _STATUS_ORDER.get(normalize_status(status_category), _UNKNOWN_STATUS)


def _auto_criterion(query_type: QueryType, parsed: ParsedQuery) -> ResolvedCriterion:
    if query_type in ("keywords-only", "mixed"):
        return "relevance"
    if query_type == "properties-only":
        if parsed.has_due_date:
            return "dueDate"
        if parsed.has_priority:
            return "priority"
    return "dueDate"


def resolve_sort_order(
    order: Sequence[SortCriterion], query_type: QueryType, parsed: ParsedQuery
) -> list[ResolvedCriterion]:
    """Replace "auto" by a concrete criterion and drop repeats.

    Args:
        order: Configured or per-query sort order.
        query_type: Classification of the query.
        parsed: The parsed query (used to choose between dueDate and priority).

    Returns:
        Resolved criteria in order, each at most once.
    """
    resolved: list[ResolvedCriterion] = []
    for criterion in order:
        concrete = _auto_criterion(query_type, parsed) if criterion == "auto" else criterion
        if concrete not in resolved:
            resolved.append(concrete)
    return resolved


_KEYS: dict[str, Callable[[ScoredTask], Any]] = {
    "relevance": lambda t: -t.relevance_score,
    "dueDate": lambda t: (t.task.due_date is None, t.task.due_date or date.max),
    "priority": lambda t: t.task.priority or _NO_PRIORITY,
    "status": lambda t: _status_rank(t.task.status_category),
}


def sort_tasks(
    scored: Sequence[ScoredTask], order: Sequence[ResolvedCriterion]
) -> list[ScoredTask]:
    """Stable sort by the resolved criteria; ties keep their input order."""
    if not order:
        return list(scored)
    keys = [_KEYS[criterion] for criterion in order]
    return sorted(scored, key=lambda t: tuple(key(t) for key in keys))
