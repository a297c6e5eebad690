"""Compound filter: property filters first, then keyword matching.

Filters are strict. An explicit property filter that leaves nothing is a
valid answer and is never relaxed or retried.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import date
from typing import Optional

from taskrank.models import ParsedQuery, Task

from .time_context import matches_due_filter

logger = logging.getLogger(__name__)

TaskPredicate = Callable[[Task], bool]


def _priority_predicate(values: list) -> TaskPredicate:
    wanted = {v for v in values if isinstance(v, int)}
    any_priority = "any" in values
    no_priority = "none" in values

    def check(task: Task) -> bool:
        if task.priority is None:
            return no_priority
        return any_priority or task.priority in wanted

    return check


def _keyword_predicate(keywords: list[str]) -> TaskPredicate:
    lowered = [k.lower() for k in keywords]

    def check(task: Task) -> bool:
        text = task.text.lower()
        return any(keyword in text for keyword in lowered)

    return check


def skips_keyword_filter(parsed: ParsedQuery) -> bool:
    """True if the keyword stage should not run for this query.

    A vague query with a property filter narrows by its properties only.
    Without a property filter its keywords still apply.
    """
    if not parsed.keywords:
        return True
    return parsed.is_vague and parsed.has_property_filters


def build_stages(parsed: ParsedQuery, today: Optional[date] = None) -> list[tuple[str, TaskPredicate]]:
    """Ordered (name, predicate) stages for a parsed query.

    Args:
        parsed: The parsed query.
        today: Reference date for relative due filters.

    Returns:
        Only the stages the query actually asks for.
    """
    current = today or date.today()
    stages: list[tuple[str, TaskPredicate]] = []

    if parsed.priority is not None:
        stages.append(("priority", _priority_predicate(list(parsed.priority))))

    if parsed.status is not None:
        statuses = {s.lower() for s in parsed.status}
        stages.append(("status", lambda t: t.status_category.lower() in statuses))

    if parsed.due_date_filter is not None:
        token = parsed.due_date_filter
        stages.append(("due date", lambda t: matches_due_filter(token, t.due_date, current)))

    if parsed.due_date_range is not None:
        date_range = parsed.due_date_range
        stages.append(("due date range", lambda t: date_range.contains(t.due_date)))

    if parsed.tags is not None:
        tags = {tag.lower().lstrip("#") for tag in parsed.tags}
        stages.append(
            ("tags", lambda t: any(tag.lower().lstrip("#") in tags for tag in t.tags))
        )

    if parsed.folder is not None:
        folder = parsed.folder.lower()
        stages.append(("folder", lambda t: folder in t.folder.lower()))

    if not skips_keyword_filter(parsed):
        stages.append(("keywords", _keyword_predicate(parsed.keywords)))
    elif parsed.keywords:
        logger.debug("Keyword filter skipped for vague query with property filters")

    return stages


def filter_tasks(
    tasks: Sequence[Task], parsed: ParsedQuery, today: Optional[date] = None
) -> list[Task]:
    """Apply every active stage in order, logging the count after each.

    Args:
        tasks: Task snapshot (not modified).
        parsed: The parsed query.
        today: Reference date for relative due filters.

    Returns:
        Tasks that pass all stages, in their original order.
    """
    remaining = list(tasks)
    for name, predicate in build_stages(parsed, today):
        before = len(remaining)
        remaining = [task for task in remaining if predicate(task)]
        logger.debug("Filter %s: %d -> %d tasks", name, before, len(remaining))
        if not remaining:
            logger.info("Filter %s left no tasks", name)
            break
    return remaining
