"""Comprehensive scorer: relevance, due-date urgency, priority and status.

Each component is switched on by a 0/1 activation coefficient: on when the
query asks for that kind of property, or when the active sort order depends
on it. Main weights (R/D/P/S) then scale the active components.

    final = R * rel * cR + D * due * cD + P * prio * cP + S * status * cS
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional

from taskrank.config import Settings
from taskrank.models import ParsedQuery, ResolvedCriterion, ScoredTask, Task

from .text import dedupe_overlapping

logger = logging.getLogger(__name__)


def normalize_status(status_category: str) -> str:
    """Lowercase and drop hyphens, so "in-progress" matches "inProgress"."""
    return status_category.lower().replace("-", "")


@dataclass(frozen=True)
class Coefficients:
    """0/1 activation per score component."""

    relevance: float
    due_date: float
    priority: float
    status: float = 0.0


def activation_coefficients(
    parsed: ParsedQuery, sort_order: Sequence[ResolvedCriterion]
) -> Coefficients:
    """A component is active if the query references it or the sort uses it.

    Relevance stays active when only the sort order mentions it, even though
    a query without keywords scores zero relevance for every task.
    """
    return Coefficients(
        relevance=1.0 if parsed.has_keywords or "relevance" in sort_order else 0.0,
        due_date=1.0 if parsed.has_due_date or "dueDate" in sort_order else 0.0,
        priority=1.0 if parsed.has_priority or "priority" in sort_order else 0.0,
        status=1.0 if parsed.has_status or "status" in sort_order else 0.0,
    )


class TaskScorer:
    """Computes ScoredTask values for one query."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    # =========================================================================
    # Component maxima (used by the quality filter)
    # =========================================================================

    @property
    def max_relevance(self) -> float:
        return self._settings.relevance_core_weight + self._settings.relevance_all_weight

    @property
    def max_due_date(self) -> float:
        s = self._settings
        return max(
            s.due_date_overdue_score,
            s.due_date_within_7_days_score,
            s.due_date_within_1_month_score,
            s.due_date_later_score,
            s.due_date_none_score,
        )

    @property
    def max_priority(self) -> float:
        s = self._settings
        return max(
            s.priority_p1_score,
            s.priority_p2_score,
            s.priority_p3_score,
            s.priority_p4_score,
            s.priority_none_score,
        )

    @property
    def max_status(self) -> float:
        s = self._settings
        return max(
            s.status_open_score,
            s.status_in_progress_score,
            s.status_completed_score,
            s.status_cancelled_score,
            s.status_other_score,
        )

    # =========================================================================
    # Components
    # =========================================================================

    def relevance_score(self, text: str, core_keywords: list[str], keywords: list[str]) -> float:
        """Weighted keyword match ratios for one task text.

        Both ratios are taken against the deduplicated core keywords; the
        all-keyword ratio is capped at 1 so expansions cannot push relevance
        beyond its theoretical maximum.

        Args:
            text: Task text.
            core_keywords: Deduplicated core keywords.
            keywords: Deduplicated final keyword set.

        Returns:
            Relevance in [0, core_weight + all_weight].
        """
        if not keywords:
            return 0.0
        core = core_keywords or keywords
        lowered = text.lower()
        core_matched = sum(1 for k in core if k.lower() in lowered)
        all_matched = sum(1 for k in keywords if k.lower() in lowered)
        core_ratio = core_matched / len(core)
        all_ratio = min(1.0, all_matched / len(core))
        return (
            core_ratio * self._settings.relevance_core_weight
            + all_ratio * self._settings.relevance_all_weight
        )

    def due_date_score(self, due: Optional[date], today: Optional[date] = None) -> float:
        s = self._settings
        if due is None:
            return s.due_date_none_score
        days = (due - (today or date.today())).days
        if days < 0:
            return s.due_date_overdue_score
        if days <= 7:
            return s.due_date_within_7_days_score
        if days <= 30:
            return s.due_date_within_1_month_score
        return s.due_date_later_score

    def priority_score(self, priority: Optional[int]) -> float:
        s = self._settings
        return {
            1: s.priority_p1_score,
            2: s.priority_p2_score,
            3: s.priority_p3_score,
            4: s.priority_p4_score,
        }.get(priority, s.priority_none_score)  # type: ignore[arg-type]

    def status_score(self, status_category: str) -> float:
        """Bucket score for a status category; matching ignores case and hyphens."""
        s = self._settings
        buckets = {
            "open": s.status_open_score,
            "inprogress": s.status_in_progress_score,
            "completed": s.status_completed_score,
            "cancelled": s.status_cancelled_score,
        }
        return buckets.get(normalize_status(status_category), s.status_other_score)

    # =========================================================================
    # Combined
    # =========================================================================

    def score(
        self,
        tasks: Sequence[Task],
        parsed: ParsedQuery,
        coefficients: Coefficients,
        today: Optional[date] = None,
    ) -> list[ScoredTask]:
        """Score tasks for this query.

        Args:
            tasks: Tasks that survived the compound filter.
            parsed: The parsed query (keywords are deduplicated here).
            coefficients: Activation coefficients for this query.
            today: Reference date for due-date buckets.

        Returns:
            ScoredTask per task, same order as the input.
        """
        s = self._settings
        core = dedupe_overlapping(parsed.core_keywords)
        keywords = dedupe_overlapping(parsed.keywords)
        logger.debug(
            "Scoring %d tasks: core=%s keywords=%d active=(R %.0f, D %.0f, P %.0f, S %.0f)",
            len(tasks),
            core,
            len(keywords),
            coefficients.relevance,
            coefficients.due_date,
            coefficients.priority,
            coefficients.status,
        )

        scored = []
        for task in tasks:
            relevance = self.relevance_score(task.text, core, keywords)
            due = self.due_date_score(task.due_date, today)
            priority = self.priority_score(task.priority)
            status = self.status_score(task.status_category)
            final = (
                relevance * coefficients.relevance * s.relevance_weight
                + due * coefficients.due_date * s.due_date_weight
                + priority * coefficients.priority * s.priority_weight
                + status * coefficients.status * s.status_weight
            )
            scored.append(
                ScoredTask(
                    task=task,
                    relevance_score=relevance,
                    due_date_score=due,
                    priority_score=priority,
                    status_score=status,
                    final_score=final,
                )
            )
        return scored
