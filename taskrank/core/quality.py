"""Quality filter: drop weak matches relative to the best achievable score."""

import logging
from collections.abc import Sequence
from typing import Union

from taskrank.config import Settings
from taskrank.models import ParsedQuery, QueryType, ScoredTask

from .scoring import Coefficients, TaskScorer

logger = logging.getLogger(__name__)

# (minimum keyword count, strength), checked from the top
ADAPTIVE_STRENGTH = (
    (12, 0.40),
    (6, 0.30),
    (3, 0.20),
    (1, 0.10),
)


def classify_query(parsed: ParsedQuery) -> QueryType:
    """Classify a query by whether it has keywords and/or property filters."""
    if parsed.has_keywords and parsed.has_property_filters:
        return "mixed"
    if parsed.has_keywords:
        return "keywords-only"
    if parsed.has_property_filters:
        return "properties-only"
    return "empty"


def adaptive_strength(keyword_count: int) -> float:
    """More keywords means a stricter filter."""
    for minimum, strength in ADAPTIVE_STRENGTH:
        if keyword_count >= minimum:
            return strength
    return 0.0


def resolve_strength(setting: Union[float, str], keyword_count: int) -> float:
    if setting == "adaptive":
        return adaptive_strength(keyword_count)
    return float(setting)


def max_possible_score(
    scorer: TaskScorer, coefficients: Coefficients, has_keywords: bool, settings: Settings
) -> float:
    """Best final score any task could reach for this query.

    Relevance contributes nothing when the query has no keywords, even when
    its coefficient is on, because every task then scores zero relevance.
    """
    relevance_max = scorer.max_relevance if has_keywords else 0.0
    return (
        relevance_max * coefficients.relevance * settings.relevance_weight
        + scorer.max_due_date * coefficients.due_date * settings.due_date_weight
        + scorer.max_priority * coefficients.priority * settings.priority_weight
        + scorer.max_status * coefficients.status * settings.status_weight
    )


class QualityFilter:
    """Applies the score threshold and the optional minimum relevance cut."""

    def __init__(self, settings: Settings, scorer: TaskScorer) -> None:
        self._settings = settings
        self._scorer = scorer

    def threshold(self, parsed: ParsedQuery, coefficients: Coefficients) -> tuple[float, float]:
        """Return (threshold, max_possible_score) for a query."""
        maximum = max_possible_score(
            self._scorer, coefficients, parsed.has_keywords, self._settings
        )
        strength = resolve_strength(
            self._settings.quality_filter_strength, len(parsed.keywords)
        )
        return strength * maximum, maximum

    def apply(
        self,
        scored: Sequence[ScoredTask],
        parsed: ParsedQuery,
        coefficients: Coefficients,
    ) -> tuple[list[ScoredTask], float, float]:
        """Filter scored tasks.

        Args:
            scored: Scored tasks in filter order.
            parsed: The parsed query.
            coefficients: Activation coefficients used for scoring.

        Returns:
            (kept tasks, threshold, max possible score).
        """
        threshold, maximum = self.threshold(parsed, coefficients)
        kept = [t for t in scored if t.final_score >= threshold]
        logger.debug(
            "Quality filter: threshold %.2f of max %.2f, %d -> %d tasks",
            threshold,
            maximum,
            len(scored),
            len(kept),
        )

        if parsed.has_keywords and self._settings.minimum_relevance > 0:
            cut = self._settings.minimum_relevance * self._scorer.max_relevance
            before = len(kept)
            kept = [t for t in kept if t.relevance_score >= cut]
            logger.debug("Minimum relevance %.2f: %d -> %d tasks", cut, before, len(kept))

        return kept, threshold, maximum
