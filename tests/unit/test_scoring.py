"""Tests for activation coefficients, component scores and the quality filter."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from taskrank.config import Settings
from taskrank.core.quality import (
    QualityFilter,
    adaptive_strength,
    classify_query,
    max_possible_score,
    resolve_strength,
)
from taskrank.core.scoring import Coefficients, TaskScorer, activation_coefficients
from taskrank.models import ParsedQuery, Task


@pytest.fixture
def scorer(settings: Settings) -> TaskScorer:
    return TaskScorer(settings)


class TestActivationCoefficients:
    """Tests for switching score components on and off."""

    def test_query_properties_activate(self) -> None:
        parsed = ParsedQuery(priority=[1])
        assert activation_coefficients(parsed, []) == Coefficients(0.0, 0.0, 1.0)

    def test_sort_order_activates(self) -> None:
        parsed = ParsedQuery(priority=[1])
        coef = activation_coefficients(parsed, ["relevance", "dueDate", "priority"])
        assert coef == Coefficients(1.0, 1.0, 1.0)

    def test_keywords_activate_relevance(self) -> None:
        parsed = ParsedQuery(core_keywords=["bug"], keywords=["bug"])
        assert activation_coefficients(parsed, []).relevance == 1.0

    def test_status_activates_from_query_or_sort(self) -> None:
        assert activation_coefficients(ParsedQuery(status=["open"]), []) == Coefficients(
            0.0, 0.0, 0.0, 1.0
        )
        assert activation_coefficients(ParsedQuery(), ["status"]).status == 1.0
        assert activation_coefficients(ParsedQuery(), ["priority"]).status == 0.0


class TestComponents:
    """Tests for the per-task component scores."""

    def test_relevance_full_match(self, scorer: TaskScorer) -> None:
        assert scorer.relevance_score("Fix login bug", ["login", "bug"], ["login", "bug"]) == (
            pytest.approx(1.2)
        )

    def test_relevance_partial(self, scorer: TaskScorer) -> None:
        # core 1/2 * 0.2 + all 1/2 * 1.0
        assert scorer.relevance_score("Fix login", ["login", "bug"], ["login", "bug"]) == (
            pytest.approx(0.6)
        )

    def test_expansions_cannot_exceed_max(self, scorer: TaskScorer) -> None:
        keywords = ["bug", "defect", "issue", "error"]
        score = scorer.relevance_score("bug defect issue error", ["bug"], keywords)
        assert score == pytest.approx(scorer.max_relevance)

    def test_relevance_without_keywords(self, scorer: TaskScorer) -> None:
        assert scorer.relevance_score("anything", [], []) == 0.0

    @pytest.mark.parametrize(
        ("offset", "expected"),
        [(-1, 1.5), (0, 1.0), (7, 1.0), (8, 0.5), (30, 0.5), (31, 0.2), (None, 0.1)],
    )
    def test_due_date_buckets(self, scorer: TaskScorer, today: date, offset, expected) -> None:
        due = None if offset is None else today + timedelta(days=offset)
        assert scorer.due_date_score(due, today) == expected

    def test_priority_buckets(self, scorer: TaskScorer) -> None:
        assert [scorer.priority_score(p) for p in (1, 2, 3, 4, None)] == [1.0, 0.75, 0.5, 0.2, 0.1]

    def test_status_buckets(self, scorer: TaskScorer) -> None:
        """Case and hyphens are ignored; unknown categories score as "other"."""
        statuses = ("open", "inProgress", "in-progress", "Completed", "cancelled", "waiting")
        assert [scorer.status_score(s) for s in statuses] == [1.0, 0.75, 0.75, 0.2, 0.1, 0.5]


class TestScore:
    """Tests for the combined final score."""

    def test_priority_query_with_default_sort(self, scorer: TaskScorer, today: date) -> None:
        """An overdue P1 task for "priority 1" scores 0 + 1.5*4 + 1.0*1 = 7."""
        task = Task(id="a", text="Fix login bug", priority=1, due_date=date(2025, 1, 10))
        parsed = ParsedQuery(priority=[1])
        coef = activation_coefficients(parsed, ["relevance", "dueDate", "priority"])

        [scored] = scorer.score([task], parsed, coef, today)

        assert scored.relevance_score == 0.0
        assert scored.final_score == pytest.approx(7.0)

    def test_status_component_weighted(self, today: date) -> None:
        scorer = TaskScorer(Settings(_env_file=None, status_weight=2.0))
        task = Task(id="a", text="Review PR", status_category="inProgress")
        parsed = ParsedQuery(status=["inProgress"])

        [scored] = scorer.score([task], parsed, activation_coefficients(parsed, []), today)

        assert scored.status_score == 0.75
        assert scored.final_score == pytest.approx(1.5)

    def test_cjk_overlap_counted_once(self, scorer: TaskScorer, today: date) -> None:
        task = Task(id="a", text="修复登录页面")
        parsed = ParsedQuery(core_keywords=["修复", "修", "复"], keywords=["修复", "修", "复"])
        [scored] = scorer.score([task], parsed, Coefficients(1.0, 0.0, 0.0), today)
        assert scored.relevance_score == pytest.approx(1.2)

    def test_final_never_exceeds_max(
        self, scorer: TaskScorer, settings: Settings, tasks, today: date
    ) -> None:
        parsed = ParsedQuery(
            core_keywords=["bug"], keywords=["bug", "fix"], priority=["any"], status=["open"]
        )
        coef = activation_coefficients(parsed, ["relevance", "dueDate", "priority"])
        maximum = max_possible_score(scorer, coef, parsed.has_keywords, settings)
        for scored in scorer.score(tasks, parsed, coef, today):
            assert scored.final_score <= maximum + 1e-9


class TestQuality:
    """Tests for query classification, thresholds and the minimum relevance cut."""

    def test_classify(self) -> None:
        assert classify_query(ParsedQuery(keywords=["a1"])) == "keywords-only"
        assert classify_query(ParsedQuery(priority=[1])) == "properties-only"
        assert classify_query(ParsedQuery(keywords=["a1"], status=["open"])) == "mixed"
        assert classify_query(ParsedQuery()) == "empty"

    @pytest.mark.parametrize(
        ("count", "expected"),
        [(0, 0.0), (1, 0.1), (2, 0.1), (3, 0.2), (5, 0.2), (6, 0.3), (11, 0.3), (12, 0.4), (40, 0.4)],
    )
    def test_adaptive_strength(self, count: int, expected: float) -> None:
        assert adaptive_strength(count) == expected

    def test_fixed_strength(self) -> None:
        assert resolve_strength(0.5, 12) == 0.5
        assert resolve_strength("adaptive", 12) == 0.4

    def test_max_ignores_relevance_without_keywords(
        self, scorer: TaskScorer, settings: Settings
    ) -> None:
        coef = Coefficients(1.0, 1.0, 1.0)
        assert max_possible_score(scorer, coef, False, settings) == pytest.approx(7.0)
        assert max_possible_score(scorer, coef, True, settings) == pytest.approx(31.0)

    def test_max_counts_status(self, scorer: TaskScorer, settings: Settings) -> None:
        """A status-only query has a real maximum instead of zero."""
        parsed = ParsedQuery(status=["open"])
        assert max_possible_score(
            scorer, activation_coefficients(parsed, []), False, settings
        ) == pytest.approx(1.0)
        coef = activation_coefficients(parsed, ["relevance", "dueDate", "priority"])
        assert max_possible_score(scorer, coef, False, settings) == pytest.approx(8.0)

    def test_threshold_for_priority_query(self, scorer: TaskScorer) -> None:
        """With a fixed strength of 0.3 the threshold is 0.3 * 7."""
        quality = QualityFilter(Settings(_env_file=None, quality_filter_strength=0.3), scorer)
        parsed = ParsedQuery(priority=[1])
        threshold, maximum = quality.threshold(parsed, Coefficients(1.0, 1.0, 1.0))
        assert maximum == pytest.approx(7.0)
        assert threshold == pytest.approx(2.1)

    def test_apply_drops_weak_matches(self, scorer: TaskScorer, settings: Settings, tasks, today) -> None:
        parsed = ParsedQuery(
            core_keywords=["login", "auth", "service"],
            keywords=["login", "auth", "service"],
        )
        coef = activation_coefficients(parsed, ["relevance"])
        scored = scorer.score(tasks, parsed, coef, today)
        kept, threshold, _ = QualityFilter(settings, scorer).apply(scored, parsed, coef)
        # strength 0.2 of max 24 -> 4.8; only t1 matches at all
        assert threshold == pytest.approx(4.8)
        assert [t.task.id for t in kept] == ["t1"]

    def test_minimum_relevance(self, scorer: TaskScorer, today: date) -> None:
        settings = Settings(_env_file=None, quality_filter_strength=0.0, minimum_relevance=0.5)
        parsed = ParsedQuery(core_keywords=["login", "bug"], keywords=["login", "bug"])
        coef = Coefficients(1.0, 0.0, 0.0)
        strong = Task(id="s", text="login bug")
        weak = Task(id="w", text="login page")
        scored = TaskScorer(settings).score([strong, weak], parsed, coef, today)
        kept, _, _ = QualityFilter(settings, TaskScorer(settings)).apply(scored, parsed, coef)
        # cut = 0.5 * 1.2 = 0.6; "login page" scores exactly 0.6
        assert [t.task.id for t in kept] == ["s", "w"]

        strict = Settings(_env_file=None, quality_filter_strength=0.0, minimum_relevance=0.6)
        kept, _, _ = QualityFilter(strict, TaskScorer(strict)).apply(scored, parsed, coef)
        assert [t.task.id for t in kept] == ["s"]

    def test_minimum_relevance_ignored_without_keywords(self, scorer: TaskScorer, today) -> None:
        settings = Settings(_env_file=None, minimum_relevance=1.0)
        parsed = ParsedQuery(priority=[1])
        coef = Coefficients(0.0, 0.0, 1.0)
        scored = scorer.score([Task(id="a", text="x", priority=1)], parsed, coef, today)
        kept, _, _ = QualityFilter(settings, scorer).apply(scored, parsed, coef)
        assert len(kept) == 1
