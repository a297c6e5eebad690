"""Tests for the deterministic query parser."""

from __future__ import annotations

from datetime import date

import pytest

from taskrank.config import Settings
from taskrank.core.parser import QueryParser
from taskrank.core.terms import PropertyTermRegistry
from taskrank.models import DateRange


@pytest.fixture
def parser(settings: Settings, registry: PropertyTermRegistry) -> QueryParser:
    return QueryParser(registry, settings)


class TestExplicitSyntax:
    """Tests for explicit property syntax."""

    @pytest.mark.parametrize("query", ["s:o", "S:O", "status:open", "s:todo"])
    def test_status_aliases(self, parser: QueryParser, query: str) -> None:
        """Status values resolve case-insensitively through aliases."""
        parsed = parser.parse(query)
        assert parsed.status == ["open"]
        assert parsed.keywords == []

    def test_priority_short_form(self, parser: QueryParser) -> None:
        parsed = parser.parse("p1 fix bug")
        assert parsed.priority == [1]
        assert parsed.keywords == ["fix", "bug"]

    def test_priority_list(self, parser: QueryParser) -> None:
        assert parser.parse("priority:high,2").priority == [1, 2]

    def test_priority_number_phrase(self, parser: QueryParser) -> None:
        assert parser.parse("priority 1").priority == [1]

    def test_typo_before_syntax(self, parser: QueryParser) -> None:
        assert parser.parse("priorty 1").priority == [1]

    def test_no_priority(self, parser: QueryParser) -> None:
        assert parser.parse("no priority").priority == ["none"]

    def test_unknown_value_dropped(self, parser: QueryParser) -> None:
        """Unresolvable values are dropped, never guessed."""
        parsed = parser.parse("p:bogus report")
        assert parsed.priority is None
        assert parsed.keywords == ["report"]

    def test_hashtag_and_folder(self, parser: QueryParser) -> None:
        parsed = parser.parse("#work folder:Work/Docs update")
        assert parsed.tags == ["work"]
        assert parsed.folder == "Work/Docs"
        assert parsed.keywords == ["update"]

    def test_date_span(self, parser: QueryParser) -> None:
        parsed = parser.parse("report from 2025-01-01 to 2025-01-31")
        assert parsed.due_date_range == DateRange(
            operator="between", date=date(2025, 1, 1), end_date=date(2025, 1, 31)
        )
        assert parsed.keywords == ["report"]

    def test_relative_period(self, parser: QueryParser) -> None:
        assert parser.parse("report in 3 days").due_date_filter == "+3d"

    def test_due_syntax(self, parser: QueryParser) -> None:
        assert parser.parse("due:od").due_date_filter == "overdue"


class TestNaturalLanguage:
    """Tests for vocabulary-driven property recognition."""

    def test_priority_level_phrase(self, parser: QueryParser) -> None:
        parsed = parser.parse("high priority login")
        assert parsed.priority == [1]
        assert parsed.keywords == ["login"]

    def test_general_priority_term(self, parser: QueryParser) -> None:
        """"urgent" asks for tasks with any priority."""
        parsed = parser.parse("urgent tasks")
        assert parsed.priority == ["any"]
        assert parsed.keywords == []

    def test_due_term(self, parser: QueryParser) -> None:
        parsed = parser.parse("overdue report")
        assert parsed.due_date_filter == "overdue"
        assert parsed.keywords == ["report"]

    def test_cjk_priority_phrase(self, parser: QueryParser) -> None:
        assert parser.parse("高优先级").priority == [1]

    def test_longest_status_phrase_wins(self, parser: QueryParser) -> None:
        """"已完成" is matched before its substring "完成"."""
        parsed = parser.parse("已完成 报告")
        assert parsed.status == ["completed"]
        assert parsed.keywords == ["报告"]

    def test_time_phrase_becomes_range_for_specific_query(
        self, parser: QueryParser, today: date
    ) -> None:
        parsed = parser.parse("fix bugs this week", today=today)
        assert not parsed.is_vague
        assert parsed.time_context is None
        assert parsed.due_date_range == DateRange(operator="<=", date=date(2025, 1, 19))

    def test_explicit_range_beats_time_phrase(self, parser: QueryParser, today: date) -> None:
        parsed = parser.parse("report this week before 2025-01-10", today=today)
        assert parsed.due_date_range == DateRange(operator="<=", date=date(2025, 1, 10))


class TestVagueness:
    """Tests for vague-query detection and the keyword split."""

    def test_vague_query_with_time_context(self, parser: QueryParser, today: date) -> None:
        """A vague query keeps its time phrase as context, not as a filter."""
        parsed = parser.parse("What should I do today?", today=today)
        assert parsed.is_vague
        assert parsed.time_context == "today"
        assert parsed.due_date_range is None
        assert parsed.due_date_filter is None
        assert parsed.keywords == []

    def test_ratio_uses_tokens_before_stop_word_removal(self, parser: QueryParser) -> None:
        parsed = parser.parse("what should I work on for the project")
        assert "the" in parsed.raw_tokens
        assert "the" not in parsed.keywords
        assert parsed.raw_tokens != parsed.keywords
        assert parsed.vagueness_ratio == pytest.approx(0.5)
        assert not parsed.is_vague
        assert parsed.keywords == ["work", "project"]

    def test_contraction_is_one_generic_token(self, parser: QueryParser) -> None:
        """A contraction such as "what's" is one question word, not "what" plus "s"."""
        parsed = parser.parse("what's overdue")
        assert parsed.raw_tokens == ["what's"]
        assert parsed.vagueness_ratio == 1.0
        assert parsed.is_vague
        assert parsed.keywords == []

    def test_repeated_tokens_counted(self, parser: QueryParser) -> None:
        """Each repeat counts toward the ratio; keywords hold one copy."""
        parsed = parser.parse("what what report report")
        assert parsed.raw_tokens == ["what", "what", "report", "report"]
        assert parsed.vagueness_ratio == pytest.approx(0.5)
        assert parsed.core_keywords == ["report"]
        assert parsed.keywords == ["report"]

        assert parser.parse("what what report").vagueness_ratio == pytest.approx(2 / 3)

    def test_forced_mode(self, parser: QueryParser) -> None:
        parsed = parser.parse("fix login bug", vague_mode="forced")
        assert parsed.is_vague
        assert parsed.keywords == ["fix", "login", "bug"]

    def test_threshold_from_settings(self, registry: PropertyTermRegistry) -> None:
        strict = QueryParser(registry, Settings(_env_file=None, vague_threshold=0.5))
        assert strict.parse("what should I work on for the project").is_vague

    def test_empty_query(self, parser: QueryParser) -> None:
        parsed = parser.parse("")
        assert not parsed.is_vague
        assert parsed.vagueness_ratio == 0.0
        assert not parsed.has_keywords
        assert not parsed.has_property_filters

    def test_cjk_keywords(self, parser: QueryParser) -> None:
        """CJK bigram units are kept whole; overlapping single characters are dropped."""
        parsed = parser.parse("修复 bug")
        assert parsed.core_keywords == ["修复", "修", "复", "bug"]
        assert parsed.keywords == ["修复", "bug"]
        assert "修复 bug" not in parsed.keywords

    def test_uses_snapshot_passed_in(self, parser: QueryParser, registry: PropertyTermRegistry) -> None:
        old = registry.snapshot()
        registry.update({"status": {"completed": {"aliases": ["shipped"]}}})
        assert parser.parse("s:shipped", snapshot=old).status is None
        assert parser.parse("s:shipped").status == ["completed"]
