"""Tests for tokenization, stop words and vagueness scoring."""

import pytest

from taskrank.core.stopwords import (
    filter_stop_words,
    get_stop_words,
    has_cjk,
    vagueness_ratio,
)
from taskrank.core.text import correct_typos, dedupe_keywords, dedupe_overlapping, tokenize


class TestTokenize:
    """Tests for multilingual tokenization."""

    def test_lowercases_and_splits_punctuation(self):
        """Whitespace and punctuation separate tokens."""
        assert tokenize("Fix the Login-Page, today!") == ["fix", "the", "login-page", "today"]

    def test_cjk_bigrams_and_chars(self):
        """CJK runs become 2-character units plus their characters."""
        assert tokenize("修复 bug") == ["修复", "修", "复", "bug"]

    def test_mixed_cjk_latin_word(self):
        """Latin text inside a CJK run stays whole."""
        tokens = tokenize("开发Task插件")
        assert "task" in tokens
        assert "开发" in tokens
        assert "插件" in tokens

    def test_hashtags_excluded(self):
        assert tokenize("review #work notes") == ["review", "notes"]

    def test_keeps_repeats(self):
        """Repeated words are all kept so the vagueness ratio can count them."""
        assert tokenize("bug Bug BUG") == ["bug", "bug", "bug"]

    def test_contractions_stay_whole(self):
        """Apostrophes join contractions; quote marks around a word are dropped."""
        assert tokenize("What's due? Don’t 'forget'") == ["what's", "due", "don't", "forget"]

    def test_empty(self):
        assert tokenize("") == []
        assert tokenize("   ") == []


class TestStopWords:
    """Tests for stop-word filtering."""

    def test_removes_stop_words_and_single_latin_chars(self):
        assert filter_stop_words(["the", "a", "x", "report", "and"]) == ["report"]

    def test_keeps_single_cjk_chars(self):
        assert filter_stop_words(["修", "bug"]) == ["修", "bug"]

    def test_user_stop_words_merged(self):
        stop_words = get_stop_words(["Quarterly"])
        assert filter_stop_words(["quarterly", "report"], stop_words) == ["report"]

    def test_has_cjk(self):
        assert has_cjk("bug 修复")
        assert not has_cjk("bug fix")


class TestVaguenessRatio:
    """Tests for the generic-word ratio."""

    def test_all_generic(self):
        """Question words, modals and pronouns are generic."""
        assert vagueness_ratio(["what", "should", "i", "do"]) == 1.0

    def test_specific_query(self):
        assert vagueness_ratio(["fix", "login", "bug"]) == 0.0

    def test_partial(self):
        assert vagueness_ratio(["what", "about", "bug", "fix"]) == pytest.approx(0.25)

    def test_empty_is_zero(self):
        assert vagueness_ratio([]) == 0.0

    def test_exact_membership_only(self):
        """"doing" is generic but "dog" is not, even though it starts with "do"."""
        assert vagueness_ratio(["dog"]) == 0.0

    def test_cjk_units_of_generic_words(self):
        """CJK units built only from generic-word characters count as generic."""
        assert vagueness_ratio(["什么", "什", "么"]) == 1.0
        assert vagueness_ratio(["登录"]) == 0.0

    def test_contractions_are_generic(self):
        assert vagueness_ratio(["what's", "i'm", "doing"]) == 1.0

    def test_user_generic_words(self):
        assert vagueness_ratio(["stuff", "asap"], ["asap"]) == 1.0


class TestKeywordCleanup:
    """Tests for typo correction and keyword deduplication."""

    def test_correct_typos(self):
        assert correct_typos("urgant taks tommorow") == "urgent task tomorrow"

    def test_typo_correction_keeps_other_words(self):
        assert correct_typos("Priorty report") == "priority report"

    def test_dedupe_keywords_case_insensitive(self):
        assert dedupe_keywords(["Bug", "bug", " BUG ", "fix"]) == ["Bug", "fix"]

    def test_dedupe_overlapping_drops_cjk_substrings(self):
        assert dedupe_overlapping(["修复", "修", "复", "bug"]) == ["修复", "bug"]

    def test_dedupe_overlapping_keeps_latin_substrings(self):
        assert dedupe_overlapping(["chat", "chatt"]) == ["chat", "chatt"]
