"""Semantic keyword expansion (AI modes only).

The AI parse call returns synonym variants for each core keyword, grouped by
language. This module bounds them to the configured budget and cleans the
combined keyword set so one textual occurrence counts as one match.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from taskrank.config import Settings

from .stopwords import filter_stop_words, get_stop_words
from .text import dedupe_keywords, dedupe_overlapping

logger = logging.getLogger(__name__)

_EXPANSION_INSTRUCTIONS = """Semantic expansion:
- For EACH core keyword, give up to {per_language} synonyms or close variants in EACH of these languages: {languages}
- Put them in "expansions" as {{"<core keyword>": {{"<language>": ["variant", ...]}}}}
- Variants must be things a task text would literally contain (no explanations)"""


class SemanticExpander:
    """Bounds and deduplicates AI-provided keyword expansions."""

    def __init__(self, settings: Settings) -> None:
        self._languages = list(settings.languages) or ["English"]
        self._per_language = settings.expansions_per_language
        self._enabled = settings.enable_semantic_expansion
        self._stop_words = get_stop_words(settings.user_stop_words)

    @property
    def enabled(self) -> bool:
        return self._enabled and self._per_language > 0

    @property
    def max_variants_per_keyword(self) -> int:
        """expansions_per_language x number of configured languages."""
        if not self.enabled:
            return 0
        return self._per_language * len(self._languages)

    def prompt_section(self) -> str:
        """Instructions appended to the AI parse prompt."""
        if not self.enabled:
            return "Semantic expansion: disabled. Return an empty \"expansions\" object."
        return _EXPANSION_INSTRUCTIONS.format(
            per_language=self._per_language,
            languages=", ".join(self._languages),
        )

    def expand(
        self, core_keywords: list[str], response: Optional[Mapping[str, Any]] = None
    ) -> list[str]:
        """Combine core keywords with their bounded expansions.

        Args:
            core_keywords: Stop-word-filtered core keywords.
            response: AI response; reads "expansions" (grouped) or "keywords" (flat).

        Returns:
            Final keyword set: core first, then variants, deduplicated for
            case and for CJK substring overlap.
        """
        if not self.enabled or not response:
            return dedupe_overlapping(core_keywords)

        variants: list[str] = []
        grouped = response.get("expansions")
        if isinstance(grouped, Mapping) and grouped:
            for keyword in core_keywords:
                groups = _lookup(grouped, keyword)
                variants.extend(self._bounded_variants(groups))
        else:
            flat = response.get("keywords")
            if isinstance(flat, list):
                limit = len(core_keywords) * (1 + self.max_variants_per_keyword)
                candidates = [k for k in flat if isinstance(k, str)]
                variants.extend(candidates[:limit])

        cleaned = filter_stop_words(dedupe_keywords([*core_keywords, *variants]), self._stop_words)
        keywords = dedupe_overlapping(cleaned)
        logger.debug(
            "Expanded %d core keywords to %d keywords", len(core_keywords), len(keywords)
        )
        return keywords

    def _bounded_variants(self, groups: Any) -> list[str]:
        """At most per_language variants from at most len(languages) language groups."""
        if isinstance(groups, list):
            groups = {self._languages[0]: groups}
        if not isinstance(groups, Mapping):
            return []

        configured = {language.lower() for language in self._languages}
        ordered = sorted(
            groups.items(), key=lambda item: str(item[0]).lower() not in configured
        )
        variants: list[str] = []
        for _, terms in ordered[: len(self._languages)]:
            if isinstance(terms, str):
                terms = [terms]
            if not isinstance(terms, list):
                continue
            batch = [t.strip() for t in terms if isinstance(t, str) and t.strip()]
            variants.extend(batch[: self._per_language])
        return variants


def _lookup(grouped: Mapping[str, Any], keyword: str) -> Any:
    """Find a keyword's group, tolerating case differences in the AI output."""
    if keyword in grouped:
        return grouped[keyword]
    lowered = keyword.lower()
    for key, value in grouped.items():
        if str(key).lower() == lowered:
            return value
    return None
