"""Search pipeline: parse -> filter -> score -> quality filter -> sort."""

import logging
from collections.abc import Sequence
from datetime import date
from typing import Optional

from taskrank.config import Settings, get_settings
from taskrank.models import (
    Diagnostic,
    ParsedQuery,
    SearchMode,
    SearchResult,
    SortCriterion,
    Task,
    VagueMode,
)

from .ai_parser import AIQueryParser
from .analysis import TaskAnalyzer
from .filtering import filter_tasks
from .parser import QueryParser
from .quality import QualityFilter, classify_query
from .scoring import TaskScorer, activation_coefficients
from .sorting import resolve_sort_order, sort_tasks
from .terms import PropertyTermRegistry, TermSnapshot

logger = logging.getLogger(__name__)

SEARCH_MODES: tuple[SearchMode, ...] = ("simple", "smart", "chat")


class SearchEngine:
    """Ranks a task snapshot for free-text queries in simple, smart or chat mode.

    One engine can serve many queries. Each query captures the term registry
    snapshot once, so a concurrent ``registry.update`` never changes the
    vocabulary halfway through a search.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[PropertyTermRegistry] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry or PropertyTermRegistry(self._settings.user_terms)
        self._parser = QueryParser(self._registry, self._settings)
        self._ai_parser = AIQueryParser(settings=self._settings, parser=self._parser)
        self._scorer = TaskScorer(self._settings)
        self._quality = QualityFilter(self._settings, self._scorer)
        self._analyzer = TaskAnalyzer(self._settings)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def registry(self) -> PropertyTermRegistry:
        return self._registry

    # =========================================================================
    # Public API
    # =========================================================================

    def search(
        self,
        query: str,
        tasks: Sequence[Task],
        mode: SearchMode = "simple",
        vague_mode: Optional[VagueMode] = None,
        sort_order: Optional[Sequence[SortCriterion]] = None,
        today: Optional[date] = None,
    ) -> SearchResult:
        """Run one query against a task snapshot.

        Args:
            query: Raw user text.
            tasks: Task snapshot (not modified).
            mode: "simple" (deterministic), "smart" (AI parse) or "chat"
                (AI parse plus analysis of the ranked tasks).
            vague_mode: Per-query override of ``settings.vague_mode``.
            sort_order: Per-query override of ``settings.sort_order``.
            today: Reference date for all date logic.

        Returns:
            SearchResult with ranked tasks and diagnostics.

        Raises:
            ValueError: If mode is unknown.
        """
        self._check_mode(mode)
        snapshot = self._registry.snapshot()
        current = today or date.today()

        diagnostics: list[Diagnostic] = []
        if self._uses_ai(mode):
            parsed, fallback = self._ai_parser.parse(query, snapshot, vague_mode, current)
            if fallback is not None:
                diagnostics.append(fallback)
        else:
            parsed = self._parser.parse(query, snapshot, vague_mode, current)

        result = self._rank(query, mode, parsed, tasks, snapshot, sort_order, current, diagnostics)

        if mode == "chat":
            if self._settings.enable_ai:
                prompt = self._analyzer.build_prompt(
                    query, parsed, result.tasks, result.sort_order, current
                )
                analysis, problem = self._analyzer.analyze(prompt)
                self._attach_analysis(result, analysis, problem)
            else:
                self._attach_analysis(result, None, _ai_disabled())
        return result

    async def search_async(
        self,
        query: str,
        tasks: Sequence[Task],
        mode: SearchMode = "simple",
        vague_mode: Optional[VagueMode] = None,
        sort_order: Optional[Sequence[SortCriterion]] = None,
        today: Optional[date] = None,
    ) -> SearchResult:
        """Async variant of :meth:`search`; only the LLM calls are awaited."""
        self._check_mode(mode)
        snapshot = self._registry.snapshot()
        current = today or date.today()

        diagnostics: list[Diagnostic] = []
        if self._uses_ai(mode):
            parsed, fallback = await self._ai_parser.parse_async(
                query, snapshot, vague_mode, current
            )
            if fallback is not None:
                diagnostics.append(fallback)
        else:
            parsed = self._parser.parse(query, snapshot, vague_mode, current)

        result = self._rank(query, mode, parsed, tasks, snapshot, sort_order, current, diagnostics)

        if mode == "chat":
            if self._settings.enable_ai:
                prompt = self._analyzer.build_prompt(
                    query, parsed, result.tasks, result.sort_order, current
                )
                analysis, problem = await self._analyzer.analyze_async(prompt)
                self._attach_analysis(result, analysis, problem)
            else:
                self._attach_analysis(result, None, _ai_disabled())
        return result

    def parse(
        self,
        query: str,
        vague_mode: Optional[VagueMode] = None,
        today: Optional[date] = None,
    ) -> ParsedQuery:
        """Deterministic parse only (no filtering or ranking)."""
        return self._parser.parse(query, self._registry.snapshot(), vague_mode, today)

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _rank(
        self,
        query: str,
        mode: SearchMode,
        parsed: ParsedQuery,
        tasks: Sequence[Task],
        snapshot: TermSnapshot,
        sort_order: Optional[Sequence[SortCriterion]],
        today: date,
        diagnostics: list[Diagnostic],
    ) -> SearchResult:
        filtered = filter_tasks(tasks, parsed, today)

        query_type = classify_query(parsed)
        order = resolve_sort_order(
            sort_order or self._settings.sort_order, query_type, parsed
        )
        coefficients = activation_coefficients(parsed, order)

        scored = self._scorer.score(filtered, parsed, coefficients, today)
        kept, threshold, maximum = self._quality.apply(scored, parsed, coefficients)
        ranked = sort_tasks(kept, order)[: self._settings.max_results]

        if not ranked and not parsed.has_property_filters:
            diagnostics.append(
                Diagnostic(
                    kind="no_match",
                    message=f"No tasks match {query!r}.",
                    reason="keywords" if parsed.has_keywords else "empty query",
                )
            )

        logger.info(
            "Search %r (%s, %s): %d tasks -> %d filtered -> %d ranked",
            query,
            mode,
            query_type,
            len(tasks),
            len(filtered),
            len(ranked),
        )
        return SearchResult(
            query=query,
            mode=mode,
            parsed=parsed,
            tasks=ranked,
            query_type=query_type,
            sort_order=order,
            threshold=threshold,
            max_possible_score=maximum,
            registry_version=snapshot.version,
            diagnostics=diagnostics,
        )

    def _uses_ai(self, mode: SearchMode) -> bool:
        return mode != "simple" and self._settings.enable_ai

    @staticmethod
    def _check_mode(mode: str) -> None:
        if mode not in SEARCH_MODES:
            raise ValueError(f"Unknown search mode {mode!r}; expected one of {SEARCH_MODES}")

    @staticmethod
    def _attach_analysis(
        result: SearchResult, analysis: Optional[str], problem: Optional[Diagnostic]
    ) -> None:
        result.analysis = analysis
        if problem is not None:
            result.diagnostics.append(problem)


def _ai_disabled() -> Diagnostic:
    return Diagnostic(
        kind="analysis_unavailable",
        message="AI is disabled in settings; no analysis was generated.",
        reason="enable_ai is false",
    )
