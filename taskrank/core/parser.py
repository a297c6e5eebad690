"""Deterministic query parser.

Pipeline for one raw query:

1. Correct common typos.
2. Pull out explicit syntax (``p:1``, ``s:open``, ``due:overdue``, ``#tag``,
   date ranges, ...), resolving values through the term snapshot.
3. Scan for natural-language property terms ("high priority", "overdue",
   "this week", "已完成") and remove the matched spans.
4. Tokenize the remainder into raw tokens.
5. Judge vagueness on the raw tokens, stop words included.
6. Only then drop stop words to get the keywords used for matching.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import Any, Optional

from taskrank.config import Settings, get_settings
from taskrank.models import (
    DateRange,
    ParsedQuery,
    PriorityValue,
    VagueMode,
    is_due_filter_token,
)

from .stopwords import filter_stop_words, get_stop_words, has_cjk, vagueness_ratio
from .terms import PropertyTermRegistry, TermSnapshot
from .text import correct_typos, dedupe_keywords, dedupe_overlapping, tokenize
from .time_context import resolve_time_context

logger = logging.getLogger(__name__)

# =============================================================================
# Explicit syntax patterns
# =============================================================================

_DATE = r"(\d{4}-\d{2}-\d{2})"

_DUE_BEFORE_RE = re.compile(rf"\bdue\s+before:?\s*{_DATE}", re.IGNORECASE)
_DUE_AFTER_RE = re.compile(rf"\bdue\s+after:?\s*{_DATE}", re.IGNORECASE)
_DATE_SPAN_RE = re.compile(
    rf"\b(?:from|between)\s+{_DATE}\s+(?:to|and|until)\s+{_DATE}", re.IGNORECASE
)
_BEFORE_RE = re.compile(rf"\bbefore:?\s*{_DATE}", re.IGNORECASE)
_AFTER_RE = re.compile(rf"\bafter:?\s*{_DATE}", re.IGNORECASE)
_IN_PERIOD_RE = re.compile(r"\b(?:in|within)\s+(\d+)\s+(day|week|month)s?\b", re.IGNORECASE)

_DUE_SYNTAX_RE = re.compile(r"\b(?:d|due):([^\s&|]+)", re.IGNORECASE)
_PRIORITY_SYNTAX_RE = re.compile(r"\b(?:p|priority):([^\s&|]+)", re.IGNORECASE)
_PRIORITY_SHORT_RE = re.compile(r"\bp([1-4])\b", re.IGNORECASE)
_PRIORITY_NUMBER_RE = re.compile(r"(?:\bpriority|\bprio|优先级)\s*([1-4])(?!\d)", re.IGNORECASE)
_NO_PRIORITY_RE = re.compile(r"\b(?:no|without)\s+priority\b", re.IGNORECASE)
_STATUS_SYNTAX_RE = re.compile(r"\b(?:s|status):([^\s&|]+)", re.IGNORECASE)

_HASHTAG_RE = re.compile(r"#([^\s#]+)")
_WITH_TAG_RE = re.compile(r"\bwith\s+tags?\s+#?([\w/-]+)|标签\s*#?([\w/-]+)", re.IGNORECASE)
_FOLDER_RE = re.compile(
    r'\bfolder:\s*("[^"]+"|\S+)'
    r'|\b(?:in|from|under)\s+(?:the\s+)?(?:folder|directory)\s+("[^"]+"|\S+)'
    r'|文件夹\s*("[^"]+"|\S+)',
    re.IGNORECASE,
)


@dataclass
class PropertyExtraction:
    """Properties pulled out of a query, plus the text left for keywords."""

    remainder: str
    priority: list[PriorityValue] = field(default_factory=list)
    status: list[str] = field(default_factory=list)
    due_date_filter: Optional[str] = None
    due_date_range: Optional[DateRange] = None
    tags: list[str] = field(default_factory=list)
    folder: Optional[str] = None
    time_phrase: Optional[str] = None

    @property
    def has_properties(self) -> bool:
        return bool(
            self.priority
            or self.status
            or self.due_date_filter
            or self.due_date_range
            or self.tags
            or self.folder
            or self.time_phrase
        )


def _consume(pattern: re.Pattern[str], text: str, handler: Callable[[re.Match[str]], Any]) -> str:
    """Call handler for every match and blank the matched span."""

    def replace(match: re.Match[str]) -> str:
        handler(match)
        return " "

    return pattern.sub(replace, text)


def _bounded(term: str) -> str:
    """Regex for a term; Latin terms get word boundaries, CJK terms do not."""
    escaped = r"\s+".join(re.escape(part) for part in term.split())
    if has_cjk(term):
        return escaped
    return rf"(?<!\w){escaped}(?!\w)"


def _alternation(terms: list[str]) -> str:
    return "|".join(_bounded(t) for t in sorted(terms, key=len, reverse=True))


@lru_cache(maxsize=16)
def _phrase_table(snapshot: TermSnapshot) -> tuple[tuple[re.Pattern[str], str, str], ...]:
    """Compiled (pattern, kind, key) for natural-language terms, longest first."""
    entries: list[tuple[str, str, str]] = []
    for kind in ("time_context", "due_date", "status"):
        for phrase, key in snapshot.phrases(kind):
            entries.append((phrase, kind, key))
    entries.sort(key=lambda entry: len(entry[0]), reverse=True)
    return tuple(
        (re.compile(_bounded(phrase), re.IGNORECASE), kind, key)
        for phrase, kind, key in entries
    )


@lru_cache(maxsize=16)
def _priority_table(snapshot: TermSnapshot) -> tuple[tuple[re.Pattern[str], int], ...]:
    """Level phrases next to a general priority word ("high priority"), and emoji."""
    general = _alternation(list(snapshot.general_terms("priority")))
    table: list[tuple[re.Pattern[str], int]] = []
    for phrase, key in snapshot.phrases("priority"):
        level = _bounded(phrase)
        pattern = rf"(?:{level})\s*-?\s*(?:{general})|(?:{general})\s*[:=]?\s*(?:{level})"
        table.append((re.compile(pattern, re.IGNORECASE), int(key)))
    for key in snapshot.categories("priority"):
        entry = snapshot.entry("priority", key)
        for symbol in entry.symbols if entry else ():
            table.append((re.compile(re.escape(symbol)), int(key)))
    return tuple(table)


# =============================================================================
# Value resolution
# =============================================================================


def resolve_priority_values(raw: str, snapshot: TermSnapshot) -> list[PriorityValue]:
    """Resolve a comma-separated priority list ("1,2", "high", "none")."""
    values: list[PriorityValue] = []
    for part in raw.split(","):
        token = part.strip().lower()
        if not token:
            continue
        if token in ("all", "any"):
            value: PriorityValue = "any"
        elif token in ("none", "no"):
            value = "none"
        else:
            key = snapshot.resolve("priority", token)
            if key is None:
                logger.warning("Dropping unknown priority value %r", part)
                continue
            value = int(key)  # type: ignore[assignment]
        if value not in values:
            values.append(value)
    return values


def resolve_status_values(raw: str, snapshot: TermSnapshot) -> list[str]:
    """Resolve a comma-separated status list; unknown values are dropped."""
    values: list[str] = []
    for part in raw.split(","):
        if not part.strip():
            continue
        key = snapshot.resolve("status", part)
        if key is None:
            logger.warning("Dropping unknown status value %r", part)
            continue
        if key not in values:
            values.append(key)
    return values


def resolve_due_value(raw: str, snapshot: TermSnapshot) -> Optional[str]:
    """Resolve a due-date value to a canonical filter token, or None."""
    token = raw.strip().lower()
    key = snapshot.resolve("due_date", token)
    if key is not None:
        return key
    if is_due_filter_token(token):
        return token
    logger.warning("Dropping unknown due date value %r", raw)
    return None


# =============================================================================
# Extraction
# =============================================================================


def extract_explicit_syntax(query: str, snapshot: TermSnapshot) -> PropertyExtraction:
    """Pull explicit property syntax out of a query.

    Args:
        query: Raw query text (typos already corrected).
        snapshot: Vocabulary used to resolve property values.

    Returns:
        Extraction with the remaining free text.
    """
    found = PropertyExtraction(remainder=query)
    text = query

    def set_range(operator: str, start: str, end: Optional[str] = None) -> None:
        try:
            found.due_date_range = DateRange(
                operator=operator,
                date=date.fromisoformat(start),
                end_date=date.fromisoformat(end) if end else None,
            )
        except ValueError as e:
            logger.warning("Ignoring invalid date range %s %s %s: %s", operator, start, end, e)

    text = _consume(_DUE_BEFORE_RE, text, lambda m: set_range("<=", m.group(1)))
    text = _consume(_DUE_AFTER_RE, text, lambda m: set_range(">=", m.group(1)))
    text = _consume(_DATE_SPAN_RE, text, lambda m: set_range("between", m.group(1), m.group(2)))
    text = _consume(_BEFORE_RE, text, lambda m: set_range("<=", m.group(1)))
    text = _consume(_AFTER_RE, text, lambda m: set_range(">=", m.group(1)))

    def set_relative(match: re.Match[str]) -> None:
        found.due_date_filter = f"+{int(match.group(1))}{match.group(2)[0].lower()}"

    text = _consume(_IN_PERIOD_RE, text, set_relative)

    def set_due(match: re.Match[str]) -> None:
        token = resolve_due_value(match.group(1), snapshot)
        if token is not None:
            found.due_date_filter = token

    text = _consume(_DUE_SYNTAX_RE, text, set_due)

    def add_priorities(values: list[PriorityValue]) -> None:
        for value in values:
            if value not in found.priority:
                found.priority.append(value)

    text = _consume(
        _PRIORITY_SYNTAX_RE,
        text,
        lambda m: add_priorities(resolve_priority_values(m.group(1), snapshot)),
    )
    text = _consume(_PRIORITY_SHORT_RE, text, lambda m: add_priorities([int(m.group(1))]))
    text = _consume(_PRIORITY_NUMBER_RE, text, lambda m: add_priorities([int(m.group(1))]))
    text = _consume(_NO_PRIORITY_RE, text, lambda m: add_priorities(["none"]))

    def add_statuses(match: re.Match[str]) -> None:
        for key in resolve_status_values(match.group(1), snapshot):
            if key not in found.status:
                found.status.append(key)

    text = _consume(_STATUS_SYNTAX_RE, text, add_statuses)

    def add_tag(match: re.Match[str]) -> None:
        tag = next(g for g in match.groups() if g).strip().lower()
        if tag and tag not in found.tags:
            found.tags.append(tag)

    text = _consume(_HASHTAG_RE, text, add_tag)
    text = _consume(_WITH_TAG_RE, text, add_tag)

    def set_folder(match: re.Match[str]) -> None:
        folder = next(g for g in match.groups() if g).strip().strip('"')
        if folder:
            found.folder = folder

    text = _consume(_FOLDER_RE, text, set_folder)

    found.remainder = " ".join(text.split())
    return found


def scan_natural_language(found: PropertyExtraction, snapshot: TermSnapshot) -> PropertyExtraction:
    """Recognize natural-language property terms in the remaining text.

    Matched spans are removed from ``found.remainder`` so they never become
    keywords. Longer phrases are matched first ("未完成" before "完成").

    Args:
        found: Result of explicit-syntax extraction (updated in place).
        snapshot: Vocabulary to scan with.

    Returns:
        The same extraction object.
    """
    text = found.remainder

    for pattern, level in _priority_table(snapshot):

        def add_level(_: re.Match[str], level: int = level) -> None:
            if level not in found.priority:
                found.priority.append(level)

        text = _consume(pattern, text, add_level)

    for pattern, kind, key in _phrase_table(snapshot):

        def record(_: re.Match[str], kind: str = kind, key: str = key) -> None:
            if kind == "time_context":
                if found.time_phrase is None:
                    found.time_phrase = key
                elif found.time_phrase != key:
                    logger.debug("Ignoring extra time phrase %r", key)
            elif kind == "due_date":
                if found.due_date_filter is None:
                    found.due_date_filter = key
            elif key not in found.status:
                found.status.append(key)

        text = _consume(pattern, text, record)

    general: dict[str, bool] = {}
    for kind in ("priority", "due_date", "status"):
        terms = list(snapshot.general_terms(kind))
        if not terms:
            continue
        pattern = re.compile(_alternation(terms), re.IGNORECASE)
        general[kind] = pattern.search(text) is not None
        text = pattern.sub(" ", text)

    if general.get("priority") and not found.priority:
        found.priority.append("any")
    if (
        general.get("due_date")
        and found.due_date_filter is None
        and found.due_date_range is None
        and found.time_phrase is None
    ):
        found.due_date_filter = "any"

    found.remainder = " ".join(text.split())
    return found


# =============================================================================
# Parser
# =============================================================================


class QueryParser:
    """Regex/vocabulary based parser (no network calls)."""

    def __init__(
        self,
        registry: Optional[PropertyTermRegistry] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._registry = registry or PropertyTermRegistry(self._settings.user_terms)
        self._stop_words = get_stop_words(self._settings.user_stop_words)

    @property
    def registry(self) -> PropertyTermRegistry:
        return self._registry

    def extract_properties(
        self, query: str, snapshot: TermSnapshot, natural_language: bool = True
    ) -> PropertyExtraction:
        """Run typo correction, explicit syntax and (optionally) the term scan."""
        found = extract_explicit_syntax(correct_typos(query), snapshot)
        if natural_language:
            scan_natural_language(found, snapshot)
        return found

    def detect_vagueness(
        self, raw_tokens: list[str], vague_mode: Optional[VagueMode] = None
    ) -> tuple[bool, float]:
        """Heuristic vagueness over raw tokens (stop words included).

        Returns:
            (is_vague, ratio). Forced mode is always vague.
        """
        ratio = vagueness_ratio(raw_tokens, self._settings.user_generic_words)
        if (vague_mode or self._settings.vague_mode) == "forced":
            return True, ratio
        return ratio >= self._settings.vague_threshold, ratio

    def keywords_from(self, raw_tokens: list[str]) -> tuple[list[str], list[str]]:
        """Split raw tokens into (core keywords, matching keywords).

        Repeated tokens count toward vagueness but become one keyword.
        """
        core = dedupe_keywords(filter_stop_words(raw_tokens, self._stop_words))
        return core, dedupe_overlapping(core)

    def filter_keywords(self, keywords: list[str]) -> list[str]:
        return filter_stop_words(keywords, self._stop_words)

    def parse(
        self,
        query: str,
        snapshot: Optional[TermSnapshot] = None,
        vague_mode: Optional[VagueMode] = None,
        today: Optional[date] = None,
    ) -> ParsedQuery:
        """Parse a raw query.

        Args:
            query: Raw user text.
            snapshot: Vocabulary snapshot captured for this query.
            vague_mode: Per-query override of the session vague mode.
            today: Reference date for relative time phrases.

        Returns:
            Validated ParsedQuery.
        """
        snap = snapshot or self._registry.snapshot()
        found = self.extract_properties(query, snap)

        raw_tokens = tokenize(found.remainder)
        is_vague, ratio = self.detect_vagueness(raw_tokens, vague_mode)
        core, keywords = self.keywords_from(raw_tokens)

        parsed = build_parsed_query(
            found,
            raw_tokens=raw_tokens,
            core_keywords=core,
            keywords=keywords,
            is_vague=is_vague,
            ratio=ratio,
            today=today,
        )
        logger.debug(
            "Parsed %r: keywords=%s vague=%s (%.2f) properties=%s",
            query,
            parsed.keywords,
            parsed.is_vague,
            ratio,
            parsed.has_property_filters,
        )
        return parsed


def build_parsed_query(
    found: PropertyExtraction,
    *,
    raw_tokens: list[str],
    core_keywords: list[str],
    keywords: list[str],
    is_vague: bool,
    ratio: float,
    today: Optional[date] = None,
    **extra: Any,
) -> ParsedQuery:
    """Assemble a ParsedQuery, turning the time phrase into a filter or context.

    An explicit date range always wins over a time phrase.
    """
    due_range = found.due_date_range
    time_context: Optional[str] = None
    if found.time_phrase:
        resolved = resolve_time_context(found.time_phrase, is_vague, today)
        if isinstance(resolved, str):
            time_context = resolved
        elif due_range is None:
            due_range = resolved

    return ParsedQuery(
        core_keywords=core_keywords,
        keywords=keywords,
        raw_tokens=raw_tokens,
        priority=found.priority or None,
        status=found.status or None,
        due_date_filter=found.due_date_filter,
        due_date_range=due_range,
        time_context=time_context,
        is_vague=is_vague,
        vagueness_ratio=ratio,
        tags=found.tags or None,
        folder=found.folder,
        **extra,
    )
