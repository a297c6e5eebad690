"""AI-assisted query parser with deterministic fallback.

The model sees the query, the current term tables and the expansion budget,
and returns structured properties plus keyword expansions as JSON. Explicit
syntax in the query always wins over what the model says, and any failure of
the AI call falls back to the deterministic parser with a diagnostic.
"""

import asyncio
import copy
import json
import logging
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from taskrank.config import Settings, get_settings
from taskrank.models import DateRange, Diagnostic, ParsedQuery, VagueMode
from taskrank.utils.llm import complete_json, complete_json_async

from .expansion import SemanticExpander
from .parser import (
    PropertyExtraction,
    QueryParser,
    build_parsed_query,
    resolve_due_value,
    resolve_priority_values,
    resolve_status_values,
    scan_natural_language,
)
from .terms import PropertyTermRegistry, TermSnapshot
from .text import tokenize
from .time_context import TIME_CONTEXT_DESCRIPTIONS

logger = logging.getLogger(__name__)

# Errors from the AI call that trigger the deterministic fallback
_AI_ERRORS = (OSError, ValueError, RuntimeError, KeyError, TypeError)

_PARSE_PROMPT = """You parse task-search queries into structured JSON.

Today is {today}.
Query: {query}

Property vocabulary (category key -> words users may write):
{terms}

Due date values: any, none, today, tomorrow, yesterday, overdue, future,
week, next-week, last-week, month, next-month, last-month, year, next-year,
last-year, +Nd / +Nw / +Nm (within N days/weeks/months), or YYYY-MM-DD.
Time context keys: {time_keys}

Rules:
- "coreKeywords": content words from the query, in their original language,
  with property words, time words, question words and filler removed
- Keep multi-word CJK text split into meaningful words, never one long string
- "isVague": true when the query asks what to work on rather than naming a topic
- Only set a property the query actually asks for; otherwise null
- "timeContext": a time context key when the query mentions a time period
- "confidence": 0-1, how sure you are of the parse
{expansion}

Return JSON:
{{"coreKeywords": [...], "expansions": {{}}, "priority": null, "status": null,
"dueDate": null, "dueDateRange": null, "timeContext": null, "tags": null,
"folder": null, "isVague": false, "confidence": 0.9, "language": "English"}}"""


def _as_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        value = [value]
    if not isinstance(value, list):
        raise ValueError(f"expected a list, got {type(value).__name__}")
    return [str(v).strip() for v in value if isinstance(v, (str, int)) and str(v).strip()]


class AIParseResponse(BaseModel):
    """Model reply, validated leniently (unknown keys ignored, scalars wrapped)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    core_keywords: list[str] = Field(default_factory=list, alias="coreKeywords")
    keywords: list[str] = Field(default_factory=list)
    expansions: dict[str, Any] = Field(default_factory=dict)
    priority: list[str] = Field(default_factory=list)
    status: list[str] = Field(default_factory=list)
    due_date: Optional[str] = Field(None, alias="dueDate")
    due_date_range: Optional[dict[str, Any]] = Field(None, alias="dueDateRange")
    time_context: Optional[str] = Field(None, alias="timeContext")
    tags: list[str] = Field(default_factory=list)
    folder: Optional[str] = None
    is_vague: Optional[bool] = Field(None, alias="isVague")
    confidence: Optional[float] = None
    language: Optional[str] = None

    @field_validator("core_keywords", "keywords", "priority", "status", "tags", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> list[str]:
        return _as_string_list(value)

    @field_validator("expansions", mode="before")
    @classmethod
    def _expansions(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Optional[float]:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return min(1.0, max(0.0, number))


class AIQueryParser:
    """Parses queries with the configured LLM, falling back to QueryParser."""

    def __init__(
        self,
        registry: Optional[PropertyTermRegistry] = None,
        settings: Optional[Settings] = None,
        parser: Optional[QueryParser] = None,
        expander: Optional[SemanticExpander] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._parser = parser or QueryParser(registry, self._settings)
        self._expander = expander or SemanticExpander(self._settings)

    @property
    def registry(self) -> PropertyTermRegistry:
        return self._parser.registry

    # =========================================================================
    # Prompt
    # =========================================================================

    def build_prompt(self, query: str, snapshot: TermSnapshot, today: Optional[date] = None) -> str:
        return _PARSE_PROMPT.format(
            today=(today or date.today()).isoformat(),
            query=query,
            terms=json.dumps(snapshot.to_prompt_dict(), ensure_ascii=False),
            time_keys=", ".join(TIME_CONTEXT_DESCRIPTIONS),
            expansion=self._expander.prompt_section(),
        )

    # =========================================================================
    # Parse
    # =========================================================================

    def parse(
        self,
        query: str,
        snapshot: Optional[TermSnapshot] = None,
        vague_mode: Optional[VagueMode] = None,
        today: Optional[date] = None,
    ) -> tuple[ParsedQuery, Optional[Diagnostic]]:
        """Parse a query with the LLM (blocking call).

        Returns:
            (parsed query, parser_fallback diagnostic or None).
        """
        snap = snapshot or self.registry.snapshot()
        explicit = self._parser.extract_properties(query, snap, natural_language=False)
        if not explicit.remainder.strip():
            return self._parser.parse(query, snap, vague_mode, today), None

        try:
            response = complete_json(self.build_prompt(query, snap, today))
        except _AI_ERRORS as e:
            return self._fallback(query, snap, vague_mode, today, f"{type(e).__name__}: {e}")
        return self._finish(query, explicit, response, snap, vague_mode, today)

    async def parse_async(
        self,
        query: str,
        snapshot: Optional[TermSnapshot] = None,
        vague_mode: Optional[VagueMode] = None,
        today: Optional[date] = None,
    ) -> tuple[ParsedQuery, Optional[Diagnostic]]:
        """Async parse bounded by ``ai_parse_timeout``.

        A timeout or a cancellation of the AI call itself falls back to the
        deterministic parser. If the task running this coroutine is being
        cancelled, the cancellation propagates.

        Args:
            query: Raw user text.
            snapshot: Vocabulary snapshot captured for this query.
            vague_mode: Per-query override of the session vague mode.
            today: Reference date.

        Returns:
            (parsed query, parser_fallback diagnostic or None).
        """
        snap = snapshot or self.registry.snapshot()
        explicit = self._parser.extract_properties(query, snap, natural_language=False)
        if not explicit.remainder.strip():
            return self._parser.parse(query, snap, vague_mode, today), None

        timeout = self._settings.ai_parse_timeout
        try:
            response = await asyncio.wait_for(
                complete_json_async(self.build_prompt(query, snap, today)), timeout=timeout
            )
        except TimeoutError:
            return self._fallback(query, snap, vague_mode, today, f"timed out after {timeout:g}s")
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return self._fallback(query, snap, vague_mode, today, "AI call was cancelled")
        except _AI_ERRORS as e:
            return self._fallback(query, snap, vague_mode, today, f"{type(e).__name__}: {e}")
        return self._finish(query, explicit, response, snap, vague_mode, today)

    # =========================================================================
    # Internals
    # =========================================================================

    def _fallback(
        self,
        query: str,
        snapshot: TermSnapshot,
        vague_mode: Optional[VagueMode],
        today: Optional[date],
        reason: str,
    ) -> tuple[ParsedQuery, Diagnostic]:
        logger.warning("AI query parsing failed (%s); using deterministic parser", reason)
        parsed = self._parser.parse(query, snapshot, vague_mode, today)
        diagnostic = Diagnostic(
            kind="parser_fallback",
            message="AI parsing was unavailable; results use the built-in parser.",
            failed_strategy="ai",
            fallback_strategy="deterministic",
            reason=reason,
        )
        return parsed, diagnostic

    def _finish(
        self,
        query: str,
        explicit: PropertyExtraction,
        response: Any,
        snapshot: TermSnapshot,
        vague_mode: Optional[VagueMode],
        today: Optional[date],
    ) -> tuple[ParsedQuery, Optional[Diagnostic]]:
        if response is None:
            return self._fallback(query, snapshot, vague_mode, today, "no LLM provider configured")
        if not isinstance(response, dict):
            return self._fallback(
                query, snapshot, vague_mode, today, f"unexpected reply type {type(response).__name__}"
            )
        try:
            reply = AIParseResponse.model_validate(response)
            parsed = self._merge(explicit, reply, response, snapshot, vague_mode, today)
        except (ValidationError, ValueError) as e:
            return self._fallback(query, snapshot, vague_mode, today, f"invalid reply: {e}")
        logger.debug(
            "AI parsed %r: core=%s keywords=%d vague=%s confidence=%s",
            query,
            parsed.core_keywords,
            len(parsed.keywords),
            parsed.is_vague,
            parsed.confidence,
        )
        return parsed, None

    def _merge(
        self,
        explicit: PropertyExtraction,
        reply: AIParseResponse,
        raw_reply: dict[str, Any],
        snapshot: TermSnapshot,
        vague_mode: Optional[VagueMode],
        today: Optional[date],
    ) -> ParsedQuery:
        """Combine explicit syntax, the AI reply and the vocabulary scan.

        Precedence per property: explicit syntax, then the AI reply, then the
        deterministic vocabulary scan.
        """
        scanned = scan_natural_language(copy.deepcopy(explicit), snapshot)
        ai = _properties_from_reply(reply, snapshot)

        merged = PropertyExtraction(
            remainder=scanned.remainder,
            priority=explicit.priority or ai.priority or scanned.priority,
            status=explicit.status or ai.status or scanned.status,
            due_date_filter=(
                explicit.due_date_filter or ai.due_date_filter or scanned.due_date_filter
            ),
            due_date_range=explicit.due_date_range or ai.due_date_range or scanned.due_date_range,
            tags=explicit.tags or ai.tags or scanned.tags,
            folder=explicit.folder or ai.folder or scanned.folder,
            time_phrase=ai.time_phrase or scanned.time_phrase,
        )

        # Vagueness is always judged on the pre-stop-word tokens
        raw_tokens = tokenize(merged.remainder)
        heuristic_vague, ratio = self._parser.detect_vagueness(raw_tokens, vague_mode)
        if (vague_mode or self._settings.vague_mode) == "forced":
            is_vague = True
        elif reply.is_vague is not None:
            is_vague = reply.is_vague
        else:
            is_vague = heuristic_vague

        core = self._parser.filter_keywords(reply.core_keywords)
        if not core:
            core, _ = self._parser.keywords_from(raw_tokens)
        keywords = self._expander.expand(core, raw_reply)

        return build_parsed_query(
            merged,
            raw_tokens=raw_tokens,
            core_keywords=core,
            keywords=keywords,
            is_vague=is_vague,
            ratio=ratio,
            today=today,
            confidence=reply.confidence,
            strategy="ai",
            detected_language=reply.language,
        )


def _properties_from_reply(reply: AIParseResponse, snapshot: TermSnapshot) -> PropertyExtraction:
    """Resolve AI property values through the vocabulary; unknown values are dropped."""
    found = PropertyExtraction(remainder="")

    found.priority = resolve_priority_values(",".join(reply.priority), snapshot)
    found.status = resolve_status_values(",".join(reply.status), snapshot)

    if reply.due_date:
        found.due_date_filter = resolve_due_value(reply.due_date, snapshot)

    if reply.due_date_range:
        found.due_date_range = _date_range(reply.due_date_range)

    if reply.time_context:
        key = snapshot.resolve("time_context", reply.time_context)
        if key is None:
            logger.warning("Dropping unknown time context %r", reply.time_context)
        found.time_phrase = key

    found.tags = [tag.lower().lstrip("#") for tag in reply.tags]
    if reply.folder and reply.folder.strip():
        found.folder = reply.folder.strip()
    return found


def _date_range(value: dict[str, Any]) -> Optional[DateRange]:
    """Build a between-range from {"start", "end"} ISO dates."""
    try:
        start = date.fromisoformat(str(value.get("start")))
        end = date.fromisoformat(str(value.get("end")))
        return DateRange(operator="between", date=start, end_date=end)
    except (TypeError, ValueError) as e:
        logger.warning("Dropping invalid due date range %s: %s", value, e)
        return None
