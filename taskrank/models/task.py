"""Schemas for tasks, parsed queries and ranked results."""

import datetime as dt
import re
from datetime import date
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SortCriterion = Literal["relevance", "dueDate", "priority", "status", "auto"]
ResolvedCriterion = Literal["relevance", "dueDate", "priority", "status"]
VagueMode = Literal["auto", "forced"]
QueryType = Literal["keywords-only", "properties-only", "mixed", "empty"]
SearchMode = Literal["simple", "smart", "chat"]
ParserStrategy = Literal["deterministic", "ai"]
DiagnosticKind = Literal["parser_fallback", "no_match", "analysis_unavailable"]
PriorityValue = Union[Literal[1, 2, 3, 4], Literal["any", "none"]]

# Canonical due-date filter tokens (relative "+3d" and ISO dates handled by regex)
DUE_FILTER_TOKENS = frozenset(
    {
        "any",
        "none",
        "today",
        "tomorrow",
        "yesterday",
        "overdue",
        "future",
        "week",
        "last-week",
        "next-week",
        "month",
        "last-month",
        "next-month",
        "year",
        "last-year",
        "next-year",
    }
)
RELATIVE_DUE_RE = re.compile(r"^\+(\d+)([dwm])$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_due_filter_token(value: str) -> bool:
    """Return True if value is a canonical due-date filter token."""
    if value in DUE_FILTER_TOKENS or RELATIVE_DUE_RE.match(value):
        return True
    if ISO_DATE_RE.match(value):
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


class Task(BaseModel):
    """A task record from the external task index (read-only here)."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    status_category: str = "open"
    priority: Optional[int] = Field(None, ge=1, le=4)
    due_date: Optional[date] = None
    tags: list[str] = Field(default_factory=list)
    folder: str = ""


class DateRange(BaseModel):
    """Due-date window produced by a time phrase or explicit date syntax.

    "<=" windows mean "everything needing attention by this date", so they
    include undated and overdue tasks. ">=" and "between" windows only match
    tasks that have a due date inside them.
    """

    model_config = ConfigDict(frozen=True)

    operator: Literal["<=", ">=", "between"]
    date: dt.date
    end_date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _check_end_date(self) -> "DateRange":
        if self.operator == "between":
            if self.end_date is None:
                raise ValueError("'between' range requires end_date")
            if self.end_date < self.date:
                raise ValueError("end_date must not be before date")
        return self

    def contains(self, due: Optional[dt.date]) -> bool:
        """Check whether a task due date falls inside this range.

        Args:
            due: The task's due date, or None for undated tasks.

        Returns:
            True if the task belongs to the window.
        """
        if self.operator == "<=":
            return due is None or due <= self.date
        if due is None:
            return False
        if self.operator == ">=":
            return due >= self.date
        return self.date <= due <= self.end_date  # type: ignore[operator]


class ParsedQuery(BaseModel):
    """Structured interpretation of one raw query.

    Property filters use None for "absent". Lists are never empty: a parser
    that resolved nothing for a property leaves it as None.
    """

    model_config = ConfigDict(frozen=True)

    core_keywords: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    raw_tokens: list[str] = Field(
        default_factory=list, description="Tokens before stop-word removal"
    )
    priority: Optional[list[PriorityValue]] = None
    status: Optional[list[str]] = None
    due_date_filter: Optional[str] = None
    due_date_range: Optional[DateRange] = None
    time_context: Optional[str] = None
    is_vague: bool = False
    vagueness_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    tags: Optional[list[str]] = None
    folder: Optional[str] = None
    strategy: ParserStrategy = "deterministic"
    detected_language: Optional[str] = None

    @field_validator("priority", "status", "tags", mode="before")
    @classmethod
    def _as_optional_list(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (str, int)):
            value = [value]
        values = list(dict.fromkeys(value))
        return values or None

    @field_validator("due_date_filter", mode="before")
    @classmethod
    def _check_due_filter(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        token = str(value).strip().lower()
        if not is_due_filter_token(token):
            raise ValueError(f"Unknown due date filter: {value!r}")
        return token

    @field_validator("folder", mode="before")
    @classmethod
    def _blank_folder(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def has_keywords(self) -> bool:
        return bool(self.keywords)

    @property
    def has_due_date(self) -> bool:
        return self.due_date_filter is not None or self.due_date_range is not None

    @property
    def has_priority(self) -> bool:
        return self.priority is not None

    @property
    def has_status(self) -> bool:
        return self.status is not None

    @property
    def has_property_filters(self) -> bool:
        """True if the user asked for any structured filter."""
        return (
            self.has_priority
            or self.has_due_date
            or self.has_status
            or self.tags is not None
            or self.folder is not None
        )


class ScoredTask(BaseModel):
    """A task with its component scores for one query's scoring pass."""

    model_config = ConfigDict(frozen=True)

    task: Task
    relevance_score: float = 0.0
    due_date_score: float = 0.0
    priority_score: float = 0.0
    status_score: float = 0.0
    final_score: float = 0.0


class Diagnostic(BaseModel):
    """Non-fatal note attached to a search result."""

    kind: DiagnosticKind
    message: str
    failed_strategy: Optional[str] = None
    fallback_strategy: Optional[str] = None
    reason: Optional[str] = None


class SearchResult(BaseModel):
    """Outcome of one query: ranked tasks plus how they were obtained."""

    query: str
    mode: SearchMode
    parsed: ParsedQuery
    tasks: list[ScoredTask] = Field(default_factory=list)
    query_type: QueryType = "empty"
    sort_order: list[ResolvedCriterion] = Field(default_factory=list)
    threshold: float = 0.0
    max_possible_score: float = 0.0
    registry_version: int = 0
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    analysis: Optional[str] = None
