"""Domain models."""

from .task import (
    DateRange,
    Diagnostic,
    ParsedQuery,
    PriorityValue,
    QueryType,
    ResolvedCriterion,
    ScoredTask,
    SearchMode,
    SearchResult,
    SortCriterion,
    Task,
    VagueMode,
    is_due_filter_token,
)

__all__ = [
    "DateRange",
    "Diagnostic",
    "ParsedQuery",
    "PriorityValue",
    "QueryType",
    "ResolvedCriterion",
    "ScoredTask",
    "SearchMode",
    "SearchResult",
    "SortCriterion",
    "Task",
    "VagueMode",
    "is_due_filter_token",
]
