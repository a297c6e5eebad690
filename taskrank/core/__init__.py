"""Query understanding and ranking."""

from .ai_parser import AIQueryParser
from .engine import SearchEngine
from .expansion import SemanticExpander
from .filtering import filter_tasks
from .parser import QueryParser
from .quality import QualityFilter, classify_query
from .scoring import TaskScorer, activation_coefficients
from .sorting import resolve_sort_order, sort_tasks
from .terms import PropertyTermRegistry, TermSnapshot

__all__ = [
    "SearchEngine",
    "QueryParser",
    "AIQueryParser",
    "SemanticExpander",
    "PropertyTermRegistry",
    "TermSnapshot",
    "filter_tasks",
    "TaskScorer",
    "activation_coefficients",
    "QualityFilter",
    "classify_query",
    "resolve_sort_order",
    "sort_tasks",
]
