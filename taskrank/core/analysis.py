"""Chat-mode analysis: ask the LLM to talk about the ranked tasks."""

import logging
from collections.abc import Sequence
from datetime import date
from typing import Optional

from taskrank.config import Settings
from taskrank.models import Diagnostic, ParsedQuery, ResolvedCriterion, ScoredTask
from taskrank.utils.llm import complete, complete_async

from .time_context import describe

logger = logging.getLogger(__name__)

_ANALYSIS_ERRORS = (OSError, ValueError, RuntimeError, KeyError, TypeError)

_SORT_LABELS = {
    "relevance": "relevance to the query",
    "dueDate": "due date (earliest first)",
    "priority": "priority (P1 first)",
    "status": "status (open work first)",
}

_ANALYSIS_PROMPT = """You are a task assistant. The user asked: "{query}"
Today is {today}.{time_context}

These are their matching tasks, already ranked by {sort_order}:
{tasks}

Answer the user's question using only these tasks. Recommend what to do
first and why, referring to tasks by their number. Keep it short.
Reply in the language of the question."""


def _task_line(index: int, scored: ScoredTask) -> str:
    task = scored.task
    parts = [f"{index}. {task.text}"]
    if task.priority is not None:
        parts.append(f"P{task.priority}")
    if task.due_date is not None:
        parts.append(f"due {task.due_date.isoformat()}")
    parts.append(task.status_category)
    return " | ".join(parts)


class TaskAnalyzer:
    """Builds the analysis prompt and runs it through the configured LLM."""

    def __init__(self, settings: Settings) -> None:
        self._max_tasks = settings.max_tasks_for_analysis

    def build_prompt(
        self,
        query: str,
        parsed: ParsedQuery,
        tasks: Sequence[ScoredTask],
        sort_order: Sequence[ResolvedCriterion],
        today: Optional[date] = None,
    ) -> str:
        """Render the prompt for the top ``max_tasks_for_analysis`` tasks.

        Args:
            query: The user's original text.
            parsed: Parsed query (its time context is described to the model).
            tasks: Ranked tasks.
            sort_order: Resolved criteria the tasks were sorted by.
            today: Reference date.

        Returns:
            Prompt text.
        """
        top = list(tasks)[: self._max_tasks]
        lines = [_task_line(i, t) for i, t in enumerate(top, 1)] or ["(no matching tasks)"]
        time_context = (
            f"\nTime focus: {describe(parsed.time_context)}." if parsed.time_context else ""
        )
        return _ANALYSIS_PROMPT.format(
            query=query,
            today=(today or date.today()).isoformat(),
            time_context=time_context,
            sort_order=", then ".join(_SORT_LABELS[c] for c in sort_order) or "input order",
            tasks="\n".join(lines),
        )

    def analyze(self, prompt: str) -> tuple[Optional[str], Optional[Diagnostic]]:
        try:
            reply = complete(prompt)
        except _ANALYSIS_ERRORS as e:
            return None, self._unavailable(f"{type(e).__name__}: {e}")
        return self._result(reply)

    async def analyze_async(self, prompt: str) -> tuple[Optional[str], Optional[Diagnostic]]:
        try:
            reply = await complete_async(prompt)
        except _ANALYSIS_ERRORS as e:
            return None, self._unavailable(f"{type(e).__name__}: {e}")
        return self._result(reply)

    def _result(self, reply: Optional[str]) -> tuple[Optional[str], Optional[Diagnostic]]:
        if reply is None:
            return None, self._unavailable("no LLM provider configured")
        if not reply.strip():
            return None, self._unavailable("empty reply")
        return reply.strip(), None

    @staticmethod
    def _unavailable(reason: str) -> Diagnostic:
        logger.warning("Task analysis unavailable: %s", reason)
        return Diagnostic(
            kind="analysis_unavailable",
            message="The AI analysis could not be generated; ranked tasks are still shown.",
            reason=reason,
        )
