"""Tests for the AI query parser and its deterministic fallback."""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import patch

import pytest

from taskrank.config import Settings
from taskrank.core.ai_parser import AIParseResponse, AIQueryParser
from taskrank.core.terms import PropertyTermRegistry
from taskrank.models import DateRange


@pytest.fixture
def ai_parser(settings: Settings, registry: PropertyTermRegistry) -> AIQueryParser:
    return AIQueryParser(registry, settings)


class TestAIParseResponse:
    """Tests for lenient validation of the model reply."""

    def test_scalars_wrapped_and_unknown_keys_ignored(self) -> None:
        reply = AIParseResponse.model_validate(
            {"coreKeywords": "login", "priority": 1, "extra": "ignored"}
        )
        assert reply.core_keywords == ["login"]
        assert reply.priority == ["1"]

    def test_confidence_clamped(self) -> None:
        assert AIParseResponse.model_validate({"confidence": 3}).confidence == 1.0
        assert AIParseResponse.model_validate({"confidence": "n/a"}).confidence is None

    def test_non_dict_expansions_dropped(self) -> None:
        assert AIParseResponse.model_validate({"expansions": ["x"]}).expansions == {}


class TestParse:
    """Tests for the blocking AI parse."""

    def test_failure_falls_back_with_diagnostic(self, ai_parser: AIQueryParser) -> None:
        """A failing provider yields the deterministic parse plus a diagnostic."""
        with patch(
            "taskrank.core.ai_parser.complete_json", side_effect=RuntimeError("boom")
        ):
            parsed, diagnostic = ai_parser.parse("修复 bug")

        assert parsed.strategy == "deterministic"
        assert parsed.keywords == ["修复", "bug"]
        assert diagnostic is not None
        assert diagnostic.kind == "parser_fallback"
        assert diagnostic.failed_strategy == "ai"
        assert diagnostic.fallback_strategy == "deterministic"
        assert "RuntimeError" in diagnostic.reason

    def test_no_provider_falls_back(self, ai_parser: AIQueryParser) -> None:
        with patch("taskrank.core.ai_parser.complete_json", return_value=None):
            parsed, diagnostic = ai_parser.parse("login bug")
        assert diagnostic.reason == "no LLM provider configured"
        assert parsed.keywords == ["login", "bug"]

    def test_unexpected_reply_type_falls_back(self, ai_parser: AIQueryParser) -> None:
        with patch("taskrank.core.ai_parser.complete_json", return_value=["login"]):
            _, diagnostic = ai_parser.parse("login bug")
        assert diagnostic.reason == "unexpected reply type list"

    def test_invalid_reply_falls_back(self, ai_parser: AIQueryParser) -> None:
        with patch(
            "taskrank.core.ai_parser.complete_json",
            return_value={"coreKeywords": {"not": "a list"}},
        ):
            _, diagnostic = ai_parser.parse("login bug")
        assert diagnostic is not None
        assert diagnostic.reason.startswith("invalid reply")

    def test_explicit_only_query_skips_ai(self, ai_parser: AIQueryParser) -> None:
        """Nothing is left for the model once explicit syntax is removed."""
        with patch("taskrank.core.ai_parser.complete_json") as mock_complete:
            parsed, diagnostic = ai_parser.parse("p1 s:open")
        mock_complete.assert_not_called()
        assert diagnostic is None
        assert parsed.priority == [1]
        assert parsed.status == ["open"]

    def test_merge_precedence_and_expansion(self, ai_parser: AIQueryParser) -> None:
        """Explicit syntax beats the reply; the reply fills what syntax left open."""
        reply = {
            "coreKeywords": ["login", "bug"],
            "expansions": {"login": {"English": ["sign in"]}},
            "status": ["completed"],
            "priority": ["high"],
            "isVague": False,
            "confidence": 0.8,
            "language": "English",
        }
        with patch("taskrank.core.ai_parser.complete_json", return_value=reply):
            parsed, diagnostic = ai_parser.parse("fix login bug s:open")

        assert diagnostic is None
        assert parsed.strategy == "ai"
        assert parsed.status == ["open"]
        assert parsed.priority == [1]
        assert parsed.core_keywords == ["login", "bug"]
        assert parsed.keywords == ["login", "bug", "sign in"]
        assert parsed.confidence == 0.8
        assert parsed.detected_language == "English"

    def test_unknown_reply_values_dropped(self, ai_parser: AIQueryParser) -> None:
        reply = {"coreKeywords": ["report"], "status": ["bogus-state"], "dueDate": "bogus-when"}
        with patch("taskrank.core.ai_parser.complete_json", return_value=reply):
            parsed, _ = ai_parser.parse("report")
        assert parsed.status is None
        assert parsed.due_date_filter is None

    def test_reply_date_range(self, ai_parser: AIQueryParser) -> None:
        reply = {
            "coreKeywords": ["report"],
            "dueDateRange": {"start": "2025-01-01", "end": "2025-01-31"},
        }
        with patch("taskrank.core.ai_parser.complete_json", return_value=reply):
            parsed, _ = ai_parser.parse("report in january")
        assert parsed.due_date_range == DateRange(
            operator="between", date=date(2025, 1, 1), end_date=date(2025, 1, 31)
        )

    def test_reply_vagueness_overrides_heuristic(self, ai_parser: AIQueryParser) -> None:
        """Empty core keywords fall back to the query's own tokens."""
        with patch(
            "taskrank.core.ai_parser.complete_json",
            return_value={"coreKeywords": [], "isVague": True},
        ):
            parsed, _ = ai_parser.parse("login page")
        assert parsed.is_vague
        assert parsed.keywords == ["login", "page"]

    def test_forced_mode_beats_reply(self, ai_parser: AIQueryParser) -> None:
        with patch(
            "taskrank.core.ai_parser.complete_json",
            return_value={"coreKeywords": ["login"], "isVague": False},
        ):
            parsed, _ = ai_parser.parse("fix login", vague_mode="forced")
        assert parsed.is_vague

    def test_reply_time_context_for_vague_query(
        self, ai_parser: AIQueryParser, today: date
    ) -> None:
        reply = {"coreKeywords": [], "timeContext": "today", "isVague": True}
        with patch("taskrank.core.ai_parser.complete_json", return_value=reply):
            parsed, _ = ai_parser.parse("anything for me", today=today)
        assert parsed.time_context == "today"
        assert parsed.due_date_range is None

    def test_prompt_contains_query_and_vocabulary(
        self, ai_parser: AIQueryParser, snapshot, today: date
    ) -> None:
        prompt = ai_parser.build_prompt("fix login", snapshot, today)
        assert "Query: fix login" in prompt
        assert "2025-01-15" in prompt
        assert "Semantic expansion" in prompt


class TestParseAsync:
    """Tests for the async parse, its timeout and cancellation."""

    @pytest.mark.asyncio
    async def test_success(self, ai_parser: AIQueryParser) -> None:
        async def reply(prompt: str) -> dict:
            return {"coreKeywords": ["login"], "isVague": False}

        with patch("taskrank.core.ai_parser.complete_json_async", new=reply):
            parsed, diagnostic = await ai_parser.parse_async("login")
        assert diagnostic is None
        assert parsed.strategy == "ai"
        assert parsed.keywords == ["login"]

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, registry: PropertyTermRegistry) -> None:
        parser = AIQueryParser(registry, Settings(_env_file=None, ai_parse_timeout=0.01))

        async def slow(prompt: str) -> dict:
            await asyncio.sleep(1)
            return {}

        with patch("taskrank.core.ai_parser.complete_json_async", new=slow):
            parsed, diagnostic = await parser.parse_async("修复 bug")
        assert "timed out" in diagnostic.reason
        assert parsed.keywords == ["修复", "bug"]

    @pytest.mark.asyncio
    async def test_cancelled_ai_call_falls_back(self, ai_parser: AIQueryParser) -> None:
        async def cancelled(prompt: str) -> dict:
            raise asyncio.CancelledError()

        with patch("taskrank.core.ai_parser.complete_json_async", new=cancelled):
            parsed, diagnostic = await ai_parser.parse_async("login bug")
        assert diagnostic.reason == "AI call was cancelled"
        assert parsed.strategy == "deterministic"

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self, ai_parser: AIQueryParser) -> None:
        started = asyncio.Event()

        async def slow(prompt: str) -> dict:
            started.set()
            await asyncio.sleep(10)
            return {}

        with patch("taskrank.core.ai_parser.complete_json_async", new=slow):
            task = asyncio.create_task(ai_parser.parse_async("login bug"))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
