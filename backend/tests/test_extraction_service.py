"""
Unit tests for action item extraction.

Gemini is replaced by an AsyncMock generate function; asyncio.sleep is
patched so retry tests do not wait.
"""
import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.services.extraction_service import (
    ActionItemExtractor,
    GeminiActionItemStrategy,
    RegexActionItemStrategy,
    is_retryable,
)
from app.utils.errors import AIError


def make_extractor(generate, configured=True, max_retries=3, retry_delay=2.0):
    return ActionItemExtractor(
        primary=GeminiActionItemStrategy(generate=generate, configured=configured),
        fallback=RegexActionItemStrategy(),
        max_retries=max_retries,
        retry_delay=retry_delay,
    )


GEMINI_OUTPUT = json.dumps([
    {
        "task": "Review the quarterly budget",
        "assignee": "Sarah Johnson",
        "assigneeReason": "mentioned as finance lead",
        "deadline": "2024-01-15T17:00:00",
        "deadlineText": "by Friday",
    },
    {"task": "Schedule follow-up meeting"},
])


class TestRetryClassification:

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_status(self, status):
        assert is_retryable(AIError("boom", upstream_status=status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_non_retryable_status(self, status):
        assert not is_retryable(AIError("boom", upstream_status=status))

    @pytest.mark.parametrize("message", [
        "The model is overloaded",
        "503 Service Unavailable",
        "Rate limit exceeded",
        "Request timeout",
        "Network error while contacting host",
        "TypeError: fetch failed",
    ])
    def test_retryable_message(self, message):
        assert is_retryable(Exception(message))

    def test_status_read_from_sdk_error(self):
        error = Exception("boom")
        error.code = 503
        assert is_retryable(error)

    def test_unrelated_message(self):
        assert not is_retryable(ValueError("API key not valid"))


class TestGeminiParsing:

    def test_parses_objects(self):
        items = GeminiActionItemStrategy.parse_response(GEMINI_OUTPUT)
        assert [i.task for i in items] == ["Review the quarterly budget", "Schedule follow-up meeting"]
        assert items[0].assignee == "Sarah Johnson"
        assert items[0].deadline_text == "by Friday"
        assert items[1].assignee == "Unassigned"
        assert items[1].assignee_reason == "no clear assignee mentioned"
        assert items[1].deadline is None

    def test_tolerates_code_fence(self):
        items = GeminiActionItemStrategy.parse_response(f"```json\n{GEMINI_OUTPUT}\n```")
        assert len(items) == 2

    def test_normalizes_legacy_strings(self):
        items = GeminiActionItemStrategy.parse_response('["Send the slides to the team"]')
        assert items[0].task == "Send the slides to the team"
        assert items[0].assignee == "Unassigned"
        assert items[0].assignee_reason == "legacy format - no assignee information"

    def test_filters_unusable_items(self):
        raw = json.dumps([
            {"task": "tiny"},
            {"task": "x" * 300},
            {"assignee": "Bob"},
            {"task": 42},
            None,
            7,
            {"task": "  Update the roadmap  "},
        ])
        items = GeminiActionItemStrategy.parse_response(raw)
        assert [i.task for i in items] == ["Update the roadmap"]

    def test_empty_array_is_valid(self):
        assert GeminiActionItemStrategy.parse_response("[]") == []

    @pytest.mark.parametrize("raw", ['{"task": "Review the budget"}', "not json at all", "null"])
    def test_non_array_is_unusable(self, raw):
        with pytest.raises(AIError):
            GeminiActionItemStrategy.parse_response(raw)

    def test_serializes_with_camel_case(self):
        item = GeminiActionItemStrategy.parse_response(GEMINI_OUTPUT)[0]
        data = item.model_dump(by_alias=True)
        assert data["assigneeReason"] == "mentioned as finance lead"
        assert data["deadlineText"] == "by Friday"


class TestRegexFallback:

    def test_example_transcript(self, fallback_transcript):
        items = RegexActionItemStrategy().extract(fallback_transcript)
        assert [i.task for i in items] == ["review the budget by Friday.", "schedule a meeting."]
        assert all(i.assignee == "Unassigned" for i in items)
        assert all(i.assignee_reason == "regex fallback - no attendee information available" for i in items)

    def test_markers(self):
        text = (
            "Action item: draft the release notes. "
            "Next steps: book the venue. "
            "Follow up: confirm the catering order! "
            "We should migrate the database?"
        )
        tasks = [i.task for i in RegexActionItemStrategy().extract(text)]
        assert tasks == [
            "draft the release notes.",
            "book the venue.",
            "confirm the catering order!",
            "migrate the database?",
        ]

    def test_deduplicates_case_insensitively(self):
        text = "I will send the report. I WILL SEND THE REPORT."
        tasks = [i.task for i in RegexActionItemStrategy().extract(text)]
        assert tasks == ["send the report."]

    def test_drops_short_clauses(self):
        assert RegexActionItemStrategy().extract("I will go.") == []

    def test_nothing_found(self):
        assert RegexActionItemStrategy().extract("Thanks everyone, great meeting") == []


class TestActionItemExtractor:

    @pytest.mark.asyncio
    async def test_primary_success(self):
        generate = AsyncMock(return_value=GEMINI_OUTPUT)
        items = await make_extractor(generate).extract("transcript")
        assert len(items) == 2
        generate.assert_awaited_once()
        assert "Meeting transcript: transcript" in generate.await_args.args[0]

    @pytest.mark.asyncio
    async def test_retries_three_times_then_falls_back(self, fallback_transcript):
        generate = AsyncMock(side_effect=AIError("unavailable", upstream_status=503))

        with patch("app.services.extraction_service.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            items = await make_extractor(generate).extract(fallback_transcript)

        assert generate.await_count == 4
        assert mock_sleep.await_count == 3
        for call in mock_sleep.await_args_list:
            assert call.args == (2.0,)
        assert [i.task for i in items] == ["review the budget by Friday.", "schedule a meeting."]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self):
        generate = AsyncMock(side_effect=[AIError("Rate limit hit", upstream_status=429), GEMINI_OUTPUT])

        with patch("app.services.extraction_service.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            items = await make_extractor(generate).extract("transcript")

        assert len(items) == 2
        assert generate.await_count == 2
        mock_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_non_retryable_goes_straight_to_fallback(self, fallback_transcript):
        generate = AsyncMock(side_effect=AIError("API key not valid", upstream_status=400))

        with patch("app.services.extraction_service.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            items = await make_extractor(generate).extract(fallback_transcript)

        generate.assert_awaited_once()
        mock_sleep.assert_not_awaited()
        assert len(items) == 2

    @pytest.mark.asyncio
    async def test_unusable_output_falls_back(self, fallback_transcript):
        generate = AsyncMock(return_value="Sorry, I can't help with that.")
        items = await make_extractor(generate).extract(fallback_transcript)
        generate.assert_awaited_once()
        assert [i.task for i in items] == ["review the budget by Friday.", "schedule a meeting."]

    @pytest.mark.asyncio
    async def test_unconfigured_uses_fallback(self, fallback_transcript):
        generate = AsyncMock()
        items = await make_extractor(generate, configured=False).extract(fallback_transcript)
        generate.assert_not_awaited()
        assert len(items) == 2

    @pytest.mark.asyncio
    async def test_never_raises(self):
        generate = AsyncMock(side_effect=RuntimeError("unexpected"))
        fallback = MagicMock()
        fallback.extract.side_effect = RuntimeError("also broken")
        extractor = ActionItemExtractor(
            primary=GeminiActionItemStrategy(generate=generate, configured=True),
            fallback=fallback,
        )
        assert await extractor.extract("anything") == []

    @pytest.mark.asyncio
    async def test_idempotent_with_deterministic_model(self):
        generate = AsyncMock(return_value=GEMINI_OUTPUT)
        extractor = make_extractor(generate)
        first = await extractor.extract("same transcript")
        second = await extractor.extract("same transcript")
        assert {i.task for i in first} == {i.task for i in second}

    def test_result_is_single_shot_coroutine(self):
        extractor = make_extractor(AsyncMock(return_value="[]"))
        pending = extractor.extract("text")
        assert asyncio.iscoroutine(pending)
        assert asyncio.run(pending) == []
        with pytest.raises(RuntimeError):
            asyncio.run(pending)
