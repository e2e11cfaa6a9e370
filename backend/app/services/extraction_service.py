"""
Action item extraction from meeting transcripts.

Two strategies sit behind ActionItemExtractor.extract():
1. GeminiActionItemStrategy → asks Gemini for a strict JSON array
2. RegexActionItemStrategy → linguistic patterns, used when Gemini is
   unconfigured, fails with a non-retryable error, runs out of retries or
   returns output that cannot be used

The extractor never raises. "No action items" is an empty list.
"""
import asyncio
import json
import re
from typing import Any, Awaitable, Callable, List, Optional

from app.config import get_settings
from app.integrations import gemini_client
from app.models.tasks import ActionItem
from app.utils.logger import get_logger
from app.utils.errors import AIError

logger = get_logger(__name__)
settings = get_settings()

MIN_ITEM_LENGTH = 5  # exclusive
MAX_ITEM_LENGTH = 300  # exclusive

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
RETRYABLE_MESSAGES = [
    "overloaded",
    "service unavailable",
    "rate limit",
    "timeout",
    "network error",
    "fetch failed",
]


EXTRACTION_PROMPT = """Analyze the following meeting transcript to extract action items and identify task assignments.

TASK: Extract action items and assign them to the most appropriate meeting attendee based on:
1. Who is mentioned in relation to the task
2. Who has the expertise or responsibility for the task
3. Who volunteered or was assigned the task
4. Context clues about who should handle the task

INSTRUCTIONS:
- First, identify all meeting attendees mentioned in the transcript
- For each action item, determine the most appropriate assignee
- If no clear assignee is found, mark as "Unassigned"
- Consider context, responsibilities, and explicit assignments

Return ONLY a JSON array of objects, where each object has:
- "task": a clear, concise task description
- "assignee": the name of the person assigned to the task (or "Unassigned" if unclear)
- "assigneeReason": brief explanation of why this person was assigned
- "deadline": the deadline in ISO 8601 format (YYYY-MM-DDTHH:MM:SS) if mentioned, or null
- "deadlineText": the original deadline text as mentioned in the transcript (e.g., "by Friday"), or null

Example output format:
[
  {{
    "task": "Review the quarterly budget",
    "assignee": "Sarah Johnson",
    "assigneeReason": "mentioned as finance lead",
    "deadline": "2024-01-15T17:00:00",
    "deadlineText": "by Friday"
  }},
  {{
    "task": "Schedule follow-up meeting",
    "assignee": "Unassigned",
    "assigneeReason": "no clear assignee mentioned",
    "deadline": null,
    "deadlineText": null
  }}
]

Meeting transcript: {transcript}"""


def _within_bounds(task: str) -> bool:
    return MIN_ITEM_LENGTH < len(task) < MAX_ITEM_LENGTH


def is_retryable(error: Exception) -> bool:
    """Transient provider failures: 429/5xx or a known transient message."""
    if hasattr(error, "upstream_status"):
        status = error.upstream_status
    else:
        status = gemini_client.upstream_status(error)
    if status in RETRYABLE_STATUS_CODES:
        return True

    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGES)


# =============================================================================
# PRIMARY: GEMINI
# =============================================================================

class GeminiActionItemStrategy:
    """Extract action items with a single Gemini completion."""

    name = "gemini"

    def __init__(
        self,
        generate: Optional[Callable[[str], Awaitable[str]]] = None,
        configured: Optional[bool] = None,
    ):
        self._generate = generate or gemini_client.complete
        self._configured = configured

    def is_available(self) -> bool:
        if self._configured is not None:
            return self._configured
        return gemini_client.is_configured()

    async def extract(self, text: str) -> List[ActionItem]:
        """
        Raises:
            AIError: provider failure, or output that is not a JSON array
        """
        raw = await self._generate(EXTRACTION_PROMPT.format(transcript=text))
        logger.info(f"Gemini response received, length: {len(raw)}")
        return self.parse_response(raw)

    @staticmethod
    def parse_response(raw: str) -> List[ActionItem]:
        """Parse model output into action items."""
        try:
            data = json.loads(gemini_client.strip_code_fence(raw))
        except ValueError as e:
            raise AIError(f"Unusable model output: {e}")

        if not isinstance(data, list):
            raise AIError("Unusable model output: top-level value is not an array")

        items = []
        for entry in data:
            item = _normalize(entry)
            if item is not None:
                items.append(item)
        return items


def _normalize(entry: Any) -> Optional[ActionItem]:
    # Older prompt versions returned bare strings
    if isinstance(entry, str):
        task = entry.strip()
        if not _within_bounds(task):
            return None
        return ActionItem(
            task=task,
            assignee="Unassigned",
            assignee_reason="legacy format - no assignee information",
        )

    if not isinstance(entry, dict):
        return None

    task = entry.get("task")
    if not isinstance(task, str) or not _within_bounds(task.strip()):
        return None

    return ActionItem(
        task=task.strip(),
        assignee=_text_or(entry.get("assignee"), "Unassigned"),
        assignee_reason=_text_or(entry.get("assigneeReason"), "no clear assignee mentioned"),
        deadline=_text_or(entry.get("deadline"), None),
        deadline_text=_text_or(entry.get("deadlineText"), None),
    )


def _text_or(value: Any, default: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


# =============================================================================
# FALLBACK: REGEX
# =============================================================================

FALLBACK_PATTERNS = [
    re.compile(r"\bI(?:\s+will|'ll)\s+([^.!?]+[.!?])", re.IGNORECASE),
    re.compile(r"\bI\s+(?:need\s+to|have\s+to)\s+([^.!?]+[.!?])", re.IGNORECASE),
    re.compile(r"(?:action\s+item|todo):\s*([^.!?]+[.!?])", re.IGNORECASE),
    re.compile(r"next\s+steps?:\s*([^.!?]+[.!?])", re.IGNORECASE),
    re.compile(r"follow\s+up:\s*([^.!?]+[.!?])", re.IGNORECASE),
    re.compile(r"\b(?:we\s+need\s+to|we\s+should)\s+([^.!?]+[.!?])", re.IGNORECASE),
    re.compile(
        r"\b(?:please\s+)?((?:review|check|update|send|schedule|call|email)\s+[^.!?]+[.!?])",
        re.IGNORECASE,
    ),
]


class RegexActionItemStrategy:
    """Pattern-based extraction, no external calls."""

    name = "regex"

    def extract(self, text: str) -> List[ActionItem]:
        seen = set()
        items = []

        for pattern in FALLBACK_PATTERNS:
            for match in pattern.finditer(text):
                task = match.group(1).strip()
                key = task.lower()
                if not _within_bounds(task) or key in seen:
                    continue
                seen.add(key)
                items.append(ActionItem(
                    task=task,
                    assignee="Unassigned",
                    assignee_reason="regex fallback - no attendee information available",
                ))

        logger.info(f"Fallback extraction found {len(items)} item(s)")
        return items


# =============================================================================
# EXTRACTOR
# =============================================================================

class ActionItemExtractor:
    """
    Primary strategy with capped fixed-delay retries, then the fallback.

    Usage:
        extractor = ActionItemExtractor()
        items = await extractor.extract(transcript_text)
    """

    def __init__(
        self,
        primary: Optional[GeminiActionItemStrategy] = None,
        fallback: Optional[RegexActionItemStrategy] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.primary = primary or GeminiActionItemStrategy()
        self.fallback = fallback or RegexActionItemStrategy()
        self.max_retries = settings.extraction_max_retries if max_retries is None else max_retries
        self.retry_delay = settings.extraction_retry_delay if retry_delay is None else retry_delay

    async def extract(self, text: str) -> List[ActionItem]:
        if self.primary.is_available():
            try:
                return await self._extract_with_retries(text)
            except Exception as e:
                logger.warning(f"Gemini extraction failed, using fallback: {e}")
        else:
            logger.info("Gemini not configured, using fallback extraction")

        try:
            return self.fallback.extract(text)
        except Exception as e:
            logger.error(f"Fallback extraction failed: {e}")
            return []

    async def _extract_with_retries(self, text: str) -> List[ActionItem]:
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                logger.info(f"Attempting Gemini extraction (attempt {attempt + 1}/{attempts})")
                return await self.primary.extract(text)
            except Exception as e:
                if attempt < self.max_retries and is_retryable(e):
                    logger.warning(f"Retryable Gemini error, retrying in {self.retry_delay}s: {e}")
                    await asyncio.sleep(self.retry_delay)
                    continue
                raise
