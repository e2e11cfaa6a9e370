"""
Input validation and sanitization.

Each validator returns the cleaned value or raises ValidationFailedError with
one {field, message} entry per failing field. Entities are decoded before the
markup checks, so encoded tags are caught the same as literal ones. HTML is
stripped afterwards and later stages only see plain text.
"""
import html
import re
from datetime import datetime
from typing import Any, List, Optional, Tuple

from app.models.tasks import ConfirmTaskItem
from app.utils.errors import ValidationFailedError

MAX_TASK_LENGTH = 8192  # Google Tasks title limit
MAX_TEXT_LENGTH = 50000
MAX_CONFIRM_ITEMS = 100

MALICIOUS_PATTERNS = [
    re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE),
    re.compile(r'javascript:', re.IGNORECASE),
    re.compile(r'on\w+\s*=', re.IGNORECASE),
    re.compile(r'<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>', re.IGNORECASE),
    re.compile(r'<object\b[^<]*(?:(?!</object>)<[^<]*)*</object>', re.IGNORECASE),
    re.compile(r'<embed\b[^<]*(?:(?!</embed>)<[^<]*)*</embed>', re.IGNORECASE),
    # unclosed openers are just as dangerous once rendered
    re.compile(r'<\s*(script|iframe|object|embed)\b', re.IGNORECASE),
]

HTML_TAG = re.compile(r'<[^>]*>')
# Elements whose content is dropped along with the tags
NON_TEXT_ELEMENTS = re.compile(
    r'<(script|style|textarea|noscript|iframe|object|embed)\b[^>]*>[\s\S]*?</\1\s*>',
    re.IGNORECASE,
)
CONFIRM_FORBIDDEN = re.compile(r'[<>{}]')


def contains_malicious_markup(value: str) -> bool:
    return any(pattern.search(value) for pattern in MALICIOUS_PATTERNS)


def strip_html(value: str) -> str:
    """Unescape entities, then remove HTML elements and tags."""
    decoded = html.unescape(value)
    without_blocks = NON_TEXT_ELEMENTS.sub("", decoded)
    return HTML_TAG.sub("", without_blocks)


def _error(field: str, message: str, errors: List[dict]) -> None:
    errors.append({"field": field, "message": message})


def validate_task_title(value: Any, field: str = "task") -> str:
    """Validate a single task title for /add-task."""
    errors: List[dict] = []

    if not isinstance(value, str):
        _error(field, "Task must be between 1 and 8192 characters", errors)
        raise ValidationFailedError(errors)

    decoded = html.unescape(value)
    if contains_malicious_markup(decoded):
        _error(field, "Task contains potentially malicious content", errors)
    elif HTML_TAG.search(decoded):
        _error(field, "Task contains HTML tags which are not allowed", errors)

    cleaned = strip_html(value).strip()
    if not 1 <= len(cleaned) <= MAX_TASK_LENGTH:
        _error(field, "Task must be between 1 and 8192 characters", errors)

    if errors:
        raise ValidationFailedError(errors)
    return cleaned


def validate_transcript_text(value: Any, field: str = "text") -> str:
    """Validate pasted transcript text for /process-text."""
    errors: List[dict] = []

    if not isinstance(value, str):
        _error(field, "Text must be between 1 and 50000 characters", errors)
        raise ValidationFailedError(errors)

    if contains_malicious_markup(html.unescape(value)):
        _error(field, "Text contains potentially malicious content", errors)

    cleaned = strip_html(value).strip()
    if not 1 <= len(cleaned) <= MAX_TEXT_LENGTH:
        _error(field, "Text must be between 1 and 50000 characters", errors)

    if errors:
        raise ValidationFailedError(errors)
    return cleaned



def clean_extracted_text(text: str) -> str:
    """Strip markup from decoded PDF text and cap it at the pasted-text bound."""
    return strip_html(text).strip()[:MAX_TEXT_LENGTH]

def _is_iso8601(value: str) -> bool:
    try:
        datetime.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def validate_confirmation(items: Any) -> List[Tuple[str, Optional[str]]]:
    """
    Validate a /confirm-tasks batch.

    Returns:
        List of (task, deadline) pairs in input order
    """
    errors: List[dict] = []

    if not isinstance(items, list) or not 1 <= len(items) <= MAX_CONFIRM_ITEMS:
        _error("tasks", "Tasks must be an array with 1-100 items", errors)
        raise ValidationFailedError(errors)

    pairs: List[Tuple[str, Optional[str]]] = []
    for index, item in enumerate(items):
        if isinstance(item, ConfirmTaskItem):
            task, deadline = item.task, item.deadline
        else:
            task, deadline = item, None

        if task is not None:
            task = task.strip()
            if not 1 <= len(task) <= MAX_TASK_LENGTH:
                _error(f"tasks[{index}].task", "Each task must be between 1 and 8192 characters", errors)
            elif CONFIRM_FORBIDDEN.search(html.unescape(task)):
                _error(f"tasks[{index}].task", "Task contains invalid characters", errors)
            elif contains_malicious_markup(task):
                _error(f"tasks[{index}].task", "Task contains potentially malicious content", errors)

        if deadline and not _is_iso8601(deadline):
            _error(f"tasks[{index}].deadline", "Deadline must be a valid ISO 8601 date", errors)

        pairs.append((task or "", deadline or None))

    if errors:
        raise ValidationFailedError(errors)
    return pairs
