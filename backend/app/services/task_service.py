"""
Task creation service.

Creates single tasks and confirmed batches in the user's Google Tasks list.
Batches are inserted one item at a time; a failing item is logged and
skipped so the rest of the batch still goes through.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from app.config import get_settings
from app.integrations.tasks_client import TasksClient
from app.models.tasks import ConfirmResult
from app.utils.logger import get_logger, log_task_operation

logger = get_logger(__name__)
settings = get_settings()


def to_due(deadline: Optional[str]) -> Optional[str]:
    """
    Convert a deadline to an RFC 3339 UTC timestamp for the Tasks API.

    Naive timestamps are read as UTC. Unparseable input returns None.
    """
    if not deadline:
        return None
    try:
        parsed = datetime.fromisoformat(deadline.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid deadline: {deadline!r}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def confirmation_message(result: ConfirmResult) -> str:
    if result.created > 0:
        return f"Successfully created {result.created} task(s)."
    return "Failed to create any tasks. Please try again."


class TaskService:
    """
    Google Tasks operations for one request.

    Usage:
        service = TaskService(TasksClient(tokens.access_token))
        result = await service.confirm_tasks([("Review the budget", None)])
    """

    def __init__(self, client: TasksClient, tasklist: Optional[str] = None):
        self.client = client
        self.tasklist = tasklist or settings.tasklist_id

    async def add_task(self, title: str) -> dict:
        """Create one task with the default notes."""
        task = await self.client.insert_task(
            title=title,
            notes=settings.task_notes,
            tasklist=self.tasklist,
        )
        log_task_operation("create", task_id=task.get("id"), title_length=len(title))
        return task

    async def confirm_tasks(self, items: List[Tuple[str, Optional[str]]]) -> ConfirmResult:
        """
        Create each approved item in order.

        Args:
            items: (task, deadline) pairs; deadline may be None

        Returns:
            ConfirmResult with requested and created counts
        """
        created_titles: List[str] = []

        for task, deadline in items:
            title = (task or "").strip()
            if not title:
                continue

            try:
                await self.client.insert_task(
                    title=title,
                    due=to_due(deadline),
                    tasklist=self.tasklist,
                )
            except Exception as e:
                logger.error(f"Failed to create task {title[:50]!r}: {e}")
                continue
            created_titles.append(title)

        result = ConfirmResult(
            requested=len(items),
            created=len(created_titles),
            created_titles=created_titles,
        )
        log_task_operation("confirm", requested=result.requested, created=result.created)
        return result
