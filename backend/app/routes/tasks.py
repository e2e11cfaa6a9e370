"""
Google Tasks endpoints.

POST /add-task       { task }                      → one task, with default notes
POST /confirm-tasks  { tasks: [{task, deadline}] } → batch from reviewed items

Both run auth → CSRF → validation before touching Google, then refresh the
access token if it is close to expiry and rewrite the cookie.
"""
from fastapi import APIRouter, Depends, Response

from app.integrations.tasks_client import TasksClient
from app.models.session import TokenBundle
from app.models.tasks import AddTaskRequest, ConfirmTasksRequest
from app.middleware.security import verify_csrf
from app.services.auth_service import AuthService
from app.services.session_service import get_current_tokens, set_token_cookie
from app.services.task_service import TaskService, confirmation_message
from app.services.validation import validate_confirmation, validate_task_title
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)
auth_service = AuthService()


async def _task_service(tokens: TokenBundle, response: Response) -> TaskService:
    """Refresh tokens if needed and build a TaskService for them."""
    tokens, refreshed = await auth_service.ensure_fresh_tokens(tokens)
    if refreshed:
        set_token_cookie(response, tokens)
    return TaskService(TasksClient(tokens.access_token))


@router.post("/add-task", dependencies=[Depends(verify_csrf)])
async def add_task(
    body: AddTaskRequest,
    response: Response,
    tokens: TokenBundle = Depends(get_current_tokens),
):
    title = validate_task_title(body.task)

    service = await _task_service(tokens, response)
    task = await service.add_task(title)

    return {
        "success": True,
        "message": "Task created successfully",
        "task_id": task.get("id"),
    }


@router.post("/confirm-tasks", dependencies=[Depends(verify_csrf)])
async def confirm_tasks(
    body: ConfirmTasksRequest,
    response: Response,
    tokens: TokenBundle = Depends(get_current_tokens),
):
    """
    Create the user-approved items.

    Partial success is normal: success is true when at least one task was
    created, and the message carries the count.
    """
    items = validate_confirmation(body.tasks)

    service = await _task_service(tokens, response)
    result = await service.confirm_tasks(items)

    logger.info(f"Tasks creation completed: requested={result.requested} created={result.created}")
    return {
        "success": result.created > 0,
        "message": confirmation_message(result),
    }
