"""
Task-related Pydantic models.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Any, Union


class ActionItem(BaseModel):
    """Extracted action item awaiting user review."""
    model_config = ConfigDict(populate_by_name=True)

    task: str
    assignee: str = "Unassigned"
    assignee_reason: str = Field(default="no clear assignee mentioned", alias="assigneeReason")
    deadline: Optional[str] = None
    deadline_text: Optional[str] = Field(default=None, alias="deadlineText")


class AddTaskRequest(BaseModel):
    """Single task creation request."""
    task: Any = None


class ProcessTextRequest(BaseModel):
    """Raw transcript text submitted for extraction."""
    text: Any = None


class ConfirmTaskItem(BaseModel):
    """A user-approved (and possibly edited) action item."""
    task: Optional[str] = None
    deadline: Optional[str] = None


class ConfirmTasksRequest(BaseModel):
    """Batch of approved items to create."""
    tasks: List[Union[ConfirmTaskItem, str]] = []


class ConfirmResult(BaseModel):
    """Outcome of a confirmation batch."""
    requested: int
    created: int
    created_titles: List[str] = []
