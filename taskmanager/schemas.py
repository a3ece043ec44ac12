"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests.
"""

from datetime import datetime
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from typing import Annotated, List, Optional
from .models import TaskStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _not_blank(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError('must not be blank')
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    username: NonBlankStr = Field(min_length=1)
    password: NonBlankStr = Field(min_length=1)


class SignupIn(BaseModel):
    """Payload for user registration."""
    username: NonBlankStr = Field(min_length=3, max_length=50)
    email: str = Field(max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=100)


class JwtOut(BaseModel):
    """Authentication response containing the bearer token and identity."""
    token: str
    type: str = "Bearer"
    id: int
    username: str
    email: str
    roles: List[str]


class MessageOut(BaseModel):
    message: str


class TaskCreate(BaseModel):
    """Request format for creating a task."""
    title: NonBlankStr = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[TaskStatus] = None
    group_id: Optional[int] = None


class TaskUpdate(TaskCreate):
    """Full update of a task.

    `status` is kept when omitted; a null `group_id` detaches the task
    from its group.
    """


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    group_id: Optional[int] = None
    user_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class GroupCreate(BaseModel):
    """Request format for creating or renaming a group."""
    name: NonBlankStr = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)


class GroupOut(BaseModel):
    """A group; `tasks` is only populated by the with-tasks views."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    user_id: int
    tasks: Optional[List[TaskOut]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class StatisticsOut(BaseModel):
    total_users: int = 0
    total_tasks: int = 0
    total_groups: int = 0
    pending_tasks: int = 0
    in_progress_tasks: int = 0
    completed_tasks: int = 0
    tasks_with_group: int = 0
    tasks_without_group: int = 0
    top_groups: Optional[str] = None
    top_users: Optional[str] = None


class DashboardStatisticsOut(StatisticsOut):
    completion_rate: float = 0.0


class GroupStatisticsOut(BaseModel):
    group_id: int
    group_name: str
    owner_username: str
    task_count: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0


class UserStatisticsOut(BaseModel):
    user_id: int
    username: str
    task_count: int = 0
    group_count: int = 0
    completed_tasks: int = 0
