"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Table names are set explicitly so the schema stays readable from plain
SQL (`users`, `roles`, `user_roles`, `task_groups`, `tasks`).
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
from typing import List


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoleName(str, Enum):
    ROLE_USER = "ROLE_USER"
    ROLE_ADMIN = "ROLE_ADMIN"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class UserRoleLink(SQLModel, table=True):
    """Association row granting a `Role` to a `User`."""
    __tablename__ = "user_roles"

    user_id: Optional[int] = Field(default=None, foreign_key="users.id", primary_key=True)
    role_id: Optional[int] = Field(default=None, foreign_key="roles.id", primary_key=True)


class Role(SQLModel, table=True):
    """A named authority such as `ROLE_ADMIN`."""
    __tablename__ = "roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: RoleName = Field(unique=True, nullable=False)
    description: Optional[str] = Field(default=None, max_length=200)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `email`: unique contact address
    - `password_hash`: hashed password string (never store plaintext)
    - `enabled`: disabled accounts cannot log in
    - `last_login`: refreshed on every successful authentication
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True, max_length=50)
    email: str = Field(index=True, nullable=False, unique=True, max_length=100)
    password_hash: str
    enabled: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    last_login: Optional[datetime] = None
    roles: List[Role] = Relationship(link_model=UserRoleLink)

    def role_names(self) -> List[str]:
        return sorted(r.name.value for r in self.roles)

    def is_admin(self) -> bool:
        return any(r.name == RoleName.ROLE_ADMIN for r in self.roles)


class Group(SQLModel, table=True):
    """A named collection of tasks owned by one user.

    Deleting a group deletes the tasks that belong to it.
    """
    __tablename__ = "task_groups"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    user_id: int = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    tasks: List['Task'] = Relationship(
        back_populates='group',
        sa_relationship_kwargs={"cascade": "all, delete", "order_by": "Task.id"},
    )


class Task(SQLModel, table=True):
    """A unit of work owned by a user, optionally filed under a `Group`."""
    __tablename__ = "tasks"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(nullable=False, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: TaskStatus = Field(default=TaskStatus.PENDING, nullable=False)
    group_id: Optional[int] = Field(default=None, foreign_key="task_groups.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    group: Optional[Group] = Relationship(back_populates='tasks')
