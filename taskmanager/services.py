"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and access rules. Services are intentionally thin: they validate
ownership, execute domain logic and persist aggregates via
repositories. They raise the exceptions from `errors` and never deal
with HTTP directly.

Access rule shared by the task and group services: a user may read or
change an object they own; `ROLE_ADMIN` holders may touch everything.
"""

import logging
from typing import List, Optional
from sqlmodel import Session
from . import models, repositories, schemas
from .auth import create_access_token, hash_password, verify_password
from .errors import AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError

logger = logging.getLogger("taskmanager.services")

ADMIN_ONLY = "Available to administrators only"
NO_DATA = "No data"

ROLE_DESCRIPTIONS = {
    models.RoleName.ROLE_USER: "Regular user",
    models.RoleName.ROLE_ADMIN: "Administrator",
}


def ensure_role(session: Session, name: models.RoleName) -> models.Role:
    """Return the role called `name`, creating it on first use."""
    repo = repositories.RoleRepository(session)
    role = repo.get_by_name(name)
    if role is None:
        role = repo.create(models.Role(name=name, description=ROLE_DESCRIPTIONS[name]))
        logger.info("Created %s role", name.value)
    return role


def task_to_dto(task: models.Task) -> schemas.TaskOut:
    return schemas.TaskOut.model_validate(task)


def group_to_dto(group: models.Group, with_tasks: bool = False) -> schemas.GroupOut:
    return schemas.GroupOut(
        id=group.id,
        name=group.name,
        description=group.description,
        user_id=group.user_id,
        tasks=[task_to_dto(t) for t in group.tasks] if with_tasks else None,
        created_at=group.created_at,
        updated_at=group.updated_at,
    )


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, email: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Every user gets `ROLE_USER`; the first registered user also gets
        `ROLE_ADMIN`. Raises `ConflictError` when the username or email
        is taken.
        """
        logger.info("Registering new user: %s", username)
        if self.user_repo.exists_by_username(username):
            logger.warning("Username %s is already taken", username)
            raise ConflictError("Error: Username is already taken!")
        if self.user_repo.exists_by_email(email):
            logger.warning("Email %s is already in use", email)
            raise ConflictError("Error: Email is already in use!")

        roles = [ensure_role(self.session, models.RoleName.ROLE_USER)]
        if self.user_repo.count() == 0:
            logger.info("First user registration - assigning ADMIN role")
            roles.append(ensure_role(self.session, models.RoleName.ROLE_ADMIN))

        user = models.User(username=username, email=email, password_hash=hash_password(password), enabled=True)
        user.roles = roles
        user = self.user_repo.create(user)
        logger.info("User %s registered successfully with roles: %s", username, ", ".join(user.role_names()))
        return user

    def authenticate(self, username: str, password: str) -> schemas.JwtOut:
        """Verify credentials and return a signed JWT with the user's identity.

        Records the login time on success. Raises `AuthenticationError`
        for unknown users, wrong passwords and disabled accounts.
        """
        logger.info("Authenticating user: %s", username)
        user = self.user_repo.get_by_username(username)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid username or password")
        if not user.enabled:
            raise AuthenticationError("User account is disabled")
        user.last_login = models.utcnow()
        user = self.user_repo.save(user)
        logger.info("User %s authenticated successfully", username)
        return schemas.JwtOut(
            token=create_access_token(user),
            id=user.id,
            username=user.username,
            email=user.email,
            roles=user.role_names(),
        )


class _OwnedResourceService:
    """Shared lookups and ownership checks for tasks and groups."""
    def __init__(self, session: Session, current_user: models.User):
        self.session = session
        self.user = current_user
        self.task_repo = repositories.TaskRepository(session)
        self.group_repo = repositories.GroupRepository(session)

    def _is_admin(self) -> bool:
        return self.user.is_admin()

    def _check_owner(self, owner_id: int, message: str) -> None:
        if owner_id != self.user.id and not self._is_admin():
            raise PermissionDeniedError(message)

    def _get_task(self, task_id: int) -> models.Task:
        task = self.task_repo.get(task_id)
        if not task:
            raise NotFoundError(f"Task not found with id: {task_id}")
        return task

    def _get_group(self, group_id: int) -> models.Group:
        group = self.group_repo.get(group_id)
        if not group:
            raise NotFoundError(f"Group not found with id: {group_id}")
        return group


class TaskService(_OwnedResourceService):
    """Task CRUD on behalf of the current user."""

    def _resolve_group(self, group_id: Optional[int], message: str) -> Optional[models.Group]:
        if group_id is None:
            return None
        group = self._get_group(group_id)
        self._check_owner(group.user_id, message)
        return group

    def create_task(self, data: schemas.TaskCreate) -> schemas.TaskOut:
        group = self._resolve_group(data.group_id, "You don't have permission to add tasks to this group")
        task = models.Task(
            title=data.title,
            description=data.description,
            status=data.status or models.TaskStatus.PENDING,
            user_id=self.user.id,
            group_id=group.id if group else None,
        )
        return task_to_dto(self.task_repo.save(task))

    def update_task(self, task_id: int, data: schemas.TaskUpdate) -> schemas.TaskOut:
        """Replace title/description, keep status unless given, move or detach the group."""
        task = self._get_task(task_id)
        self._check_owner(task.user_id, "You don't have permission to update this task")
        group = self._resolve_group(data.group_id, "You don't have permission to move task to this group")
        task.title = data.title
        task.description = data.description
        if data.status is not None:
            task.status = data.status
        task.group_id = group.id if group else None
        task.updated_at = models.utcnow()
        return task_to_dto(self.task_repo.save(task))

    def list_tasks(self) -> List[schemas.TaskOut]:
        if self._is_admin():
            tasks = self.task_repo.list_all()
        else:
            tasks = self.task_repo.list_by_user(self.user.id)
        return [task_to_dto(t) for t in tasks]

    def get_task(self, task_id: int) -> schemas.TaskOut:
        task = self._get_task(task_id)
        self._check_owner(task.user_id, "You don't have permission to view this task")
        return task_to_dto(task)

    def delete_task(self, task_id: int) -> None:
        task = self._get_task(task_id)
        self._check_owner(task.user_id, "You don't have permission to delete this task")
        self.task_repo.delete(task)

    def list_tasks_without_group(self) -> List[schemas.TaskOut]:
        owner = None if self._is_admin() else self.user.id
        return [task_to_dto(t) for t in self.task_repo.list_without_group(owner)]

    def update_task_group(self, task_id: int, group_id: Optional[int]) -> schemas.TaskOut:
        """Move the task into `group_id`, or detach it when `group_id` is None."""
        task = self._get_task(task_id)
        self._check_owner(task.user_id, "You don't have permission to update this task")
        group = self._resolve_group(group_id, "You don't have permission to use this group")
        task.group_id = group.id if group else None
        task.updated_at = models.utcnow()
        return task_to_dto(self.task_repo.save(task))


class GroupService(_OwnedResourceService):
    """Group CRUD and task membership on behalf of the current user."""

    def _get_visible_group(self, group_id: int, message: str) -> models.Group:
        group = self._get_group(group_id)
        self._check_owner(group.user_id, message)
        return group

    def create_group(self, data: schemas.GroupCreate) -> schemas.GroupOut:
        group = models.Group(name=data.name, description=data.description, user_id=self.user.id)
        return group_to_dto(self.group_repo.save(group))

    def list_groups(self, name: Optional[str] = None) -> List[schemas.GroupOut]:
        """List visible groups, optionally filtered by a case-insensitive name fragment."""
        if name:
            groups = self.group_repo.search_by_name(name)
            if not self._is_admin():
                groups = [g for g in groups if g.user_id == self.user.id]
        elif self._is_admin():
            groups = self.group_repo.list_all()
        else:
            groups = self.group_repo.list_by_user(self.user.id)
        return [group_to_dto(g) for g in groups]

    def get_group(self, group_id: int) -> schemas.GroupOut:
        return group_to_dto(self._get_visible_group(group_id, "You don't have permission to view this group"))

    def get_group_with_tasks(self, group_id: int) -> schemas.GroupOut:
        group = self._get_visible_group(group_id, "You don't have permission to view this group")
        return group_to_dto(group, with_tasks=True)

    def update_group(self, group_id: int, data: schemas.GroupCreate) -> schemas.GroupOut:
        group = self._get_visible_group(group_id, "You don't have permission to update this group")
        group.name = data.name
        group.description = data.description
        group.updated_at = models.utcnow()
        return group_to_dto(self.group_repo.save(group))

    def delete_group(self, group_id: int) -> None:
        """Delete the group together with every task filed under it."""
        group = self._get_visible_group(group_id, "You don't have permission to delete this group")
        self.group_repo.delete(group)

    def add_task_to_group(self, group_id: int, task_id: int) -> schemas.GroupOut:
        group = self._get_group(group_id)
        task = self._get_task(task_id)
        self._check_owner(group.user_id, "You don't have permission to modify this group")
        self._check_owner(task.user_id, "You don't have permission to modify this task")
        task.group_id = group.id
        task.updated_at = models.utcnow()
        self.task_repo.save(task)
        self.session.refresh(group)
        return group_to_dto(group, with_tasks=True)

    def remove_task_from_group(self, group_id: int, task_id: int) -> schemas.GroupOut:
        """Detach the task if it currently belongs to `group_id`; otherwise a no-op."""
        group = self._get_group(group_id)
        task = self._get_task(task_id)
        self._check_owner(group.user_id, "You don't have permission to modify this group")
        self._check_owner(task.user_id, "You don't have permission to modify this task")
        if task.group_id == group.id:
            task.group_id = None
            task.updated_at = models.utcnow()
            self.task_repo.save(task)
            self.session.refresh(group)
        return group_to_dto(group, with_tasks=True)

    def list_group_tasks(self, group_id: int) -> List[schemas.TaskOut]:
        group = self._get_visible_group(group_id, "You don't have permission to view this group's tasks")
        return [task_to_dto(t) for t in self.task_repo.list_by_group(group.id)]


class StatisticsService:
    """Aggregate counters, per-group and per-user breakdowns.

    Administrators see global figures; everyone else sees figures for
    their own tasks and groups only.
    """
    def __init__(self, session: Session, current_user: models.User):
        self.session = session
        self.user = current_user
        self.stats_repo = repositories.StatisticsRepository(session)

    def _require_admin(self) -> None:
        if not self.user.is_admin():
            raise PermissionDeniedError(ADMIN_ONLY)

    def get_statistics(self) -> schemas.StatisticsOut:
        if self.user.is_admin():
            stats = schemas.StatisticsOut(**self.stats_repo.general())
            stats.top_groups = self._summarize(
                (g.group_name, g.task_count) for g in self.get_top_groups()
            )
            stats.top_users = self._summarize(
                (u.username, u.task_count) for u in self.get_top_users()
            )
            return stats
        stats = schemas.StatisticsOut(**self.stats_repo.general(user_id=self.user.id))
        stats.top_groups = ADMIN_ONLY
        stats.top_users = ADMIN_ONLY
        return stats

    @staticmethod
    def _summarize(entries) -> str:
        text = ", ".join(f"{name} ({count} tasks)" for name, count in entries)
        return text or NO_DATA

    def get_group_statistics(self) -> List[schemas.GroupStatisticsOut]:
        owner = None if self.user.is_admin() else self.user.id
        return [schemas.GroupStatisticsOut(**row) for row in self.stats_repo.group_rows(owner_id=owner)]

    def get_user_statistics(self) -> List[schemas.UserStatisticsOut]:
        self._require_admin()
        return [schemas.UserStatisticsOut(**row) for row in self.stats_repo.user_rows()]

    def get_top_groups(self) -> List[schemas.GroupStatisticsOut]:
        self._require_admin()
        rows = self.stats_repo.group_rows(limit=repositories.TOP_LIMIT)
        return [schemas.GroupStatisticsOut(**row) for row in rows]

    def get_top_users(self) -> List[schemas.UserStatisticsOut]:
        self._require_admin()
        rows = self.stats_repo.user_rows(limit=repositories.TOP_LIMIT)
        return [schemas.UserStatisticsOut(**row) for row in rows]

    def get_dashboard_statistics(self) -> schemas.DashboardStatisticsOut:
        """`get_statistics` plus the completion rate in percent."""
        stats = schemas.DashboardStatisticsOut(**self.get_statistics().model_dump())
        if stats.total_tasks > 0:
            stats.completion_rate = round(stats.completed_tasks / stats.total_tasks * 100, 2)
        return stats
