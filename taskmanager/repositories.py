"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
roles, tasks, groups) plus a read-only repository for the statistics
aggregates. Repositories return SQLModel objects and perform
commits/refreshes where appropriate.
"""

from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import case, func
from . import models

TOP_LIMIT = 5


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def exists_by_username(self, username: str) -> bool:
        stmt = select(models.User.id).where(models.User.username == username)
        return self.session.exec(stmt).first() is not None

    def exists_by_email(self, email: str) -> bool:
        stmt = select(models.User.id).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first() is not None

    def count(self) -> int:
        return self.session.exec(select(func.count(models.User.id))).one()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class RoleRepository:
    """Lookup and creation of `Role` rows."""
    def __init__(self, session: Session):
        self.session = session

    def get_by_name(self, name: models.RoleName) -> Optional[models.Role]:
        stmt = select(models.Role).where(models.Role.name == name)
        return self.session.exec(stmt).first()

    def create(self, role: models.Role) -> models.Role:
        self.session.add(role)
        self.session.commit()
        self.session.refresh(role)
        return role


class TaskRepository:
    """CRUD and filtered listings for `Task` records."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, task_id: int) -> Optional[models.Task]:
        return self.session.get(models.Task, task_id)

    def save(self, task: models.Task) -> models.Task:
        """Insert or update `task` and return the refreshed instance."""
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def delete(self, task: models.Task) -> None:
        self.session.delete(task)
        self.session.commit()

    def list_all(self) -> List[models.Task]:
        return self.session.exec(select(models.Task).order_by(models.Task.id)).all()

    def list_by_user(self, user_id: int) -> List[models.Task]:
        stmt = select(models.Task).where(models.Task.user_id == user_id).order_by(models.Task.id)
        return self.session.exec(stmt).all()

    def list_by_group(self, group_id: int) -> List[models.Task]:
        stmt = select(models.Task).where(models.Task.group_id == group_id).order_by(models.Task.id)
        return self.session.exec(stmt).all()

    def list_without_group(self, user_id: Optional[int] = None) -> List[models.Task]:
        """Return ungrouped tasks, restricted to `user_id` when given."""
        stmt = select(models.Task).where(models.Task.group_id.is_(None))
        if user_id is not None:
            stmt = stmt.where(models.Task.user_id == user_id)
        return self.session.exec(stmt.order_by(models.Task.id)).all()


class GroupRepository:
    """CRUD operations for `Group` records."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, group_id: int) -> Optional[models.Group]:
        return self.session.get(models.Group, group_id)

    def save(self, group: models.Group) -> models.Group:
        self.session.add(group)
        self.session.commit()
        self.session.refresh(group)
        return group

    def delete(self, group: models.Group) -> None:
        """Delete `group`; its tasks go with it through the relationship cascade."""
        self.session.delete(group)
        self.session.commit()

    def list_all(self) -> List[models.Group]:
        return self.session.exec(select(models.Group).order_by(models.Group.id)).all()

    def list_by_user(self, user_id: int) -> List[models.Group]:
        stmt = select(models.Group).where(models.Group.user_id == user_id).order_by(models.Group.id)
        return self.session.exec(stmt).all()

    def search_by_name(self, fragment: str) -> List[models.Group]:
        """Case-insensitive substring match on the group name."""
        stmt = select(models.Group).where(func.lower(models.Group.name).contains(fragment.lower(), autoescape=True))
        return self.session.exec(stmt.order_by(models.Group.id)).all()


def _status_sum(status: models.TaskStatus):
    return func.coalesce(func.sum(case((models.Task.status == status, 1), else_=0)), 0)


class StatisticsRepository:
    """Read-only aggregate queries backing the statistics endpoints.

    Every method returns plain dicts or tuples so the service layer can
    shape them into response schemas without touching SQL.
    """
    def __init__(self, session: Session):
        self.session = session

    def _count(self, model, *conditions) -> int:
        stmt = select(func.count()).select_from(model)
        for cond in conditions:
            stmt = stmt.where(cond)
        return self.session.exec(stmt).one()

    def general(self, user_id: Optional[int] = None) -> dict:
        """Task, group and user counters.

        With `user_id` the counters only cover that user's own tasks and
        groups and `total_users` is 1.
        """
        task_scope = [] if user_id is None else [models.Task.user_id == user_id]
        group_scope = [] if user_id is None else [models.Group.user_id == user_id]
        return {
            'total_users': self._count(models.User) if user_id is None else 1,
            'total_tasks': self._count(models.Task, *task_scope),
            'total_groups': self._count(models.Group, *group_scope),
            'pending_tasks': self._count(models.Task, models.Task.status == models.TaskStatus.PENDING, *task_scope),
            'in_progress_tasks': self._count(models.Task, models.Task.status == models.TaskStatus.IN_PROGRESS, *task_scope),
            'completed_tasks': self._count(models.Task, models.Task.status == models.TaskStatus.COMPLETED, *task_scope),
            'tasks_with_group': self._count(models.Task, models.Task.group_id.is_not(None), *task_scope),
            'tasks_without_group': self._count(models.Task, models.Task.group_id.is_(None), *task_scope),
        }

    def group_rows(self, owner_id: Optional[int] = None, limit: Optional[int] = None) -> List[dict]:
        """Per-group task counters ordered by task count (desc) then id."""
        task_count = func.count(models.Task.id)
        stmt = (
            select(
                models.Group.id,
                models.Group.name,
                models.User.username,
                task_count,
                _status_sum(models.TaskStatus.COMPLETED),
                _status_sum(models.TaskStatus.PENDING),
            )
            .join(models.User, models.User.id == models.Group.user_id)
            .outerjoin(models.Task, models.Task.group_id == models.Group.id)
            .group_by(models.Group.id, models.Group.name, models.User.username)
            .order_by(task_count.desc(), models.Group.id)
        )
        if owner_id is not None:
            stmt = stmt.where(models.Group.user_id == owner_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [
            {
                'group_id': gid,
                'group_name': name,
                'owner_username': owner,
                'task_count': int(count or 0),
                'completed_tasks': int(completed or 0),
                'pending_tasks': int(pending or 0),
            }
            for gid, name, owner, count, completed, pending in self.session.exec(stmt).all()
        ]

    def user_rows(self, limit: Optional[int] = None) -> List[dict]:
        """Per-user task/group counters ordered by task count (desc) then id.

        Counts come from correlated subqueries so tasks and groups do not
        multiply each other as they would through a double outer join.
        """
        task_count = (
            select(func.count(models.Task.id))
            .where(models.Task.user_id == models.User.id)
            .correlate(models.User)
            .scalar_subquery()
        )
        group_count = (
            select(func.count(models.Group.id))
            .where(models.Group.user_id == models.User.id)
            .correlate(models.User)
            .scalar_subquery()
        )
        completed = (
            select(func.count(models.Task.id))
            .where(models.Task.user_id == models.User.id, models.Task.status == models.TaskStatus.COMPLETED)
            .correlate(models.User)
            .scalar_subquery()
        )
        stmt = (
            select(models.User.id, models.User.username, task_count, group_count, completed)
            .order_by(task_count.desc(), models.User.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [
            {
                'user_id': uid,
                'username': username,
                'task_count': int(tasks or 0),
                'group_count': int(groups or 0),
                'completed_tasks': int(done or 0),
            }
            for uid, username, tasks, groups, done in self.session.exec(stmt).all()
        ]
