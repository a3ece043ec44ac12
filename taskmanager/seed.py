"""Start-up data initialisation.

Roles are always ensured. Demo accounts and sample data are only created
on an empty user table and only when `SEED_DEMO_DATA` is enabled:

- `admin` / `admin123` with `ROLE_ADMIN` and `ROLE_USER`
- `user` / `user123` with `ROLE_USER`
"""

import logging
from sqlmodel import Session
from . import models, repositories
from .auth import hash_password
from .services import ensure_role

logger = logging.getLogger("taskmanager.seed")

DEMO_ACCOUNTS = (
    ("admin", "admin@example.com", "admin123", (models.RoleName.ROLE_ADMIN, models.RoleName.ROLE_USER)),
    ("user", "user@example.com", "user123", (models.RoleName.ROLE_USER,)),
)


def initialize_roles(session: Session) -> None:
    logger.info("Initializing roles...")
    for name in models.RoleName:
        ensure_role(session, name)


def initialize_users(session: Session) -> bool:
    """Create the demo accounts and sample data; returns False if users already exist."""
    logger.info("Initializing users...")
    user_repo = repositories.UserRepository(session)
    if user_repo.count() > 0:
        logger.info("Users already exist, skipping creation")
        return False
    created = {}
    for username, email, password, role_names in DEMO_ACCOUNTS:
        user = models.User(username=username, email=email, password_hash=hash_password(password), enabled=True)
        user.roles = [ensure_role(session, name) for name in role_names]
        created[username] = user_repo.create(user)
        logger.info("Created demo user: %s", username)
    initialize_test_data(session, created["admin"], created["user"])
    return True


def initialize_test_data(session: Session, admin: models.User, user: models.User) -> None:
    logger.info("Initializing test data...")
    group_repo = repositories.GroupRepository(session)
    task_repo = repositories.TaskRepository(session)

    work = group_repo.save(models.Group(name="Work tasks", description="Tasks related to work", user_id=admin.id))
    personal = group_repo.save(models.Group(name="Personal tasks", description="Personal errands and plans", user_id=user.id))

    samples = [
        ("Prepare report", "Quarterly report for management", admin, work, models.TaskStatus.IN_PROGRESS),
        ("Team meeting", "Discuss plans for next week", admin, work, models.TaskStatus.PENDING),
        ("Buy groceries", "Grocery list for the week", user, personal, models.TaskStatus.PENDING),
        ("Go to the gym", "Workout session", user, personal, models.TaskStatus.COMPLETED),
        ("Learn FastAPI security", "Understand authentication and authorization", admin, None, models.TaskStatus.PENDING),
        ("Task without a group", "This task does not belong to any group", user, None, models.TaskStatus.PENDING),
    ]
    for title, description, owner, group, status in samples:
        task_repo.save(models.Task(
            title=title,
            description=description,
            status=status,
            user_id=owner.id,
            group_id=group.id if group else None,
        ))
    logger.info("Created 2 groups and %d tasks for testing", len(samples))


def run(session: Session, seed_demo_data: bool = True) -> None:
    """Ensure roles and, when requested, demo data.

    Failures are logged and re-raised so a broken database stops start-up
    instead of serving with missing roles.
    """
    logger.info("Starting data initialization...")
    try:
        initialize_roles(session)
        if seed_demo_data:
            initialize_users(session)
    except Exception:
        logger.exception("Error during data initialization")
        session.rollback()
        raise
    logger.info("Data initialization completed successfully!")
