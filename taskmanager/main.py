"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the task manager backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Interactive OpenAPI documentation
is served at `/docs` (schema at `/openapi.json`).

Endpoints implemented:
- POST /api/auth/login, POST /api/auth/register
- /api/tasks: create, list, without-group, get, update, delete,
  move to group, remove from group
- /api/groups: create, list, get, with-tasks, tasks, update, delete,
  add task, remove task
- /api/statistics: general, groups, users, top-groups, top-users,
  dashboard
"""

from fastapi import FastAPI, Depends, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
from typing import List, Optional
import json
import logging
import time
import uuid
from .database import engine, create_db_and_tables, get_session
from . import models, schemas, seed, services
from .auth import get_current_user, require_admin
from .config import settings
from .errors import register_exception_handlers

TAGS = [
    {"name": "Authentication", "description": "Authentication endpoints"},
    {"name": "Task Management", "description": "Operations pertaining to tasks"},
    {"name": "Group Management", "description": "Operations pertaining to task groups"},
    {"name": "Statistics", "description": "Statistics endpoints"},
]

app = FastAPI(title="Task Manager API", version="1.0", openapi_tags=TAGS)
logger = logging.getLogger("taskmanager.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )

register_exception_handlers(app)

create_db_and_tables()
with Session(engine) as _session:
    seed.run(_session, seed_demo_data=settings.SEED_DEMO_DATA)


def _request_log_line(request: Request, req_id: str, started: float, **extra) -> str:
    record = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    record.update(extra)
    return json.dumps(record, ensure_ascii=True)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed %s", _request_log_line(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        logger.info("request_done %s", _request_log_line(request, req_id, started, status_code=response.status_code))
    return response


# --- authentication -------------------------------------------------------

@app.post('/api/auth/login', response_model=schemas.JwtOut, tags=["Authentication"], summary="Authenticate user")
def login(payload: schemas.LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a signed JWT with their identity.

    The token carries `sub`, `user_id` and `roles` and must be sent as
    `Authorization: Bearer <token>` on every other `/api` route.
    """
    return services.AuthService(db).authenticate(payload.username, payload.password)


@app.post('/api/auth/register', response_model=schemas.MessageOut, tags=["Authentication"], summary="Register new user")
def register(payload: schemas.SignupIn, db: Session = Depends(get_session)):
    """Register a new user; duplicates of username or email are rejected with 400."""
    services.AuthService(db).register(payload.username, payload.email, payload.password)
    return {'message': 'User registered successfully!'}


# --- tasks ----------------------------------------------------------------

@app.post('/api/tasks', status_code=201, response_model=schemas.TaskOut, tags=["Task Management"], summary="Create a new task")
def create_task(payload: schemas.TaskCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TaskService(db, user).create_task(payload)


@app.get('/api/tasks', response_model=List[schemas.TaskOut], tags=["Task Management"], summary="Get all tasks")
def list_tasks(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Administrators get every task, other users only their own."""
    return services.TaskService(db, user).list_tasks()


@app.get('/api/tasks/without-group', response_model=List[schemas.TaskOut], tags=["Task Management"], summary="Get all tasks without a group")
def list_tasks_without_group(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TaskService(db, user).list_tasks_without_group()


@app.get('/api/tasks/{task_id}', response_model=schemas.TaskOut, tags=["Task Management"], summary="Get a task by ID")
def get_task(task_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TaskService(db, user).get_task(task_id)


@app.put('/api/tasks/{task_id}', response_model=schemas.TaskOut, tags=["Task Management"], summary="Update a task")
def update_task(task_id: int, payload: schemas.TaskUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Full update: `status` is kept when omitted, a null `group_id` detaches the task."""
    return services.TaskService(db, user).update_task(task_id, payload)


@app.delete('/api/tasks/{task_id}', status_code=204, tags=["Task Management"], summary="Delete a task")
def delete_task(task_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.TaskService(db, user).delete_task(task_id)
    return Response(status_code=204)


@app.put('/api/tasks/{task_id}/group/{group_id}', response_model=schemas.TaskOut, tags=["Task Management"], summary="Update task's group")
def update_task_group(task_id: int, group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TaskService(db, user).update_task_group(task_id, group_id)


@app.delete('/api/tasks/{task_id}/group', response_model=schemas.TaskOut, tags=["Task Management"], summary="Remove task from group")
def remove_task_group(task_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TaskService(db, user).update_task_group(task_id, None)


# --- groups ---------------------------------------------------------------

@app.post('/api/groups', status_code=201, response_model=schemas.GroupOut, tags=["Group Management"], summary="Create a new task group")
def create_group(payload: schemas.GroupCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db, user).create_group(payload)


@app.get('/api/groups', response_model=List[schemas.GroupOut], tags=["Group Management"], summary="Get all task groups")
def list_groups(name: Optional[str] = None, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List visible groups; `name` filters by a case-insensitive fragment."""
    return services.GroupService(db, user).list_groups(name=name)


@app.get('/api/groups/{group_id}', response_model=schemas.GroupOut, tags=["Group Management"], summary="Get a group by ID")
def get_group(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db, user).get_group(group_id)


@app.get('/api/groups/{group_id}/with-tasks', response_model=schemas.GroupOut, tags=["Group Management"], summary="Get a group with all its tasks")
def get_group_with_tasks(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db, user).get_group_with_tasks(group_id)


@app.get('/api/groups/{group_id}/tasks', response_model=List[schemas.TaskOut], tags=["Group Management"], summary="Get all tasks in a group")
def list_group_tasks(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db, user).list_group_tasks(group_id)


@app.put('/api/groups/{group_id}', response_model=schemas.GroupOut, tags=["Group Management"], summary="Update a task group")
def update_group(group_id: int, payload: schemas.GroupCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db, user).update_group(group_id, payload)


@app.delete('/api/groups/{group_id}', status_code=204, tags=["Group Management"], summary="Delete a task group (with all its tasks)")
def delete_group(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.GroupService(db, user).delete_group(group_id)
    return Response(status_code=204)


@app.post('/api/groups/{group_id}/tasks/{task_id}', response_model=schemas.GroupOut, tags=["Group Management"], summary="Add a task to a group")
def add_task_to_group(group_id: int, task_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db, user).add_task_to_group(group_id, task_id)


@app.delete('/api/groups/{group_id}/tasks/{task_id}', response_model=schemas.GroupOut, tags=["Group Management"], summary="Remove a task from a group")
def remove_task_from_group(group_id: int, task_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db, user).remove_task_from_group(group_id, task_id)


# --- statistics -----------------------------------------------------------

@app.get('/api/statistics', response_model=schemas.StatisticsOut, tags=["Statistics"], summary="Get general statistics")
def get_statistics(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Global figures for administrators, personal figures for everyone else."""
    return services.StatisticsService(db, user).get_statistics()


@app.get('/api/statistics/groups', response_model=List[schemas.GroupStatisticsOut], tags=["Statistics"], summary="Get statistics by groups")
def get_group_statistics(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StatisticsService(db, user).get_group_statistics()


@app.get('/api/statistics/users', response_model=List[schemas.UserStatisticsOut], tags=["Statistics"], summary="Get statistics by users (admin only)")
def get_user_statistics(db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    return services.StatisticsService(db, user).get_user_statistics()


@app.get('/api/statistics/top-groups', response_model=List[schemas.GroupStatisticsOut], tags=["Statistics"], summary="Get top 5 groups by task count (admin only)")
def get_top_groups(db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    return services.StatisticsService(db, user).get_top_groups()


@app.get('/api/statistics/top-users', response_model=List[schemas.UserStatisticsOut], tags=["Statistics"], summary="Get top 5 users by task count (admin only)")
def get_top_users(db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    return services.StatisticsService(db, user).get_top_users()


@app.get('/api/statistics/dashboard', response_model=schemas.DashboardStatisticsOut, tags=["Statistics"], summary="Get dashboard statistics")
def get_dashboard(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StatisticsService(db, user).get_dashboard_statistics()


# --- misc -----------------------------------------------------------------

@app.get("/", response_class=HTMLResponse, include_in_schema=False)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>Task Manager API</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>Task Manager API</h1>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/openapi.json">OpenAPI schema</a></li>
        </ul>
        <p>Use <code>/api/auth/register</code> + <code>/api/auth/login</code> to get a token, then try <code>/api/tasks</code>.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
