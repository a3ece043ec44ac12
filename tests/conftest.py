import os
import shutil
import tempfile
import uuid
from pathlib import Path

import pytest

# The app reads its settings at import time, so point it at a throwaway
# database before anything imports `taskmanager`.
_DB_DIR = Path(tempfile.mkdtemp(prefix="taskmanager-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["JWT_SECRET"] = "test-secret-that-is-long-enough-for-hs256"
os.environ["SEED_DEMO_DATA"] = "true"
os.environ["ENV"] = "dev"

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from taskmanager import models
from taskmanager.auth import hash_password
from taskmanager.database import create_db_and_tables
from taskmanager.services import ensure_role


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Remove the temporary SQLite database once the run is over."""
    yield
    shutil.rmtree(_DB_DIR, ignore_errors=True)


@pytest.fixture
def session():
    """An isolated in-memory database for service-level tests."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_db_and_tables(bind=engine)
    with Session(engine) as s:
        yield s
    engine.dispose()


@pytest.fixture
def make_user(session):
    """Factory creating users directly in the isolated `session`."""
    def _make(username: str, admin: bool = False, enabled: bool = True) -> models.User:
        roles = [ensure_role(session, models.RoleName.ROLE_USER)]
        if admin:
            roles.append(ensure_role(session, models.RoleName.ROLE_ADMIN))
        user = models.User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password("secret123"),
            enabled=enabled,
        )
        user.roles = roles
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return _make


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient
    from taskmanager.main import app
    return TestClient(app)


def _login(client, username: str, password: str) -> dict:
    r = client.post('/api/auth/login', json={'username': username, 'password': password})
    assert r.status_code == 200, r.text
    return {'Authorization': f"Bearer {r.json()['token']}"}


@pytest.fixture
def admin_headers(client):
    """Bearer headers for the seeded `admin` account."""
    return _login(client, 'admin', 'admin123')


@pytest.fixture
def new_user_headers(client):
    """Factory registering a fresh user with a unique name and returning its bearer headers."""
    def _register():
        name = f"u{uuid.uuid4().hex[:10]}"
        r = client.post('/api/auth/register', json={'username': name, 'email': f'{name}@example.com', 'password': 'secret123'})
        assert r.status_code == 200, r.text
        return _login(client, name, 'secret123')
    return _register
