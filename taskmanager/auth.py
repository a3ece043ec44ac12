"""Authentication helpers and FastAPI security dependencies.

This module owns password hashing, JWT issuing/decoding and the FastAPI
dependencies `get_current_user` and `require_admin`. Token verification
raises HTTPExceptions on failure so the helpers can be used directly
inside route dependencies.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
import jwt
from sqlmodel import Session
from .config import settings
from .database import get_session
from . import models, repositories

logger = logging.getLogger("taskmanager.auth")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(description="JWT issued by POST /api/auth/login")


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return PWD_CTX.verify(password, password_hash)


def create_access_token(user: models.User, expires_in: timedelta = None) -> str:
    """Return a signed JWT identifying `user`.

    Claims: `sub` (username), `user_id`, `roles`, `iat` and `exp`.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_in if expires_in is not None else timedelta(hours=settings.JWT_EXPIRE_HOURS))
    payload = {
        "sub": user.username,
        "user_id": user.id,
        "roles": user.role_names(),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired', headers={"WWW-Authenticate": "Bearer"})
    except jwt.InvalidTokenError as exc:
        logger.debug("rejected token: %s", exc)
        raise HTTPException(status_code=401, detail='invalid token', headers={"WWW-Authenticate": "Bearer"})


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The function extracts the bearer token from the request, decodes it
    and loads the `User` through the request's own session so services
    can keep working with the same managed instance. It raises
    HTTPException(401) for any authentication issue.
    """
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    if not user.enabled:
        raise HTTPException(status_code=401, detail='user account is disabled')
    return user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    """Dependency restricting a route to `ROLE_ADMIN` holders."""
    if not user.is_admin():
        raise HTTPException(status_code=403, detail='Available to administrators only')
    return user
