"""Domain exceptions and their HTTP mapping.

Services raise the exceptions below instead of `HTTPException` so they
stay usable outside a request (seeding, scripts, tests).
`register_exception_handlers` translates them into JSON error responses
and installs a last-resort handler that logs unexpected failures with an
error id clients can quote when reporting problems.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("taskmanager.errors")


class TaskManagerError(Exception):
    """Base class for errors raised by the service layer."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TaskManagerError):
    status_code = 404


class PermissionDeniedError(TaskManagerError):
    status_code = 403


class ConflictError(TaskManagerError):
    """A unique value (username, email) is already taken."""
    status_code = 400


class AuthenticationError(TaskManagerError):
    status_code = 401


async def domain_exception_handler(request: Request, exc: TaskManagerError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = id(exc)
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "Unhandled exception [%s] (request %s) in %s %s: %s",
        error_id,
        request_id,
        request.method,
        request.url.path,
        exc,
        exc_info=True,
        extra={
            "error_id": error_id,
            "request_id": request_id,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )
    content = {
        "detail": "Internal server error",
        "error_id": error_id,
        "error_type": type(exc).__name__,
    }
    headers = None
    if request_id:
        content["request_id"] = request_id
        headers = {"X-Request-ID": request_id}
    return JSONResponse(status_code=500, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Register the domain and fallback exception handlers on `app`."""
    app.add_exception_handler(TaskManagerError, domain_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    logger.debug("Exception handlers registered")
