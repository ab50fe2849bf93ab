"""
FastAPI exception handlers for application errors.
"""

import logging
import secrets
import string
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from complaints_bot.domain.errors import AppError, RateLimitError, ValidationError

logger = logging.getLogger(__name__)


def generate_error_id() -> str:
    """Generate a unique id that ties a response to its log line."""
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(9))
    return f"ERR-{int(time.time() * 1000)}-{suffix}"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as JSON with a tracking id."""
    error_id = generate_error_id()
    log_line = (
        f"{exc.__class__.__name__} [{error_id}] {request.method} {request.url.path}: "
        f"{exc.message} {exc.details}"
    )
    if exc.status_code >= 500:
        logger.error(log_line)
    else:
        logger.warning(log_line)

    body = {"error": exc.message, "error_id": error_id}
    headers = {}

    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors
    if isinstance(exc, RateLimitError):
        body["retry_after"] = exc.retry_after
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected exceptions."""
    error_id = generate_error_id()
    logger.exception(f"Unhandled error [{error_id}] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "error_id": error_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to an application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
