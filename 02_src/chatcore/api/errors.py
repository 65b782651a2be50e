"""Mapping of core errors to HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import (
    AuthorizationError,
    ChatCoreError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from ..logging_config import get_logger

logger = get_logger(__name__)

HANDLED_ERRORS = (
    ValidationError,
    AuthorizationError,
    NotFoundError,
    StorageError,
    ChatCoreError,
)


async def chat_core_error_handler(request: Request, exc: ChatCoreError) -> JSONResponse:
    """Render a core error as ``{"error": message}`` with its status code."""
    if isinstance(exc, StorageError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed bodies, paths and queries as a ValidationError."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    error = ValidationError(f"Invalid request: {details}")
    return await chat_core_error_handler(request, error)


def register_error_handlers(fastapi_app: FastAPI) -> None:
    for error_class in HANDLED_ERRORS:
        fastapi_app.add_exception_handler(error_class, chat_core_error_handler)
    fastapi_app.add_exception_handler(
        RequestValidationError, request_validation_error_handler
    )
