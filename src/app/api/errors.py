"""Exception handlers translating CRM domain errors to HTTP responses.

Domain errors carry a message and optional details; the body is always
``{"message": ..., "details": ...}``. Anything unexpected is logged with
its traceback and answered with a generic 500 so internals never leak.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.app.crm.errors import (
    AuthenticationFailed,
    AuthorizationError,
    ConflictError,
    CrmError,
    NotFoundError,
    ValidationFailed,
)

logger = structlog.get_logger(__name__)

STATUS_BY_ERROR: dict[type[CrmError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    AuthenticationFailed: status.HTTP_401_UNAUTHORIZED,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
}


def status_for(exc: CrmError) -> int:
    for error_cls in type(exc).__mro__:
        if error_cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("crm_error", path=request.url.path, error=exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"message": "Internal server error"},
        )
    logger.info(
        "crm_request_rejected",
        path=request.url.path,
        status_code=status_code,
        error=exc.message,
    )
    content: dict = {"message": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=status_code, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CrmError, crm_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
