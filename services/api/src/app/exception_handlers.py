"""Render every error as the uniform JSON error envelope.

Envelope shape::

    {"success": false, "statusCode": 403, "message": "...", "path": "/roles",
     "method": "POST", "requestId": "...", "timestamp": "..."}
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.exceptions import AppError

logger = logging.getLogger(__name__)


class ErrorEnvelope(BaseModel):
    """Body of every non-2xx response."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    status_code: int = Field(serialization_alias="statusCode")
    message: str
    path: str
    method: str
    request_id: str | None = Field(default=None, serialization_alias="requestId")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def error_response(
    request: Request,
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    envelope = ErrorEnvelope(
        status_code=status_code,
        message=message,
        path=request.url.path,
        method=request.method,
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", by_alias=True),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code == 403:
        logger.warning("Access denied on %s %s: %s", request.method, request.url.path, exc.message)
    return error_response(request, exc.status_code, exc.message, exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(request, exc.status_code, str(exc.detail), exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Collapse pydantic errors into one readable message."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return error_response(request, 422, "; ".join(parts) or "Validation failed")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected failures; internal details are logged, not returned."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(request, 500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
