"""Exception handlers mapping domain errors to HTTP responses."""

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from uuid_utils.compat import uuid7

from patternlens.api.schemas.errors import APIError, ErrorCode
from patternlens.core.exceptions import (
    AnalysisRunInProgressError,
    DetectionValidationError,
    PatternNotFoundError,
)
from patternlens.core.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _request_id(request: Request) -> str:
    """Caller-supplied request id, or a fresh UUIDv7."""
    rid = getattr(request.state, "request_id", None)
    if rid is None:
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid7())
        request.state.request_id = rid
    return str(rid)


def error_response(
    request: Request,
    status_code: int,
    error_code: ErrorCode,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build a JSON response in the APIError envelope."""
    request_id = _request_id(request)
    error = APIError(
        error_code=error_code.value,
        message=message,
        details=details,
        request_id=request_id,
        timestamp=datetime.now(UTC),
    )
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json"),
        headers={REQUEST_ID_HEADER: request_id},
    )


async def _pattern_not_found(request: Request, exc: PatternNotFoundError) -> JSONResponse:
    return error_response(
        request,
        404,
        ErrorCode.PATTERN_NOT_FOUND,
        exc.args[0],
        {"pattern_id": str(exc.pattern_id)},
    )


async def _run_in_progress(request: Request, exc: AnalysisRunInProgressError) -> JSONResponse:
    return error_response(
        request,
        409,
        ErrorCode.RUN_IN_PROGRESS,
        exc.args[0],
        {
            "run_id": str(exc.run_id),
            "started_at": exc.started_at.isoformat() if exc.started_at else None,
        },
    )


async def _detection_validation(request: Request, exc: DetectionValidationError) -> JSONResponse:
    return error_response(
        request,
        422,
        ErrorCode.VALIDATION_ERROR,
        exc.args[0],
        {"parameter": exc.parameter, "value": repr(exc.value)},
    )


async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        422,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
    )


async def _http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = ErrorCode.NOT_FOUND if exc.status_code == 404 else ErrorCode.INVALID_REQUEST
    return error_response(request, exc.status_code, code, str(exc.detail))


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled API error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    debug = getattr(getattr(request.app.state, "settings", None), "DEBUG", False)
    return error_response(
        request,
        500,
        ErrorCode.INTERNAL_ERROR,
        "Internal server error",
        {"type": type(exc).__name__} if debug else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the APIError handlers on an application."""
    app.add_exception_handler(PatternNotFoundError, _pattern_not_found)
    app.add_exception_handler(AnalysisRunInProgressError, _run_in_progress)
    app.add_exception_handler(DetectionValidationError, _detection_validation)
    app.add_exception_handler(RequestValidationError, _request_validation)
    app.add_exception_handler(StarletteHTTPException, _http_exception)
    app.add_exception_handler(Exception, _unhandled)
