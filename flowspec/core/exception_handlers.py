"""Centralized exception handlers for the FastAPI app.

Register with register_exception_handlers(app). Every error body has the
same shape: {"error", "message", "details", "request_id"}, so clients and
the request log can be joined on the request id.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from flowspec.core.config import get_settings
from flowspec.domain.exceptions import FlowSpecException
from flowspec.shared.context import get_request_id
from flowspec.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

# Domain error_code -> HTTP status; unknown codes are client errors (400).
_ERROR_CODE_STATUS: dict[str, int] = {
    "RESOURCE_NOT_FOUND": 404,
    "VALIDATION_ERROR": 400,
    "MALFORMED_PACKAGE": 400,
    "SKILL_DEFINITION_CONFLICT": 409,
    "WORKFLOW_STATE_ERROR": 409,
    "SIGNATURE_INVALID": 401,
    "EXTERNAL_SERVICE_ERROR": 502,
    "CONFIGURATION_MISSING": 503,
    "WAIT_TIMEOUT": 409,
}


def _error_response(
    status_code: int,
    error: str,
    message: Any,
    details: Any = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": error, "message": message}
    if details is not None:
        content["details"] = details
    request_id = get_request_id()
    if request_id:
        content["request_id"] = request_id
    return JSONResponse(status_code=status_code, content=content)


def _flowspec_exception_handler(request: Request, exc: FlowSpecException) -> JSONResponse:
    status = _ERROR_CODE_STATUS.get(exc.error_code, 400)
    if status >= 500:
        logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return _error_response(status, exc.error_code, exc.message, exc.details)


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request body/query did not match the schema: 422 with pydantic's error list."""
    return _error_response(
        422, "VALIDATION_ERROR", "Request validation failed", _jsonable_errors(exc)
    )


def _jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Pydantic errors without the non-serializable 'ctx'/'input' payloads."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error_response(exc.status_code, "HTTP_ERROR", exc.detail)


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500; the exception text is only exposed when debug is on."""
    logger.exception("Unhandled exception on %s", request.url.path)
    detail = str(exc) if get_settings().debug else "Internal server error"
    return _error_response(500, "INTERNAL_ERROR", detail)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    app.add_exception_handler(FlowSpecException, _flowspec_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
