"""
Error handlers: map seqsearch errors to HTTP statuses and JSON bodies.

Every error response has the same envelope::

    {"success": false, "error": true, "code": "QUEUE_FULL", "message": "..."}

and, like every other response, carries the queue-size headers.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from seqsearch.api.schemas import ErrorResponse
from seqsearch.core.errors import SeqSearchError
from seqsearch.core.logging import get_logger

logger = get_logger(__name__)

# ── Error code → HTTP status mapping ─────────────────────────────────────

ERROR_CODE_TO_STATUS: dict[str, int] = {
    "INVALID_REQUEST": 400,
    "NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "JOB_NOT_FOUND": 404,
    "QUEUE_FULL": 503,
    "INTERNAL_ERROR": 500,
}


def status_for_error_code(code: str) -> int:
    """Resolve an error code to HTTP status, defaulting to 500."""
    return ERROR_CODE_TO_STATUS.get(code, 500)


def error_response(
    *,
    code: str,
    message: str,
    status: int | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(code=code, message=message)
    return JSONResponse(
        status_code=status or status_for_error_code(code),
        content=body.model_dump(),
        headers=headers,
    )


def _validation_message(errors: list[dict[str, Any]]) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = loc[-1] if loc else ""
    if first.get("type") == "missing":
        return f"Missing required field: {field}" if field else "Missing request body"
    if first.get("type") == "json_invalid":
        return f"Request error: invalid JSON ({first.get('msg', '')})"
    msg = str(first.get("msg", "Invalid request"))
    if msg.startswith("Value error, "):
        return msg[len("Value error, ") :]
    return f"{field}: {msg}" if field else msg


async def seqsearch_error_handler(request: Request, exc: SeqSearchError) -> JSONResponse:
    status = status_for_error_code(exc.code)
    if status >= 500:
        logger.error("api.error", path=request.url.path, **exc.to_dict())
    else:
        logger.info("api.rejected", path=request.url.path, code=exc.code)
    return error_response(code=exc.code, message=exc.message, status=status)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(code="INVALID_REQUEST", message=_validation_message(list(exc.errors())))


_NOT_FOUND_MESSAGE = (
    "Endpoint not found. Use POST /search, /result, /status, or /cancel for async job management."
)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (unknown path, wrong method) in the common envelope."""
    headers = getattr(exc, "headers", None)
    if exc.status_code == 404:
        code, message = "NOT_FOUND", _NOT_FOUND_MESSAGE
    elif exc.status_code == 405:
        allowed = (headers or {}).get("Allow") or "POST"
        code = "METHOD_NOT_ALLOWED"
        message = f"{request.method} method is not allowed for {request.url.path}. Use {allowed}."
    else:
        code, message = f"HTTP_{exc.status_code}", str(exc.detail)
    return error_response(
        code=code,
        message=message,
        status=exc.status_code,
        headers=headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: 500 with the generic envelope."""
    logger.exception("api.unhandled", path=request.url.path)
    return error_response(code="INTERNAL_ERROR", message="An unexpected error occurred.")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SeqSearchError, seqsearch_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
