"""
Error envelope and exception handlers.

Every failure leaves the API as::

    {"success": false, "error": "<message>", "code": "<CODE>",
     "timestamp": "...", "requestId": "..."}
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.database import utcnow
from app.exceptions import InternalError, PlacementError

logger = logging.getLogger(__name__)

PAGINATION_PARAMS = {"page", "limit"}


def error_payload(message: str, code: str, **extra) -> dict:
    payload = {
        "success": False,
        "error": message,
        "code": code,
        "timestamp": utcnow().isoformat() + "Z",
        "requestId": uuid.uuid4().hex[:8],
    }
    payload.update(extra)
    return payload


async def placement_error_handler(request: Request, exc: PlacementError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.message, exc.code, **exc.extra())
    )


def _validation_code(error: dict) -> str:
    loc = error.get("loc") or ()
    if loc and loc[0] == "path":
        return "INVALID_ID"
    if len(loc) > 1 and loc[0] == "query" and loc[1] in PAGINATION_PARAMS:
        return "INVALID_PAGINATION"
    if error.get("type") == "missing":
        return "MISSING_FIELDS"
    return "VALIDATION_ERROR"


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in (first.get("loc") or ())[1:])
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"

    details = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg")}
        for error in errors
    ]
    return JSONResponse(
        status_code=400,
        content=error_payload(message, _validation_code(first), details=details)
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = InternalError("Internal server error")
    return JSONResponse(
        status_code=error.status_code,
        content=error_payload(error.message, error.code)
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PlacementError, placement_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
