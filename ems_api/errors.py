"""
Error responses. Every error leaves the API as
{status, error, message, path} plus fieldErrors for request validation failures.
"""
import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

VALIDATION_FAILED_MESSAGE = "Validation failed"
INVALID_CREDENTIALS_MESSAGE = "Invalid username or password. Please try again."


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_body(status_code: int, message: str, path: str, field_errors: list[dict] | None = None) -> dict:
    body: dict[str, Any] = {
        "status": status_code,
        "error": _reason(status_code),
        "message": message,
        "path": path,
    }
    if field_errors:
        body["fieldErrors"] = field_errors
    return body


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "request"


def _message(raw: str) -> str:
    # pydantic prefixes messages from custom validators
    return raw.removeprefix("Value error, ")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("error_description") or str(detail)
    else:
        message = str(detail) if detail else _reason(exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message, request.url.path),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = []
    for err in exc.errors():
        rejected = err.get("input")
        if err.get("type") == "missing" or not isinstance(rejected, (str, int, float, bool)):
            rejected = None
        field_errors.append(
            {
                "field": _field_name(tuple(err.get("loc", ()))),
                "rejectedValue": rejected,
                "message": _message(err.get("msg", "")),
            }
        )
    logger.debug("Validation failed on %s: %s", request.url.path, [fe["field"] for fe in field_errors])
    return JSONResponse(
        status_code=400,
        content=error_body(400, VALIDATION_FAILED_MESSAGE, request.url.path, field_errors),
    )


class FieldValidationError(Exception):
    """Domain validation failure on one request field; rendered like request validation errors."""

    def __init__(self, field: str, message: str, rejected_value: Any = None):
        super().__init__(message)
        self.field = field
        self.message = message
        self.rejected_value = rejected_value


async def field_validation_exception_handler(request: Request, exc: FieldValidationError) -> JSONResponse:
    field_error = {"field": exc.field, "rejectedValue": exc.rejected_value, "message": exc.message}
    return JSONResponse(
        status_code=400,
        content=error_body(400, VALIDATION_FAILED_MESSAGE, request.url.path, [field_error]),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(FieldValidationError, field_validation_exception_handler)
