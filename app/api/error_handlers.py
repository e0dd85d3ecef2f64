from dataclasses import dataclass
from typing import Any, Dict
from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.errors import (
    AuthFailure,
    ConflictFailure,
    FieldError,
    InvalidIdentifier,
    ProductsAPIError,
    UploadFailure,
    ValidationFailure,
)
from app.schemas.product import validation_failure_from
import logging
import re
import traceback

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal Server Error"

# bson: "'<value>' is not a valid ObjectId, it must be a 12-byte input ..."
INVALID_OBJECT_ID = re.compile(r"^'(?P<value>.*)' is not a valid ObjectId", re.DOTALL)


@dataclass(frozen=True)
class ErrorTranslation:
    status_code: int
    message: str


def invalid_id_value(exc: InvalidId) -> str:
    """The rejected identifier carried by a bson InvalidId."""
    match = INVALID_OBJECT_ID.match(str(exc))
    return match.group("value") if match else str(exc)


def _normalize(exc: Exception) -> Exception:
    """Map driver and framework error shapes onto our failure types."""
    if isinstance(exc, ValidationError):
        return validation_failure_from(exc)
    if isinstance(exc, InvalidId):
        return InvalidIdentifier("_id", invalid_id_value(exc))
    if isinstance(exc, DuplicateKeyError):
        key_value = (exc.details or {}).get("keyValue") or {"key": None}
        field = next(iter(key_value))
        return ConflictFailure(field, key_value[field])
    return exc


def translate_error(exc: Exception) -> ErrorTranslation:
    """Pick the status code and client message for a failure.

    Classification runs in priority order: validation, identifier, conflict,
    auth, upload, then anything carrying its own status. Everything else is
    a 500.
    """
    exc = _normalize(exc)

    if isinstance(exc, ValidationFailure):
        return ErrorTranslation(400, f"Validation Error: {exc.message}")
    if isinstance(exc, InvalidIdentifier):
        if exc.field == "_id":
            return ErrorTranslation(400, f"Invalid ID format: {exc.value}")
        return ErrorTranslation(400, f"Invalid {exc.field}: {exc.value}")
    if isinstance(exc, ConflictFailure):
        return ErrorTranslation(
            409, f'Duplicate value for field "{exc.field}": {exc.value} already exists'
        )
    if isinstance(exc, AuthFailure):
        return ErrorTranslation(401, "Token expired" if exc.expired else "Invalid token")
    if isinstance(exc, UploadFailure):
        if exc.code == UploadFailure.FILE_SIZE:
            return ErrorTranslation(400, "File size too large")
        if exc.code == UploadFailure.FILE_COUNT:
            return ErrorTranslation(400, "Too many files")
        return ErrorTranslation(400, f"File upload error: {exc.message}")
    if isinstance(exc, ProductsAPIError):
        return ErrorTranslation(exc.status_code, exc.message)
    if isinstance(exc, StarletteHTTPException):
        return ErrorTranslation(exc.status_code, str(exc.detail))
    return ErrorTranslation(500, str(exc) or INTERNAL_ERROR_MESSAGE)


def build_error_body(
    exc: Exception,
    translation: ErrorTranslation,
    request_info: Dict[str, Any],
    production: bool
) -> Dict[str, Any]:
    if production:
        if translation.status_code >= 500:
            return {"message": INTERNAL_ERROR_MESSAGE}
        return {"message": translation.message}

    return {
        "message": translation.message,
        "error": {
            "name": type(exc).__name__,
            "message": str(exc),
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            "statusCode": translation.status_code,
        },
        "request": request_info,
    }


def describe_request(request: Request) -> Dict[str, Any]:
    return {
        "method": request.method,
        "url": str(request.url.path) + (f"?{request.url.query}" if request.url.query else ""),
        "body": getattr(request.state, "body", None),
        "params": dict(request.path_params),
        "query": dict(request.query_params),
    }


def error_response(request: Request, exc: Exception, production: bool) -> JSONResponse:
    """Log a failure and build the response the client gets for it."""
    translation = translate_error(exc)
    if translation.status_code >= 500:
        logger.error(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__)
        )
    else:
        logger.warning(
            "%s %s -> %d %s",
            request.method,
            request.url.path,
            translation.status_code,
            translation.message
        )
    body = build_error_body(exc, translation, describe_request(request), production)
    return JSONResponse(status_code=translation.status_code, content=_jsonable(body))


def register_exception_handlers(app: FastAPI, production: bool) -> None:
    """Route every classified failure through ``error_response``.

    Unclassified exceptions are answered by ``RequestLoggingMiddleware``
    instead, so they never reach Starlette's ServerErrorMiddleware.
    """
    async def handle_error(request: Request, exc: Exception) -> JSONResponse:
        return error_response(request, exc, production)

    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(request, _request_validation_failure(exc), production)

    for exc_class in (ProductsAPIError, ValidationError, InvalidId, DuplicateKeyError, StarletteHTTPException):
        app.add_exception_handler(exc_class, handle_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)


def _request_validation_failure(exc: RequestValidationError) -> ValidationFailure:
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        errors.append(FieldError(field, "type", f"{field}: {error['msg']}"))
    return ValidationFailure(errors)


def _jsonable(body: Dict[str, Any]) -> Dict[str, Any]:
    return jsonable_encoder(body, custom_encoder={bytes: lambda value: value.decode("utf-8", "replace")})
