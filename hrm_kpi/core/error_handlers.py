"""
Error Handlers - HRM KPI Engine
hrm_kpi/core/error_handlers.py

Maps engine and repository exceptions onto the ErrorResponse envelope.
Register in main.py with app.add_exception_handler(...).
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hrm_kpi.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CronSecretNotConfigured,
    DatabaseConnectionException,
    InvalidTransitionError,
    KpiEngineError,
    KpiValidationError,
    LockedStateError,
    NotFoundError,
    PreconditionFailedError,
    RepositoryException,
)
from hrm_kpi.models.api import ErrorResponse

logger = structlog.get_logger(__name__)

# First match wins; subclasses before their bases.
ENGINE_STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (LockedStateError, status.HTTP_409_CONFLICT),
    (PreconditionFailedError, status.HTTP_412_PRECONDITION_FAILED),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (KpiValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (CronSecretNotConfigured, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

DEFAULT_MESSAGES = {
    "missing": "Field '{field}' is required",
    "string_too_short": "Field '{field}' is too short",
    "string_too_long": "Field '{field}' is too long",
    "string_pattern_mismatch": "Field '{field}' has invalid format",
    "less_than_equal": "Field '{field}' exceeds maximum allowed value",
    "greater_than_equal": "Field '{field}' is below minimum allowed value",
    "greater_than": "Field '{field}' must be greater than the minimum",
    "string_type": "Field '{field}' must be a string",
    "decimal_parsing": "Field '{field}' must be a valid number",
    "bool_parsing": "Field '{field}' must be true or false",
    "enum": "Field '{field}' has an invalid value",
    "json_invalid": "Malformed JSON request body",
    "extra_forbidden": "Unknown field '{field}' is not allowed",
}


def error_body(error_code: str, message: str, details: Optional[dict] = None) -> dict:
    return ErrorResponse(
        error_code=error_code,
        message=message,
        details=details or None,
        timestamp=datetime.now(timezone.utc),
    ).model_dump(mode="json")


def status_for(exc: KpiEngineError) -> int:
    for exc_type, code in ENGINE_STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def get_validation_message(field: str, error_type: str) -> str:
    for key, template in DEFAULT_MESSAGES.items():
        if key in error_type:
            return template.format(field=field)
    return f"Invalid value for field '{field}'"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    if not errors:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body("VALIDATION_ERROR", "Request validation failed"),
        )

    err = errors[0]
    error_type = err.get("type", "")
    loc = err.get("loc", [])

    if "json_invalid" in error_type:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("INVALID_REQUEST", "Malformed JSON request body"),
        )

    field = ".".join(str(l) for l in loc if l not in ("body", "query", "path", "header"))
    message = get_validation_message(field, error_type)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            "VALIDATION_ERROR", message, {"field": field, "type": error_type} if field else None
        ),
    )


async def engine_exception_handler(request: Request, exc: KpiEngineError):
    code = status_for(exc)
    if code >= 500:
        logger.error("engine_error", path=request.url.path, error_code=exc.error_code, message=exc.message)
    else:
        logger.info("engine_error", path=request.url.path, error_code=exc.error_code, status=code)
    return JSONResponse(status_code=code, content=error_body(exc.error_code, exc.message, exc.details))


async def repository_exception_handler(request: Request, exc: RepositoryException):
    if isinstance(exc, DatabaseConnectionException):
        logger.error("database_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_body("DATABASE_UNAVAILABLE", "Database is unavailable"),
        )
    logger.error("repository_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_SERVER_ERROR", "Unexpected server error"),
    )
