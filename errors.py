"""
Error taxonomy and the handlers that turn it into ``{"message": ...}`` bodies.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ClinicError(Exception):
    status_code = 500
    message = "Something went wrong!"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationFailed(ClinicError):
    status_code = 400
    message = "Invalid request"


class AuthenticationError(ClinicError):
    status_code = 401
    message = "Authentication required"


class PermissionDenied(ClinicError):
    status_code = 403
    message = "You do not have permission to perform this action"


class NotFound(ClinicError):
    status_code = 404
    message = "Not found"


class ConfigurationError(ClinicError):
    """Deployment problem (e.g. no signing secret); never a per-request fault."""
    status_code = 500
    message = "Server configuration error"


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ValidationFailed.message
    first = errors[0]
    if first.get("type") == "extra_forbidden":
        return f"Unknown field: {first['loc'][-1]}"
    if first.get("type") == "missing":
        return f"{first['loc'][-1]} is required"
    return first.get("msg", ValidationFailed.message)


async def clinic_error_handler(request: Request, exc: ClinicError):
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": _validation_message(exc)})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": ClinicError.message})


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(ClinicError, clinic_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
