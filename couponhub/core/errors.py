from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, errors: list[dict] | None = None, headers: dict | None = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message, headers=headers)
        self.errors = errors


class Unauthenticated(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Admin access required"


class InvalidCSRF(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Invalid CSRF token"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class Conflict(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class RateLimited(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Rate limit exceeded"


class InternalError(ApiError):
    pass


def field_errors(exc: RequestValidationError | ValidationError, *, strip_location: bool = True) -> list[dict]:
    out = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ())]
        if strip_location:
            # drop the "body"/"query" location prefix
            loc = loc[1:]
        out.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
    return out


def _envelope(message: str, errors: list[dict] | None = None) -> dict:
    body: dict = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        errors = getattr(exc, "errors", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(str(exc.detail), errors),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = field_errors(exc)
        logger.info("Input validation failed on %s %s: %s", request.method, request.url.path, errors)
        return JSONResponse(status_code=400, content=_envelope("Validation failed", errors))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_envelope(InternalError.default_message))
