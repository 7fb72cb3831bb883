import logging
import os
import traceback

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

APP_ENV = os.getenv("APP_ENV", "production")
INTERNAL_ERROR = "Internal server error"


class AppError(HTTPException):
    http_status = 500
    default_detail = INTERNAL_ERROR

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.http_status, detail=detail or self.default_detail)


class ValidationError(AppError):
    http_status = 400
    default_detail = "Invalid input data"


class AuthenticationError(AppError):
    http_status = 401
    default_detail = "Unauthorized access"


class AuthorizationError(AppError):
    http_status = 403
    default_detail = "Insufficient permissions"


class NotFoundError(AppError):
    http_status = 404
    default_detail = "Not found"


class ConflictError(AppError):
    http_status = 409
    default_detail = "Resource already exists"


class DependencyError(AppError):
    http_status = 500
    default_detail = INTERNAL_ERROR


def is_development() -> bool:
    return APP_ENV == "development"


def error_body(message: str, **extra) -> dict:
    body = {"success": False, "error": message}
    body.update(extra)
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        if not is_development():
            message = INTERNAL_ERROR
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=error_body("Validation failed", details=details))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    extra = {}
    if is_development():
        extra["detail"] = str(exc)
        extra["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=error_body(INTERNAL_ERROR, **extra))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
