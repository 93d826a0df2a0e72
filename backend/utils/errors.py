# backend/utils/errors.py
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings

logger = logging.getLogger(__name__)


# Base error for anything the service layer wants to surface to the client
class ApplicationException(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None, cause: object = None, data: dict = None):
        super().__init__(message)
        self.message = message
        self.data = data
        if status_code is not None:
            self.status_code = status_code
        self.cause = cause


class BadRequestException(ApplicationException):
    status_code = 400


class UnauthorizedException(ApplicationException):
    status_code = 401


class ForbiddenException(ApplicationException):
    status_code = 403


class NotFoundException(ApplicationException):
    status_code = 404


class ConflictException(ApplicationException):
    status_code = 409


def _error_body(message: str, cause=None, **extra) -> dict:
    body = {"success": False, "message": message}
    body.update(extra)
    # Internal details only leave the process in development
    if settings.ENVIRONMENT == "development" and cause is not None:
        body["cause"] = str(cause)
    return body


async def application_exception_handler(request: Request, exc: ApplicationException):
    if exc.status_code >= 500:
        logger.error("Unhandled application error on %s %s: %s", request.method, request.url.path, exc.message)
    body = _error_body(exc.message, exc.cause)
    if exc.data:
        body["data"] = exc.data
    return JSONResponse(status_code=exc.status_code, content=body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body("Validation failed", errors=errors))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
