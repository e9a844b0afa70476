import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base for errors rendered as ``{"error": message}`` with a fixed status."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(PortalError):
    status_code = 400
    default_message = "Bad request"


class Unauthenticated(PortalError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Forbidden"


class AccountLocked(Forbidden):
    default_message = "Your account has been locked. Please contact your account administrator."


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class Conflict(PortalError):
    status_code = 409
    default_message = "Already exists"


class TooManyAttempts(PortalError):
    status_code = 429
    default_message = "Too many failed attempts"


class Internal(PortalError):
    status_code = 500
    default_message = "Internal error"


class ServiceUnavailable(PortalError):
    status_code = 503
    default_message = "Service unavailable"


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PortalError)
    async def handle_portal_error(request: Request, exc: PortalError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        problems = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        ]
        return JSONResponse(status_code=422, content={"error": "Invalid request", "details": problems})

    @app.exception_handler(SQLAlchemyError)
    async def handle_db_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Database failure on %s %s", request.method, request.url.path)
        return _error_response(500, Internal.default_message)
