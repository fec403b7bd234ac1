import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .cookies import reapply_rotation

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    default_message = "You do not have permission to access this resource"


class SessionExpired(AppError):
    status_code = 403
    default_message = "Session expired, please log in again"


class Conflict(AppError):
    status_code = 400
    default_message = "Conflict"


class VerificationFailed(AppError):
    status_code = 400
    default_message = "Payment not verified, please try again"


class PaymentRequired(AppError):
    status_code = 400
    default_message = "Please subscribe or purchase this course to access it"


class InvalidOrExpired(AppError):
    status_code = 400
    default_message = "Token is invalid or expired, please try again"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class UpstreamError(AppError):
    status_code = 500
    default_message = "Upstream service failed, please try again later"


def error_body(message: str, status_code: int) -> dict:
    return {"success": False, "message": message, "statusCode": status_code}


def ok(message: str, data=None) -> dict:
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


def _error_response(request: Request, message: str, status_code: int) -> JSONResponse:
    response = JSONResponse(error_body(message, status_code), status_code=status_code)
    return reapply_rotation(request, response)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    def app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(request, exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    def request_invalid(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
            message = f"{field}: {first.get('msg', 'invalid value')}"
        else:
            message = ValidationError.default_message
        return _error_response(request, message, 400)

    @app.exception_handler(StarletteHTTPException)
    def http_error(request: Request, exc: StarletteHTTPException):
        return _error_response(request, str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    def unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(request, "Internal server error", 500)
