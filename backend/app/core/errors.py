"""
API errors and the handlers that turn them into the JSON error envelope

Every business error is an ApiError carrying an HTTP status code and a
user-facing message. Services raise them where the problem is detected and
nothing in between catches them; the handlers registered here produce:

    {"success": false, "message": "...", "error": "<traceback>"}

`error` is only present outside production.
"""
import logging
import traceback
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error: HTTP status code + message"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInputError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRelationError(ApiError):
    """An entity does not belong to the parent it was addressed through"""
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStockError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, variant_id: str, available: int):
        super().__init__(f"Stock insuficiente para la variante {variant_id}. Disponible: {available}")
        self.variant_id = variant_id
        self.available = available


class UnauthorizedError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


def error_body(message: str, exc: Exception, include_trace: bool) -> dict:
    body = {"success": False, "message": message}
    if include_trace:
        body["error"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def register_exception_handlers(app: FastAPI, include_trace: bool):
    """Attach the error-envelope handlers to the application"""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}", exc_info=exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc, include_trace),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), exc, include_trace),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Datos inválidos: {location} {first.get('msg', '')}".strip()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(message, exc, include_trace),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("Error interno del servidor", exc, include_trace),
        )
