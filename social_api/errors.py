"""
Domain exceptions and the FastAPI handlers that render them.

Services raise these; handlers turn them into ``{"detail": ...}`` bodies with
the matching status code. Anything else is logged and reported as a generic
500 so no internal detail leaks to the caller.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SocialApiError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(SocialApiError):
    status_code = status.HTTP_404_NOT_FOUND


class BadRequest(SocialApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransition(SocialApiError):
    """A friend-request transition was asked for from a state that forbids it."""
    status_code = status.HTTP_400_BAD_REQUEST


class Conflict(SocialApiError):
    status_code = status.HTTP_409_CONFLICT


class Unauthorized(SocialApiError):
    status_code = status.HTTP_401_UNAUTHORIZED


class RateLimited(SocialApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


async def _domain_error_handler(request: Request, exc: SocialApiError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.message}, headers=headers
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SocialApiError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
