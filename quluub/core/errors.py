"""
quluub/core/errors.py

Purpose: HTTP rendering of errors

- Every failure leaves the API as ErrorResponse{error, code, details}
- Domain errors keep their own code and status
- Request validation failures use the VALIDATION kind
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quluub.core.exceptions import QuluubError
from quluub.core.logging import get_logger
from quluub.schemas.response import ErrorResponse

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again later."


def error_response(status_code: int, error: str, code: str, details: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, code=code, details=details).model_dump(),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic may put exception instances under "ctx"
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


def add_exception_handlers(app: FastAPI, expose_internal_errors: bool = False):
    """
    Registers exception handlers with the FastAPI app.

    Args:
        app: Application to register on
        expose_internal_errors: Put the exception text in 500 responses (never in production)
    """

    @app.exception_handler(QuluubError)
    async def quluub_exception_handler(request: Request, exc: QuluubError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", extra={"operation": request.url.path})
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.code}")
        return error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Unknown routes, missing auth header, service not ready."""
        return error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(422, "Input validation failed", "VALIDATION", jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={"operation": f"{request.method} {request.url.path}"},
            exc_info=True,
        )
        message = str(exc) if expose_internal_errors else INTERNAL_ERROR_MESSAGE
        return error_response(500, message, "INTERNAL_ERROR")
