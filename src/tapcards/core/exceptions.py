"""Exception handlers. Every error body carries the request id."""

from typing import Any

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.tapcards.core.logging import get_logger, loggable_path
from src.tapcards.domain.errors import EngineError

logger = get_logger(__name__)


def _error_response(
    status_code: int, content: dict[str, Any], headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={**content, "request_id": correlation_id.get()},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Map engine errors to their status and code, and stamp request_id on all errors."""

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Engine error",
                code=exc.code,
                detail=exc.message,
                path=loggable_path(request.url.path),
            )
        return _error_response(exc.status_code, exc.payload())

    # Also catches FastAPI's HTTPException, which subclasses Starlette's
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _error_response(
            exc.status_code,
            {"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error_response(
            422,
            {"detail": jsonable_encoder(exc.errors()), "code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            request_id=correlation_id.get(),
            path=loggable_path(request.url.path),
        )
        return _error_response(500, {"detail": "Internal server error"})
