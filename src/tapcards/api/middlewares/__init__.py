"""Application middlewares."""

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import RequestResponseEndpoint

from src.tapcards.core.config import Settings
from src.tapcards.core.security import SecurityHeadersMiddleware

from .request_context import request_context_middleware

__all__ = [
    "setup_middlewares",
    "request_context_middleware",
]


def setup_middlewares(app: FastAPI, settings: Settings) -> None:
    """Configure all application middlewares.

    Middleware order matters - the last one added runs first on a request.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    # Stricter CSP in production when OpenAPI docs are disabled
    csp = None
    if not settings.enable_openapi and settings.csp_production:
        csp = settings.csp_production
    app.add_middleware(SecurityHeadersMiddleware, content_security_policy=csp)

    @app.middleware("http")
    async def _request_context(request: Request, call_next: RequestResponseEndpoint) -> Response:
        return await request_context_middleware(request, call_next)

    # Correlation ID - generates/propagates X-Request-ID; outermost
    app.add_middleware(CorrelationIdMiddleware)
