"""Request context middleware: log binding, audit metadata and in-flight tracking."""

from asgi_correlation_id import correlation_id
from fastapi import Request, Response
from starlette.middleware.base import RequestResponseEndpoint

from src.tapcards.core.audit_context import AuditContext, clear_audit_context, set_audit_context
from src.tapcards.core.config import get_settings
from src.tapcards.core.logging import (
    bind_request_context,
    clear_request_context,
    loggable_path,
)
from src.tapcards.core.shutdown import request_tracker

PROBE_PATHS = ("/health", "/metrics")


async def request_context_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    """Bind request id and route to the log context, capture client metadata
    for audit records, and count the request as in flight.

    Health and metrics probes are not tracked so they keep answering while
    the server drains.
    """
    request_id = correlation_id.get()
    clear_request_context()
    bind_request_context(request_id, request.method, loggable_path(request.url.path))
    set_audit_context(
        AuditContext.capture(
            request.headers,
            request.client.host if request.client else None,
            request_id,
            trust_forwarded_for=get_settings().trust_forwarded_for,
        )
    )
    try:
        if request.url.path in PROBE_PATHS:
            return await call_next(request)
        async with request_tracker.track_request():
            return await call_next(request)
    finally:
        clear_audit_context()
        clear_request_context()
