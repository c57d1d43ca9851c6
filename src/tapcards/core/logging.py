"""Logging configuration using structlog."""

import logging
import sys
from uuid import UUID

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def setup_logging(debug: bool = False) -> None:
    """Configure structlog for structured logging.

    Args:
        debug: If True, use colored console output. If False, use JSON for production.
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Set library log levels to reduce noise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("temporalio").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)


def bind_request_context(request_id: str | None, method: str, path: str) -> None:
    """Bind the request id and route to all subsequent log calls."""
    bind_contextvars(method=method, path=path)
    if request_id:
        bind_contextvars(request_id=request_id)


def bind_actor_context(user_id: UUID, tenant_id: UUID, email: str | None = None) -> None:
    """Bind the acting user and tenant to all subsequent log calls.

    Args:
        user_id: The authenticated user's ID.
        tenant_id: The tenant the request operates on.
        email: Only logged if settings.log_user_emails is True (GDPR compliance).
    """
    from src.tapcards.core.config import get_settings

    bind_contextvars(
        user_id=str(user_id),
        tenant_id=str(tenant_id),
    )
    settings = get_settings()
    if email and settings.log_user_emails:
        bind_contextvars(user_email=email)


def loggable_email(email: str | None) -> str | None:
    """Return the email for log output, or None when email logging is disabled."""
    from src.tapcards.core.config import get_settings

    if email and get_settings().log_user_emails:
        return email
    return None


CLAIM_PREFIX = "/api/v1/claim/"
# Claim sub-paths that are not a plaintext token
CLAIM_ADMIN_SEGMENTS = frozenset({"generate", "bulk-generate", "tokens"})


def loggable_path(path: str) -> str:
    """Mask the claim token segment; it is a bearer secret."""
    if not path.startswith(CLAIM_PREFIX):
        return path
    token, sep, rest = path[len(CLAIM_PREFIX) :].partition("/")
    if not token or token in CLAIM_ADMIN_SEGMENTS:
        return path
    return f"{CLAIM_PREFIX}***{sep}{rest}"


def clear_request_context() -> None:
    """Clear all request-scoped context."""
    clear_contextvars()
