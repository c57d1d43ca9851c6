"""Engine error taxonomy.

Every error carries the HTTP status it maps to, a stable machine code and a
structured payload. Token and verification errors deliberately carry no
detail so callers cannot distinguish unknown, expired and consumed tokens.
"""

from typing import Any


class EngineError(Exception):
    """Base class for all domain errors raised by the engine."""

    status_code: int = 500
    code: str = "engine_error"
    default_message: str = "Engine error"

    def __init__(self, message: str | None = None, **detail: Any):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def payload(self) -> dict[str, Any]:
        """Public error body (without request metadata)."""
        return {"detail": self.message, "code": self.code, **self.detail}


class InvalidTransition(EngineError):
    status_code = 409
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, reason: str | None = None):
        message = f"Cannot {requested.replace('_', ' ')} card in status '{current}'"
        super().__init__(
            f"{message}: {reason}" if reason else message,
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class QuotaExceeded(EngineError):
    status_code = 403
    code = "LIMIT_EXCEEDED"

    def __init__(self, resource: str, limit: int, current: int, requested: int = 1):
        super().__init__(
            f"{resource.capitalize()} limit reached for this organization",
            resource=resource,
            limit=limit,
            current=current,
            requested=requested,
        )
        self.resource = resource
        self.limit = limit
        self.current = current
        self.requested = requested


class TokenInvalid(EngineError):
    """Unknown, expired, consumed, revoked or mismatched claim token.

    `reason` is kept for logs and the attempt history only; it never reaches
    the response body.
    """

    status_code = 400
    code = "TOKEN_INVALID"
    default_message = "Invalid or expired claim token"

    def __init__(self, reason: str = "invalid"):
        super().__init__()
        self.reason = reason


class VerificationFailed(EngineError):
    status_code = 400
    code = "VERIFICATION_FAILED"
    default_message = "Email verification failed"

    def __init__(self, reason: str = "invalid_code"):
        super().__init__()
        self.reason = reason


class GenerationExhausted(EngineError):
    status_code = 500
    code = "GENERATION_EXHAUSTED"
    default_message = "Could not generate a unique card identifier"

    def __init__(self, attempts: int):
        super().__init__(attempts=attempts)
        self.attempts = attempts


class ResourceNotFound(EngineError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str):
        super().__init__(f"{resource.capitalize()} not found", resource=resource)
        self.resource = resource


class CrossTenantAccess(ResourceNotFound):
    """Resource exists but belongs to another tenant; reported as not found."""

    code = "NOT_FOUND"


class InvalidAssignment(EngineError):
    status_code = 400
    code = "INVALID_ASSIGNMENT"

    def __init__(self, reason: str):
        super().__init__(reason, reason=reason)


class PermissionDenied(EngineError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, reason: str = "Insufficient permissions"):
        super().__init__(reason)


class TenantInactive(EngineError):
    status_code = 403
    code = "TENANT_INACTIVE"

    def __init__(self, status: str):
        super().__init__(f"Organization is {status}", status=status)


class InvalidRequest(EngineError):
    status_code = 400
    code = "INVALID_REQUEST"

    def __init__(self, message: str, **detail: Any):
        super().__init__(message, **detail)
