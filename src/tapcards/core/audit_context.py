"""Per-request client metadata for audit entries and claim attempts.

Held in a contextvar so services record it without threading the request
through every call.
"""

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass

MAX_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 500

_audit_context: ContextVar["AuditContext | None"] = ContextVar("audit_context", default=None)


@dataclass(frozen=True)
class AuditContext:
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None

    @classmethod
    def capture(
        cls,
        headers: Mapping[str, str],
        client_host: str | None,
        request_id: str | None,
        trust_forwarded_for: bool = True,
    ) -> "AuditContext":
        """Build the context from request headers, clipped to the column sizes.

        With ``trust_forwarded_for`` the first X-Forwarded-For hop wins over
        the socket peer.
        """
        ip = client_host
        forwarded_for = headers.get("x-forwarded-for")
        if trust_forwarded_for and forwarded_for:
            ip = forwarded_for.split(",")[0].strip() or client_host
        user_agent = headers.get("user-agent")
        return cls(
            ip_address=ip[:MAX_IP_LENGTH] if ip else None,
            user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
            request_id=request_id,
        )


def set_audit_context(ctx: AuditContext) -> None:
    _audit_context.set(ctx)


def get_audit_context() -> AuditContext | None:
    return _audit_context.get()


def clear_audit_context() -> None:
    _audit_context.set(None)
