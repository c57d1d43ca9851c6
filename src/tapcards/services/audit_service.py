"""Audit logging service - records state-changing operations."""

import contextlib
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.tapcards.core.audit_context import get_audit_context
from src.tapcards.core.db import get_isolated_session
from src.tapcards.core.logging import get_logger
from src.tapcards.models import AuditAction, AuditLog, AuditSeverity, AuditStatus
from src.tapcards.repositories import AuditFilters, AuditLogRepository

logger = get_logger(__name__)


class AuditService:
    """Service for recording audit logs.

    Fire-and-forget design: logging failures never block business operations.
    """

    def __init__(
        self,
        audit_repo: AuditLogRepository,
        session: AsyncSession,
        tenant_id: UUID,
    ):
        self.audit_repo = audit_repo
        self.session = session
        self.tenant_id = tenant_id

    async def log_action(
        self,
        action: AuditAction | str,
        entity_type: str,
        entity_id: UUID | None = None,
        identifier: str | None = None,
        user_id: UUID | None = None,
        user_email: str | None = None,
        user_role: str | None = None,
        changes: dict[str, Any] | None = None,
        severity: AuditSeverity = AuditSeverity.LOW,
        status: AuditStatus = AuditStatus.SUCCESS,
        error_message: str | None = None,
    ) -> AuditLog | None:
        """Record an audit log entry.

        Extracts request metadata from context (IP, user agent, request_id).
        Failures are logged but do not raise exceptions.

        Returns:
            The created AuditLog, or None if logging failed
        """
        action_value = action.value if isinstance(action, AuditAction) else action
        try:
            ctx = get_audit_context()

            audit_log = AuditLog(
                tenant_id=self.tenant_id,
                user_id=user_id,
                user_email=user_email,
                user_role=user_role,
                action=action_value,
                entity_type=entity_type,
                entity_id=entity_id,
                identifier=identifier,
                changes=changes,
                ip_address=ctx.ip_address if ctx else None,
                user_agent=ctx.user_agent if ctx else None,
                request_id=ctx.request_id if ctx else None,
                severity=severity.value,
                status=status.value,
                error_message=error_message[:1000] if error_message else None,
            )

            self.audit_repo.add(audit_log)
            await self.session.commit()

            logger.debug(
                "Audit log recorded",
                action=audit_log.action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id else None,
            )
            return audit_log

        except Exception as e:
            logger.warning(
                "Failed to record audit log",
                action=action_value,
                entity_type=entity_type,
                error=str(e),
            )
            # Isolated session: rolling back here never touches the business transaction
            with contextlib.suppress(Exception):
                await self.session.rollback()
            return None

    async def list_logs(
        self,
        filters: AuditFilters | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[AuditLog], str | None, bool]:
        """List audit logs for the current tenant."""
        return await self.audit_repo.list_by_tenant(self.tenant_id, filters, cursor, limit)


async def record_audit(tenant_id: UUID, **entry: Any) -> AuditLog | None:
    """Write one audit entry on its own session, after the caller committed."""
    try:
        async with get_isolated_session() as session:
            service = AuditService(AuditLogRepository(session), session, tenant_id)
            return await service.log_action(**entry)
    except Exception as e:
        logger.warning(
            "Audit session unavailable",
            action=str(entry.get("action")),
            error=str(e),
        )
        return None
