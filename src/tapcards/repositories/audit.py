"""Audit log reads. Entries are written by AuditService on an isolated session."""

from dataclasses import dataclass
from uuid import UUID

from sqlmodel import select

from src.tapcards.models import AuditLog
from src.tapcards.repositories.base import BaseRepository


@dataclass(frozen=True)
class AuditFilters:
    action: str | None = None
    user_id: UUID | None = None
    entity_type: str | None = None
    # Card uid or batch number the entry was recorded under
    identifier: str | None = None


class AuditLogRepository(BaseRepository[AuditLog]):
    model = AuditLog

    async def list_by_tenant(
        self,
        tenant_id: UUID,
        filters: AuditFilters | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[AuditLog], str | None, bool]:
        """List a tenant's audit trail, newest first.

        Returns:
            Tuple of (logs, next_cursor, has_more)
        """
        filters = filters or AuditFilters()
        query = select(AuditLog).where(AuditLog.tenant_id == tenant_id)

        if filters.action:
            query = query.where(AuditLog.action == filters.action)
        if filters.user_id:
            query = query.where(AuditLog.user_id == filters.user_id)
        if filters.entity_type:
            query = query.where(AuditLog.entity_type == filters.entity_type)
        if filters.identifier:
            query = query.where(AuditLog.identifier == filters.identifier)

        return await self.paginate(query, cursor, limit, AuditLog.created_at)
