"""Repositories for Tenant and the quota ledger rows."""

from uuid import UUID

from sqlalchemy import case, or_, update
from sqlmodel import select

from src.tapcards.models import UNBOUNDED, Tenant, TenantQuota
from src.tapcards.models.base import utc_now
from src.tapcards.repositories.base import BaseRepository


class TenantRepository(BaseRepository[Tenant]):
    model = Tenant

    async def get_by_slug(self, slug: str) -> Tenant | None:
        result = await self.session.execute(select(Tenant).where(Tenant.slug == slug))
        return result.scalar_one_or_none()


class TenantQuotaRepository(BaseRepository[TenantQuota]):
    """Ledger rows. Increments and decrements are evaluated by the database."""

    model = TenantQuota

    async def get(self, tenant_id: UUID, resource: str) -> TenantQuota | None:
        result = await self.session.execute(
            select(TenantQuota)
            .where(TenantQuota.tenant_id == tenant_id, TenantQuota.resource == resource)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(self, tenant_id: UUID) -> list[TenantQuota]:
        result = await self.session.execute(
            select(TenantQuota)
            .where(TenantQuota.tenant_id == tenant_id)
            .order_by(TenantQuota.resource)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def try_increment(self, tenant_id: UUID, resource: str, n: int) -> bool:
        """Atomically add `n` to usage if it stays within the limit."""
        stmt = (
            update(TenantQuota)
            .where(
                TenantQuota.tenant_id == tenant_id,  # type: ignore[arg-type]
                TenantQuota.resource == resource,  # type: ignore[arg-type]
                or_(
                    TenantQuota.quota_limit == UNBOUNDED,  # type: ignore[arg-type]
                    TenantQuota.usage + n <= TenantQuota.quota_limit,  # type: ignore[operator]
                ),
            )
            .values(usage=TenantQuota.usage + n, updated_at=utc_now())
        )
        return await self.execute_update(stmt) == 1

    async def decrement_saturating(self, tenant_id: UUID, resource: str, n: int) -> bool:
        """Subtract `n` from usage, never going below zero."""
        stmt = (
            update(TenantQuota)
            .where(
                TenantQuota.tenant_id == tenant_id,  # type: ignore[arg-type]
                TenantQuota.resource == resource,  # type: ignore[arg-type]
            )
            .values(
                usage=case(
                    (TenantQuota.usage > n, TenantQuota.usage - n),  # type: ignore[operator]
                    else_=0,
                ),
                updated_at=utc_now(),
            )
        )
        return await self.execute_update(stmt) == 1

    async def set_limit(self, tenant_id: UUID, resource: str, limit: int) -> bool:
        """Change the limit unless current usage already exceeds it."""
        stmt = update(TenantQuota).where(
            TenantQuota.tenant_id == tenant_id,  # type: ignore[arg-type]
            TenantQuota.resource == resource,  # type: ignore[arg-type]
        )
        if limit != UNBOUNDED:
            stmt = stmt.where(TenantQuota.usage <= limit)  # type: ignore[arg-type]
        stmt = stmt.values(quota_limit=limit, updated_at=utc_now())
        return await self.execute_update(stmt) == 1
