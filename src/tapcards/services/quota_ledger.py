"""Tenant quota ledger - check-and-increment counters per resource class."""

from uuid import UUID

from src.tapcards.core.config import get_settings
from src.tapcards.core.logging import get_logger
from src.tapcards.domain import quota_rules
from src.tapcards.domain.errors import InvalidRequest, QuotaExceeded, ResourceNotFound
from src.tapcards.models import UNBOUNDED, QuotaResource, TenantQuota
from src.tapcards.repositories import TenantQuotaRepository

logger = get_logger(__name__)


def default_limits() -> dict[QuotaResource, int]:
    settings = get_settings()
    return {
        QuotaResource.USERS: settings.default_user_limit,
        QuotaResource.CARDS: settings.default_card_limit,
        QuotaResource.PROFILES: settings.default_profile_limit,
        QuotaResource.STORAGE: settings.default_storage_limit,
    }


class QuotaLedger:
    """Per-tenant limit/usage counters.

    `reserve` is a single conditional UPDATE evaluated by the database, so
    concurrent reservations can never push a bounded counter past its limit.
    The ledger participates in the caller's transaction and never commits.
    """

    def __init__(self, quota_repo: TenantQuotaRepository):
        self.quota_repo = quota_repo

    async def can_reserve(self, tenant_id: UUID, resource: QuotaResource, n: int = 1) -> bool:
        """Advisory check; the answer may be stale by the time you reserve."""
        quota_rules.ensure_positive(n)
        row = await self.quota_repo.get(tenant_id, resource.value)
        if row is None:
            return False
        return quota_rules.fits(row.quota_limit, row.usage, n)

    async def reserve(self, tenant_id: UUID, resource: QuotaResource, n: int = 1) -> None:
        """Atomically add `n` to usage or raise QuotaExceeded."""
        quota_rules.ensure_positive(n)
        if await self.quota_repo.try_increment(tenant_id, resource.value, n):
            return

        row = await self.quota_repo.get(tenant_id, resource.value)
        limit = row.quota_limit if row else 0
        current = row.usage if row else 0
        logger.info(
            "Quota exceeded",
            tenant_id=str(tenant_id),
            resource=resource.value,
            limit=limit,
            current=current,
            requested=n,
        )
        raise QuotaExceeded(resource.value, limit=limit, current=current, requested=n)

    async def release(self, tenant_id: UUID, resource: QuotaResource, n: int = 1) -> None:
        """Give back `n` units. Usage saturates at zero."""
        quota_rules.ensure_positive(n)
        if not await self.quota_repo.decrement_saturating(tenant_id, resource.value, n):
            logger.warning(
                "Quota release for unknown ledger row",
                tenant_id=str(tenant_id),
                resource=resource.value,
            )

    def provision(
        self, tenant_id: UUID, limits: dict[QuotaResource, int] | None = None
    ) -> list[TenantQuota]:
        """Seed ledger rows for a new tenant (add to session, no commit)."""
        merged = {**default_limits(), **(limits or {})}
        rows = [
            TenantQuota(tenant_id=tenant_id, resource=resource.value, quota_limit=limit)
            for resource, limit in merged.items()
        ]
        for row in rows:
            self.quota_repo.add(row)
        return rows

    async def set_limit(self, tenant_id: UUID, resource: QuotaResource, limit: int) -> None:
        """Change a limit. A bounded limit below current usage is refused."""
        if limit < UNBOUNDED:
            raise InvalidRequest("limit must be -1 (unbounded) or non-negative", limit=limit)
        if await self.quota_repo.set_limit(tenant_id, resource.value, limit):
            return

        row = await self.quota_repo.get(tenant_id, resource.value)
        if row is None:
            raise ResourceNotFound("quota")
        raise InvalidRequest(
            f"{resource.value.capitalize()} usage exceeds the requested limit",
            resource=resource.value,
            limit=limit,
            current=row.usage,
        )

    async def snapshot(self, tenant_id: UUID) -> list[TenantQuota]:
        return await self.quota_repo.list_for_tenant(tenant_id)
