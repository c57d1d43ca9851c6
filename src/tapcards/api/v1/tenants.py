"""Tenant quota endpoints."""

from uuid import UUID

from fastapi import APIRouter

from src.tapcards.api.dependencies import CurrentActor, EngineDep
from src.tapcards.schemas.quota import QuotaRead, QuotaSnapshot

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get(
    "/{tenant_id}/quota",
    response_model=QuotaSnapshot,
    summary="Quota usage",
    responses={404: {"description": "Organization not found"}},
)
async def get_quota(tenant_id: UUID, actor: CurrentActor, engine: EngineDep) -> QuotaSnapshot:
    """Limits and usage per resource class. Other organizations are reported as not found."""
    rows = await engine.quota_snapshot(actor, tenant_id)
    return QuotaSnapshot(
        tenant_id=str(tenant_id),
        quotas=[QuotaRead.model_validate(row) for row in rows],
    )
