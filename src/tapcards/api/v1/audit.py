"""Audit log endpoints - owner/admin only."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from src.tapcards.api.dependencies import CurrentActor, EngineDep
from src.tapcards.repositories import AuditFilters
from src.tapcards.schemas.audit import AuditLogRead
from src.tapcards.schemas.pagination import PaginatedResponse

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get(
    "",
    response_model=PaginatedResponse[AuditLogRead],
    responses={403: {"description": "Owner or admin role required"}},
)
async def list_audit_logs(
    actor: CurrentActor,
    engine: EngineDep,
    cursor: Annotated[str | None, Query(description="Pagination cursor")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    action: Annotated[str | None, Query(description="e.g. card.create, claim.redeem")] = None,
    user_id: UUID | None = None,
    entity_type: Annotated[str | None, Query(description="card, card_batch, claim_token")] = None,
    identifier: Annotated[str | None, Query(description="Card uid or batch number")] = None,
) -> PaginatedResponse[AuditLogRead]:
    """List the organization's audit trail, newest first."""
    filters = AuditFilters(
        action=action, user_id=user_id, entity_type=entity_type, identifier=identifier
    )
    logs, next_cursor, has_more = await engine.list_audit_logs(
        actor, cursor=cursor, limit=limit, filters=filters
    )
    return PaginatedResponse(
        items=[AuditLogRead.model_validate(log) for log in logs],
        next_cursor=next_cursor,
        has_more=has_more,
    )
