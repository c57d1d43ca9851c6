"""Card endpoints - registry management, lifecycle operations and public taps."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from src.tapcards.api.dependencies import CurrentActor, EngineDep
from src.tapcards.core.config import get_settings
from src.tapcards.core.rate_limit import limiter, tap_rate_limit
from src.tapcards.repositories import CardFilters
from src.tapcards.schemas.card import (
    CardAssign,
    CardAssignmentRead,
    CardBulkCreate,
    CardBulkCreateResponse,
    CardCreate,
    CardRead,
    CardReason,
    CardStatsRead,
    CardUpdate,
    TapResponse,
)
from src.tapcards.schemas.pagination import PaginatedResponse
from src.tapcards.services.card_registry import CardTemplate, TapResult

router = APIRouter(prefix="/cards", tags=["cards"])

CursorQuery = Annotated[str | None, Query(description="Cursor for pagination")]
LimitQuery = Annotated[int, Query(ge=1, le=100, description="Max items to return")]


def _tap_response(result: TapResult) -> TapResponse:
    return TapResponse(
        card_uid=result.card.card_uid,
        status=result.card.status,
        redirect_url=result.redirect_url,
    )


@router.post(
    "",
    response_model=CardRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create card",
    responses={
        201: {"description": "Card created in inventory"},
        403: {"description": "Card limit reached or insufficient role"},
    },
)
async def create_card(data: CardCreate, actor: CurrentActor, engine: EngineDep) -> CardRead:
    """Mint a single inventory card, optionally with a serial number."""
    template = CardTemplate(
        sku=data.sku,
        batch_number=data.batch_number,
        product_line=data.product_line,
        physical=data.physical,
        serial_number=data.serial_number,
        ndef_url_template=data.ndef_url,
    )
    card = await engine.create_card(actor, template)
    return CardRead.model_validate(card)


@router.post(
    "/bulk",
    response_model=CardBulkCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Mint a batch of cards",
    responses={
        201: {"description": "All cards minted"},
        403: {"description": "Card limit would be exceeded"},
    },
)
async def bulk_create_cards(
    data: CardBulkCreate, actor: CurrentActor, engine: EngineDep
) -> CardBulkCreateResponse:
    """Mint up to 1000 cards from one template. All or nothing."""
    template = CardTemplate(
        sku=data.sku,
        batch_number=data.batch_number,
        product_line=data.product_line,
        physical=data.physical,
        ndef_url_template=data.ndef_url_template,
    )
    result = await engine.mint_cards(actor, data.count, template)
    return CardBulkCreateResponse(
        count=result.count,
        batch_number=result.batch_number,
        preview=result.preview(get_settings().bulk_preview_size),
    )


@router.get("", response_model=PaginatedResponse[CardRead], summary="List cards")
async def list_cards(
    actor: CurrentActor,
    engine: EngineDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    lifecycle_stage: str | None = None,
    batch_number: str | None = None,
    sku: str | None = None,
    assigned_to_user_id: UUID | None = None,
    search: Annotated[str | None, Query(max_length=64)] = None,
    cursor: CursorQuery = None,
    limit: LimitQuery = 50,
) -> PaginatedResponse[CardRead]:
    filters = CardFilters(
        status=status_filter,
        lifecycle_stage=lifecycle_stage,
        batch_number=batch_number,
        sku=sku,
        assigned_to_user_id=assigned_to_user_id,
        search=search,
    )
    cards, next_cursor, has_more = await engine.list_cards(actor, filters, cursor, limit)
    return PaginatedResponse(
        items=[CardRead.model_validate(c) for c in cards],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.get(
    "/available",
    response_model=PaginatedResponse[CardRead],
    summary="List cards ready for a claim invitation",
)
async def list_available_cards(
    actor: CurrentActor,
    engine: EngineDep,
    cursor: CursorQuery = None,
    limit: LimitQuery = 50,
) -> PaginatedResponse[CardRead]:
    cards, next_cursor, has_more = await engine.list_available_cards(actor, cursor, limit)
    return PaginatedResponse(
        items=[CardRead.model_validate(c) for c in cards],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.get("/stats", response_model=CardStatsRead, summary="Card statistics")
async def card_stats(actor: CurrentActor, engine: EngineDep) -> CardStatsRead:
    return CardStatsRead.model_validate(await engine.card_stats(actor))


@router.get(
    "/public/{card_uid}",
    response_model=TapResponse,
    summary="Public card lookup",
    responses={404: {"description": "Unknown card"}},
)
@limiter.limit(tap_rate_limit)
async def public_card(request: Request, card_uid: str, engine: EngineDep) -> TapResponse:
    """Record a view. The redirect URL is only returned for active cards."""
    return _tap_response(await engine.public_card(card_uid.upper()))


@router.post(
    "/{card_uid}/tap",
    response_model=TapResponse,
    summary="Record a physical tap",
    responses={404: {"description": "Unknown card"}},
)
@limiter.limit(tap_rate_limit)
async def tap_card(request: Request, card_uid: str, engine: EngineDep) -> TapResponse:
    """Count a tap. Taps are counted for every status, redirects only for active cards."""
    return _tap_response(await engine.record_tap(card_uid.upper()))


@router.get(
    "/{card_id}",
    response_model=CardRead,
    summary="Get card",
    responses={404: {"description": "Card not found"}},
)
async def get_card(card_id: UUID, actor: CurrentActor, engine: EngineDep) -> CardRead:
    return CardRead.model_validate(await engine.get_card(actor, card_id))


@router.patch(
    "/{card_id}",
    response_model=CardRead,
    summary="Update card metadata",
    responses={404: {"description": "Card not found"}},
)
async def update_card(
    card_id: UUID, data: CardUpdate, actor: CurrentActor, engine: EngineDep
) -> CardRead:
    """Update only the fields present in the request body."""
    card = await engine.update_card(actor, card_id, data.model_dump(exclude_unset=True))
    return CardRead.model_validate(card)


@router.get(
    "/{card_id}/history",
    response_model=PaginatedResponse[CardAssignmentRead],
    summary="Assignment history",
)
async def card_history(
    card_id: UUID,
    actor: CurrentActor,
    engine: EngineDep,
    cursor: CursorQuery = None,
    limit: LimitQuery = 50,
) -> PaginatedResponse[CardAssignmentRead]:
    entries, next_cursor, has_more = await engine.card_history(actor, card_id, cursor, limit)
    return PaginatedResponse(
        items=[CardAssignmentRead.model_validate(e) for e in entries],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post(
    "/{card_id}/assign",
    response_model=CardRead,
    summary="Assign an active card",
    responses={400: {"description": "Invalid assignee"}, 409: {"description": "Invalid status"}},
)
async def assign_card(
    card_id: UUID, data: CardAssign, actor: CurrentActor, engine: EngineDep
) -> CardRead:
    card = await engine.assign_card(actor, card_id, data.user_id, data.profile_id, data.reason)
    return CardRead.model_validate(card)


@router.post("/{card_id}/unassign", response_model=CardRead, summary="Clear a card's assignment")
async def unassign_card(
    card_id: UUID, actor: CurrentActor, engine: EngineDep, data: CardReason | None = None
) -> CardRead:
    card = await engine.unassign_card(actor, card_id, data.reason if data else None)
    return CardRead.model_validate(card)


@router.post("/{card_id}/reassign", response_model=CardRead, summary="Hand a card to another user")
async def reassign_card(
    card_id: UUID, data: CardAssign, actor: CurrentActor, engine: EngineDep
) -> CardRead:
    card = await engine.reassign_card(actor, card_id, data.user_id, data.profile_id, data.reason)
    return CardRead.model_validate(card)


@router.post("/{card_id}/activate", response_model=CardRead, summary="Activate a card")
async def activate_card(card_id: UUID, actor: CurrentActor, engine: EngineDep) -> CardRead:
    return CardRead.model_validate(await engine.activate_card(actor, card_id))


@router.post("/{card_id}/deactivate", response_model=CardRead, summary="Retire a card for good")
async def deactivate_card(
    card_id: UUID, actor: CurrentActor, engine: EngineDep, data: CardReason | None = None
) -> CardRead:
    card = await engine.deactivate_card(actor, card_id, data.reason if data else None)
    return CardRead.model_validate(card)


@router.post("/{card_id}/suspend", response_model=CardRead, summary="Suspend an active card")
async def suspend_card(
    card_id: UUID, actor: CurrentActor, engine: EngineDep, data: CardReason | None = None
) -> CardRead:
    card = await engine.suspend_card(actor, card_id, data.reason if data else None)
    return CardRead.model_validate(card)


@router.post("/{card_id}/unsuspend", response_model=CardRead, summary="Lift a suspension")
async def unsuspend_card(card_id: UUID, actor: CurrentActor, engine: EngineDep) -> CardRead:
    return CardRead.model_validate(await engine.unsuspend_card(actor, card_id))
