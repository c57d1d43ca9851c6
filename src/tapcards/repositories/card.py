"""Repositories for cards and their assignment history."""

from collections.abc import Collection
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlmodel import select

from src.tapcards.models import Card, CardAssignment, CardStatus
from src.tapcards.models.base import utc_now
from src.tapcards.repositories.base import BaseRepository

# Keeps IN (...) lists well under SQLite's bound-parameter limit
_UID_LOOKUP_CHUNK = 500


@dataclass(frozen=True)
class CardFilters:
    status: str | None = None
    lifecycle_stage: str | None = None
    batch_number: str | None = None
    sku: str | None = None
    assigned_to_user_id: UUID | None = None
    search: str | None = None


class CardRepository(BaseRepository[Card]):
    """Card data access.

    Status changes go through `transition`, a conditional update keyed on the
    status the caller decided from.
    """

    model = Card

    async def get_by_uid(self, card_uid: str) -> Card | None:
        result = await self.session.execute(select(Card).where(Card.card_uid == card_uid))
        return result.scalar_one_or_none()

    async def taken_uids(self, candidates: Collection[str]) -> set[str]:
        """Return the candidates that already exist in the registry."""
        taken: set[str] = set()
        values = list(candidates)
        for start in range(0, len(values), _UID_LOOKUP_CHUNK):
            chunk = values[start : start + _UID_LOOKUP_CHUNK]
            result = await self.session.execute(
                select(Card.card_uid).where(Card.card_uid.in_(chunk))  # type: ignore[attr-defined]
            )
            taken.update(result.scalars().all())
        return taken

    async def serial_taken(self, serial_number: str, exclude_card_id: UUID | None = None) -> bool:
        query = select(Card.id).where(Card.serial_number == serial_number)
        if exclude_card_id is not None:
            query = query.where(Card.id != exclude_card_id)
        result = await self.session.execute(query)
        return result.first() is not None

    async def transition(self, card_id: UUID, expected_status: str, **values: Any) -> bool:
        """Apply `values` only if the card is still in `expected_status`."""
        stmt = (
            update(Card)
            .where(Card.id == card_id, Card.status == expected_status)  # type: ignore[arg-type]
            .values(updated_at=utc_now(), **values)
        )
        return await self.execute_update(stmt) == 1

    async def record_tap(self, card_uid: str) -> bool:
        now = utc_now()
        stmt = (
            update(Card)
            .where(Card.card_uid == card_uid)  # type: ignore[arg-type]
            .values(tap_count=Card.tap_count + 1, last_tapped_at=now)
        )
        return await self.execute_update(stmt) == 1

    async def record_view(self, card_uid: str) -> bool:
        now = utc_now()
        stmt = (
            update(Card)
            .where(Card.card_uid == card_uid)  # type: ignore[arg-type]
            .values(view_count=Card.view_count + 1, last_viewed_at=now)
        )
        return await self.execute_update(stmt) == 1

    async def list_by_tenant(
        self,
        tenant_id: UUID,
        filters: CardFilters,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Card], str | None, bool]:
        """List a tenant's cards with optional filters and cursor pagination."""
        query = select(Card).where(Card.tenant_id == tenant_id)

        if filters.status:
            query = query.where(Card.status == filters.status)
        if filters.lifecycle_stage:
            query = query.where(Card.lifecycle_stage == filters.lifecycle_stage)
        if filters.batch_number:
            query = query.where(Card.batch_number == filters.batch_number)
        if filters.sku:
            query = query.where(Card.sku == filters.sku)
        if filters.assigned_to_user_id:
            query = query.where(Card.assigned_to_user_id == filters.assigned_to_user_id)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.where(
                or_(
                    Card.card_uid.ilike(pattern),  # type: ignore[attr-defined]
                    Card.serial_number.ilike(pattern),  # type: ignore[union-attr]
                )
            )

        return await self.paginate(query, cursor, limit, Card.created_at)

    async def list_available(
        self, tenant_id: UUID, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[Card], str | None, bool]:
        """Inventory cards with no claim token attached."""
        query = select(Card).where(
            Card.tenant_id == tenant_id,
            Card.status == CardStatus.INVENTORY.value,
            Card.claim_token_id == None,  # noqa: E711
        )
        return await self.paginate(query, cursor, limit, Card.created_at)

    async def count_by(self, tenant_id: UUID, column: Any) -> dict[str, int]:
        result = await self.session.execute(
            select(column, func.count()).where(Card.tenant_id == tenant_id).group_by(column)
        )
        return {key: count for key, count in result.all()}

    async def tap_totals(self, tenant_id: UUID) -> tuple[int, int]:
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(Card.tap_count), 0),
                func.coalesce(func.sum(Card.view_count), 0),
            ).where(Card.tenant_id == tenant_id)
        )
        taps, views = result.one()
        return int(taps), int(views)


class CardAssignmentRepository(BaseRepository[CardAssignment]):
    """Append-only: rows are added, never updated or deleted."""

    model = CardAssignment

    def append(
        self,
        *,
        card: Card,
        action: str,
        user_id: UUID | None,
        profile_id: UUID | None = None,
        previous_user_id: UUID | None = None,
        actor_user_id: UUID | None = None,
        reason: str | None = None,
    ) -> CardAssignment:
        entry = CardAssignment(
            card_id=card.id,
            tenant_id=card.tenant_id,
            action=action,
            user_id=user_id,
            profile_id=profile_id,
            previous_user_id=previous_user_id,
            actor_user_id=actor_user_id,
            reason=reason,
        )
        self.session.add(entry)
        return entry

    async def list_for_card(
        self, card_id: UUID, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[CardAssignment], str | None, bool]:
        query = select(CardAssignment).where(CardAssignment.card_id == card_id)
        return await self.paginate(query, cursor, limit, CardAssignment.created_at)
