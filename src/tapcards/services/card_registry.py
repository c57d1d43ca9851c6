"""Card registry - minting, lifecycle transitions, assignment and telemetry."""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.tapcards.core.config import get_settings
from src.tapcards.core.logging import get_logger
from src.tapcards.domain import card_rules
from src.tapcards.domain.card_rules import CardOperation, CardSnapshot, Transition
from src.tapcards.domain.errors import (
    CrossTenantAccess,
    InvalidAssignment,
    InvalidRequest,
    InvalidTransition,
    ResourceNotFound,
)
from src.tapcards.domain.identifiers import CardIdGenerator
from src.tapcards.models import (
    AssignmentAction,
    Card,
    CardAssignment,
    CardStatus,
    LifecycleStage,
)
from src.tapcards.models.base import utc_now
from src.tapcards.repositories import (
    CardAssignmentRepository,
    CardFilters,
    CardRepository,
    ClaimTokenRepository,
    MembershipRepository,
    ProfileRepository,
)

logger = get_logger(__name__)

CARD_ID_PLACEHOLDER = "{card_id}"

# Metadata fields an administrator may edit after minting
EDITABLE_FIELDS = ("serial_number", "sku", "batch_number", "product_line", "physical", "ndef_url")


@dataclass(frozen=True)
class CardTemplate:
    """Attributes shared by every card in one mint request."""

    sku: str | None = None
    batch_number: str | None = None
    product_line: str | None = None
    physical: dict[str, Any] | None = None
    ndef_url_template: str | None = None
    serial_number: str | None = None

    def ndef_url_for(self, card_uid: str) -> str | None:
        if not self.ndef_url_template:
            return None
        return self.ndef_url_template.replace(CARD_ID_PLACEHOLDER, card_uid)


@dataclass
class CardStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_lifecycle_stage: dict[str, int] = field(default_factory=dict)
    total_taps: int = 0
    total_views: int = 0


@dataclass(frozen=True)
class TapResult:
    card: Card
    redirect_url: str | None


class CardRegistry:
    """Owns every write to Card rows and the assignment log.

    Transitions are decided on a CardSnapshot and applied with a conditional
    update keyed on the snapshot's status. The registry never commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        card_repo: CardRepository,
        assignment_repo: CardAssignmentRepository,
        claim_token_repo: ClaimTokenRepository,
        membership_repo: MembershipRepository,
        profile_repo: ProfileRepository,
        id_generator: CardIdGenerator | None = None,
    ):
        settings = get_settings()
        self.session = session
        self.card_repo = card_repo
        self.assignment_repo = assignment_repo
        self.claim_token_repo = claim_token_repo
        self.membership_repo = membership_repo
        self.profile_repo = profile_repo
        self.id_generator = id_generator or CardIdGenerator(
            length=settings.card_id_length,
            max_attempts=settings.card_id_max_attempts,
        )

    # Minting

    async def mint(
        self,
        tenant_id: UUID,
        count: int,
        template: CardTemplate,
        created_by_user_id: UUID | None = None,
    ) -> list[Card]:
        """Create `count` inventory cards. Quota must already be reserved."""
        if template.serial_number is not None:
            if count != 1:
                raise InvalidRequest("serial_number can only be set when minting a single card")
            if await self.card_repo.serial_taken(template.serial_number):
                raise InvalidRequest("serial_number is already in use")

        card_uids = await self.id_generator.generate(count, self.card_repo.taken_uids)

        cards = [
            Card(
                card_uid=card_uid,
                tenant_id=tenant_id,
                serial_number=template.serial_number,
                sku=template.sku,
                batch_number=template.batch_number,
                product_line=template.product_line,
                physical=template.physical,
                ndef_url=template.ndef_url_for(card_uid),
                created_by_user_id=created_by_user_id,
            )
            for card_uid in card_uids
        ]
        self.session.add_all(cards)
        await self.session.flush()
        return cards

    # Lookup

    async def get_owned(self, tenant_id: UUID, card_id: UUID) -> Card:
        card = await self.card_repo.get_by_id(card_id)
        if card is None:
            raise ResourceNotFound("card")
        if card.tenant_id != tenant_id:
            raise CrossTenantAccess("card")
        return card

    async def get_by_uid(self, card_uid: str) -> Card:
        card = await self.card_repo.get_by_uid(card_uid)
        if card is None:
            raise ResourceNotFound("card")
        return card

    # Transitions

    async def apply(self, card: Card, transition: Transition, **values: Any) -> Card:
        """Write `transition` if the card still has the status it was decided on."""
        if transition.to_stage is not None:
            values["lifecycle_stage"] = transition.to_stage.value
        applied = await self.card_repo.transition(
            card.id,
            transition.from_status.value,
            status=transition.to_status.value,
            **values,
        )
        await self.session.refresh(card)
        if not applied:
            logger.info(
                "Card transition lost a concurrent update",
                card_id=str(card.id),
                operation=transition.operation.value,
                expected=transition.from_status.value,
                actual=card.status,
            )
            raise InvalidTransition(card.status, transition.operation.value)
        return card

    async def transition(self, card: Card, operation: CardOperation, **values: Any) -> Card:
        return await self.apply(card, card_rules.decide(CardSnapshot.of(card), operation), **values)

    async def activate(self, card: Card, actor_user_id: UUID | None = None) -> Card:
        snapshot = CardSnapshot.of(card)
        transition = card_rules.decide(snapshot, CardOperation.ACTIVATE)
        values: dict[str, Any] = {"suspended_at": None}
        if card.activated_at is None:
            values["activated_at"] = utc_now()
        if snapshot.status == CardStatus.PROVISIONED:
            await self._revoke_pending_token(card, actor_user_id, "card activated manually")
            values["claim_token_id"] = None
        return await self.apply(card, transition, **values)

    async def deactivate(self, card: Card) -> Card:
        return await self.transition(card, CardOperation.DEACTIVATE, deactivated_at=utc_now())

    async def suspend(self, card: Card) -> Card:
        return await self.transition(card, CardOperation.SUSPEND, suspended_at=utc_now())

    async def unsuspend(self, card: Card) -> Card:
        return await self.transition(card, CardOperation.UNSUSPEND, suspended_at=None)

    async def detach_claim_token(self, card: Card, token_id: UUID) -> bool:
        """Return a provisioned card to inventory if it still points at `token_id`."""
        if card.claim_token_id != token_id or card.status != CardStatus.PROVISIONED.value:
            return False
        return await self.card_repo.transition(
            card.id,
            CardStatus.PROVISIONED.value,
            status=CardStatus.INVENTORY.value,
            lifecycle_stage=LifecycleStage.MANUFACTURED.value,
            claim_token_id=None,
        )

    # Assignment

    async def assign(
        self,
        card: Card,
        user_id: UUID,
        profile_id: UUID | None = None,
        actor_user_id: UUID | None = None,
        reason: str | None = None,
    ) -> Card:
        transition = card_rules.decide(CardSnapshot.of(card), CardOperation.ASSIGN)
        await self._validate_assignee(card.tenant_id, user_id, profile_id)
        previous_user_id = card.assigned_to_user_id

        await self.apply(
            card,
            transition,
            assigned_to_user_id=user_id,
            assigned_profile_id=profile_id,
        )
        self.assignment_repo.append(
            card=card,
            action=AssignmentAction.ASSIGNED.value,
            user_id=user_id,
            profile_id=profile_id,
            previous_user_id=previous_user_id,
            actor_user_id=actor_user_id,
            reason=reason,
        )
        return card

    async def unassign(
        self, card: Card, actor_user_id: UUID | None = None, reason: str | None = None
    ) -> Card:
        transition = card_rules.decide(CardSnapshot.of(card), CardOperation.UNASSIGN)
        previous_user_id = card.assigned_to_user_id
        if previous_user_id is None:
            raise InvalidAssignment("card is not assigned")

        await self.apply(card, transition, assigned_to_user_id=None, assigned_profile_id=None)
        self.assignment_repo.append(
            card=card,
            action=AssignmentAction.UNASSIGNED.value,
            user_id=None,
            previous_user_id=previous_user_id,
            actor_user_id=actor_user_id,
            reason=reason,
        )
        return card

    async def reassign(
        self,
        card: Card,
        user_id: UUID,
        profile_id: UUID | None = None,
        actor_user_id: UUID | None = None,
        reason: str | None = None,
    ) -> Card:
        snapshot = CardSnapshot.of(card)
        transition = card_rules.decide_reassign(snapshot)
        await self._validate_assignee(card.tenant_id, user_id, profile_id)
        previous_user_id = card.assigned_to_user_id

        values: dict[str, Any] = {
            "assigned_to_user_id": user_id,
            "assigned_profile_id": profile_id,
        }
        if card.activated_at is None:
            values["activated_at"] = utc_now()
        if snapshot.status == CardStatus.PROVISIONED:
            await self._revoke_pending_token(card, actor_user_id, "card reassigned")
            values["claim_token_id"] = None

        await self.apply(card, transition, **values)
        self.assignment_repo.append(
            card=card,
            action=AssignmentAction.REASSIGNED.value,
            user_id=user_id,
            profile_id=profile_id,
            previous_user_id=previous_user_id,
            actor_user_id=actor_user_id,
            reason=reason,
        )
        return card

    async def _validate_assignee(
        self, tenant_id: UUID, user_id: UUID, profile_id: UUID | None
    ) -> None:
        membership = await self.membership_repo.get_active_membership(user_id, tenant_id)
        if membership is None:
            raise InvalidAssignment("user is not an active member of this organization")
        if profile_id is None:
            return
        profile = await self.profile_repo.get_by_id(profile_id)
        if profile is None or profile.tenant_id != tenant_id or profile.user_id != user_id:
            raise InvalidAssignment("profile does not belong to the user")

    async def _revoke_pending_token(
        self, card: Card, actor_user_id: UUID | None, reason: str
    ) -> None:
        if card.claim_token_id is None:
            return
        if await self.claim_token_repo.revoke(card.claim_token_id, actor_user_id, reason):
            logger.info(
                "Pending claim token revoked",
                card_id=str(card.id),
                claim_token_id=str(card.claim_token_id),
                reason=reason,
            )

    # Telemetry

    async def record_tap(self, card_uid: str) -> TapResult:
        """Count a physical tap. Redirects are only served for active cards."""
        card = await self.get_by_uid(card_uid)
        await self.card_repo.record_tap(card_uid)
        await self.session.refresh(card)
        return TapResult(card=card, redirect_url=await self._redirect_for(card))

    async def record_view(self, card_uid: str) -> TapResult:
        card = await self.get_by_uid(card_uid)
        await self.card_repo.record_view(card_uid)
        await self.session.refresh(card)
        return TapResult(card=card, redirect_url=await self._redirect_for(card))

    async def _redirect_for(self, card: Card) -> str | None:
        if not card_rules.can_redirect(card.status):
            return None
        username = None
        if card.assigned_profile_id is not None:
            username = await self.profile_repo.get_username(card.assigned_profile_id)
        return card_rules.redirect_url(
            base_url=get_settings().public_base_url,
            card_uid=card.card_uid,
            ndef_url=card.ndef_url,
            profile_username=username,
        )

    # Queries and metadata

    async def list_cards(
        self,
        tenant_id: UUID,
        filters: CardFilters,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Card], str | None, bool]:
        return await self.card_repo.list_by_tenant(tenant_id, filters, cursor, limit)

    async def list_available(
        self, tenant_id: UUID, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[Card], str | None, bool]:
        return await self.card_repo.list_available(tenant_id, cursor, limit)

    async def stats(self, tenant_id: UUID) -> CardStats:
        by_status = await self.card_repo.count_by(tenant_id, Card.status)
        by_stage = await self.card_repo.count_by(tenant_id, Card.lifecycle_stage)
        taps, views = await self.card_repo.tap_totals(tenant_id)
        return CardStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_lifecycle_stage=by_stage,
            total_taps=taps,
            total_views=views,
        )

    async def update_metadata(self, card: Card, updates: dict[str, Any]) -> dict[str, Any]:
        """Apply metadata edits and return a {"before": ..., "after": ...} diff."""
        unknown = set(updates) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidRequest(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        serial = updates.get("serial_number")
        if serial and await self.card_repo.serial_taken(serial, exclude_card_id=card.id):
            raise InvalidRequest("serial_number is already in use")

        before: dict[str, Any] = {}
        after: dict[str, Any] = {}
        for key, value in updates.items():
            current = getattr(card, key)
            if current != value:
                before[key] = current
                after[key] = value
                setattr(card, key, value)

        if after:
            card.updated_at = utc_now()
            self.session.add(card)
            await self.session.flush()
        return {"before": before, "after": after}

    async def history(
        self, card: Card, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[CardAssignment], str | None, bool]:
        return await self.assignment_repo.list_for_card(card.id, cursor, limit)
