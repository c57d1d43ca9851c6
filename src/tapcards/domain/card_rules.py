"""Card state machine as pure functions over immutable snapshots.

Nothing here touches the store. Callers take a CardSnapshot, ask for a
decision, and apply it with a conditional update keyed on the snapshot's
status so a concurrent change turns into InvalidTransition instead of a
lost update.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.tapcards.domain.errors import InvalidTransition
from src.tapcards.models.enums import CardStatus, LifecycleStage

TERMINAL_STATUSES = frozenset({CardStatus.DEACTIVATED})
CLAIMABLE_STATUSES = frozenset({CardStatus.INVENTORY, CardStatus.PROVISIONED})
NON_REASSIGNABLE_STATUSES = frozenset({CardStatus.SUSPENDED, CardStatus.DEACTIVATED})


class CardOperation(str, Enum):
    GENERATE_CLAIM = "generate_claim"
    REDEEM_CLAIM = "redeem_claim"
    ASSIGN = "assign"
    UNASSIGN = "unassign"
    REASSIGN = "reassign"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    SUSPEND = "suspend"
    UNSUSPEND = "unsuspend"


@dataclass(frozen=True)
class CardSnapshot:
    id: UUID
    tenant_id: UUID
    status: CardStatus
    lifecycle_stage: LifecycleStage
    assigned_to_user_id: UUID | None = None
    assigned_profile_id: UUID | None = None
    claim_token_id: UUID | None = None

    @classmethod
    def of(cls, card: Any) -> "CardSnapshot":
        return cls(
            id=card.id,
            tenant_id=card.tenant_id,
            status=CardStatus(card.status),
            lifecycle_stage=LifecycleStage(card.lifecycle_stage),
            assigned_to_user_id=card.assigned_to_user_id,
            assigned_profile_id=card.assigned_profile_id,
            claim_token_id=card.claim_token_id,
        )


@dataclass(frozen=True)
class PendingTokenView:
    """What the card guards need to know about a card's pending claim token."""

    id: UUID
    expires_at: datetime

    def is_outstanding(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class Transition:
    """An allowed transition. `None` targets leave the field unchanged."""

    operation: CardOperation
    from_status: CardStatus
    to_status: CardStatus
    to_stage: LifecycleStage | None = None


_ALLOWED_FROM: dict[CardOperation, frozenset[CardStatus]] = {
    CardOperation.GENERATE_CLAIM: CLAIMABLE_STATUSES,
    CardOperation.REDEEM_CLAIM: CLAIMABLE_STATUSES,
    CardOperation.ASSIGN: frozenset({CardStatus.ACTIVE}),
    CardOperation.UNASSIGN: frozenset({CardStatus.ACTIVE}),
    CardOperation.REASSIGN: frozenset({CardStatus.ACTIVE, CardStatus.PROVISIONED}),
    CardOperation.ACTIVATE: frozenset(set(CardStatus) - TERMINAL_STATUSES),
    CardOperation.DEACTIVATE: frozenset({CardStatus.ACTIVE}),
    CardOperation.SUSPEND: frozenset({CardStatus.ACTIVE}),
    CardOperation.UNSUSPEND: frozenset({CardStatus.SUSPENDED}),
}

_TARGET: dict[CardOperation, tuple[CardStatus | None, LifecycleStage | None]] = {
    CardOperation.GENERATE_CLAIM: (CardStatus.PROVISIONED, LifecycleStage.ENCODED),
    CardOperation.REDEEM_CLAIM: (CardStatus.ACTIVE, LifecycleStage.CLAIMED),
    CardOperation.ASSIGN: (None, None),
    CardOperation.UNASSIGN: (None, None),
    CardOperation.REASSIGN: (CardStatus.ACTIVE, LifecycleStage.CLAIMED),
    CardOperation.ACTIVATE: (CardStatus.ACTIVE, None),
    CardOperation.DEACTIVATE: (CardStatus.DEACTIVATED, LifecycleStage.RETIRED),
    CardOperation.SUSPEND: (CardStatus.SUSPENDED, None),
    CardOperation.UNSUSPEND: (CardStatus.ACTIVE, None),
}


def allowed_from(operation: CardOperation) -> frozenset[CardStatus]:
    return _ALLOWED_FROM[operation]


def decide(card: CardSnapshot, operation: CardOperation) -> Transition:
    """Return the transition for `operation`, or raise InvalidTransition."""
    if card.status not in _ALLOWED_FROM[operation]:
        raise InvalidTransition(card.status.value, operation.value)
    to_status, to_stage = _TARGET[operation]
    return Transition(
        operation=operation,
        from_status=card.status,
        to_status=to_status or card.status,
        to_stage=to_stage,
    )


def is_claimable(
    card: CardSnapshot, pending_token: PendingTokenView | None, now: datetime
) -> bool:
    """Inventory or provisioned, with no unexpired pending token outstanding."""
    if card.status not in CLAIMABLE_STATUSES:
        return False
    return pending_token is None or not pending_token.is_outstanding(now)


def is_reassignable(card: CardSnapshot) -> bool:
    return card.status not in NON_REASSIGNABLE_STATUSES


def decide_generate_claim(
    card: CardSnapshot, pending_token: PendingTokenView | None, now: datetime
) -> Transition:
    """Issuing a claim token needs a claimable card on top of the status table."""
    transition = decide(card, CardOperation.GENERATE_CLAIM)
    if not is_claimable(card, pending_token, now):
        raise InvalidTransition(
            card.status.value,
            CardOperation.GENERATE_CLAIM.value,
            reason="a pending claim token is outstanding",
        )
    return transition


def decide_reassign(card: CardSnapshot) -> Transition:
    if not is_reassignable(card):
        raise InvalidTransition(card.status.value, CardOperation.REASSIGN.value)
    return decide(card, CardOperation.REASSIGN)


def can_redirect(status: CardStatus | str) -> bool:
    """Public redirects are served only for active cards."""
    return CardStatus(status) == CardStatus.ACTIVE


def redirect_url(
    *,
    base_url: str,
    card_uid: str,
    ndef_url: str | None,
    profile_username: str | None,
) -> str:
    if ndef_url:
        return ndef_url
    if profile_username:
        return f"{base_url}/p/{profile_username}"
    return f"{base_url}/c/{card_uid}"
