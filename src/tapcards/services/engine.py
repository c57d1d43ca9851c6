"""Provisioning engine facade.

Every public operation runs in the same order: authorize, check membership
and limits, mutate, commit, then a best-effort audit write on an isolated
session. Audit and attempt-log failures never reach the caller.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.tapcards.core.config import get_settings
from src.tapcards.core.logging import get_logger, loggable_email
from src.tapcards.core.notifications import (
    send_claim_invitation_email,
    send_verification_code_email,
)
from src.tapcards.domain.actor import Actor
from src.tapcards.domain.card_rules import CardOperation
from src.tapcards.domain.errors import (
    CrossTenantAccess,
    EngineError,
    InvalidRequest,
    InvalidTransition,
    PermissionDenied,
    ResourceNotFound,
    TenantInactive,
    TokenInvalid,
)
from src.tapcards.models import (
    AuditAction,
    AuditLog,
    AuditSeverity,
    Card,
    CardAssignment,
    ClaimAttemptKind,
    ClaimToken,
    MembershipRole,
    QuotaResource,
    Tenant,
    TenantQuota,
    TenantStatus,
)
from src.tapcards.repositories import (
    AuditFilters,
    AuditLogRepository,
    CardAssignmentRepository,
    CardFilters,
    CardRepository,
    ClaimAttemptRepository,
    ClaimTokenRepository,
    MembershipRepository,
    ProfileRepository,
    TenantQuotaRepository,
    TenantRepository,
    UserRepository,
)
from src.tapcards.services.audit_service import AuditService, record_audit
from src.tapcards.services.card_registry import CardRegistry, CardStats, CardTemplate, TapResult
from src.tapcards.services.claim_attempts import ClaimAttemptRecorder
from src.tapcards.services.claim_token_service import (
    Assignee,
    ClaimTokenService,
    IssuedToken,
    ProfileData,
    Redemption,
)
from src.tapcards.services.quota_ledger import QuotaLedger

logger = get_logger(__name__)

OPERATIONAL_TENANT_STATUSES = frozenset({TenantStatus.ACTIVE.value, TenantStatus.TRIAL.value})
MANAGER_ROLES = frozenset({MembershipRole.OWNER.value, MembershipRole.ADMIN.value})


@dataclass(frozen=True)
class Authorization:
    """Authorized caller, held as plain values so it outlives session rollbacks."""

    actor: Actor
    tenant_id: UUID
    tenant_name: str
    role: str


@dataclass(frozen=True)
class MintResult:
    cards: list[Card]
    count: int
    batch_number: str | None

    @property
    def card_uids(self) -> list[str]:
        return [card.card_uid for card in self.cards]

    def preview(self, size: int | None = None) -> list[str]:
        return self.card_uids[: size or get_settings().bulk_preview_size]


@dataclass(frozen=True)
class Invitation:
    card_id: UUID
    assignee: Assignee
    expires_in_days: int | None = None
    require_email_verification: bool = True


@dataclass(frozen=True)
class InvitationOutcome:
    card_id: UUID
    issued: IssuedToken | None = None
    error: EngineError | None = None

    @property
    def success(self) -> bool:
        return self.issued is not None


@dataclass(frozen=True)
class ClaimInfo:
    tenant_name: str
    card_uid: str | None
    card_status: str | None
    assigned_name: str | None
    assigned_email: str
    require_email_verification: bool
    email_verified: bool
    expires_at: datetime


def _failure_reason(exc: Exception) -> str:
    reason = getattr(exc, "reason", None)
    if isinstance(reason, str):
        return reason
    if isinstance(exc, EngineError):
        return exc.code.lower()
    return "internal_error"


class ProvisioningEngine:
    """Facade over the card registry, the claim token service and the quota ledger."""

    def __init__(self, session: AsyncSession, recorder: ClaimAttemptRecorder | None = None):
        self.session = session
        self.tenant_repo = TenantRepository(session)
        self.user_repo = UserRepository(session)
        self.membership_repo = MembershipRepository(session)
        self.ledger = QuotaLedger(TenantQuotaRepository(session))
        self.registry = CardRegistry(
            session,
            CardRepository(session),
            CardAssignmentRepository(session),
            ClaimTokenRepository(session),
            self.membership_repo,
            ProfileRepository(session),
        )
        self.claims = ClaimTokenService(
            session,
            self.registry.claim_token_repo,
            ClaimAttemptRepository(session),
            self.membership_repo,
            self.registry.profile_repo,
            self.registry,
            self.ledger,
        )
        self.recorder = recorder or ClaimAttemptRecorder()

    # Plumbing

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def authorize(self, actor: Actor, require_manager: bool = True) -> Authorization:
        """Re-validate the actor against the store for the tenant in its token."""
        tenant = await self.tenant_repo.get_by_id(actor.tenant_id)
        if tenant is None:
            raise ResourceNotFound("organization")
        if tenant.status not in OPERATIONAL_TENANT_STATUSES:
            raise TenantInactive(tenant.status)

        membership = await self.membership_repo.get_active_membership(actor.user_id, tenant.id)
        if membership is None:
            logger.info("Actor has no active membership", tenant_id=str(tenant.id))
            raise PermissionDenied("Not a member of this organization")
        if require_manager and membership.role not in MANAGER_ROLES:
            raise PermissionDenied("Owner or admin role required")
        return Authorization(
            actor=actor,
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            role=membership.role,
        )

    async def _audit(
        self,
        auth: Authorization,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID | None = None,
        identifier: str | None = None,
        changes: dict[str, Any] | None = None,
        severity: AuditSeverity = AuditSeverity.LOW,
    ) -> None:
        await record_audit(
            auth.tenant_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            identifier=identifier,
            user_id=auth.actor.user_id,
            user_email=auth.actor.email,
            user_role=auth.role,
            changes=changes,
            severity=severity,
        )

    # Tenants and quotas

    async def create_tenant(
        self,
        name: str,
        slug: str,
        status: TenantStatus = TenantStatus.ACTIVE,
        limits: dict[QuotaResource, int] | None = None,
    ) -> Tenant:
        """Create a tenant together with its ledger rows."""
        tenant = Tenant(name=name, slug=slug, status=status.value)
        try:
            async with self._transaction():
                self.tenant_repo.add(tenant)
                await self.session.flush()
                self.ledger.provision(tenant.id, limits)
        except IntegrityError as e:
            raise InvalidRequest(f"Organization with slug '{slug}' already exists") from e
        await self.session.refresh(tenant)
        logger.info("Tenant provisioned", tenant_id=str(tenant.id), slug=slug)
        return tenant

    async def quota_snapshot(self, actor: Actor, tenant_id: UUID) -> list[TenantQuota]:
        if tenant_id != actor.tenant_id:
            raise CrossTenantAccess("organization")
        auth = await self.authorize(actor)
        return await self.ledger.snapshot(auth.tenant_id)

    # Cards

    async def create_card(self, actor: Actor, template: CardTemplate) -> Card:
        result = await self.mint_cards(actor, 1, template)
        return result.cards[0]

    async def mint_cards(self, actor: Actor, count: int, template: CardTemplate) -> MintResult:
        """Reserve `count` cards, then mint them all or none.

        The reservation is committed before any row is written; if minting
        fails the whole reservation is released again.
        """
        settings = get_settings()
        if count < 1 or count > settings.bulk_mint_max:
            raise InvalidRequest(f"count must be between 1 and {settings.bulk_mint_max}")

        auth = await self.authorize(actor)
        tenant_id = auth.tenant_id

        async with self._transaction():
            await self.ledger.reserve(tenant_id, QuotaResource.CARDS, count)

        try:
            async with self._transaction():
                cards = await self.registry.mint(tenant_id, count, template, actor.user_id)
        except Exception:
            await self._release_cards(tenant_id, count)
            raise

        result = MintResult(cards=cards, count=count, batch_number=template.batch_number)
        logger.info(
            "Cards minted",
            tenant_id=str(tenant_id),
            count=count,
            batch_number=template.batch_number,
            card_uids=result.card_uids,
        )

        if count == 1:
            card = cards[0]
            await self._audit(
                auth,
                AuditAction.CARD_CREATE,
                "card",
                entity_id=card.id,
                identifier=card.card_uid,
                changes={"sku": card.sku, "batch_number": card.batch_number},
            )
        else:
            await self._audit(
                auth,
                AuditAction.CARD_BULK_CREATE,
                "card_batch",
                identifier=template.batch_number,
                changes={"count": count, "preview": result.preview()},
                severity=AuditSeverity.MEDIUM,
            )
        return result

    async def _release_cards(self, tenant_id: UUID, count: int) -> None:
        try:
            async with self._transaction():
                await self.ledger.release(tenant_id, QuotaResource.CARDS, count)
        except Exception as e:
            logger.error(
                "Failed to release card reservation",
                tenant_id=str(tenant_id),
                count=count,
                error=str(e),
            )

    async def get_card(self, actor: Actor, card_id: UUID) -> Card:
        auth = await self.authorize(actor, require_manager=False)
        return await self.registry.get_owned(auth.tenant_id, card_id)

    async def list_cards(
        self,
        actor: Actor,
        filters: CardFilters,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Card], str | None, bool]:
        auth = await self.authorize(actor, require_manager=False)
        return await self.registry.list_cards(auth.tenant_id, filters, cursor, limit)

    async def list_available_cards(
        self, actor: Actor, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[Card], str | None, bool]:
        auth = await self.authorize(actor)
        return await self.registry.list_available(auth.tenant_id, cursor, limit)

    async def card_stats(self, actor: Actor) -> CardStats:
        auth = await self.authorize(actor, require_manager=False)
        return await self.registry.stats(auth.tenant_id)

    async def card_history(
        self, actor: Actor, card_id: UUID, cursor: str | None = None, limit: int = 50
    ) -> tuple[list[CardAssignment], str | None, bool]:
        auth = await self.authorize(actor, require_manager=False)
        card = await self.registry.get_owned(auth.tenant_id, card_id)
        return await self.registry.history(card, cursor, limit)

    async def update_card(self, actor: Actor, card_id: UUID, updates: dict[str, Any]) -> Card:
        auth = await self.authorize(actor)
        async with self._transaction():
            card = await self.registry.get_owned(auth.tenant_id, card_id)
            diff = await self.registry.update_metadata(card, updates)

        if diff["after"]:
            await self._audit(
                auth,
                AuditAction.CARD_UPDATE,
                "card",
                entity_id=card.id,
                identifier=card.card_uid,
                changes=diff,
            )
        return card

    async def _mutate_card(
        self,
        actor: Actor,
        card_id: UUID,
        action: AuditAction,
        mutate: Callable[[Card], Awaitable[Card]],
        severity: AuditSeverity = AuditSeverity.LOW,
        extra: dict[str, Any] | None = None,
    ) -> Card:
        auth = await self.authorize(actor)
        async with self._transaction():
            card = await self.registry.get_owned(auth.tenant_id, card_id)
            before_status = card.status
            before_user = card.assigned_to_user_id
            await mutate(card)

        changes: dict[str, Any] = {"status": {"from": before_status, "to": card.status}}
        if before_user != card.assigned_to_user_id:
            changes["assigned_to_user_id"] = {
                "from": str(before_user) if before_user else None,
                "to": str(card.assigned_to_user_id) if card.assigned_to_user_id else None,
            }
        if extra:
            changes.update(extra)

        logger.info(
            "Card updated",
            card_id=str(card.id),
            action=action.value,
            status=card.status,
        )
        await self._audit(
            auth,
            action,
            "card",
            entity_id=card.id,
            identifier=card.card_uid,
            changes=changes,
            severity=severity,
        )
        return card

    async def assign_card(
        self,
        actor: Actor,
        card_id: UUID,
        user_id: UUID,
        profile_id: UUID | None = None,
        reason: str | None = None,
    ) -> Card:
        return await self._mutate_card(
            actor,
            card_id,
            AuditAction.CARD_ASSIGN,
            lambda card: self.registry.assign(card, user_id, profile_id, actor.user_id, reason),
        )

    async def unassign_card(self, actor: Actor, card_id: UUID, reason: str | None = None) -> Card:
        return await self._mutate_card(
            actor,
            card_id,
            AuditAction.CARD_UNASSIGN,
            lambda card: self.registry.unassign(card, actor.user_id, reason),
        )

    async def reassign_card(
        self,
        actor: Actor,
        card_id: UUID,
        user_id: UUID,
        profile_id: UUID | None = None,
        reason: str | None = None,
    ) -> Card:
        return await self._mutate_card(
            actor,
            card_id,
            AuditAction.CARD_REASSIGN,
            lambda card: self.registry.reassign(card, user_id, profile_id, actor.user_id, reason),
            severity=AuditSeverity.MEDIUM,
        )

    async def activate_card(self, actor: Actor, card_id: UUID) -> Card:
        return await self._mutate_card(
            actor,
            card_id,
            AuditAction.CARD_ACTIVATE,
            lambda card: self.registry.activate(card, actor.user_id),
        )

    async def deactivate_card(self, actor: Actor, card_id: UUID, reason: str | None = None) -> Card:
        return await self._mutate_card(
            actor,
            card_id,
            AuditAction.CARD_DEACTIVATE,
            self.registry.deactivate,
            severity=AuditSeverity.HIGH,
            extra={"reason": reason} if reason else None,
        )

    async def suspend_card(self, actor: Actor, card_id: UUID, reason: str | None = None) -> Card:
        return await self._mutate_card(
            actor,
            card_id,
            AuditAction.CARD_SUSPEND,
            self.registry.suspend,
            severity=AuditSeverity.HIGH,
            extra={"reason": reason} if reason else None,
        )

    async def unsuspend_card(self, actor: Actor, card_id: UUID) -> Card:
        return await self._mutate_card(
            actor,
            card_id,
            AuditAction.CARD_UNSUSPEND,
            self.registry.unsuspend,
            severity=AuditSeverity.MEDIUM,
        )

    async def record_tap(self, card_uid: str) -> TapResult:
        async with self._transaction():
            return await self.registry.record_tap(card_uid)

    async def public_card(self, card_uid: str) -> TapResult:
        async with self._transaction():
            return await self.registry.record_view(card_uid)

    # Claim tokens (administrator side)

    async def generate_claim(self, actor: Actor, invitation: Invitation) -> IssuedToken:
        auth = await self.authorize(actor)
        issued = await self._issue(auth, invitation)
        await self._audit(
            auth,
            AuditAction.CLAIM_GENERATE,
            "claim_token",
            entity_id=issued.token.id,
            identifier=str(invitation.card_id),
            changes={
                "card_id": str(invitation.card_id),
                "expires_at": issued.token.expires_at.isoformat(),
                "require_email_verification": issued.token.require_email_verification,
            },
        )
        return issued

    async def bulk_generate_claims(
        self, actor: Actor, invitations: list[Invitation]
    ) -> list[InvitationOutcome]:
        """Issue each invitation in its own transaction and report per-item outcomes."""
        settings = get_settings()
        if not invitations or len(invitations) > settings.bulk_claim_max:
            raise InvalidRequest(f"Between 1 and {settings.bulk_claim_max} invitations allowed")

        auth = await self.authorize(actor)
        outcomes: list[InvitationOutcome] = []
        for invitation in invitations:
            try:
                issued = await self._issue(auth, invitation)
                # Committed; detach it so a later item's rollback cannot expire it
                self.session.expunge(issued.token)
                outcomes.append(InvitationOutcome(card_id=invitation.card_id, issued=issued))
            except EngineError as e:
                logger.info(
                    "Bulk invitation rejected",
                    card_id=str(invitation.card_id),
                    code=e.code,
                )
                outcomes.append(InvitationOutcome(card_id=invitation.card_id, error=e))

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        await self._audit(
            auth,
            AuditAction.CLAIM_BULK_GENERATE,
            "claim_token",
            changes={"requested": len(invitations), "succeeded": succeeded},
            severity=AuditSeverity.MEDIUM,
        )
        return outcomes

    async def _issue(self, auth: Authorization, invitation: Invitation) -> IssuedToken:
        card_status: str | None = None
        try:
            async with self._transaction():
                card = await self.registry.get_owned(auth.tenant_id, invitation.card_id)
                card_status = card.status
                issued = await self.claims.issue(
                    card,
                    invitation.assignee,
                    expires_in_days=invitation.expires_in_days,
                    require_email_verification=invitation.require_email_verification,
                    created_by_user_id=auth.actor.user_id,
                )
        except IntegrityError as e:
            # A concurrent issuer inserted the pending token for this card first
            raise InvalidTransition(
                str(card_status),
                CardOperation.GENERATE_CLAIM.value,
                reason="a pending claim token is outstanding",
            ) from e

        send_claim_invitation_email(
            issued.token.assigned_email,
            issued.claim_url,
            auth.tenant_name,
            issued.token.assigned_name,
            issued.token.expires_at,
        )
        return issued

    async def list_claim_tokens(
        self,
        actor: Actor,
        status: str | None = None,
        search: str | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[ClaimToken], str | None, bool]:
        auth = await self.authorize(actor)
        return await self.claims.list_tokens(auth.tenant_id, status, search, cursor, limit)

    async def revoke_claim(
        self, actor: Actor, token_id: UUID, reason: str | None = None
    ) -> ClaimToken:
        auth = await self.authorize(actor)
        async with self._transaction():
            token = await self.claims.get_owned(auth.tenant_id, token_id)
            await self.claims.revoke(token, actor.user_id, reason)

        await self._audit(
            auth,
            AuditAction.CLAIM_REVOKE,
            "claim_token",
            entity_id=token.id,
            identifier=str(token.card_id) if token.card_id else None,
            changes={"reason": reason},
            severity=AuditSeverity.MEDIUM,
        )
        return token

    async def expire_claim_tokens(self) -> int:
        async with self._transaction():
            expired = await self.claims.expire_sweep()
        if expired:
            logger.info("Expired stale claim tokens", count=expired)
        return expired

    # Claim tokens (claimant side)

    async def claim_info(self, plaintext: str) -> ClaimInfo:
        token = await self.claims.resolve(plaintext)
        tenant = await self.tenant_repo.get_by_id(token.tenant_id)
        card = await self.registry.card_repo.get_by_id(token.card_id) if token.card_id else None
        return ClaimInfo(
            tenant_name=tenant.name if tenant else "",
            card_uid=card.card_uid if card else None,
            card_status=card.status if card else None,
            assigned_name=token.assigned_name,
            assigned_email=token.assigned_email,
            require_email_verification=token.require_email_verification,
            email_verified=token.email_verified,
            expires_at=token.expires_at,
        )

    async def send_verification_code(self, plaintext: str) -> ClaimToken:
        async with self._transaction():
            token = await self.claims.resolve(plaintext)
            code = await self.claims.issue_verification_code(token)
            tenant = await self.tenant_repo.get_by_id(token.tenant_id)

        send_verification_code_email(token.assigned_email, code, tenant.name if tenant else "")
        logger.info(
            "Verification code issued",
            claim_token_id=str(token.id),
            to=loggable_email(token.assigned_email),
        )
        await record_audit(
            token.tenant_id,
            action=AuditAction.CLAIM_VERIFY_EMAIL,
            entity_type="claim_token",
            entity_id=token.id,
            identifier=str(token.card_id) if token.card_id else None,
        )
        return token

    async def verify_code(self, plaintext: str, code: str) -> ClaimToken:
        token = await self.claims.find(plaintext)
        if token is None:
            raise TokenInvalid("unknown")

        token_id, email = token.id, token.assigned_email
        try:
            async with self._transaction():
                await self.claims.check_code(token, code)
        except Exception as e:
            await self.recorder.record(
                token_id,
                ClaimAttemptKind.VERIFY_CODE,
                success=False,
                failure_reason=_failure_reason(e),
                email=email,
            )
            raise

        await self.recorder.record(
            token_id, ClaimAttemptKind.VERIFY_CODE, success=True, email=email
        )
        await record_audit(
            token.tenant_id,
            action=AuditAction.CLAIM_VERIFY_CODE,
            entity_type="claim_token",
            entity_id=token.id,
            identifier=str(token.card_id) if token.card_id else None,
        )
        return token

    async def redeem(
        self,
        actor: Actor,
        plaintext: str,
        profile_data: ProfileData | None = None,
    ) -> Redemption:
        """Claim a card as the authenticated actor.

        The actor's email is taken from the stored user record, never from
        the request, and must match the token's assigned email.
        """
        token = await self.claims.find(plaintext)
        if token is None:
            raise TokenInvalid("unknown")
        token_id, tenant_id = token.id, token.tenant_id

        claimant = await self.user_repo.get_by_id(actor.user_id)
        if claimant is None or not claimant.is_active:
            raise PermissionDenied("Account is not active")
        email = claimant.email

        try:
            async with self._transaction():
                tenant = await self.tenant_repo.get_by_id(tenant_id)
                if tenant is None or tenant.status not in OPERATIONAL_TENANT_STATUSES:
                    raise TenantInactive(tenant.status if tenant else "unknown")
                redemption = await self.claims.redeem(token, claimant, profile_data)
        except Exception as e:
            await self.recorder.record(
                token_id,
                ClaimAttemptKind.CLAIM,
                success=False,
                failure_reason=_failure_reason(e),
                email=email,
            )
            raise

        await self.recorder.record(token_id, ClaimAttemptKind.CLAIM, success=True, email=email)
        await record_audit(
            tenant_id,
            action=AuditAction.CLAIM_REDEEM,
            entity_type="card",
            entity_id=redemption.card.id,
            identifier=redemption.card.card_uid,
            user_id=claimant.id,
            user_email=email,
            user_role=redemption.membership.role,
            changes={
                "claim_token_id": str(token_id),
                "membership_created": redemption.membership_created,
                "profile_id": str(redemption.profile.id) if redemption.profile else None,
            },
            severity=AuditSeverity.MEDIUM,
        )
        return redemption

    # Audit log

    async def list_audit_logs(
        self,
        actor: Actor,
        cursor: str | None = None,
        limit: int = 50,
        filters: AuditFilters | None = None,
    ) -> tuple[list[AuditLog], str | None, bool]:
        auth = await self.authorize(actor)
        service = AuditService(AuditLogRepository(self.session), self.session, auth.tenant_id)
        return await service.list_logs(filters, cursor=cursor, limit=limit)
