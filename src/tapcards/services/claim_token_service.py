"""Claim token issue, email verification, redemption and revocation."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.tapcards.core.config import get_settings
from src.tapcards.core.logging import get_logger
from src.tapcards.core.security import (
    generate_claim_token,
    generate_verification_code,
    hash_token,
    hash_verification_code,
    verify_code_hash,
)
from src.tapcards.domain import card_rules, claim_rules
from src.tapcards.domain.card_rules import CardOperation, CardSnapshot, PendingTokenView
from src.tapcards.domain.claim_rules import TokenSnapshot
from src.tapcards.domain.errors import (
    CrossTenantAccess,
    InvalidRequest,
    ResourceNotFound,
    TokenInvalid,
    VerificationFailed,
)
from src.tapcards.models import (
    AssignmentAction,
    Card,
    ClaimAttemptKind,
    ClaimToken,
    ClaimTokenStatus,
    MembershipRole,
    Profile,
    QuotaResource,
    User,
    UserTenantMembership,
)
from src.tapcards.models.base import utc_now
from src.tapcards.repositories import (
    ClaimAttemptRepository,
    ClaimTokenRepository,
    MembershipRepository,
    ProfileRepository,
)
from src.tapcards.services.card_registry import CardRegistry
from src.tapcards.services.quota_ledger import QuotaLedger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Assignee:
    email: str
    name: str | None = None
    phone: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ProfileData:
    username: str
    display_name: str
    title: str | None = None


@dataclass(frozen=True)
class IssuedToken:
    """A freshly issued token. `plaintext` exists only in this object."""

    token: ClaimToken
    plaintext: str
    claim_url: str


@dataclass(frozen=True)
class Redemption:
    token: ClaimToken
    card: Card
    membership: UserTenantMembership
    membership_created: bool
    profile: Profile | None = None


def build_claim_url(plaintext: str) -> str:
    return f"{get_settings().app_url}/claim/{plaintext}"


class ClaimTokenService:
    """Claim token state machine: pending -> claimed | expired | revoked.

    All methods run inside the caller's transaction and never commit. Validity
    is always evaluated against the request time, so the expiry sweep is only
    housekeeping.
    """

    def __init__(
        self,
        session: AsyncSession,
        claim_token_repo: ClaimTokenRepository,
        attempt_repo: ClaimAttemptRepository,
        membership_repo: MembershipRepository,
        profile_repo: ProfileRepository,
        registry: CardRegistry,
        ledger: QuotaLedger,
    ):
        self.session = session
        self.claim_token_repo = claim_token_repo
        self.attempt_repo = attempt_repo
        self.membership_repo = membership_repo
        self.profile_repo = profile_repo
        self.registry = registry
        self.ledger = ledger

    async def get_owned(self, tenant_id: UUID, token_id: UUID) -> ClaimToken:
        token = await self.claim_token_repo.get_by_id(token_id)
        if token is None:
            raise ResourceNotFound("claim token")
        if token.tenant_id != tenant_id:
            raise CrossTenantAccess("claim token")
        return token

    async def issue(
        self,
        card: Card,
        assignee: Assignee,
        expires_in_days: int | None = None,
        require_email_verification: bool = True,
        created_by_user_id: UUID | None = None,
    ) -> IssuedToken:
        settings = get_settings()
        days = claim_rules.resolve_expiry_days(
            expires_in_days,
            settings.claim_token_expire_days,
            settings.claim_token_max_expire_days,
        )
        now = utc_now()

        pending = await self.claim_token_repo.get_pending_for_card(card.id)
        pending_view = PendingTokenView(pending.id, pending.expires_at) if pending else None
        transition = card_rules.decide_generate_claim(CardSnapshot.of(card), pending_view, now)
        if pending is not None:
            # Outstanding tokens were rejected above, so this one has lapsed
            await self.claim_token_repo.mark_expired(pending.id, now)

        plaintext, token_hash = generate_claim_token()
        token = ClaimToken(
            token_hash=token_hash,
            tenant_id=card.tenant_id,
            card_id=card.id,
            assigned_email=claim_rules.normalize_email(assignee.email),
            assigned_name=assignee.name,
            assigned_phone=assignee.phone,
            assignee_details=assignee.details,
            expires_at=now + timedelta(days=days),
            require_email_verification=require_email_verification,
            created_by_user_id=created_by_user_id,
        )
        self.claim_token_repo.add(token)
        await self.session.flush()

        await self.registry.apply(card, transition, claim_token_id=token.id)

        logger.info(
            "Claim token issued",
            claim_token_id=str(token.id),
            card_id=str(card.id),
            expires_at=token.expires_at.isoformat(),
        )
        return IssuedToken(token=token, plaintext=plaintext, claim_url=build_claim_url(plaintext))

    async def resolve(self, plaintext: str, now: datetime | None = None) -> ClaimToken:
        """Look a plaintext token up by hash and require it to be valid."""
        token = await self.find(plaintext)
        if token is None:
            raise TokenInvalid("unknown")
        claim_rules.ensure_valid(TokenSnapshot.of(token), now or utc_now())
        return token

    async def find(self, plaintext: str) -> ClaimToken | None:
        return await self.claim_token_repo.get_by_hash(hash_token(plaintext))

    async def issue_verification_code(self, token: ClaimToken) -> str:
        """Store a fresh code for `token` and return the plaintext for delivery."""
        settings = get_settings()
        now = utc_now()
        snapshot = TokenSnapshot.of(token)
        claim_rules.ensure_valid(snapshot, now)
        if not snapshot.require_email_verification:
            raise VerificationFailed("verification_not_required")
        if snapshot.email_verified:
            raise VerificationFailed("already_verified")

        code = generate_verification_code()
        expires_at = now + timedelta(minutes=settings.verification_code_expire_minutes)
        stored = await self.claim_token_repo.store_verification_code(
            token.id, hash_verification_code(code, token.id), now, expires_at
        )
        if not stored:
            raise TokenInvalid("not_pending")
        await self.session.refresh(token)
        return code

    async def check_code(self, token: ClaimToken, code: str) -> ClaimToken:
        """Verify a submitted code. Success marks the email verified only."""
        settings = get_settings()
        now = utc_now()
        claim_rules.ensure_code_checkable(TokenSnapshot.of(token), now)

        issued_at = token.verification_code_issued_at or token.created_at
        failures = await self.attempt_repo.count_failures_since(
            token.id, ClaimAttemptKind.VERIFY_CODE.value, issued_at
        )
        if claim_rules.is_verification_locked(failures, settings.verification_max_failed_attempts):
            raise VerificationFailed("too_many_attempts")

        expected = token.verification_code_hash or ""
        if not verify_code_hash(code.strip(), token.id, expected):
            raise VerificationFailed("invalid_code")
        if not await self.claim_token_repo.mark_email_verified(token.id, expected):
            raise VerificationFailed("code_superseded")

        await self.session.refresh(token)
        return token

    async def redeem(
        self,
        token: ClaimToken,
        claimant: User,
        profile_data: ProfileData | None = None,
    ) -> Redemption:
        """Consume the token and hand its card to `claimant`.

        Every write lands in the caller's transaction; the caller rolls back
        on any error so a failed claim leaves no partial state.
        """
        now = utc_now()
        claim_rules.ensure_redeemable(TokenSnapshot.of(token), claimant.email, now)
        if token.card_id is None:
            raise TokenInvalid("no_card")

        # Consume first: a concurrent loser fails here, before it reads the card
        if not await self.claim_token_repo.consume(token.id, claimant.id, now):
            raise TokenInvalid("already_consumed")

        card = await self.registry.get_owned(token.tenant_id, token.card_id)
        if card.claim_token_id != token.id:
            raise TokenInvalid("card_detached")
        transition = card_rules.decide(CardSnapshot.of(card), CardOperation.REDEEM_CLAIM)

        membership, membership_created = await self._admit(claimant, token.tenant_id)

        profile = None
        if profile_data is not None:
            profile = await self._create_profile(claimant, token.tenant_id, profile_data)

        await self.registry.apply(
            card,
            transition,
            assigned_to_user_id=claimant.id,
            assigned_profile_id=profile.id if profile else None,
            activated_at=card.activated_at or now,
        )
        self.registry.assignment_repo.append(
            card=card,
            action=AssignmentAction.CLAIMED.value,
            user_id=claimant.id,
            profile_id=profile.id if profile else None,
            actor_user_id=claimant.id,
        )
        await self.session.flush()
        await self.session.refresh(token)

        logger.info(
            "Claim token redeemed",
            claim_token_id=str(token.id),
            card_id=str(card.id),
            user_id=str(claimant.id),
            membership_created=membership_created,
        )
        return Redemption(
            token=token,
            card=card,
            membership=membership,
            membership_created=membership_created,
            profile=profile,
        )

    async def _admit(self, user: User, tenant_id: UUID) -> tuple[UserTenantMembership, bool]:
        membership = await self.membership_repo.get_membership(user.id, tenant_id)
        if membership is not None and membership.is_active:
            return membership, False

        await self.ledger.reserve(tenant_id, QuotaResource.USERS)
        if membership is None:
            membership = self.membership_repo.create_membership(
                user.id, tenant_id, MembershipRole.MEMBER.value
            )
        else:
            membership.is_active = True
            self.session.add(membership)
        await self.session.flush()
        return membership, True

    async def _create_profile(
        self, user: User, tenant_id: UUID, data: ProfileData
    ) -> Profile:
        if await self.profile_repo.username_taken(data.username):
            raise InvalidRequest("Username is already taken")
        await self.ledger.reserve(tenant_id, QuotaResource.PROFILES)

        profile = Profile(
            tenant_id=tenant_id,
            user_id=user.id,
            username=data.username,
            display_name=data.display_name,
            title=data.title,
        )
        self.profile_repo.add(profile)
        await self.session.flush()
        return profile

    async def revoke(
        self, token: ClaimToken, revoked_by_user_id: UUID | None, reason: str | None = None
    ) -> ClaimToken:
        if token.status != ClaimTokenStatus.PENDING.value:
            raise InvalidRequest(f"Claim token is already {token.status}")
        if not await self.claim_token_repo.revoke(token.id, revoked_by_user_id, reason):
            await self.session.refresh(token)
            raise InvalidRequest(f"Claim token is already {token.status}")

        if token.card_id is not None:
            card = await self.registry.card_repo.get_by_id(token.card_id)
            if card is not None and await self.registry.detach_claim_token(card, token.id):
                await self.session.refresh(card)

        await self.session.refresh(token)
        return token

    async def expire_sweep(self, now: datetime | None = None) -> int:
        """Flip lapsed pending tokens to expired. Validity never depends on this."""
        return await self.claim_token_repo.expire_stale(now or utc_now())

    async def list_tokens(
        self,
        tenant_id: UUID,
        status: str | None = None,
        search: str | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[ClaimToken], str | None, bool]:
        return await self.claim_token_repo.list_by_tenant(tenant_id, status, search, cursor, limit)
