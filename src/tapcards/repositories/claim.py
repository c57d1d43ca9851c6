"""Repositories for claim tokens and claim attempts."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, or_, update
from sqlmodel import select

from src.tapcards.models import ClaimAttempt, ClaimToken, ClaimTokenStatus
from src.tapcards.models.base import utc_now
from src.tapcards.repositories.base import BaseRepository


class ClaimTokenRepository(BaseRepository[ClaimToken]):
    """Claim token data access. Lookup is by hash only."""

    model = ClaimToken

    async def get_by_hash(self, token_hash: str) -> ClaimToken | None:
        result = await self.session.execute(
            select(ClaimToken)
            .where(ClaimToken.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_pending_for_card(self, card_id: UUID) -> ClaimToken | None:
        result = await self.session.execute(
            select(ClaimToken).where(
                ClaimToken.card_id == card_id,
                ClaimToken.status == ClaimTokenStatus.PENDING.value,
            )
        )
        return result.scalar_one_or_none()

    async def consume(self, token_id: UUID, user_id: UUID, now: datetime) -> bool:
        """Redeem the token if, and only if, it is still valid at `now`.

        Validity is re-checked inside the UPDATE, so of two concurrent
        redemptions exactly one matches a row.
        """
        stmt = (
            update(ClaimToken)
            .where(
                ClaimToken.id == token_id,  # type: ignore[arg-type]
                ClaimToken.status == ClaimTokenStatus.PENDING.value,  # type: ignore[arg-type]
                ClaimToken.expires_at > now,  # type: ignore[arg-type]
                ClaimToken.used_count < ClaimToken.max_uses,  # type: ignore[arg-type]
            )
            .values(
                used_count=ClaimToken.used_count + 1,
                status=ClaimTokenStatus.CLAIMED.value,
                claimed_by_user_id=user_id,
                claimed_at=now,
                updated_at=now,
            )
        )
        return await self.execute_update(stmt) == 1

    async def revoke(
        self, token_id: UUID, revoked_by_user_id: UUID | None, reason: str | None
    ) -> bool:
        now = utc_now()
        stmt = (
            update(ClaimToken)
            .where(
                ClaimToken.id == token_id,  # type: ignore[arg-type]
                ClaimToken.status == ClaimTokenStatus.PENDING.value,  # type: ignore[arg-type]
            )
            .values(
                status=ClaimTokenStatus.REVOKED.value,
                revoked_at=now,
                revoked_by_user_id=revoked_by_user_id,
                revocation_reason=reason,
                verification_code_hash=None,
                updated_at=now,
            )
        )
        return await self.execute_update(stmt) == 1

    async def mark_expired(self, token_id: UUID, now: datetime) -> bool:
        stmt = (
            update(ClaimToken)
            .where(
                ClaimToken.id == token_id,  # type: ignore[arg-type]
                ClaimToken.status == ClaimTokenStatus.PENDING.value,  # type: ignore[arg-type]
                ClaimToken.expires_at <= now,  # type: ignore[arg-type]
            )
            .values(status=ClaimTokenStatus.EXPIRED.value, updated_at=now)
        )
        return await self.execute_update(stmt) == 1

    async def expire_stale(self, now: datetime) -> int:
        """Flip every pending token past its expiry to expired."""
        stmt = (
            update(ClaimToken)
            .where(
                ClaimToken.status == ClaimTokenStatus.PENDING.value,  # type: ignore[arg-type]
                ClaimToken.expires_at <= now,  # type: ignore[arg-type]
            )
            .values(status=ClaimTokenStatus.EXPIRED.value, updated_at=now)
        )
        return await self.execute_update(stmt)

    async def store_verification_code(
        self, token_id: UUID, code_hash: str, issued_at: datetime, expires_at: datetime
    ) -> bool:
        stmt = (
            update(ClaimToken)
            .where(
                ClaimToken.id == token_id,  # type: ignore[arg-type]
                ClaimToken.status == ClaimTokenStatus.PENDING.value,  # type: ignore[arg-type]
            )
            .values(
                verification_code_hash=code_hash,
                verification_code_issued_at=issued_at,
                verification_code_expires_at=expires_at,
                updated_at=issued_at,
            )
        )
        return await self.execute_update(stmt) == 1

    async def mark_email_verified(self, token_id: UUID, code_hash: str) -> bool:
        """Set email_verified if the code hash is still the one that was checked."""
        stmt = (
            update(ClaimToken)
            .where(
                ClaimToken.id == token_id,  # type: ignore[arg-type]
                ClaimToken.status == ClaimTokenStatus.PENDING.value,  # type: ignore[arg-type]
                ClaimToken.verification_code_hash == code_hash,  # type: ignore[arg-type]
            )
            .values(
                email_verified=True,
                verification_code_hash=None,
                verification_code_expires_at=None,
                updated_at=utc_now(),
            )
        )
        return await self.execute_update(stmt) == 1

    async def list_by_tenant(
        self,
        tenant_id: UUID,
        status: str | None = None,
        search: str | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[ClaimToken], str | None, bool]:
        query = select(ClaimToken).where(ClaimToken.tenant_id == tenant_id)
        if status:
            query = query.where(ClaimToken.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    ClaimToken.assigned_email.ilike(pattern),  # type: ignore[attr-defined]
                    ClaimToken.assigned_name.ilike(pattern),  # type: ignore[union-attr]
                )
            )
        return await self.paginate(query, cursor, limit, ClaimToken.created_at)


class ClaimAttemptRepository(BaseRepository[ClaimAttempt]):
    model = ClaimAttempt

    async def count_failures_since(self, token_id: UUID, kind: str, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(ClaimAttempt)
            .where(
                ClaimAttempt.claim_token_id == token_id,
                ClaimAttempt.kind == kind,
                ClaimAttempt.success == False,  # noqa: E712
                ClaimAttempt.created_at >= since,
            )
        )
        return int(result.scalar_one())

    async def prune(self, token_id: UUID, keep: int) -> int:
        """Delete all but the newest `keep` attempts for a token."""
        newest = (
            select(ClaimAttempt.id)
            .where(ClaimAttempt.claim_token_id == token_id)
            .order_by(ClaimAttempt.created_at.desc())  # type: ignore[attr-defined]
            .limit(keep)
        )
        stmt = delete(ClaimAttempt).where(
            ClaimAttempt.claim_token_id == token_id,  # type: ignore[arg-type]
            ClaimAttempt.id.not_in(newest),  # type: ignore[attr-defined]
        )
        return await self.execute_update(stmt)

    async def list_for_token(self, token_id: UUID) -> list[ClaimAttempt]:
        result = await self.session.execute(
            select(ClaimAttempt)
            .where(ClaimAttempt.claim_token_id == token_id)
            .order_by(ClaimAttempt.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())
