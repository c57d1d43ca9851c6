"""Claim token and claim attempt models."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Column, Index, text
from sqlmodel import Field, SQLModel

from src.tapcards.models.base import JSONType, utc_now
from src.tapcards.models.enums import ClaimTokenStatus

_PENDING = text("status = 'pending'")


class ClaimToken(SQLModel, table=True):
    """Single-use bearer token granting the right to claim one card.

    Only the SHA-256 of the token is stored. The partial unique index keeps
    at most one pending token per card.
    """

    __tablename__ = "claim_tokens"
    __table_args__ = (
        Index("ix_claim_tokens_tenant_created", "tenant_id", "created_at"),
        Index("ix_claim_tokens_status_expires", "status", "expires_at"),
        Index(
            "uq_claim_tokens_pending_card",
            "card_id",
            unique=True,
            postgresql_where=_PENDING,
            sqlite_where=_PENDING,
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    token_hash: str = Field(max_length=64, unique=True, index=True)
    tenant_id: UUID = Field(foreign_key="tenants.id", index=True)
    card_id: UUID | None = Field(default=None, foreign_key="cards.id")

    # Intended recipient
    assigned_email: str = Field(max_length=255)
    assigned_name: str | None = Field(default=None, max_length=100)
    assigned_phone: str | None = Field(default=None, max_length=32)
    assignee_details: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSONType, nullable=True)
    )

    status: str = Field(default=ClaimTokenStatus.PENDING.value, max_length=20)
    expires_at: datetime
    max_uses: int = Field(default=1)
    used_count: int = Field(default=0)

    # Email verification
    require_email_verification: bool = Field(default=True)
    email_verified: bool = Field(default=False)
    verification_code_hash: str | None = Field(default=None, max_length=64)
    verification_code_expires_at: datetime | None = Field(default=None)
    verification_code_issued_at: datetime | None = Field(default=None)

    # Outcome
    claimed_by_user_id: UUID | None = Field(default=None, foreign_key="users.id")
    claimed_at: datetime | None = Field(default=None)
    revoked_at: datetime | None = Field(default=None)
    revoked_by_user_id: UUID | None = Field(default=None)
    revocation_reason: str | None = Field(default=None, max_length=500)

    created_by_user_id: UUID | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def status_enum(self) -> ClaimTokenStatus:
        return ClaimTokenStatus(self.status)


class ClaimAttempt(SQLModel, table=True):
    """Bounded log of verify-code and claim attempts (newest N kept per token)."""

    __tablename__ = "claim_attempts"
    __table_args__ = (Index("ix_claim_attempts_token_created", "claim_token_id", "created_at"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    claim_token_id: UUID = Field(foreign_key="claim_tokens.id")
    kind: str = Field(max_length=20)  # ClaimAttemptKind value
    success: bool = Field(default=False)
    failure_reason: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    ip_address: str | None = Field(default=None, max_length=45)
    user_agent: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)
