"""Audit log model for tracking tenant-scoped actions."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Column, Index
from sqlmodel import Field, SQLModel

from src.tapcards.models.base import JSONType, utc_now


class AuditAction(str, Enum):
    """Audit action types for type-safe logging."""

    # Cards
    CARD_CREATE = "card.create"
    CARD_BULK_CREATE = "card.bulk_create"
    CARD_UPDATE = "card.update"
    CARD_ASSIGN = "card.assign"
    CARD_UNASSIGN = "card.unassign"
    CARD_REASSIGN = "card.reassign"
    CARD_ACTIVATE = "card.activate"
    CARD_DEACTIVATE = "card.deactivate"
    CARD_SUSPEND = "card.suspend"
    CARD_UNSUSPEND = "card.unsuspend"

    # Claims
    CLAIM_GENERATE = "claim.generate"
    CLAIM_BULK_GENERATE = "claim.bulk_generate"
    CLAIM_VERIFY_EMAIL = "claim.verify_email"
    CLAIM_VERIFY_CODE = "claim.verify_code"
    CLAIM_REDEEM = "claim.redeem"
    CLAIM_REVOKE = "claim.revoke"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class AuditSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditLog(SQLModel, table=True):
    """Append-only audit trail. Never contains plaintext tokens or codes."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_tenant_created", "tenant_id", "created_at"),
        Index("ix_audit_logs_action_created", "action", "created_at"),
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    # Context
    tenant_id: UUID = Field(foreign_key="tenants.id", index=True)
    user_id: UUID | None = Field(default=None, index=True)
    user_email: str | None = Field(default=None, max_length=255)
    user_role: str | None = Field(default=None, max_length=50)

    # Action details
    action: str = Field(max_length=50)  # AuditAction value
    entity_type: str = Field(max_length=50)  # "card", "claim_token"
    entity_id: UUID | None = Field(default=None)
    identifier: str | None = Field(default=None, max_length=64)  # card_uid for cards

    changes: dict[str, Any] | None = Field(default=None, sa_column=Column(JSONType, nullable=True))

    # Request metadata
    ip_address: str | None = Field(max_length=45, default=None)
    user_agent: str | None = Field(max_length=500, default=None)
    request_id: str | None = Field(max_length=36, default=None)

    # Result
    severity: str = Field(default=AuditSeverity.LOW.value, max_length=20)
    status: str = Field(default=AuditStatus.SUCCESS.value, max_length=20)
    error_message: str | None = Field(max_length=1000, default=None)

    created_at: datetime = Field(default_factory=utc_now)
