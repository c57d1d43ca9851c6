"""Card and assignment-history models."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Column, Index
from sqlmodel import Field, SQLModel

from src.tapcards.models.base import JSONType, utc_now
from src.tapcards.models.enums import CardStatus, LifecycleStage


class Card(SQLModel, table=True):
    """Physical NFC card owned by exactly one tenant. Never deleted.

    `status` is authoritative for access decisions; `lifecycle_stage` is
    telemetry. Status changes go through CardRepository.transition only.
    """

    __tablename__ = "cards"
    __table_args__ = (
        Index("ix_cards_tenant_status", "tenant_id", "status"),
        Index("ix_cards_tenant_created", "tenant_id", "created_at"),
        Index("ix_cards_tenant_batch", "tenant_id", "batch_number"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    card_uid: str = Field(max_length=16, unique=True, index=True)
    tenant_id: UUID = Field(foreign_key="tenants.id", index=True)

    # Manufacturing metadata
    serial_number: str | None = Field(default=None, max_length=64, unique=True)
    sku: str | None = Field(default=None, max_length=64)
    batch_number: str | None = Field(default=None, max_length=64)
    product_line: str | None = Field(default=None, max_length=64)
    physical: dict[str, Any] | None = Field(default=None, sa_column=Column(JSONType, nullable=True))
    ndef_url: str | None = Field(default=None, max_length=500)

    # Lifecycle
    status: str = Field(default=CardStatus.INVENTORY.value, max_length=20)
    lifecycle_stage: str = Field(default=LifecycleStage.MANUFACTURED.value, max_length=20)

    # Assignment
    assigned_to_user_id: UUID | None = Field(default=None, foreign_key="users.id", index=True)
    assigned_profile_id: UUID | None = Field(default=None, foreign_key="profiles.id")
    claim_token_id: UUID | None = Field(default=None)

    # Telemetry
    tap_count: int = Field(default=0)
    view_count: int = Field(default=0)
    last_tapped_at: datetime | None = Field(default=None)
    last_viewed_at: datetime | None = Field(default=None)

    created_by_user_id: UUID | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    activated_at: datetime | None = Field(default=None)
    suspended_at: datetime | None = Field(default=None)
    deactivated_at: datetime | None = Field(default=None)

    @property
    def status_enum(self) -> CardStatus:
        return CardStatus(self.status)


class CardAssignment(SQLModel, table=True):
    """Append-only assignment history, one row per assignment change."""

    __tablename__ = "card_assignments"
    __table_args__ = (Index("ix_card_assignments_card_created", "card_id", "created_at"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    card_id: UUID = Field(foreign_key="cards.id")
    tenant_id: UUID = Field(foreign_key="tenants.id", index=True)
    action: str = Field(max_length=20)  # AssignmentAction value
    user_id: UUID | None = Field(default=None)
    profile_id: UUID | None = Field(default=None)
    previous_user_id: UUID | None = Field(default=None)
    actor_user_id: UUID | None = Field(default=None)
    reason: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)
